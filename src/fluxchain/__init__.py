"""
fluxchain - continuation-passing control flow for Python

Compose callback-style steps into serial chains, loops, parallel fan-outs
and branches, executed through a tick scheduler.

Main features:
- Chain / LoopChain / ParallelChain / Branch compositions
- Value stack for passing arguments past intermediate steps
- Scoped exception handlers with back-traces
- Call-context traces and DOT export
- asyncio integration
"""

# Main API
from .engine import run, run_async
from .serial import Chain
from .loop import LoopChain
from .parallel import ParallelChain
from .branch import Branch
from .base import ChainBase
from .environment import Environment, LocalEnvironment
from .scheduler import TickScheduler, asyncio_defer, manual_defer, get_scheduler, set_scheduler
from .step import StepDescriptor, make_step, step
from .interfaces import ChainKind, Composable
from .common import EngineConfig, FlowLogger
from .types import (
    FlowError,
    StepDefinitionError,
    SchedulerStalledError,
    StepOutcome,
    OutcomeStatus,
    ChainResult,
    RunStatus,
)
from .context import TraceEntry, format_call_tree, format_stack_trace
from .adapters import async_step, callback_step
from .graph import gen_dot
from . import patterns

__version__ = "1.0.0"

__all__ = [
    # Entry points
    "run",
    "run_async",

    # Compositions
    "Chain",
    "LoopChain",
    "ParallelChain",
    "Branch",
    "ChainBase",
    "ChainKind",
    "Composable",

    # Steps
    "StepDescriptor",
    "make_step",
    "step",
    "async_step",
    "callback_step",

    # Execution
    "Environment",
    "LocalEnvironment",
    "TickScheduler",
    "asyncio_defer",
    "manual_defer",
    "get_scheduler",
    "set_scheduler",
    "EngineConfig",
    "FlowLogger",

    # Results and errors
    "ChainResult",
    "RunStatus",
    "StepOutcome",
    "OutcomeStatus",
    "FlowError",
    "StepDefinitionError",
    "SchedulerStalledError",

    # Traces and rendering
    "TraceEntry",
    "format_call_tree",
    "format_stack_trace",
    "gen_dot",
    "patterns",
]
