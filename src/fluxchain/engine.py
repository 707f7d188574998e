"""
Engine entry points

run() drives a composition to the end on a manually drained scheduler;
run_async() does the same on the running asyncio loop. Both report a
ChainResult instead of leaving the caller to wire a terminal continuation.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Tuple

from .common import EngineConfig, FlowLogger, callable_name
from .environment import Environment
from .interfaces import Composable
from .scheduler import TickScheduler, manual_defer
from .types import ChainResult, RunStatus


def _build_result(env: Environment, values: Optional[Tuple[Any, ...]], ticks: int) -> ChainResult:
    return ChainResult(
        status=RunStatus.COMPLETED if values is not None else RunStatus.HALTED,
        values=values if values is not None else (),
        env=env,
        ticks=ticks,
        trace=[tuple(entry) for entry in env.get_exec_trace()],
    )


def run(
    chain: Composable,
    *args: Any,
    env: Optional[Environment] = None,
    config: Optional[EngineConfig] = None,
) -> ChainResult:
    """
    Invoke ``chain`` with ``args`` and drain the scheduler until idle.

    Args:
        chain: any composition (or composition-like callable)
        env: environment to run with; a fresh one on a manual scheduler by default
        config: engine configuration; ``max_ticks`` bounds the drain

    Returns:
        ChainResult: COMPLETED with the terminal values, or HALTED when the
        terminal continuation never fired

    Raises:
        SchedulerStalledError: the run needed more than ``config.max_ticks`` entries
    """

    config = config or EngineConfig()
    logger = FlowLogger(config=config)
    if env is None:
        env = Environment(log=logger.error, scheduler=TickScheduler(defer=manual_defer))

    outcome = {}

    def _finish(*values: Any) -> None:
        outcome.setdefault("values", values)

    name = callable_name(chain)
    logger.debug(f"run start: {name} args={args!r}")

    chain(env, _finish, *args)
    ticks = env.scheduler.run_until_idle(config.max_ticks)

    result = _build_result(env, outcome.get("values"), ticks)
    logger.debug(f"run finished: {name} status={result.status.value} ticks={ticks}")
    return result


async def run_async(
    chain: Composable,
    *args: Any,
    env: Optional[Environment] = None,
    timeout: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> ChainResult:
    """
    Invoke ``chain`` on the running event loop and wait for it to finish.

    The run ends when the terminal continuation fires (COMPLETED), when the
    environment halts on an unhandled exception (HALTED) or when ``timeout``
    seconds have passed (HALTED). A supplied environment must use a
    scheduler that defers onto the event loop.
    """

    config = config or EngineConfig()
    logger = FlowLogger(config=config)
    loop = asyncio.get_running_loop()
    if env is None:
        env = Environment(log=logger.error, scheduler=TickScheduler())

    done: asyncio.Future = loop.create_future()
    start_ticks = env.scheduler.ticks_run

    def _finish(*values: Any) -> None:
        if not done.done():
            done.set_result(values)

    def _halted() -> None:
        if not done.done():
            done.set_result(None)

    env.add_halt_listener(_halted)

    name = callable_name(chain)
    logger.debug(f"run_async start: {name} args={args!r} timeout={timeout}")

    chain(env, _finish, *args)
    try:
        values = await asyncio.wait_for(done, timeout)
    except asyncio.TimeoutError:
        logger.warning(f"run_async timed out after {timeout}s: {name}")
        values = None

    result = _build_result(env, values, env.scheduler.ticks_run - start_ticks)
    logger.debug(f"run_async finished: {name} status={result.status.value}")
    return result
