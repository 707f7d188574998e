"""
Core type definitions

Errors raised for library misuse, the tagged outcome of a single step
invocation, and the result object reported by the engine entry points.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Any
from enum import Enum


class FlowError(RuntimeError):
    """Base class for errors raised synchronously to the library caller."""


class StepDefinitionError(FlowError, ValueError):
    """A step or composition was defined in a way that cannot be invoked."""

    def __init__(self, message: str, *, step: Any = None):
        super().__init__(message)
        self.step = step


class SchedulerStalledError(FlowError):
    """The tick queue was still busy after the configured number of ticks."""

    def __init__(self, message: str, *, ticks: int = 0, queued: int = 0):
        super().__init__(message)
        self.ticks = ticks
        self.queued = queued


class OutcomeStatus(Enum):
    """Status of one step invocation"""
    SUCCEEDED = "succeeded"       # the callable returned; it owns its continuation
    FAILED = "failed"             # the callable raised synchronously


@dataclass(frozen=True)
class StepOutcome:
    """Tagged result of calling a step's callable once."""

    status: OutcomeStatus
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @classmethod
    def success(cls) -> "StepOutcome":
        return _SUCCESS

    @classmethod
    def failure(cls, error: BaseException) -> "StepOutcome":
        return cls(OutcomeStatus.FAILED, error)


_SUCCESS = StepOutcome(OutcomeStatus.SUCCEEDED)


class RunStatus(Enum):
    """Terminal state of a top-level run"""
    COMPLETED = "completed"       # the terminal continuation fired
    HALTED = "halted"             # the invocation stopped producing callbacks


@dataclass
class ChainResult:
    """Result of running a composition through the engine entry points"""
    status: RunStatus                       # terminal state
    values: Tuple[Any, ...] = ()            # arguments given to the terminal continuation
    env: Any = None                         # the environment used for the run
    ticks: int = 0                          # scheduler entries executed
    trace: List[Tuple[str, int]] = field(default_factory=list)   # execution trace

    @property
    def completed(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def value(self) -> Any:
        """First terminal value, or None."""
        return self.values[0] if self.values else None
