"""Tick queue that batches deferred continuations.

Every step invocation goes through :meth:`TickScheduler.schedule` instead of
being called in the caller's frame. Queued entries are executed by
:meth:`TickScheduler.drain`, which the host registers at most once per turn.

The host facility is injectable. By default the drain is registered with
``loop.call_soon`` on the running asyncio loop; when no loop is running
nothing is registered and the owner is expected to call
:meth:`TickScheduler.run_until_idle`.

A defer callable returns ``NOT_REGISTERED`` when it registered nothing, so
the next schedule tries again. Any other return value is kept as the
registration; an event loop returned this way is checked for having been
closed before its drain ran.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .types import SchedulerStalledError

Defer = Callable[[Callable[[], None]], Any]

NOT_REGISTERED = False

_NO_ARGS: Tuple[Any, ...] = ()


def asyncio_defer(drain: Callable[[], None]) -> Any:
    """Register ``drain`` with the running event loop, if there is one."""

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return NOT_REGISTERED
    loop.call_soon(drain)
    return loop


def manual_defer(drain: Callable[[], None]) -> Any:
    """Never register anything; the owner drains explicitly."""

    return NOT_REGISTERED


class TickScheduler:
    """FIFO batching layer over a host deferred-callback facility."""

    def __init__(self, defer: Optional[Defer] = None) -> None:
        self._defer: Defer = defer or asyncio_defer
        self._queue: List[Tuple[Callable[..., Any], Sequence[Any]]] = []
        self._registration: Any = None
        self.pending = False
        self.ticks_run = 0

    def _request_drain(self) -> None:
        registration = self._defer(self.drain)
        self.pending = registration is not NOT_REGISTERED
        self._registration = registration if self.pending else None

    def _registration_lost(self) -> bool:
        registration = self._registration
        return isinstance(registration, asyncio.AbstractEventLoop) and registration.is_closed()

    def schedule(self, fn: Callable[..., Any], args: Optional[Sequence[Any]] = None) -> None:
        """Enqueue ``fn(*args)`` for the next drain."""

        self._queue.append((fn, args if args is not None else _NO_ARGS))
        if not self.pending or self._registration_lost():
            self._request_drain()

    def drain(self, limit: Optional[int] = None) -> int:
        """
        Run queued entries in FIFO order, including ones queued while draining.

        ``limit`` caps the number of entries executed by this pass; whatever
        is left stays queued. Returns the number of entries executed.
        """

        queue = self._queue
        idx = 0
        try:
            while idx < len(queue) and (limit is None or idx < limit):
                fn, args = queue[idx]
                idx += 1
                self.ticks_run += 1
                fn(*args)
        finally:
            del queue[:idx]
            self.pending = False
            self._registration = None
            if queue:
                self._request_drain()
        return idx

    @property
    def idle(self) -> bool:
        return not self._queue

    def __len__(self) -> int:
        return len(self._queue)

    def run_until_idle(self, max_ticks: Optional[int] = None) -> int:
        """
        Drain until the queue is empty; returns the number of entries run.

        Raises SchedulerStalledError when more than ``max_ticks`` entries
        would be needed.
        """

        executed = 0
        while self._queue:
            if max_ticks is not None and executed >= max_ticks:
                raise SchedulerStalledError(
                    f"tick queue still holds {len(self._queue)} entries after {executed} ticks",
                    ticks=executed,
                    queued=len(self._queue),
                )
            remaining = None if max_ticks is None else max_ticks - executed
            executed += self.drain(remaining)
        return executed


_default_scheduler: Optional[TickScheduler] = None


def get_scheduler() -> TickScheduler:
    """Process-wide scheduler used by environments created without one."""

    global _default_scheduler
    if _default_scheduler is None:
        _default_scheduler = TickScheduler()
    return _default_scheduler


def set_scheduler(scheduler: Optional[TickScheduler]) -> None:
    """Replace (or with ``None`` reset) the process-wide scheduler."""

    global _default_scheduler
    _default_scheduler = scheduler
