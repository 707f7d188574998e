"""
Execution environment - shared mutable state for one top-level invocation

Calling convention for the value stack: values are pushed in the order they
are expected by later steps::

    [--- lower values ---][ push 1 ][ push 2 ][ push 3 ]

A step that is two arguments short takes ``2`` and ``3`` (in that order) and
leaves ``1`` for whoever needs it next.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from .common import FlowLogger, callable_name, is_hidden
from .context import CallContextTree, TraceEntry, format_call_tree, format_stack_trace
from .scheduler import TickScheduler, get_scheduler

Handler = Callable[..., None]
LogSink = Callable[[str], Any]


class Environment:
    """
    Shared per-invocation execution context.

    Holds the value stack, the exception-handler stack, the call-context
    tree, the logging sink and the scheduler used by every composition
    invoked with it. Keyword arguments become initial attributes, and steps
    are free to set further attributes on it.
    """

    def __init__(
        self,
        log: Optional[LogSink] = None,
        scheduler: Optional[TickScheduler] = None,
        **values: Any,
    ) -> None:
        self.log: LogSink = log if log is not None else FlowLogger().error
        self.scheduler: TickScheduler = scheduler if scheduler is not None else get_scheduler()
        self.values: List[Any] = []
        self.handlers: List[Tuple[Handler, Callable[..., None]]] = []
        self.pending_catch: Optional[Callable[..., None]] = None
        self.call_tree = CallContextTree()
        self.halted = False
        self._halt_listeners: List[Callable[[], Any]] = []
        for key, value in values.items():
            setattr(self, key, value)

    # -- value stack -----------------------------------------------------

    def push_value(self, value: Any) -> None:
        self.values.append(value)

    def pop_value(self) -> Any:
        """Pop the topmost value; an empty stack yields None."""
        if not self.values:
            return None
        return self.values.pop()

    def take_values(self, count: int) -> List[Any]:
        """Remove the last ``count`` values, oldest first."""
        if count <= 0:
            return []
        taken = self.values[-count:]
        del self.values[-count:]
        return taken

    def stash_values(self, values: List[Any]) -> None:
        self.values.extend(values)

    # -- exception-handler stack -----------------------------------------

    def push_handler(self, handler: Handler, resume: Callable[..., None]) -> None:
        self.handlers.append((handler, resume))

    def pop_handler(self) -> Optional[Tuple[Handler, Callable[..., None]]]:
        """Discard the topmost entry on normal completion of a composition."""
        if not self.handlers:
            return None
        return self.handlers.pop()

    def throw_exception(self, err: Any, *extra: Any) -> None:
        """
        Unwind ``err`` to the innermost exception handler.

        The handler is called with ``(env, err, *extra)``. When no handler is
        left, the error is logged with a back-trace and the invocation stops.
        """
        entry = self.handlers.pop() if self.handlers else None
        backtrace = self.format_stack_trace(self.get_back_trace())
        _attach_backtrace(err, backtrace)

        if entry is None:
            self._halt(
                "Uncaught exception -- processing chain terminated: %r\nBacktrace: %s"
                % (err, backtrace)
            )
            return

        handler, resume = entry
        self.pending_catch = resume
        self.call_tree.push_call("env.throw_exception")
        handler(self, err, *extra)

    def catch_exception(self) -> None:
        """Mark the current exception handled and resume after its composition."""
        resume = self.pending_catch
        self.pending_catch = None

        if resume is None:
            self._halt(
                "Caught exception, but no after() exists -- processing chain terminated\nBacktrace: %s"
                % self.format_stack_trace(self.get_back_trace())
            )
            return

        self.call_tree.push_call("env.catch_exception")
        name = callable_name(resume)
        if not is_hidden(name):
            self.call_tree.push_call(name)
        resume()

    def check_error(self, after: Callable[..., Any]) -> Callable[..., None]:
        """
        Adapt ``after`` to a ``callback(err, *results)`` style API.

        ``api_call(args, env.check_error(after))`` replaces the usual "if err,
        throw, else continue" boilerplate.
        """
        def _checked(err: Any = None, *rest: Any) -> None:
            if err:
                self.throw_exception(err)
            else:
                after(*rest)

        return _checked

    # -- halting -----------------------------------------------------------

    def add_halt_listener(self, listener: Callable[[], Any]) -> None:
        """Call ``listener()`` once this invocation stops without completing."""
        self._halt_listeners.append(listener)

    def _halt(self, message: str) -> None:
        self.log(message)
        self._mark_halted()

    def _mark_halted(self) -> None:
        self.halted = True
        for listener in list(self._halt_listeners):
            listener()

    # -- traces ------------------------------------------------------------

    def get_exec_trace(self) -> List[TraceEntry]:
        return self.call_tree.exec_trace()

    def get_back_trace(self) -> List[TraceEntry]:
        return self.call_tree.back_trace()

    def format_call_tree(self, trace: List[TraceEntry]) -> str:
        return format_call_tree(trace)

    def format_stack_trace(self, trace: List[TraceEntry]) -> str:
        return format_stack_trace(trace)


class LocalEnvironment(Environment):
    """
    Per-branch environment used inside a ParallelChain.

    Has its own value stack, handler stack and call-context tree. Attribute
    reads that miss here are served by the parent environment; writes stay
    local. Traces read as "parent context, then local context".
    """

    def __init__(self, parent: Environment, branch_index: int) -> None:
        self.parent = parent
        self.branch_index = branch_index
        super().__init__(log=parent.log, scheduler=parent.scheduler)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails.
        if name == "parent" or name.startswith("__"):
            raise AttributeError(name)
        return getattr(self.parent, name)

    def _mark_halted(self) -> None:
        super()._mark_halted()
        self.parent._mark_halted()

    def get_exec_trace(self) -> List[TraceEntry]:
        return self.parent.get_exec_trace() + self.call_tree.exec_trace()

    def get_back_trace(self) -> List[TraceEntry]:
        return self.parent.get_back_trace() + self.call_tree.back_trace()


def _attach_backtrace(err: Any, backtrace: str) -> None:
    try:
        err.backtrace = backtrace
    except (AttributeError, TypeError):
        # Builtin values such as str or int do not take attributes.
        pass
