"""
Shared contract of all compositions

ChainBase holds what Chain, LoopChain, ParallelChain and Branch have in
common: exception handler registration, the ``bind_after_env`` policy,
argument adaptation against the value stack, the glue pushed onto the
environment's exception-handler stack, the terminal continuation wrapper,
and the positional mutators over the step list.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .common import callable_name, is_hidden
from .environment import Environment
from .interfaces import ChainKind
from .step import StepDescriptor, as_step

Continuation = Callable[..., Any]


class ChainBase(ABC):
    """Base of the composition kinds; never instantiated directly."""

    kind: ChainKind
    default_name = "(anonymous chain)"

    def __init__(self, steps: Sequence[Any] = (), name: Optional[str] = None) -> None:
        self._steps: List[StepDescriptor] = [as_step(s) for s in steps]
        self.name = name or self.default_name
        self.exception_handler: Optional[Callable[..., Any]] = None
        self.bind_after_env = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, steps={len(self._steps)})"

    def __call__(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        self.invoke(env, after, *args)

    @abstractmethod
    def invoke(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        """Run the composition with ``env``; ``after`` receives its output."""

    @property
    def steps(self) -> Tuple[StepDescriptor, ...]:
        return tuple(self._steps)

    @property
    def arity(self) -> int:
        return self._steps[0].arity if self._steps else 0

    # -- configuration -----------------------------------------------------

    def set_exception_handler(self, handler: Optional[Callable[..., Any]]) -> "ChainBase":
        """
        Handle exceptions thrown inside this composition.

        ``handler(env, err, *extra)`` either calls ``env.catch_exception()`` to
        resume after this composition, or throws again to pass the error on.
        """
        self.exception_handler = handler
        return self

    def set_bind_after_env(self, bind: bool) -> "ChainBase":
        """Pass the environment as first argument to the terminal continuation."""
        self.bind_after_env = bind
        return self

    # -- argument adaptation -----------------------------------------------

    @staticmethod
    def handle_args(env: Environment, step: StepDescriptor, args: Sequence[Any]) -> List[Any]:
        """
        Fit ``args`` to ``step.arity`` using the value stack.

        Short calls are completed from the top of the stack (oldest of the
        taken values first); surplus trailing arguments are pushed onto it.
        When the stack holds too few values, the missing trailing arguments
        are filled with ``None``, so the step always gets exactly ``arity``
        arguments.
        """
        args = list(args)
        missing = step.arity - len(args)

        if missing == 0:
            return args
        if missing > 0:
            adapted = env.take_values(missing) + args
            if len(adapted) < step.arity:
                adapted.extend([None] * (step.arity - len(adapted)))
            return adapted

        env.stash_values(args[missing:])
        del args[missing:]
        return args

    # -- glue ----------------------------------------------------------------

    def enter(self, env: Environment, after: Continuation) -> Continuation:
        """
        Register this composition on ``env`` and return the wrapped ``after``.

        Pushes the exception-handler entry and the call-context frame.
        """
        env.push_handler(self._handle_exception, self._make_resume(env, after))
        glue = self._make_after_glue(env, after)
        env.call_tree.push_context(self.name)
        return glue

    def _handle_exception(self, env: Environment, err: Any, *extra: Any) -> None:
        if self.exception_handler is not None:
            env.call_tree.push_call(callable_name(self.exception_handler))
            env.call_tree.pop_context()
            self.exception_handler(env, err, *extra)
        else:
            env.call_tree.pop_context()
            env.throw_exception(err, *extra)

    def _bind(self, env: Environment, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
        return (env,) + args if self.bind_after_env else args

    def _make_resume(self, env: Environment, after: Continuation) -> Continuation:
        after_name = callable_name(after, "(lambda function)")

        def _resume(*args: Any) -> None:
            if not is_hidden(after_name):
                env.call_tree.push_call(after_name)
            after(*self._bind(env, args))

        return _resume

    def _make_after_glue(self, env: Environment, after: Continuation) -> Continuation:
        after_name = callable_name(after, "(lambda function)")

        def _after_glue(*args: Any) -> None:
            params = self._bind(env, args)
            if not is_hidden(after_name):
                env.call_tree.push_call(after_name)
            env.call_tree.pop_context()
            env.pop_handler()
            after(*params)

        return _after_glue

    def run_step(self, env: Environment, step: StepDescriptor, after: Continuation, args: List[Any]) -> None:
        """Scheduler entry: record the call and invoke the step."""
        env.call_tree.push_call(step.name)
        outcome = step.invoke(env, after, args)
        if outcome.failed:
            env.throw_exception(outcome.error)

    def run_continuation(self, env: Environment, cont: Continuation, args: Sequence[Any]) -> None:
        """Scheduler entry for a deferred continuation; failures are thrown like step failures."""
        try:
            cont(*args)
        except Exception as exc:
            env.throw_exception(exc)

    def schedule_continuation(self, env: Environment, cont: Continuation, args: Sequence[Any] = ()) -> None:
        env.scheduler.schedule(self.run_continuation, (env, cont, args))

    def schedule_step(self, env: Environment, step: StepDescriptor, after: Continuation, args: Sequence[Any]) -> None:
        """Adapt ``args`` for ``step`` and queue its invocation."""
        params = self.handle_args(env, step, args)
        env.scheduler.schedule(self.run_step, (env, step, after, params))

    def make_serial_chain(self, env: Environment, steps: Sequence[StepDescriptor], after: Continuation) -> Continuation:
        """Fold ``steps`` right to left into one entry continuation."""
        cont = after
        for desc in reversed(steps):
            cont = self._link(env, desc, cont)
        return cont

    def _link(self, env: Environment, desc: StepDescriptor, cont: Continuation) -> Continuation:
        def _chain_inner(*args: Any) -> None:
            self.schedule_step(env, desc, cont, args)

        return _chain_inner

    # -- mutators --------------------------------------------------------------

    def insert_at(self, item: Any, pos: int) -> None:
        self._steps.insert(pos, as_step(item))

    def remove_at(self, pos: int) -> Optional[StepDescriptor]:
        size = len(self._steps)
        if pos < 0:
            pos = max(size + pos, 0)
        if pos >= size:
            return None
        return self._steps.pop(pos)

    def append(self, item: Any) -> None:
        self._steps.append(as_step(item))

    def remove_last(self) -> Optional[StepDescriptor]:
        return self._steps.pop() if self._steps else None

    def prepend(self, item: Any) -> None:
        self._steps.insert(0, as_step(item))

    def remove_first(self) -> Optional[StepDescriptor]:
        return self._steps.pop(0) if self._steps else None


def collect_steps(steps: Tuple[Any, ...]) -> Sequence[Any]:
    """Accept ``Chain(a, b)`` as well as ``Chain([a, b])``."""

    if len(steps) == 1 and isinstance(steps[0], (list, tuple)):
        return steps[0]
    return steps
