"""Parallel chains: fan out to every step, join when all have finished."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from .base import ChainBase, Continuation, collect_steps
from .common import resolve_after
from .environment import Environment, LocalEnvironment
from .interfaces import ChainKind


@dataclass
class JoinState:
    """Bookkeeping shared by the branches of one parallel invocation."""

    remaining: int
    results: List[Any] = field(default_factory=list)
    produced: bool = False
    failed: bool = False
    error: Any = None


class ParallelChain(ChainBase):
    """
    Starts every step in the same scheduling pass, each with its own
    LocalEnvironment, and continues once all of them have finished.

    Branch outputs are collected by branch index. If any branch threw, the
    last recorded error is thrown on the parent environment instead of
    calling ``after``. Arguments given to the chain are broadcast to every
    branch.
    """

    kind = ChainKind.PARALLEL
    default_name = "(anonymous parallel chain)"

    def __init__(self, *steps: Any, name: Optional[str] = None) -> None:
        super().__init__(collect_steps(steps), name)

    @property
    def arity(self) -> int:
        return 0

    def invoke(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        glue = self.enter(env, resolve_after(after))
        steps = list(self._steps)

        if not steps:
            self.schedule_continuation(env, glue)
            return

        state = JoinState(remaining=len(steps), results=[None] * len(steps))

        def _branch_failed(lenv: LocalEnvironment, err: Any, *extra: Any) -> None:
            state.failed = True
            state.error = err
            lenv.catch_exception()

        for index, desc in enumerate(steps):
            lenv = LocalEnvironment(env, index)
            terminator = self._make_terminator(env, glue, state, index)

            lenv.call_tree.push_context(self.name)
            lenv.call_tree.push_call(desc.name)
            lenv.push_handler(_branch_failed, terminator)

            params = self.handle_args(lenv, desc, args)
            env.scheduler.schedule(self._run_branch, (lenv, desc, terminator, params))

    def _run_branch(self, lenv: LocalEnvironment, desc, terminator: Continuation, params: List[Any]) -> None:
        outcome = desc.invoke(lenv, terminator, params)
        if outcome.failed:
            lenv.throw_exception(outcome.error)

    def _make_terminator(self, env: Environment, glue: Continuation, state: JoinState, index: int) -> Continuation:
        def _parallel_terminator(*values: Any) -> None:
            if values:
                state.results[index] = values[0] if len(values) == 1 else values
                state.produced = True

            state.remaining -= 1
            if state.remaining > 0:
                return
            if state.failed:
                env.throw_exception(state.error)
            elif state.produced:
                self.schedule_continuation(env, glue, (state.results,))
            else:
                self.schedule_continuation(env, glue)

        return _parallel_terminator
