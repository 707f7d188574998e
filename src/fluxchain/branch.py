"""Branches: an asynchronous ``if (condition) { ... } else { ... }``."""

from __future__ import annotations

from typing import Any, Optional

from .base import ChainBase, Continuation
from .common import resolve_after
from .environment import Environment
from .interfaces import ChainKind
from .step import StepDescriptor


class Branch(ChainBase):
    """
    Runs ``condition`` and then exactly one of two paths.

    The condition's continuation receives a truth value followed by the
    values to hand to the chosen path. Whatever that path passes on reaches
    the branch's own ``after``.
    """

    kind = ChainKind.BRANCH
    default_name = "(anonymous branch)"

    def __init__(self, condition: Any, if_true: Any, if_false: Any, name: Optional[str] = None) -> None:
        super().__init__((condition, if_true, if_false), name)

    @property
    def condition(self) -> StepDescriptor:
        return self._steps[0]

    @property
    def if_true(self) -> StepDescriptor:
        return self._steps[1]

    @property
    def if_false(self) -> StepDescriptor:
        return self._steps[2]

    @property
    def arity(self) -> int:
        return self.condition.arity

    def invoke(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        glue = self.enter(env, resolve_after(after))
        if_true, if_false = self.if_true, self.if_false

        def _branch_select(result: Any = False, *values: Any) -> None:
            path = if_true if result else if_false
            self.schedule_step(env, path, glue, values)

        self.schedule_step(env, self.condition, _branch_select, args)
