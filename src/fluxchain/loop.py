"""Loop chains: an asynchronous ``while (condition) { body }``."""

from __future__ import annotations

from typing import Any, Optional

from .base import ChainBase, Continuation, collect_steps
from .common import resolve_after
from .environment import Environment
from .interfaces import ChainKind
from .step import StepDescriptor, as_step, make_step
from .types import StepDefinitionError


class LoopChain(ChainBase):
    """
    Repeats its body while the condition holds.

    The condition is a step whose continuation receives a truth value
    followed by pass-through values. On true the body runs with those
    values and its output goes back into the condition; on false the
    terminal ``after`` receives them. There is no iteration cap.
    """

    kind = ChainKind.LOOP
    default_name = "(anonymous loop chain)"

    def __init__(self, condition: Any = None, *steps: Any, name: Optional[str] = None) -> None:
        super().__init__(collect_steps(steps), name)
        self.condition: Optional[StepDescriptor] = None
        if condition is not None:
            self.set_condition(condition)

    def set_condition(self, condition: Any) -> "LoopChain":
        desc = as_step(condition)
        if desc.name == "(anonymous)":
            desc = make_step(desc.fn, desc.arity, "(lambda condition)", desc.context)
        self.condition = desc
        return self

    @property
    def arity(self) -> int:
        return self.condition.arity if self.condition is not None else 0

    def invoke(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        condition = self.condition
        if condition is None:
            raise StepDefinitionError(f"{self.name} has no condition", step=self)

        glue = self.enter(env, resolve_after(after))

        def _loop_select(result: Any = False, *values: Any) -> None:
            if result:
                body(*values)
            else:
                self.schedule_continuation(env, glue, values)

        def _loop_check(*values: Any) -> None:
            self.schedule_step(env, condition, _loop_select, values)

        body = self.make_serial_chain(env, self._steps, _loop_check)
        _loop_check(*args)
