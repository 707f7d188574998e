"""Serial chains: steps run one after another."""

from __future__ import annotations

from typing import Any, Optional

from .base import ChainBase, Continuation, collect_steps
from .common import resolve_after
from .environment import Environment
from .interfaces import ChainKind


class Chain(ChainBase):
    """
    A sequence of steps invoked in order.

    Each step is called as ``fn(env, after, *args)``; the values it passes
    to ``after`` become the next step's arguments, adapted to the next
    step's arity through the environment's value stack. A chain can be
    invoked many times with different environments, and can itself be a
    step of another composition.
    """

    kind = ChainKind.SERIAL

    def __init__(self, *steps: Any, name: Optional[str] = None) -> None:
        super().__init__(collect_steps(steps), name)

    def invoke(self, env: Environment, after: Optional[Continuation] = None, *args: Any) -> None:
        glue = self.enter(env, resolve_after(after))
        if not self._steps:
            self.schedule_continuation(env, glue, args)
            return
        start = self.make_serial_chain(env, self._steps, glue)
        start(*args)
