"""Step descriptors: a callable plus the arity it consumes from the flow."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .common import callable_name
from .interfaces import Composable
from .types import StepDefinitionError, StepOutcome

# Every step callable takes (env, after, ...) before its own parameters.
IMPLICIT_PARAMS = 2


@dataclass(frozen=True)
class StepDescriptor:
    """
    Immutable description of one step of a composition.

    ``arity`` counts only the step's own parameters, not the implicit
    environment and continuation. When ``context`` is set the callable is
    invoked as ``fn(context, env, after, *args)``.
    """

    fn: Callable[..., Any]
    arity: int = 0
    name: str = "(anonymous)"
    context: Any = None

    def __post_init__(self):
        if not callable(self.fn):
            raise StepDefinitionError(f"step {self.fn!r} is not callable", step=self.fn)
        if self.arity < 0:
            raise StepDefinitionError(
                f"step {self.name} has negative arity {self.arity}", step=self.fn
            )

    def invoke(self, env: Any, after: Callable[..., Any], args: List[Any]) -> StepOutcome:
        """Call the step once, turning a synchronous failure into an outcome."""
        try:
            if self.context is not None:
                self.fn(self.context, env, after, *args)
            else:
                self.fn(env, after, *args)
        except Exception as exc:
            return StepOutcome.failure(exc)
        return StepOutcome.success()


def make_step(
    fn: Callable[..., Any],
    arity: int = 0,
    name: Optional[str] = None,
    context: Any = None,
) -> StepDescriptor:
    """Describe ``fn`` as a step taking ``arity`` arguments after (env, after)."""

    return StepDescriptor(
        fn=fn,
        arity=arity,
        name=name or callable_name(fn),
        context=context,
    )


def step(arity: int = 0, name: Optional[str] = None):
    """
    Decorator form of :func:`make_step`::

        @step(1)
        def double(env, after, value):
            after(value * 2)
    """

    def decorate(fn: Callable[..., Any]) -> StepDescriptor:
        return make_step(fn, arity, name)

    return decorate


def infer_arity(fn: Callable[..., Any], implicit: int = IMPLICIT_PARAMS) -> int:
    """
    Arity of a bare callable from its signature.

    Counts required positional parameters and drops the ``implicit`` leading
    ones (env and after for plain steps).
    Signatures that make the count ambiguous are rejected.
    """

    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError) as exc:
        raise StepDefinitionError(
            f"cannot infer the arity of {fn!r}; describe it with make_step()", step=fn
        ) from exc

    required = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            raise StepDefinitionError(
                f"{callable_name(fn)} takes *{param.name}; describe it with make_step()",
                step=fn,
            )
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            if param.default is inspect.Parameter.empty:
                required += 1

    if required < implicit:
        raise StepDefinitionError(
            f"{callable_name(fn)} needs {implicit} leading parameters but takes {required} positional parameters",
            step=fn,
        )
    return required - implicit


def as_step(item: Any) -> StepDescriptor:
    """Normalize a descriptor, a composition or a bare callable."""

    if isinstance(item, StepDescriptor):
        return item
    if not callable(item):
        raise StepDefinitionError(f"step {item!r} is not callable", step=item)

    if isinstance(item, Composable):
        # Compositions already account for env and after.
        return make_step(item, item.arity, item.name)
    return make_step(item, infer_arity(item), callable_name(item))
