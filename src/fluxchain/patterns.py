"""
Collection patterns

Each factory returns a step (arity 1, or 2 for the reductions) that walks a
collection with a user function. The parallel flavours fan out through a
ParallelChain, the serial ones (``s`` prefix) through a Chain. Mappings are
walked over ``items()``, other iterables over ``enumerate()``.

``fn`` is anything callable as a step: a plain function or a composition.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, List, Tuple

from .environment import Environment
from .parallel import ParallelChain
from .serial import Chain
from .step import StepDescriptor, make_step

Visit = Callable[[Environment, Callable[..., Any], int, Any, Any], None]


def _pairs(items: Any) -> List[Tuple[Any, Any]]:
    if isinstance(items, Mapping):
        return list(items.items())
    return list(enumerate(items))


def _collapse(values: Tuple[Any, ...]) -> Any:
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def _fan_out(env: Environment, name: str, pairs: List[Tuple[Any, Any]], visit: Visit, finish: Callable[..., Any]) -> None:
    """Visit every pair in its own branch; ``finish`` gets the branch outputs."""

    def _visit_branch(lenv, after):
        key, value = pairs[lenv.branch_index]
        visit(lenv, after, lenv.branch_index, key, value)

    branch = make_step(_visit_branch, 0, name)
    ParallelChain([branch] * len(pairs), name=name).invoke(env, finish)


def _walk(env: Environment, name: str, pairs: List[Tuple[Any, Any]], visit: Visit, finish: Callable[[], Any]) -> None:
    """
    Visit the pairs one after another.

    ``visit`` must call its continuation without arguments once it has
    recorded whatever it needs, so nothing leaks onto the value stack.
    """

    def _visit_at(index: int, key: Any, value: Any) -> StepDescriptor:
        def _visit_item(env, after):
            visit(env, after, index, key, value)

        return make_step(_visit_item, 0, name)

    steps = [_visit_at(index, key, value) for index, (key, value) in enumerate(pairs)]
    Chain(steps, name=name).invoke(env, finish)


# -- map -----------------------------------------------------------------


def map_each(fn: Callable[..., Any]) -> StepDescriptor:
    """Parallel map; ``fn(env, after, value, key, index, items)``."""

    def _map_each_step(env, after, items):
        pairs = _pairs(items)

        def _visit(lenv, done, index, key, value):
            fn(lenv, done, value, key, index, items)

        def _mapped(results=None):
            after(results if results is not None else [None] * len(pairs))

        _fan_out(env, "map", pairs, _visit, _mapped)

    return make_step(_map_each_step, 1, "map")


def smap(fn: Callable[..., Any]) -> StepDescriptor:
    """Serial map; same callback signature as :func:`map_each`."""

    def _smap_step(env, after, items):
        pairs = _pairs(items)
        results: List[Any] = []

        def _visit(env, done, index, key, value):
            def _store(*values):
                results.append(_collapse(values))
                done()

            fn(env, _store, value, key, index, items)

        def _mapped():
            after(results)

        _walk(env, "smap", pairs, _visit, _mapped)

    return make_step(_smap_step, 1, "smap")


# -- filter --------------------------------------------------------------


def filter_each(fn: Callable[..., Any]) -> StepDescriptor:
    """Parallel filter; ``fn(env, after, value, key, items)`` calls ``after(keep)``."""

    def _filter_each_step(env, after, items):
        pairs = _pairs(items)

        def _visit(lenv, done, index, key, value):
            fn(lenv, done, value, key, items)

        def _filtered(flags=None):
            flags = flags or []
            after([value for (_, value), keep in zip(pairs, flags) if keep])

        _fan_out(env, "filter", pairs, _visit, _filtered)

    return make_step(_filter_each_step, 1, "filter")


def sfilter(fn: Callable[..., Any]) -> StepDescriptor:
    """Serial filter; same callback signature as :func:`filter_each`."""

    def _sfilter_step(env, after, items):
        pairs = _pairs(items)
        kept: List[Any] = []

        def _visit(env, done, index, key, value):
            def _decide(keep=False, *_):
                if keep:
                    kept.append(value)
                done()

            fn(env, _decide, value, key, items)

        def _filtered():
            after(kept)

        _walk(env, "sfilter", pairs, _visit, _filtered)

    return make_step(_sfilter_step, 1, "sfilter")


# -- each ----------------------------------------------------------------


def each(fn: Callable[..., Any]) -> StepDescriptor:
    """Parallel iteration for side effects; ``fn(env, after, value, key, items)``."""

    def _each_step(env, after, items):
        pairs = _pairs(items)

        def _visit(lenv, done, index, key, value):
            fn(lenv, done, value, key, items)

        def _visited(*_):
            after()

        _fan_out(env, "each", pairs, _visit, _visited)

    return make_step(_each_step, 1, "each")


def seach(fn: Callable[..., Any]) -> StepDescriptor:
    """Serial iteration for side effects; same signature as :func:`each`."""

    def _seach_step(env, after, items):
        pairs = _pairs(items)

        def _visit(env, done, index, key, value):
            def _next(*_):
                done()

            fn(env, _next, value, key, items)

        def _visited():
            after()

        _walk(env, "seach", pairs, _visit, _visited)

    return make_step(_seach_step, 1, "seach")


# -- reduce --------------------------------------------------------------


def _reducer(fn: Callable[..., Any], name: str, from_right: bool) -> StepDescriptor:
    def _reduce_step(env, after, items, initial):
        pairs = _pairs(items)
        if from_right:
            pairs.reverse()
        state = {"memo": initial}

        def _visit(env, done, index, key, value):
            def _accumulate(memo=None, *_):
                state["memo"] = memo
                done()

            fn(env, _accumulate, state["memo"], value, key, items)

        def _reduced():
            after(state["memo"])

        _walk(env, name, pairs, _visit, _reduced)

    return make_step(_reduce_step, 2, name)


def reduce(fn: Callable[..., Any]) -> StepDescriptor:
    """
    Left fold; ``fn(env, after, memo, value, key, items)`` calls ``after(memo)``.

    The step takes ``(items, initial)`` and passes the final memo on.
    """
    return _reducer(fn, "reduce", from_right=False)


def reduce_right(fn: Callable[..., Any]) -> StepDescriptor:
    """Right fold; same callback signature as :func:`reduce`."""
    return _reducer(fn, "reduce_right", from_right=True)
