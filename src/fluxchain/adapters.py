"""
Adapters from other asynchronous styles to steps

* async_step: ``async def f(env, *args)`` coroutine functions, run as asyncio tasks
* callback_step: APIs taking a trailing ``callback(err, *results)``
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from .common import callable_name
from .step import StepDescriptor, infer_arity, make_step

# Strong references to running tasks; the event loop only keeps weak ones.
_background_tasks: Set[asyncio.Task] = set()


def _spread(result: Any) -> Tuple[Any, ...]:
    if result is None:
        return ()
    if isinstance(result, tuple):
        return result
    return (result,)


async def _drive(coro_fn: Callable[..., Awaitable[Any]], env: Any, after: Callable[..., Any], args: Tuple[Any, ...]) -> None:
    try:
        result = await coro_fn(env, *args)
    except Exception as exc:
        env.throw_exception(exc)
        return
    after(*_spread(result))


def async_step(
    coro_fn: Callable[..., Awaitable[Any]],
    arity: Optional[int] = None,
    name: Optional[str] = None,
) -> StepDescriptor:
    """
    Turn a coroutine function into a step.

    The coroutine is called as ``coro_fn(env, *args)`` inside a task on the
    running loop. A returned tuple becomes several continuation values,
    ``None`` becomes none, anything else a single value. Exceptions are
    thrown through the environment. Without ``arity`` it is inferred from
    the signature, counting ``env`` as the only implicit parameter.
    """

    if arity is None:
        arity = infer_arity(coro_fn, implicit=1)

    def _start_task(env: Any, after: Callable[..., Any], *args: Any) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(_drive(coro_fn, env, after, args))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    return make_step(_start_task, arity, name or callable_name(coro_fn))


def callback_step(fn: Callable[..., Any], arity: int, name: Optional[str] = None) -> StepDescriptor:
    """
    Wrap ``fn(*args, callback)`` where ``callback(err, *results)``.

    A truthy ``err`` is thrown through the environment; otherwise the
    results continue the flow.
    """

    def _call_with_callback(env: Any, after: Callable[..., Any], *args: Any) -> None:
        fn(*args, env.check_error(after))

    return make_step(_call_with_callback, arity, name or callable_name(fn))
