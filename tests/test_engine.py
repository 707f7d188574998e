"""
Engine entry point tests - run() and run_async()
"""

import asyncio

import pytest

from fluxchain import (
    Chain,
    EngineConfig,
    Environment,
    LoopChain,
    RunStatus,
    SchedulerStalledError,
    TickScheduler,
    async_step,
    manual_defer,
    run,
    run_async,
)


def add_one(env, after, value):
    after(value + 1)


def double(env, after, value):
    after(value * 2)


def explode(env, after):
    raise ValueError("boom")


def test_run_completes():
    """run() reports terminal values, ticks and the trace"""
    result = run(Chain(add_one, double, name="math"), 3)

    assert result.status is RunStatus.COMPLETED
    assert result.completed
    assert result.values == (8,)
    assert result.value == 8
    assert result.ticks == 2
    assert result.trace == [("math", 0), ("add_one", 1), ("double", 1)]


def test_run_halts_on_uncaught_exception():
    """An uncaught exception ends the run as HALTED"""
    messages = []
    env = Environment(log=messages.append, scheduler=TickScheduler(defer=manual_defer))

    result = run(Chain(explode), env=env)

    assert result.status is RunStatus.HALTED
    assert result.values == ()
    assert result.value is None
    assert result.env is env
    assert len(messages) == 1


def test_run_with_environment_state():
    """A supplied environment carries user state into the steps"""
    env = Environment(scheduler=TickScheduler(defer=manual_defer), factor=5)

    def scale(env, after, value):
        after(value * env.factor)

    result = run(Chain(scale), 4, env=env)
    assert result.values == (20,)


def test_run_respects_max_ticks():
    """An endless loop is stopped by the tick bound"""

    def forever(env, after):
        after(True)

    def idle(env, after):
        after()

    with pytest.raises(SchedulerStalledError) as excinfo:
        run(LoopChain(forever, idle), config=EngineConfig(max_ticks=50))

    assert excinfo.value.ticks == 50


def test_engine_config_validation():
    """Invalid configuration is rejected up front"""
    with pytest.raises(ValueError):
        EngineConfig(max_ticks=0)
    with pytest.raises(ValueError):
        EngineConfig(logger_name="")


def test_run_async_completes():
    """run_async drives the chain on the event loop"""
    result = asyncio.run(run_async(Chain(add_one, double), 3))

    assert result.status is RunStatus.COMPLETED
    assert result.values == (8,)
    assert result.ticks == 2


def test_run_async_with_coroutine_step():
    """Coroutine steps suspend the chain until they finish"""

    async def fetch(env, value):
        await asyncio.sleep(0.01)
        return value * 10

    result = asyncio.run(run_async(Chain(async_step(fetch), add_one), 2))

    assert result.completed
    assert result.values == (21,)


def test_run_async_halts_on_uncaught_exception():
    """Halting resolves the run without waiting for the timeout"""
    messages = []

    async def main():
        env = Environment(log=messages.append, scheduler=TickScheduler())
        return await run_async(Chain(explode), env=env)

    result = asyncio.run(main())

    assert result.status is RunStatus.HALTED
    assert len(messages) == 1


def test_run_async_timeout():
    """A chain that never continues is reported as HALTED after the timeout"""

    def stuck(env, after):
        pass

    result = asyncio.run(run_async(Chain(stuck), timeout=0.05))

    assert result.status is RunStatus.HALTED
    assert result.values == ()
