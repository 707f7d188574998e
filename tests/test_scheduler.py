"""
Tick scheduler tests
"""

import asyncio

import pytest

from fluxchain import (
    Chain,
    Environment,
    SchedulerStalledError,
    TickScheduler,
    manual_defer,
    set_scheduler,
)


def test_entries_run_in_fifo_order():
    """Entries run in the order they were scheduled, with their arguments"""
    seen = []
    scheduler = TickScheduler(defer=manual_defer)

    scheduler.schedule(seen.append, ("first",))
    scheduler.schedule(seen.append, ("second",))
    scheduler.schedule(seen.append, ["third"])

    assert seen == []
    assert len(scheduler) == 3

    assert scheduler.drain() == 3
    assert seen == ["first", "second", "third"]
    assert scheduler.idle


def test_drain_registered_once_per_batch():
    """Only the first schedule of a batch registers a drain with the host"""
    registered = []
    scheduler = TickScheduler(defer=registered.append)

    scheduler.schedule(lambda: None)
    scheduler.schedule(lambda: None)
    assert scheduler.pending
    assert registered == [scheduler.drain]

    scheduler.drain()
    assert not scheduler.pending

    scheduler.schedule(lambda: None)
    assert len(registered) == 2


def test_reentrant_entries_run_in_same_drain():
    """Entries scheduled while draining run before the drain returns"""
    seen = []
    registered = []
    scheduler = TickScheduler(defer=registered.append)

    def outer():
        seen.append("outer")
        scheduler.schedule(seen.append, ("inner",))

    scheduler.schedule(outer)
    scheduler.schedule(seen.append, ("sibling",))

    assert scheduler.drain() == 3
    assert seen == ["outer", "sibling", "inner"]
    assert len(registered) == 1
    assert not scheduler.pending


def test_drain_limit_leaves_rest_queued():
    """A limited drain keeps the remainder and registers another drain"""
    seen = []
    registered = []
    scheduler = TickScheduler(defer=registered.append)

    for i in range(3):
        scheduler.schedule(seen.append, (i,))

    assert scheduler.drain(limit=2) == 2
    assert seen == [0, 1]
    assert len(scheduler) == 1
    assert scheduler.pending
    assert len(registered) == 2

    scheduler.drain()
    assert seen == [0, 1, 2]
    assert scheduler.ticks_run == 3


def test_run_until_idle_counts_ticks():
    """run_until_idle drains everything and reports the entries executed"""
    scheduler = TickScheduler(defer=manual_defer)
    countdown = []

    def tick(n):
        countdown.append(n)
        if n:
            scheduler.schedule(tick, (n - 1,))

    scheduler.schedule(tick, (4,))
    assert scheduler.run_until_idle() == 5
    assert countdown == [4, 3, 2, 1, 0]


def test_run_until_idle_raises_when_stalled():
    """An endless producer trips the tick bound"""
    scheduler = TickScheduler(defer=manual_defer)

    def forever():
        scheduler.schedule(forever)

    scheduler.schedule(forever)
    with pytest.raises(SchedulerStalledError) as excinfo:
        scheduler.run_until_idle(max_ticks=25)

    assert excinfo.value.ticks == 25
    assert excinfo.value.queued == 1


def test_default_defer_uses_running_loop():
    """Without an explicit defer the drain is queued on the asyncio loop"""
    seen = []

    async def main():
        scheduler = TickScheduler()
        scheduler.schedule(seen.append, ("queued",))
        assert seen == []
        await asyncio.sleep(0)
        return scheduler

    scheduler = asyncio.run(main())
    assert seen == ["queued"]
    assert scheduler.idle


def test_default_defer_outside_loop_leaves_nothing_pending():
    """Scheduling with no running loop does not mark a drain as pending"""
    scheduler = TickScheduler()

    scheduler.schedule(lambda: None)

    assert not scheduler.pending
    assert len(scheduler) == 1


def test_default_scheduler_runs_after_use_outside_loop():
    """Chains queued before a loop existed still run once one does"""
    scheduler = TickScheduler()
    set_scheduler(scheduler)
    outside = []
    inside = []

    def answer(env, after):
        after(1)

    async def main():
        Chain(answer)(Environment(log=inside.append), inside.append)
        for _ in range(5):
            await asyncio.sleep(0)

    try:
        Chain(answer)(Environment(log=outside.append), outside.append)
        asyncio.run(main())
    finally:
        set_scheduler(None)

    assert outside == [1]
    assert inside == [1]
    assert scheduler.idle


def test_drain_registered_again_after_loop_closed():
    """A drain left behind on a closed loop is replaced on the next schedule"""
    scheduler = TickScheduler()
    seen = []

    async def enqueue_then_stop():
        scheduler.schedule(seen.append, ("left behind",))
        asyncio.get_running_loop().stop()

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(enqueue_then_stop())
    finally:
        loop.close()

    assert seen == []
    assert scheduler.pending

    async def main():
        scheduler.schedule(seen.append, ("next",))
        await asyncio.sleep(0)

    asyncio.run(main())

    assert seen == ["left behind", "next"]
