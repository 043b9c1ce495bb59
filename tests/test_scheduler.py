# tests/test_scheduler.py

import asyncio

import pytest

from scheduler import TickScheduler

from conftest import announce, join


@pytest.mark.asyncio
async def test_scheduler_pushes_updates_every_tick(broker, transport):
    join(broker, "cust-a", "A")
    announce(broker, "agent-1", "hi")
    transport.clear()

    scheduler = TickScheduler(broker, interval_seconds=0.01)
    scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert len(transport.to("cust-a", "queue-update")) >= 2
    assert len(transport.to("agent-1", "dashboard-update")) >= 2
    assert not scheduler.running


@pytest.mark.asyncio
async def test_scheduler_survives_failing_tick(broker):
    calls = []

    def flaky_tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    broker.tick = flaky_tick
    scheduler = TickScheduler(broker, interval_seconds=0.01)
    scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_start_twice_keeps_one_loop(broker):
    scheduler = TickScheduler(broker, interval_seconds=10)
    scheduler.start()
    first = scheduler._task
    scheduler.start()
    assert scheduler._task is first
    await scheduler.stop()
    await scheduler.stop()
