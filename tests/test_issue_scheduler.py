"""Tests for the periodic sync scheduler."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.core.errors import ConfigurationError
from app.core.issue_scheduler import SyncScheduler
from app.core.issue_sync import IssueSyncEngine
from app.models import CycleStats


@pytest.fixture
def engine():
    mock = MagicMock(spec=IssueSyncEngine)
    mock.poll_once = AsyncMock(side_effect=lambda: CycleStats())
    return mock


@pytest.mark.asyncio
async def test_first_cycle_runs_immediately(engine):
    scheduler = SyncScheduler(engine, interval_seconds=3600)

    await scheduler.start()
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert engine.poll_once.await_count == 1
    assert scheduler.get_status()["cycles_completed"] == 1


@pytest.mark.asyncio
async def test_cycles_repeat_on_interval(engine):
    scheduler = SyncScheduler(engine, interval_seconds=0.05)

    await scheduler.start()
    await asyncio.sleep(0.23)
    await scheduler.stop()

    assert engine.poll_once.await_count >= 3


@pytest.mark.asyncio
async def test_cycles_never_overlap(engine):
    active = 0
    max_active = 0

    async def slow_cycle():
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        await asyncio.sleep(0.05)
        active -= 1
        return CycleStats()

    engine.poll_once.side_effect = slow_cycle
    scheduler = SyncScheduler(engine, interval_seconds=0.01)

    await scheduler.start()
    await asyncio.sleep(0.02)
    # A manual trigger while the periodic cycle is in flight is refused
    assert scheduler.cycle_in_progress is True
    assert await scheduler.trigger() is None
    await asyncio.sleep(0.2)
    await scheduler.stop()

    assert max_active == 1
    assert engine.poll_once.await_count >= 2


@pytest.mark.asyncio
async def test_trigger_runs_cycle_when_idle(engine):
    scheduler = SyncScheduler(engine, interval_seconds=3600)

    stats = await scheduler.trigger()

    assert isinstance(stats, CycleStats)
    engine.poll_once.assert_awaited_once()
    assert scheduler.cycle_in_progress is False


@pytest.mark.asyncio
async def test_unexpected_cycle_error_does_not_stop_scheduler(engine):
    engine.poll_once.side_effect = RuntimeError("boom")
    scheduler = SyncScheduler(engine, interval_seconds=0.02)

    await scheduler.start()
    await asyncio.sleep(0.1)
    assert scheduler.running is True
    await scheduler.stop()

    assert engine.poll_once.await_count >= 2


@pytest.mark.asyncio
async def test_configuration_error_stops_scheduler(engine):
    engine.poll_once.side_effect = ConfigurationError("bad prompt template")
    scheduler = SyncScheduler(engine, interval_seconds=0.01)

    await scheduler.start()
    await asyncio.sleep(0.05)

    assert scheduler.running is False
    assert isinstance(scheduler.fatal_error, ConfigurationError)
    assert engine.poll_once.await_count == 1
    assert "bad prompt template" in scheduler.get_status()["fatal_error"]


@pytest.mark.asyncio
async def test_start_twice_and_stop_twice(engine):
    scheduler = SyncScheduler(engine, interval_seconds=3600)

    await scheduler.start()
    first_task = scheduler.task
    await scheduler.start()
    assert scheduler.task is first_task

    await scheduler.stop()
    await scheduler.stop()
    assert scheduler.running is False


def test_status_before_start(engine):
    scheduler = SyncScheduler(engine, interval_seconds=60)

    status = scheduler.get_status()

    assert status == {
        "running": False,
        "cycle_in_progress": False,
        "interval_seconds": 60,
        "cycles_completed": 0,
        "last_cycle_started_at": None,
        "last_cycle_completed_at": None,
        "fatal_error": None,
    }
