import asyncio
from datetime import datetime

import pytest

from commentapp.scheduler import Scheduler, seconds_until


def test_seconds_until_later_today():
    now = datetime(2024, 5, 1, 22, 30, 0)
    assert seconds_until(now, 23, 0) == 30 * 60


def test_seconds_until_rolls_to_tomorrow():
    now = datetime(2024, 5, 1, 0, 0, 0)
    # exactly at the mark means the next run is a full day away
    assert seconds_until(now, 0, 0) == 24 * 3600
    assert seconds_until(datetime(2024, 5, 1, 23, 59, 30), 0, 0) == 30


@pytest.mark.asyncio
async def test_every_runs_repeatedly_until_cancelled():
    scheduler = Scheduler()
    runs = []

    async def job():
        runs.append(1)

    scheduled = scheduler.every(0.01, job, name='tick')
    await asyncio.sleep(0.1)
    scheduled.cancel()
    await asyncio.sleep(0)
    count = len(runs)
    await asyncio.sleep(0.05)

    assert count >= 2
    assert len(runs) == count
    assert scheduled.cancelled
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_failing_job_keeps_schedule_alive():
    scheduler = Scheduler()
    runs = []

    async def flaky():
        runs.append(1)
        raise RuntimeError('nope')

    scheduler.every(0.01, flaky, name='flaky')
    await asyncio.sleep(0.08)

    assert len(runs) >= 2
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_same_name_replaces_previous_schedule():
    scheduler = Scheduler()

    async def job():
        pass

    first = scheduler.every(60, job, name='sweep')
    second = scheduler.every(60, job, name='sweep')
    await asyncio.sleep(0)

    assert first.cancelled
    assert scheduler.tasks == {'sweep': second}
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_daily_registers_and_shutdown_clears():
    scheduler = Scheduler()

    async def nightly():
        pass

    scheduled = scheduler.daily(nightly, hour=0, minute=0)

    assert scheduled.name == 'nightly'
    await scheduler.shutdown()
    assert scheduler.tasks == {}
    assert scheduled.cancelled
