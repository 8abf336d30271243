"""
Recurring task scheduler
Fixed-interval and daily (UTC wall clock) schedules on the event loop,
each cancellable on its own.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict

from .core import utcnow

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable]


def seconds_until(now: datetime, hour: int, minute: int = 0) -> float:
    """Seconds from now to the next hour:minute strictly after now"""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class ScheduledTask:
    def __init__(self, name: str, task: asyncio.Task):
        self.name = name
        self.task = task

    def cancel(self):
        self.task.cancel()

    @property
    def cancelled(self) -> bool:
        return self.task.cancelled()


class Scheduler:

    def __init__(self):
        self.tasks: Dict[str, ScheduledTask] = {}

    def every(self, seconds: float, job: Job, name: str = None) -> ScheduledTask:
        """Run job every `seconds`, first run one interval from now"""
        name = name or job.__name__
        return self._start(name, self._run_every(name, seconds, job))

    def daily(self, job: Job, hour: int = 0, minute: int = 0, name: str = None) -> ScheduledTask:
        """Run job once a day at hour:minute UTC"""
        name = name or job.__name__
        return self._start(name, self._run_daily(name, hour, minute, job))

    def _start(self, name: str, coro) -> ScheduledTask:
        if name in self.tasks:
            self.tasks[name].cancel()
        scheduled = ScheduledTask(name, asyncio.create_task(coro, name=f'schedule:{name}'))
        self.tasks[name] = scheduled
        logger.info({'msg': 'schedule_registered', 'name': name})
        return scheduled

    async def _run_every(self, name: str, seconds: float, job: Job):
        while True:
            await asyncio.sleep(seconds)
            await self._tick(name, job)

    async def _run_daily(self, name: str, hour: int, minute: int, job: Job):
        while True:
            await asyncio.sleep(seconds_until(utcnow(), hour, minute))
            await self._tick(name, job)

    async def _tick(self, name: str, job: Job):
        try:
            await job()
        except Exception:
            logger.exception(f"Scheduled job {name} failed")

    async def shutdown(self):
        """Cancel every schedule and wait for them to stop"""
        tasks = [s.task for s in self.tasks.values()]
        for scheduled in self.tasks.values():
            scheduled.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()
        logger.info("Scheduler stopped")


scheduler = Scheduler()
