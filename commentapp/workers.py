"""
Queue Workers
Consume the comments and notifications queues and register the
recurring schedules that feed them
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from .comment_service import comment_service
from .config import SWEEP_INTERVAL_SECONDS
from .core import JOBS_FAILED, JOBS_PROCESSED
from .notification_service import notification_service
from .queue_manager import (
    CLEANUP,
    PERMANENT_DELETE,
    QueueManager,
    QueueType,
    enqueue_notification_cleanup,
    queue_manager,
)
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable]


class BaseWorker:
    """Polls one queue and dispatches jobs to handlers by job name"""

    def __init__(self, queue_type: QueueType, handlers: Dict[str, Handler],
                 batch_size: int = 10, delay: float = 1.0, queue: QueueManager = None):
        self.queue_type = queue_type
        self.handlers = handlers
        self.batch_size = batch_size
        self.delay = delay
        self.queue = queue or queue_manager
        self.running = False
        self.processed_count = 0
        self.error_count = 0

    async def start(self):
        """Start the worker"""
        self.running = True
        logger.info(f"Starting {self.__class__.__name__} for queue {self.queue_type.value}")

        while self.running:
            try:
                processed = await self.run_once()
                if not processed:
                    await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker {self.__class__.__name__} error: {str(e)}")
                self.error_count += 1
                await asyncio.sleep(self.delay)

    async def run_once(self) -> int:
        """Process one batch; returns how many jobs were taken"""
        jobs = await self.queue.dequeue(self.queue_type, self.batch_size)
        for job in jobs:
            await self.process_job(job)
        return len(jobs)

    async def stop(self):
        """Stop the worker"""
        self.running = False
        logger.info(f"Stopping {self.__class__.__name__}")

    async def process_job(self, job: Dict[str, Any]):
        job_id = job.get("id")
        handler = self.handlers.get(job.get("name"))
        if handler is None:
            logger.error(f"No handler for job {job_id} ({job.get('name')}) on {self.queue_type.value}, dropping")
            return

        try:
            await handler(job.get("data") or {})
        except Exception as e:
            self.error_count += 1
            JOBS_FAILED.labels(self.queue_type.value).inc()
            logger.error(f"Failed to process job {job_id} "
                         f"(attempt {job.get('attempts_made', 0) + 1}/{job.get('attempts')}): {str(e)}")
            if not await self.queue.retry(self.queue_type, job):
                logger.error(f"Job {job_id} exhausted its attempts, dropping")
            return

        # completed jobs are not kept
        self.processed_count += 1
        JOBS_PROCESSED.labels(self.queue_type.value).inc()
        logger.debug(f"Job {job_id} completed successfully")


class CommentWorker(BaseWorker):
    """Permanent deletion of expired soft-deleted comments"""

    def __init__(self, queue: QueueManager = None):
        super().__init__(QueueType.COMMENTS, {PERMANENT_DELETE: self.permanent_delete}, queue=queue)

    async def permanent_delete(self, data: Dict[str, Any]):
        await comment_service.permanent_delete(data["commentId"])


class NotificationWorker(BaseWorker):
    """Purge of old read notifications"""

    def __init__(self, queue: QueueManager = None):
        super().__init__(QueueType.NOTIFICATIONS, {CLEANUP: self.cleanup}, delay=5.0, queue=queue)

    async def cleanup(self, data: Dict[str, Any]):
        await notification_service.delete_old_notifications()


# Worker manager
class WorkerManager:
    """Manages all workers"""

    def __init__(self):
        self.workers = [
            CommentWorker(),
            NotificationWorker(),
        ]
        self.tasks = []

    async def start_all(self):
        """Start all workers"""
        logger.info("Starting all queue workers...")

        for worker in self.workers:
            self.tasks.append(asyncio.create_task(worker.start()))

        logger.info(f"Started {len(self.workers)} queue workers")

    async def stop_all(self):
        """Stop all workers"""
        logger.info("Stopping all queue workers...")

        for worker in self.workers:
            await worker.stop()
        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        logger.info("All queue workers stopped")

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        """Get worker statistics"""
        stats = {}
        for worker in self.workers:
            stats[worker.queue_type.value] = {
                "processed": worker.processed_count,
                "errors": worker.error_count,
                "running": worker.running
            }
        return stats


def schedule_jobs(scheduler: Scheduler):
    """Register the recurring comment sweep and the nightly notification cleanup"""
    scheduler.every(SWEEP_INTERVAL_SECONDS, comment_service.sweep_deleted, name='comment-sweep')
    scheduler.daily(enqueue_notification_cleanup, hour=0, minute=0, name='notification-cleanup')


# Global worker manager
worker_manager = WorkerManager()
