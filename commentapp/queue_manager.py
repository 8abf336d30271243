"""
Background Job Queues
Named Redis-list queues for the comment purge and notification cleanup jobs
"""
import json
import uuid
from typing import Dict, Any, Optional, List
from enum import Enum
from . import core
from .config import JOB_ATTEMPTS
import logging

logger = logging.getLogger(__name__)


class QueueType(Enum):
    """Named queues"""
    COMMENTS = "comments"
    NOTIFICATIONS = "notifications"


PERMANENT_DELETE = "permanent-delete"
CLEANUP = "cleanup"


class QueueManager:
    """
    Redis-backed job queue. Jobs carry their own attempt budget; completed
    jobs are discarded, failed ones are re-queued until the budget runs out.
    """

    def __init__(self, client=None):
        self._client = client
        self.redis_queues = {
            QueueType.COMMENTS: "queue:comments",
            QueueType.NOTIFICATIONS: "queue:notifications",
        }

    async def _redis(self):
        if self._client is not None:
            return self._client
        return await core.get_redis()

    async def enqueue(
        self,
        queue_type: QueueType,
        name: str,
        data: Dict[str, Any],
        attempts: int = JOB_ATTEMPTS,
    ) -> Optional[str]:
        """
        Add a job to a queue
        Returns job_id, or None when no queue backend is connected
        """
        job = {
            "id": f"{queue_type.value}_{uuid.uuid4().hex}",
            "queue": queue_type.value,
            "name": name,
            "data": data,
            "attempts": attempts,
            "attempts_made": 0,
            "created_at": core.utcnow().isoformat(),
        }
        return await self.push(queue_type, job)

    async def push(self, queue_type: QueueType, job: Dict[str, Any]) -> Optional[str]:
        redis_client = await self._redis()
        if not redis_client:
            logger.warning({'msg': 'queue_unavailable', 'queue': queue_type.value, 'job': job["name"]})
            return None

        await redis_client.lpush(self.redis_queues[queue_type], json.dumps(job))
        logger.info(f"Job {job['id']} ({job['name']}) enqueued to {queue_type.value}")
        return job["id"]

    async def dequeue(self, queue_type: QueueType, batch_size: int = 1) -> List[Dict]:
        """Pop up to batch_size jobs, oldest first"""
        jobs = []

        redis_client = await self._redis()
        if not redis_client:
            return jobs

        queue_name = self.redis_queues[queue_type]
        for _ in range(batch_size):
            job_data = await redis_client.rpop(queue_name)
            if job_data is None:
                break
            try:
                if isinstance(job_data, (bytes, bytearray)):
                    job_data = job_data.decode("utf-8")
                jobs.append(json.loads(job_data))
            except json.JSONDecodeError:
                logger.error(f"Invalid job data in queue {queue_name}: {job_data}")

        return jobs

    async def retry(self, queue_type: QueueType, job: Dict[str, Any]) -> bool:
        """Re-queue a failed job; False once its attempts are exhausted"""
        job["attempts_made"] = job.get("attempts_made", 0) + 1
        if job["attempts_made"] >= job.get("attempts", JOB_ATTEMPTS):
            return False
        await self.push(queue_type, job)
        return True

    async def get_queue_stats(self) -> Dict[str, int]:
        """Pending jobs per queue"""
        stats = {}

        redis_client = await self._redis()
        if not redis_client:
            return stats

        for queue_type, redis_queue in self.redis_queues.items():
            stats[queue_type.value] = await redis_client.llen(redis_queue)
        return stats


# Global queue manager instance
queue_manager = QueueManager()


async def enqueue_permanent_delete(comment_id: int, manager: QueueManager = None):
    """Queue removal of a soft-deleted comment and its replies"""
    manager = manager or queue_manager
    return await manager.enqueue(QueueType.COMMENTS, PERMANENT_DELETE, {"commentId": comment_id})


async def enqueue_notification_cleanup(manager: QueueManager = None):
    """Queue the purge of old read notifications"""
    manager = manager or queue_manager
    return await manager.enqueue(QueueType.NOTIFICATIONS, CLEANUP, {})
