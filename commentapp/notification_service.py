"""
Notification Service
Persists per-user notifications and purges stale read ones.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from . import crud
from .config import NOTIFICATION_RETENTION_DAYS
from .core import utcnow
from .exceptions import NotFound, Unauthorized
from .models.notifications import NotificationType
from .schemas.notifications import notification_to_dict

logger = logging.getLogger(__name__)

NOTIFICATIONS_PAGE = 50


class NotificationService:

    async def get_notifications(self, user_id: int) -> List[dict]:
        """Most recent notifications of a recipient, newest first"""
        rows = await crud.list_notifications(user_id, limit=NOTIFICATIONS_PAGE)
        return [notification_to_dict(n) for n in rows]

    async def create_notification(
        self,
        recipient_id: int,
        type: NotificationType,
        message: str,
        comment_id: Optional[int] = None,
        parent_content: Optional[str] = None,
    ) -> dict:
        n = await crud.create_notification(recipient_id, type, message, comment_id, parent_content)
        logger.info({'msg': 'notification_created', 'id': n.id, 'recipient_id': recipient_id, 'type': n.type.value})
        return notification_to_dict(n)

    async def mark_as_read(self, notification_id: int, user_id: int) -> dict:
        n = await crud.get_notification(notification_id)
        if not n:
            raise NotFound('Notification not found')
        if n.recipient_id != user_id:
            raise Unauthorized("Cannot mark someone else's notification as read")
        n = await crud.mark_notification_read(notification_id)
        return notification_to_dict(n)

    async def mark_all_as_read(self, user_id: int) -> int:
        return await crud.mark_all_notifications_read(user_id)

    async def delete_old_notifications(self) -> int:
        """Delete read notifications older than the retention window"""
        cutoff = utcnow() - timedelta(days=NOTIFICATION_RETENTION_DAYS)
        deleted = await crud.delete_read_notifications_before(cutoff)
        logger.info({'msg': 'notifications_cleanup', 'deleted': deleted})
        return deleted


notification_service = NotificationService()
