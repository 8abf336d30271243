"""
Comment Service
Thread/reply reads through the cache, author-only writes inside the edit
and restore windows, and the sweep that turns expired soft-deletes into
permanent removals.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from . import crud
from .cache import (
    cache,
    comment_key,
    replies_key,
    threads_key,
    invalidate_comment,
    invalidate_threads,
)
from .config import (
    EDIT_WINDOW_MINUTES,
    RESTORE_WINDOW_MINUTES,
    PURGE_AFTER_MINUTES,
    THREADS_CACHE_TTL,
    REPLIES_CACHE_TTL,
    COMMENT_CACHE_TTL,
    MAX_REPLY_DEPTH,
)
from .core import utcnow, COMMENTS_CREATED, COMMENT_MUTATIONS
from .exceptions import BadRequest, Forbidden, NotFound
from .models.notifications import NotificationType
from .notification_service import notification_service
from .queue_manager import queue_manager, enqueue_permanent_delete
from .schemas.comments import comment_to_dict
from .ws_manager import broadcaster

logger = logging.getLogger(__name__)

THREADS_PAGE = 20
REPLIES_PAGE = 5
NESTED_REPLIES_PAGE = 3
EXCERPT_LENGTH = 50


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    return text[:length] + ('...' if len(text) > length else '')


class CommentService:

    def __init__(self, cache_manager=None, queue=None, notifier=None, notifications=None):
        self.cache = cache_manager or cache
        self.queue = queue or queue_manager
        self.broadcaster = notifier or broadcaster
        self.notifications = notifications or notification_service

    # reads

    async def get_threads(self, skip: int = 0, take: int = THREADS_PAGE) -> List[dict]:
        """Live root comments, newest first, each with its first page of replies"""
        key = threads_key(skip, take)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        roots = await crud.list_root_comments(skip, take)
        threads = []
        for root in roots:
            thread = comment_to_dict(root)
            thread['replies'] = await self.get_replies(root.id)
            threads.append(thread)

        await self.cache.set(key, threads, THREADS_CACHE_TTL)
        return threads

    async def get_replies(self, parent_id: int, skip: int = 0, take: int = REPLIES_PAGE) -> dict:
        key = replies_key(parent_id, skip, take)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        page = await self._reply_page(parent_id, skip, take, depth=1)
        await self.cache.set(key, page, REPLIES_CACHE_TTL)
        return page

    async def _reply_page(self, parent_id: int, skip: int, take: int, depth: int) -> dict:
        # nested levels below MAX_REPLY_DEPTH only report reply_count
        rows, total = await crud.list_replies(parent_id, skip, take)
        counts = await crud.count_replies([r.id for r in rows])

        items = []
        for row in rows:
            item = comment_to_dict(row)
            item['reply_count'] = counts[row.id]
            if counts[row.id] and depth < MAX_REPLY_DEPTH:
                item['replies'] = await self._reply_page(row.id, 0, NESTED_REPLIES_PAGE, depth + 1)
            else:
                item['replies'] = []
            items.append(item)

        return {'items': items, 'total': total, 'hasMore': total > skip + take}

    async def find_one(self, comment_id: int) -> dict:
        key = comment_key(comment_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        comment = await crud.get_comment(comment_id)
        if not comment:
            raise NotFound(f'Comment with ID {comment_id} not found')

        result = comment_to_dict(comment)
        if comment.parent_id is None:
            result['replies'] = await self.get_replies(comment.id, 0, REPLIES_PAGE)

        await self.cache.set(key, result, COMMENT_CACHE_TTL)
        return result

    # writes

    async def create(self, content: str, author: dict, parent_id: Optional[int] = None) -> dict:
        if not content or not content.strip():
            raise BadRequest('Content is required')

        parent = None
        if parent_id is not None:
            parent = await crud.get_comment(parent_id)
            if not parent:
                raise NotFound('Parent comment not found')

        comment = await crud.create_comment(content, author['id'], parent_id)
        COMMENTS_CREATED.inc()
        saved = comment_to_dict(comment)

        if parent and parent.author_id != comment.author_id:
            await self._notify_reply(parent, comment)

        await self._invalidate(comment.id)
        await self._broadcast({'action': 'create', 'comment': saved})
        return saved

    async def update(self, comment_id: int, content: str, editor_id: int) -> dict:
        comment = await self._get_owned(comment_id, editor_id, 'You can only edit your own comments')

        if utcnow() - comment.created_at > timedelta(minutes=EDIT_WINDOW_MINUTES):
            raise Forbidden(f'Comments can only be edited within {EDIT_WINDOW_MINUTES} minutes of posting')
        if not content or not content.strip():
            raise BadRequest('Content is required')

        comment = await crud.update_comment(comment_id, content=content, updated_at=utcnow())
        updated = comment_to_dict(comment)

        await self._invalidate(comment_id)
        await self._broadcast({'action': 'update', 'comment': updated})
        return updated

    async def soft_delete(self, comment_id: int, user_id: int) -> dict:
        await self._get_owned(comment_id, user_id, 'You can only delete your own comments')

        comment = await crud.update_comment(comment_id, deleted_at=utcnow())

        await self._invalidate(comment_id)
        await self._broadcast({'action': 'delete', 'commentId': comment_id})
        return comment_to_dict(comment)

    async def restore(self, comment_id: int, user_id: int) -> dict:
        comment = await self._get_owned(comment_id, user_id, 'You can only restore your own comments')

        if comment.deleted_at is None:
            raise Forbidden('Comment is not deleted')
        if utcnow() - comment.deleted_at > timedelta(minutes=RESTORE_WINDOW_MINUTES):
            raise Forbidden(f'Comments can only be restored within {RESTORE_WINDOW_MINUTES} minutes of deletion')

        comment = await crud.update_comment(comment_id, deleted_at=None)
        restored = comment_to_dict(comment)

        await self._invalidate(comment_id)
        await self._broadcast({'action': 'restore', 'comment': restored})
        return restored

    # background

    async def sweep_deleted(self) -> int:
        """Enqueue one permanent-delete job per expired soft-delete"""
        cutoff = utcnow() - timedelta(minutes=PURGE_AFTER_MINUTES)
        expired = await crud.list_deleted_before(cutoff)
        for comment_id in expired:
            await enqueue_permanent_delete(comment_id, self.queue)
        if expired:
            logger.info({'msg': 'comment_sweep', 'enqueued': len(expired)})
        return len(expired)

    async def permanent_delete(self, comment_id: int) -> int:
        """Remove a comment and every descendant reply, deepest first"""
        comment = await crud.get_comment(comment_id)
        if not comment:
            logger.warning(f"Comment {comment_id} not found for permanent deletion")
            return 0
        if comment.deleted_at is None:
            logger.warning(f"Comment {comment_id} was restored, skipping permanent deletion")
            return 0

        ancestors = await crud.get_ancestor_ids(comment_id)
        levels = await crud.get_subtree_levels(comment_id)
        removed = await crud.remove_comments(levels)

        for cid in [c for level in levels for c in level] + ancestors:
            await invalidate_comment(cid, self.cache)
        await invalidate_threads(self.cache)

        logger.info(f"Permanently deleted comment {comment_id} ({removed} rows)")
        return removed

    async def comment_stats(self) -> dict:
        now = utcnow()
        stats = await crud.comment_counts(now - timedelta(days=1), now - timedelta(days=7))
        stats['activityRate'] = stats['last24Hours'] / (stats['total'] or 1)
        return stats

    # helpers

    async def _get_owned(self, comment_id: int, user_id: int, forbidden_detail: str):
        comment = await crud.get_comment(comment_id)
        if not comment:
            raise NotFound('Comment not found')
        if comment.author_id != user_id:
            raise Forbidden(forbidden_detail)
        return comment

    async def _notify_reply(self, parent, reply):
        notification = await self.notifications.create_notification(
            parent.author_id,
            NotificationType.REPLY,
            f"New reply to your comment from {reply.author.email}",
            comment_id=reply.id,
            parent_content=excerpt(parent.content),
        )
        await self.broadcaster.notify_user(parent.author_id, notification)

    async def _invalidate(self, comment_id: int):
        # the comment and every ancestor embed this comment in cached reply pages
        for cid in [comment_id] + await crud.get_ancestor_ids(comment_id):
            await invalidate_comment(cid, self.cache)
        await invalidate_threads(self.cache)

    async def _broadcast(self, payload: dict):
        COMMENT_MUTATIONS.labels(payload['action']).inc()
        await self.broadcaster.broadcast_comment(payload)


comment_service = CommentService()
