from .models import AsyncSessionLocal
from .models.users import User
from .models.comments import Comment
from .models.notifications import Notification
from passlib.context import CryptContext
from sqlalchemy import select, func, update, delete
from sqlalchemy.orm import selectinload
from datetime import datetime
from typing import List, Optional

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto')

# users
async def create_user(email: str, password: str):
    async with AsyncSessionLocal() as session:
        user = User(email=email, hashed_password=pwd_ctx.hash(password))
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

async def get_user_by_email(email: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.email == email))
        return q.scalars().first()

async def get_user_by_id(user_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()

async def authenticate_user(email: str, password: str):
    user = await get_user_by_email(email)
    if not user or not pwd_ctx.verify(password, user.hashed_password):
        return None
    return user

async def update_refresh_token(user_id: int, token_hash: Optional[str], login_at: datetime = None):
    """Store (or clear) the refresh token hash; a login also stamps last_login"""
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        user = q.scalars().first()
        if not user:
            return None
        user.refresh_token_hash = token_hash
        if token_hash and login_at:
            user.last_login = login_at
        await session.commit()
        await session.refresh(user)
        return user

# comments
async def get_comment(comment_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(
            select(Comment).options(selectinload(Comment.author)).where(Comment.id == comment_id)
        )
        return q.scalars().first()

async def create_comment(content: str, author_id: int, parent_id: Optional[int] = None):
    async with AsyncSessionLocal() as session:
        c = Comment(content=content, author_id=author_id, parent_id=parent_id)
        session.add(c)
        await session.commit()
        comment_id = c.id
    return await get_comment(comment_id)

async def update_comment(comment_id: int, **values):
    async with AsyncSessionLocal() as session:
        await session.execute(update(Comment).where(Comment.id == comment_id).values(**values))
        await session.commit()
    return await get_comment(comment_id)

async def list_root_comments(skip: int, take: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(
            select(Comment)
            .options(selectinload(Comment.author))
            .where(Comment.parent_id.is_(None), Comment.deleted_at.is_(None))
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset(skip).limit(take)
        )
        return q.scalars().all()

async def list_replies(parent_id: int, skip: int, take: int):
    """One page of live replies, oldest first, plus the total live count"""
    live = (Comment.parent_id == parent_id, Comment.deleted_at.is_(None))
    async with AsyncSessionLocal() as session:
        total = await session.scalar(select(func.count()).select_from(Comment).where(*live))
        q = await session.execute(
            select(Comment)
            .options(selectinload(Comment.author))
            .where(*live)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
            .offset(skip).limit(take)
        )
        return q.scalars().all(), total

async def count_replies(parent_ids: List[int]) -> dict:
    if not parent_ids:
        return {}
    async with AsyncSessionLocal() as session:
        q = await session.execute(
            select(Comment.parent_id, func.count())
            .where(Comment.parent_id.in_(parent_ids), Comment.deleted_at.is_(None))
            .group_by(Comment.parent_id)
        )
        counts = dict(q.all())
    return {pid: counts.get(pid, 0) for pid in parent_ids}

async def get_ancestor_ids(comment_id: int, limit: int = 1000) -> List[int]:
    """Parent chain of a comment, nearest first"""
    ancestors = []
    async with AsyncSessionLocal() as session:
        parent_id = await session.scalar(select(Comment.parent_id).where(Comment.id == comment_id))
        while parent_id is not None and len(ancestors) < limit:
            ancestors.append(parent_id)
            parent_id = await session.scalar(select(Comment.parent_id).where(Comment.id == parent_id))
    return ancestors

async def list_deleted_before(cutoff: datetime) -> List[int]:
    async with AsyncSessionLocal() as session:
        q = await session.execute(
            select(Comment.id).where(Comment.deleted_at.is_not(None), Comment.deleted_at < cutoff)
        )
        return q.scalars().all()

async def get_subtree_levels(comment_id: int) -> List[List[int]]:
    """Breadth-first levels of a comment's subtree, the comment itself first"""
    levels = []
    frontier = [comment_id]
    async with AsyncSessionLocal() as session:
        while frontier:
            levels.append(frontier)
            q = await session.execute(select(Comment.id).where(Comment.parent_id.in_(frontier)))
            frontier = q.scalars().all()
    return levels

async def remove_comments(levels: List[List[int]]) -> int:
    """Hard-delete subtree levels, deepest level first, in one transaction"""
    removed = 0
    all_ids = [cid for level in levels for cid in level]
    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Notification).where(Notification.comment_id.in_(all_ids)).values(comment_id=None)
        )
        for level in reversed(levels):
            result = await session.execute(delete(Comment).where(Comment.id.in_(level)))
            removed += result.rowcount
        await session.commit()
    return removed

async def comment_counts(day_ago: datetime, week_ago: datetime) -> dict:
    async with AsyncSessionLocal() as session:
        async def count(*where):
            return await session.scalar(select(func.count()).select_from(Comment).where(*where))

        return {
            'total': await count(),
            'last24Hours': await count(Comment.created_at >= day_ago),
            'lastWeek': await count(Comment.created_at >= week_ago),
            'activeThreads': await count(Comment.parent_id.is_(None), Comment.deleted_at.is_(None)),
            'deletedComments': await count(Comment.deleted_at.is_not(None)),
        }

# notifications
def _notification_query():
    return select(Notification).options(
        selectinload(Notification.recipient), selectinload(Notification.comment)
    )

async def create_notification(recipient_id: int, type, message: str,
                              comment_id: Optional[int] = None, parent_content: Optional[str] = None):
    async with AsyncSessionLocal() as session:
        n = Notification(
            recipient_id=recipient_id,
            type=type,
            message=message,
            comment_id=comment_id,
            parent_content=parent_content,
            read=False,
        )
        session.add(n)
        await session.commit()
        notification_id = n.id
    return await get_notification(notification_id)

async def get_notification(notification_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(_notification_query().where(Notification.id == notification_id))
        return q.scalars().first()

async def list_notifications(user_id: int, limit: int = 50):
    async with AsyncSessionLocal() as session:
        q = await session.execute(
            _notification_query()
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return q.scalars().all()

async def mark_notification_read(notification_id: int):
    async with AsyncSessionLocal() as session:
        await session.execute(update(Notification).where(Notification.id == notification_id).values(read=True))
        await session.commit()
    return await get_notification(notification_id)

async def mark_all_notifications_read(user_id: int) -> int:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(Notification)
            .where(Notification.recipient_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await session.commit()
        return result.rowcount

async def delete_read_notifications_before(cutoff: datetime) -> int:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            delete(Notification).where(Notification.read.is_(True), Notification.created_at < cutoff)
        )
        await session.commit()
        return result.rowcount

async def ping_database() -> bool:
    async with AsyncSessionLocal() as session:
        await session.execute(select(1))
    return True
