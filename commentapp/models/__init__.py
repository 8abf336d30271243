from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker

from ..config import DATABASE_URL

engine = create_async_engine(DATABASE_URL, future=True, echo=False)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

# Import models to register tables
from .users import User  # noqa: F401,E402
from .comments import Comment  # noqa: F401,E402
from .notifications import Notification, NotificationType  # noqa: F401,E402


async def init_models():
    """Create missing tables (DB_SYNC mode, no migrations)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
