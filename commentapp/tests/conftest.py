import fnmatch
import os
import sys
import tempfile
import time
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import update

# Configure test environment: throwaway SQLite file, no migrations
_TMP = tempfile.mkdtemp(prefix='commentapp_test_')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{_TMP}/test.db"
os.environ.setdefault('JWT_SECRET', 'test-secret')
os.environ.setdefault('JWT_REFRESH_SECRET', 'test-refresh-secret')

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from commentapp import core, crud  # noqa: E402
from commentapp.auth import create_access_token  # noqa: E402
from commentapp.core import utcnow  # noqa: E402
from commentapp.models import AsyncSessionLocal, Base, engine  # noqa: E402
from commentapp.models.notifications import Notification  # noqa: E402
from commentapp.ws_manager import broadcaster  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses"""

    def __init__(self):
        self.store = {}
        self.expiry = {}

    def _alive(self, key):
        exp = self.expiry.get(key)
        if exp is not None and exp <= time.monotonic():
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    @staticmethod
    def _bytes(value):
        if isinstance(value, bytes):
            return value
        return str(value).encode('utf-8')

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key) if self._alive(key) else None

    async def setex(self, key, ttl, value):
        self.store[key] = self._bytes(value)
        self.expiry[key] = time.monotonic() + ttl
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    async def scan_iter(self, match='*', count=None):
        for key in list(self.store):
            if self._alive(key) and fnmatch.fnmatchcase(key, match):
                yield key

    async def incrby(self, key, amount=1):
        value = int(self.store[key]) + amount if self._alive(key) else amount
        self.store[key] = self._bytes(value)
        return value

    async def expire(self, key, ttl):
        if not self._alive(key):
            return False
        self.expiry[key] = time.monotonic() + ttl
        return True

    async def lpush(self, key, *values):
        items = self.store.setdefault(key, [])
        for value in values:
            items.insert(0, self._bytes(value))
        return len(items)

    async def rpop(self, key):
        items = self.store.get(key)
        if not items:
            return None
        return items.pop()

    async def llen(self, key):
        return len(self.store.get(key, []))

    async def aclose(self):
        pass


class FakeWebSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError('socket closed')
        self.sent.append(message)

    def events(self, name):
        return [m['data'] for m in self.sent if m['event'] == name]


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def redis():
    fake = FakeRedis()
    core.REDIS = fake
    yield fake
    core.REDIS = None


@pytest.fixture(autouse=True)
def reset_broadcaster():
    yield
    broadcaster.connections.clear()
    broadcaster.user_connections.clear()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    async def _make(email=None, password='Secret123'):
        counter['n'] += 1
        user = await crud.create_user(email or f"user{counter['n']}@comments.io", password)
        return {'id': user.id, 'email': user.email}

    return _make


def token_for(user: dict) -> str:
    return create_access_token({'sub': str(user['id']), 'email': user['email']})


def auth_headers(user: dict) -> dict:
    return {'Authorization': f"Bearer {token_for(user)}"}


async def backdate(comment_id: int, minutes: float, field: str = 'created_at'):
    """Move a comment timestamp `minutes` into the past"""
    await crud.update_comment(comment_id, **{field: utcnow() - timedelta(minutes=minutes)})


async def backdate_notification(notification_id: int, days: float):
    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Notification)
            .where(Notification.id == notification_id)
            .values(created_at=utcnow() - timedelta(days=days))
        )
        await session.commit()
