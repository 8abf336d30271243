"""
Comment Cache Manager
Read-through caching of comment trees with Redis; every read helper
treats a missing Redis as a cache miss.
"""
import json
from typing import Any, Optional
from . import core
import logging

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Best-effort cache over Redis. Values are JSON documents with a TTL;
    writers invalidate keys instead of updating them in place.
    """

    def __init__(self, client=None):
        self.default_ttl = 60
        self._client = client

    async def _redis(self):
        if self._client is not None:
            return self._client
        return await core.get_redis()

    async def set(self, key: str, value: Any, ttl: int = None) -> bool:
        """Set cache value with TTL"""
        redis = await self._redis()
        if not redis:
            return False

        ttl = ttl or self.default_ttl
        try:
            await redis.setex(key, ttl, json.dumps(value))
            return True
        except Exception as e:
            logger.error(f"Cache set failed for key {key}: {str(e)}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Get cache value, None on miss"""
        redis = await self._redis()
        if not redis:
            return None

        try:
            value = await redis.get(key)
            if value is None:
                return None
            return json.loads(value)
        except Exception as e:
            logger.error(f"Cache get failed for key {key}: {str(e)}")
            return None

    async def delete(self, *keys: str) -> int:
        """Delete cache keys, returns how many existed"""
        redis = await self._redis()
        if not redis or not keys:
            return 0

        try:
            return await redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache delete failed for keys {keys}: {str(e)}")
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern"""
        redis = await self._redis()
        if not redis:
            return 0

        try:
            keys = [key async for key in redis.scan_iter(match=pattern, count=500)]
            if not keys:
                return 0
            return await redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache delete_pattern failed for {pattern}: {str(e)}")
            return 0

    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        """Increment cache value atomically"""
        redis = await self._redis()
        if not redis:
            return None

        try:
            return await redis.incrby(key, amount)
        except Exception as e:
            logger.error(f"Cache increment failed for key {key}: {str(e)}")
            return None

    async def expire(self, key: str, ttl: int) -> bool:
        redis = await self._redis()
        if not redis:
            return False

        try:
            return bool(await redis.expire(key, ttl))
        except Exception as e:
            logger.error(f"Cache expire failed for key {key}: {str(e)}")
            return False


# Global cache manager instance
cache = CacheManager()


def comment_key(comment_id: int) -> str:
    return f"comment:{comment_id}"


def replies_key(parent_id: int, skip: int, take: int) -> str:
    return f"replies:{parent_id}:{skip}:{take}"


def threads_key(skip: int, take: int) -> str:
    return f"threads:{skip}:{take}"


async def invalidate_comment(comment_id: int, cache_manager: CacheManager = None):
    """Drop a comment's own entry and every cached page of its replies"""
    cache_manager = cache_manager or cache
    await cache_manager.delete(comment_key(comment_id))
    await cache_manager.delete_pattern(f"replies:{comment_id}:*")


async def invalidate_threads(cache_manager: CacheManager = None):
    cache_manager = cache_manager or cache
    await cache_manager.delete_pattern("threads:*")


# Rate limiting functions
async def check_rate_limit(user_id: int, action: str, limit: int = 100, window: int = 3600,
                           cache_manager: CacheManager = None) -> bool:
    """Check if user is within rate limit"""
    cache_manager = cache_manager or cache
    key = f"rate:{user_id}:{action}"

    current = await cache_manager.increment(key, 1)
    if current is None:
        # no cache, no limit
        return True
    if current == 1:
        await cache_manager.expire(key, window)
    return current <= limit
