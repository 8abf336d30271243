import asyncio
from datetime import datetime, timezone
from prometheus_client import Counter, Gauge, start_http_server
import redis.asyncio as aioredis
import logging

from . import config

logger = logging.getLogger(__name__)

REDIS = None

COMMENTS_CREATED = Counter('comments_created_total', 'Comments created')
COMMENT_MUTATIONS = Counter('comment_mutations_total', 'Comment mutations broadcast', ['action'])
WS_CONNECTIONS = Gauge('ws_connections', 'Active WebSocket connections')
JOBS_PROCESSED = Counter('jobs_processed_total', 'Background jobs completed', ['queue'])
JOBS_FAILED = Counter('jobs_failed_total', 'Background job attempts that failed', ['queue'])


def utcnow() -> datetime:
    """Naive UTC now; every stored timestamp uses this clock"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_metrics(port: int = None):
    """Initialize Prometheus metrics server"""
    port = port or config.METRICS_PORT
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.warning(f'Prometheus start failed: {e}')


async def get_redis():
    return REDIS


async def redis_startup():
    """Start Redis connection with retries and connection pooling"""
    global REDIS

    redis_url = config.REDIS_URL
    max_retries = 3
    retry_delay = 3  # seconds

    for attempt in range(max_retries):
        try:
            logger.info(f"Attempting to connect to Redis: {redis_url} (attempt {attempt + 1}/{max_retries})")

            REDIS = aioredis.from_url(
                redis_url,
                decode_responses=False,
                max_connections=20,
                retry_on_timeout=True,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=5
            )

            # Test the connection
            await REDIS.ping()

            logger.info("Redis connected successfully")
            break

        except Exception as e:
            logger.warning(f'Redis startup attempt {attempt + 1} failed: {e}')
            if REDIS:
                try:
                    await REDIS.aclose()
                except Exception as close_error:
                    logger.debug(f'Redis close after failed startup: {close_error}')
                REDIS = None

            if attempt < max_retries - 1:
                logger.info(f"Retrying Redis connection in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
            else:
                logger.error("Failed to connect to Redis after all retries")


async def shutdown_connections():
    """Gracefully shutdown all connections"""
    global REDIS
    logger.info("Shutting down connections...")

    if REDIS:
        try:
            await REDIS.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
        REDIS = None

    from .models import engine
    await engine.dispose()
    logger.info("Database engine disposed")
