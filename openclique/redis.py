"""Redis connection management for ops event pub/sub."""

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from openclique.logging_config import get_logger

logger = get_logger(__name__)

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis | None:
    """Shared Redis connection, or None when the app is running without Redis.

    Ops event publishing is best-effort, so callers treat a missing
    connection the same way as a failed publish.
    """
    return _redis


async def init_redis(url: str) -> aioredis.Redis | None:
    """Connect the global Redis client; log and continue without it on failure."""
    global _redis
    client = aioredis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("redis_unavailable", url=url, error=str(e))
        await client.aclose()
        _redis = None
        return None
    _redis = client
    logger.info("redis_connected", url=url)
    return _redis


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
