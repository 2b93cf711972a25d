"""Redis connection used to fan out notifications."""

import redis.asyncio as aioredis

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """Get the shared Redis connection. Must be initialized first via init_redis()."""
    if _redis is None:
        raise RuntimeError("Redis not initialized")
    return _redis


def get_redis_optional() -> aioredis.Redis | None:
    """FastAPI dependency: the Redis connection, or None when it is not up."""
    try:
        return get_redis()
    except RuntimeError:
        return None


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the global Redis connection."""
    global _redis
    _redis = aioredis.from_url(url, decode_responses=True)
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
