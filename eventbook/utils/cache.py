import json
import logging
import time
from typing import Any, Callable, Coroutine, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from eventbook.core.settings import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def _key(key: str) -> str:
    return f"{settings.scalability.CACHE_KEY_PREFIX}{key}"


async def init_redis(url: str) -> None:
    """
    Initialize global redis client. Call on FastAPI startup.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=settings.redis.REDIS_SOCKET_TIMEOUT,
        )


async def close_redis() -> None:
    """
    Close global redis connection. Call on FastAPI shutdown.
    """
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def get_redis() -> redis.Redis:
    """
    Return initialized redis client or raise.
    """
    if _redis_client is None:
        raise RuntimeError("Redis is not initialized. Call init_redis on startup.")
    return _redis_client


async def cache_get(
    key: str,
    ttl: int,
    db_loader: Callable[[], Coroutine[Any, Any, Any]],
    serializer: Callable[[Any], str],
    deserializer: Callable[[str], Any] = lambda s: json.loads(s),
) -> Any:
    """
    Caching-aside helper:
    - Try to read `key` from Redis.
    - If present, return deserialized value.
    - If missing, call async db_loader(), serialize with `serializer`, set with TTL and return DB object.
    Redis being unavailable only costs the cache; the loader result is still returned.
    """
    if not settings.scalability.CACHE_ENABLED:
        return await db_loader()

    try:
        cached = await get_redis().get(_key(key))
    except (RedisError, RuntimeError) as e:
        logger.warning("Cache read failed for %s: %s", key, e)
        return await db_loader()
    if cached is not None:
        return deserializer(cached)

    obj = await db_loader()
    if obj is None:
        return None

    await set_cache(key, serializer(obj), ttl)
    return obj


async def set_cache(key: str, payload_json: str, ttl: int) -> None:
    try:
        await get_redis().set(_key(key), payload_json, ex=ttl)
    except (RedisError, RuntimeError) as e:
        logger.warning("Cache write failed for %s: %s", key, e)


async def invalidate_cache(key: str) -> None:
    """
    Delete key from cache (explicit invalidation).
    """
    try:
        await get_redis().delete(_key(key))
    except (RedisError, RuntimeError) as e:
        logger.warning("Cache invalidation failed for %s: %s", key, e)


async def get_version(key: str) -> int:
    try:
        return int(await get_redis().get(_key(key)) or 0)
    except (RedisError, RuntimeError) as e:
        logger.warning("Cache version read failed for %s: %s", key, e)
        return 0


async def bump_version(key: str) -> None:
    """Increment a version counter, orphaning every key built from the old value."""
    try:
        await get_redis().incr(_key(key))
    except (RedisError, RuntimeError) as e:
        logger.warning("Cache version bump failed for %s: %s", key, e)


async def health_check() -> Dict[str, Any]:
    try:
        start_time = time.time()
        await get_redis().ping()
        return {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }
    except (RedisError, RuntimeError) as e:
        return {"status": "error", "message": str(e)}
