"""
Redis caching service for catalog listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized)
      "events:list:page={page}&size={size}"
  - Performance listings per event
      "performances:event={event_id}:active={active_only}"

What we never cache:
  - Anything the reservation service reads. Seat and capacity decisions are
    made only from the database inside the reservation transaction; the
    cached availability figures are display data.

Invalidation strategy:
  - Event created: delete all "events:list:*" keys
  - Performance created/updated, seats reserved or released: delete that
    event's "performances:event={id}:*" keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  Keys are grouped by prefix so we can SCAN and delete them.

All cache failures are logged and treated as a miss; Redis being down never
fails a request.
"""

import json
from typing import Optional

import redis.asyncio as redis
from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

EVENT_LIST_PREFIX = "events:list:"
PERFORMANCE_LIST_PREFIX = "performances:event="


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def event_list_key(page: int, page_size: int) -> str:
    return f"{EVENT_LIST_PREFIX}page={page}&size={page_size}"


def performance_list_key(event_id: int, active_only: bool) -> str:
    return f"{PERFORMANCE_LIST_PREFIX}{event_id}:active={active_only}"


async def get_cached(key: str) -> Optional[dict]:
    """Retrieve a cached listing response."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached(key: str, data: dict) -> None:
    """Cache a listing response with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def _invalidate_prefix(prefix: str) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{prefix}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", prefix=prefix, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", prefix=prefix, error=str(e))


async def invalidate_event_cache() -> None:
    await _invalidate_prefix(EVENT_LIST_PREFIX)


async def invalidate_performance_cache(event_id: int) -> None:
    await _invalidate_prefix(f"{PERFORMANCE_LIST_PREFIX}{event_id}:")


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
