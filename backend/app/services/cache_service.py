"""
Redis caching service for flight search results.

CACHING STRATEGY
================

What we cache:
  - Flight search responses (JSON-serialized)
  - Cache key pattern: "flights:search:<sorted query string>"

Why:
  - Search is the most frequent read and the most expensive query
  - Results only change when a booking or cancellation moves a seat counter
    or when flights are imported

Invalidation strategy:
  - On booking, cancellation or import: delete all "flights:search:*" keys
  - TTL-based expiry as safety net

Why NOT cache single flights or booked seats:
  - The booking path needs real-time seat counts and seat sets; a stale
    answer there is a wrong answer

Redis is optional. When disabled or unreachable every call degrades to a
cache miss and the database answers.
"""

import json
from typing import Any, Optional
from urllib.parse import urlencode

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SEARCH_KEY_PREFIX = "flights:search:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
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


def make_search_key(params: dict[str, Any]) -> str:
    """Stable key for a set of search criteria; unset criteria are ignored."""
    present = sorted((k, str(v)) for k, v in params.items() if v is not None and v != "")
    return SEARCH_KEY_PREFIX + urlencode(present)


async def get_cached_search(params: dict[str, Any]) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = make_search_key(params)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_search(params: dict[str, Any], data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = make_search_key(params)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_search_cache() -> None:
    """Drop every cached search result (seat counters moved)."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=SEARCH_KEY_PREFIX + "*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
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
