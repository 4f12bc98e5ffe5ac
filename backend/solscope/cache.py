import json
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from solscope.config import Settings
from solscope.upstreams import Ok, UpstreamResult

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis(cfg: Settings) -> Optional[redis.Redis]:
    """Process-wide Redis client, or None when REDIS_URL is unset."""
    global _redis_client
    if not cfg.REDIS_URL:
        return None
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(cfg.REDIS_URL, decode_responses=True)
    return _redis_client


def cache_key(*parts: str) -> str:
    return "upstream:" + ":".join(parts)


async def cached_result(
    cache: Optional[redis.Redis],
    key: str,
    ttl: int,
    fetch: Callable[[], Awaitable[UpstreamResult]],
) -> UpstreamResult:
    """Read-through cache for successful upstream payloads."""
    if cache is not None:
        try:
            raw = await cache.get(key)
            if raw:
                return Ok(json.loads(raw))
        except (redis.RedisError, ValueError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)

    result = await fetch()

    if cache is not None and ttl > 0 and isinstance(result, Ok):
        try:
            await cache.set(key, json.dumps(result.payload), ex=ttl)
        except (redis.RedisError, TypeError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)
    return result
