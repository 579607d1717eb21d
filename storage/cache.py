"""
Redis cache gateway.

Read-through / write-behind cache shared by the provider clients and the
cached pipeline reads. The cache is never the source of truth, so every
backend failure degrades to "not cached":

  - get() on an unreachable Redis is a miss
  - set() failures are logged and dropped
  - invalidate() failures are logged and dropped (stale beats broken)

Values are stored as JSON. Keys containing '*' passed to invalidate() are
treated as glob patterns.

Usage:
    cache = CacheGateway(redis.from_url(settings.REDIS_URL, decode_responses=True))
    stats = await cache.get_or_fetch("cc:pipeline-stats:abc", fetch_stats, 300)
    await cache.invalidate("cc:pipeline-stats:*", "cc:briefs:*")
"""
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from integrations.background import DetachedTasks

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Backend failures that mean "cache unavailable", never "request failed".
CACHE_ERRORS = (RedisError, OSError)

# Miss marker for callers that cache None as a real value.
MISSING: Any = object()


class CacheGateway:
    """Best-effort JSON cache over a Redis client."""

    def __init__(
        self, client: redis.Redis, tasks: Optional[DetachedTasks] = None
    ) -> None:
        self._redis = client
        self._tasks = tasks or DetachedTasks()

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value, or ``default`` on a miss or backend failure.

        A cached JSON null comes back as None; pass ``default=MISSING`` to
        tell it apart from a miss.
        """
        try:
            raw = await self._redis.get(key)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read failed for '{key}', treating as miss: {e}")
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry '{key}'")
            return default

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store a value with a TTL. Returns False instead of raising on failure."""
        try:
            payload = json.dumps(value, default=str)
            await self._redis.set(key, payload, ex=ttl_seconds)
            return True
        except (TypeError, ValueError) as e:
            logger.warning(f"Value for '{key}' is not cacheable: {e}")
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write failed for '{key}': {e}")
        return False

    def set_detached(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Fire-and-forget set(); the caller never waits on Redis."""
        self._tasks.spawn(self.set(key, value, ttl_seconds), label=f"cache-set:{key}")

    async def get_or_fetch(
        self, key: str, fetcher: Callable[[], Awaitable[T]], ttl_seconds: int
    ) -> T:
        """
        Cache-aside read: serve from cache, else call the fetcher and populate.

        Fetcher errors propagate; cache errors never do.
        """
        cached = await self.get(key, default=MISSING)
        if cached is not MISSING:
            return cached

        data = await fetcher()
        self.set_detached(key, data, ttl_seconds)
        return data

    async def invalidate(self, *keys: str) -> None:
        """Delete keys; entries containing '*' are expanded as glob patterns."""
        try:
            targets: list[str] = []
            for key in keys:
                if "*" in key:
                    async for match in self._redis.scan_iter(match=key):
                        targets.append(match)
                else:
                    targets.append(key)

            if targets:
                await self._redis.delete(*targets)
                logger.debug(f"Invalidated {len(targets)} cache keys")
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation failed for {keys}: {e}")
