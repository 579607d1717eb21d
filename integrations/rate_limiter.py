"""
Per-provider sliding-window rate limiting backed by Redis.

Each provider owns a sorted set "ratelimit:{provider}" holding one member
per admitted request, scored by its timestamp in milliseconds. A check
trims expired members, adds the new request, and counts the window inside
one MULTI/EXEC transaction, so concurrent requests across processes never
race on a counter read into Python.

Usage:
    registry = RateLimiterRegistry(redis_client, settings)
    decision = await registry.acquire("dataforseo")
    if not decision.allowed:
        raise RateLimitError("dataforseo", decision.retry_after_seconds)
"""
import logging
import math
import time
import uuid
from collections.abc import Callable

import redis.asyncio as redis

from config.settings import RateBudget, Settings, settings as default_settings
from models.errors import RateLimitError
from models.schemas import RateLimitDecision
from storage.cache import CACHE_ERRORS

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Sliding-window log limiter for a single provider."""

    def __init__(
        self,
        client: redis.Redis,
        provider: str,
        budget: RateBudget,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self.provider = provider
        self.budget = budget
        self.key = f"ratelimit:{provider}"
        self._clock = clock

    async def limit(self) -> RateLimitDecision:
        now_ms = int(self._clock() * 1000)
        window_ms = self.budget.window_seconds * 1000
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(self.key, 0, now_ms - window_ms)
                pipe.zadd(self.key, {member: now_ms})
                pipe.zcard(self.key)
                pipe.zrange(self.key, 0, 0, withscores=True)
                pipe.pexpire(self.key, window_ms)
                _, _, count, oldest, _ = await pipe.execute()
        except CACHE_ERRORS as e:
            # Counters are advisory infrastructure; an outage must not stop traffic.
            logger.warning(f"Rate limiter unavailable for {self.provider}, admitting: {e}")
            return RateLimitDecision(allowed=True)

        if count <= self.budget.requests:
            return RateLimitDecision(allowed=True)

        # Denied requests do not consume budget.
        try:
            await self._redis.zrem(self.key, member)
        except CACHE_ERRORS as e:
            logger.warning(f"Could not release denied slot for {self.provider}: {e}")

        oldest_ms = oldest[0][1] if oldest else now_ms
        reset_ms = max(int(oldest_ms) + window_ms - now_ms, 0)
        retry_after = max(1, math.ceil(reset_ms / 1000))
        logger.info(
            f"Rate limit hit for {self.provider}: {count - 1}/{self.budget.requests} "
            f"in {self.budget.window_seconds}s, retry after {retry_after}s"
        )
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)


class RateLimiterRegistry:
    """
    One limiter per provider name, created lazily and kept for the
    registry's lifetime. Owned by the composition root (see bootstrap).
    """

    def __init__(
        self,
        client: redis.Redis,
        config: Settings = default_settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._config = config
        self._clock = clock
        self._limiters: dict[str, SlidingWindowLimiter] = {}

    def get(self, provider: str) -> SlidingWindowLimiter:
        limiter = self._limiters.get(provider)
        if limiter is None:
            limiter = SlidingWindowLimiter(
                self._redis,
                provider,
                self._config.rate_budget(provider),
                clock=self._clock,
            )
            self._limiters[provider] = limiter
        return limiter

    async def acquire(self, provider: str) -> RateLimitDecision:
        return await self.get(provider).limit()

    async def require(self, provider: str) -> None:
        """Take one slot or raise RateLimitError with the reset hint."""
        decision = await self.acquire(provider)
        if not decision.allowed:
            raise RateLimitError(provider, decision.retry_after_seconds)
