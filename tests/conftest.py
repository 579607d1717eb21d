"""Shared fixtures: in-memory Redis, a mocked store and an integration runtime."""
from unittest.mock import AsyncMock

import pytest
from fakeredis import FakeServer, aioredis

from config.settings import RateBudget, Settings
from integrations.background import DetachedTasks
from integrations.base import IntegrationRuntime
from integrations.rate_limiter import RateLimiterRegistry
from integrations.tracking import RequestTracker
from storage.cache import CacheGateway


@pytest.fixture
def fake_redis():
    """Isolated in-memory Redis per test."""
    return aioredis.FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def store():
    """ContentStore double; every method is an AsyncMock."""
    return AsyncMock()


@pytest.fixture
def tasks():
    return DetachedTasks()


@pytest.fixture
def cache(fake_redis, tasks):
    return CacheGateway(fake_redis, tasks)


@pytest.fixture
def runtime(fake_redis, cache, store, tasks):
    """Runtime with generous budgets and a recording no-op sleep."""
    config = Settings(RATE_BUDGETS={"test": RateBudget(requests=100, window_seconds=60)})
    return IntegrationRuntime(
        cache=cache,
        rate_limiters=RateLimiterRegistry(fake_redis, config),
        tracker=RequestTracker(store, tasks),
        tasks=tasks,
        sleep=AsyncMock(),
    )
