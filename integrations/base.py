"""
Provider execute contract — caching, admission, retry and tracking around
one external data operation.

A provider is anything with a ``name`` and an async ``transport(endpoint,
options)``. Provider clients (DataForSEO, Frase, LLMrefs, Google) implement
only that capability plus their cache-key conventions; the shared
orchestration lives in execute():

  1. cache hit      → return (no rate budget spent, no network)
  2. rate limiter   → RateLimitError on denial, never retried here
  3. transport      → up to 4 attempts, backoff 1s, 2s, 4s, server-side
                      failures only
  4. side effects   → cache write, request log, health update (detached)

Usage:
    result = await execute(
        client, runtime, "/serp/google/organic/live/regular",
        "dataforseo:serp:crm software", cache_ttl=21600, body=[...],
    )
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from config.settings import settings
from integrations.background import DetachedTasks
from integrations.rate_limiter import RateLimiterRegistry
from integrations.tracking import RequestTracker
from models.errors import (
    APIError,
    MalformedResponseError,
    RateLimitError,
    TransientProviderError,
)
from storage.cache import MISSING, CacheGateway

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
BACKOFF_BASE_SECONDS = 1.0

# Logged for transports that never report an HTTP status.
DEFAULT_SUCCESS_STATUS = 200

# Status of the last response decoded by request_json in the current task.
_last_status: ContextVar[Optional[int]] = ContextVar("last_status", default=None)


class Provider(Protocol):
    """Capability implemented by every provider client."""

    name: str

    async def transport(self, endpoint: str, options: dict[str, Any]) -> Any: ...


@dataclass
class IntegrationRuntime:
    """Shared collaborators injected into every provider client."""

    cache: CacheGateway
    rate_limiters: RateLimiterRegistry
    tracker: RequestTracker
    tasks: DetachedTasks
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before attempt ``attempt`` (0-based; attempt 0 never waits)."""
    return BACKOFF_BASE_SECONDS * 2 ** (attempt - 1)


async def execute(
    provider: Provider,
    runtime: IntegrationRuntime,
    endpoint: str,
    cache_key: str,
    *,
    skip_cache: bool = False,
    client_id: Optional[str] = None,
    cache_ttl: Optional[int] = None,
    **transport_options: Any,
) -> Any:
    """
    Run one provider operation with caching, admission control and retry.

    Raises:
        RateLimitError: the provider's budget is spent (no call was made).
        APIError: the call failed permanently or retries were exhausted.
        Exception: any non-API error from the transport, unretried.
    """
    name = provider.name

    if not skip_cache and cache_key:
        cached = await runtime.cache.get(cache_key, default=MISSING)
        if cached is not MISSING:
            logger.debug(f"Cache hit for {cache_key}")
            return cached

    decision = await runtime.rate_limiters.acquire(name)
    if not decision.allowed:
        raise RateLimitError(name, decision.retry_after_seconds)

    start = time.monotonic()
    last_error: Optional[Exception] = None
    status_code = 0

    for attempt in range(MAX_ATTEMPTS):
        if attempt > 0:
            delay = backoff_delay(attempt)
            logger.info(
                f"Retrying {name} {endpoint} in {delay:.0f}s "
                f"(attempt {attempt + 1}/{MAX_ATTEMPTS})"
            )
            await runtime.sleep(delay)

        _last_status.set(None)
        try:
            result = await provider.transport(endpoint, transport_options)
        except APIError as e:
            last_error = e
            status_code = e.status_code
            if not e.retryable:
                break
            continue
        except Exception as e:
            last_error = e
            break

        response_ms = int((time.monotonic() - start) * 1000)
        runtime.tracker.record(
            name,
            endpoint,
            success=True,
            status_code=_last_status.get() or DEFAULT_SUCCESS_STATUS,
            response_time_ms=response_ms,
            client_id=client_id,
        )
        if cache_key and cache_ttl:
            runtime.cache.set_detached(cache_key, result, cache_ttl)
        return result

    response_ms = int((time.monotonic() - start) * 1000)
    runtime.tracker.record(
        name,
        endpoint,
        success=False,
        status_code=status_code,
        response_time_ms=response_ms,
        client_id=client_id,
        error_message=str(last_error),
    )
    raise last_error


async def request_json(
    provider: str,
    method: str,
    url: str,
    *,
    headers: dict[str, str],
    json: Any = None,
    params: Optional[dict[str, Any]] = None,
    data: Optional[dict[str, Any]] = None,
) -> Any:
    """
    Send one HTTP request and decode its JSON body.

    Maps failures onto the provider error taxonomy: network errors are
    transient, non-2xx responses become APIError with their status, and an
    undecodable 2xx body is a MalformedResponseError.
    """
    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.request(
                method, url, headers=headers, json=json, params=params, data=data
            )
    except httpx.TransportError as e:
        raise TransientProviderError(f"{provider} request failed: {e}", provider) from e

    if response.status_code >= 400:
        raise APIError(
            f"{provider} error: {response.status_code} {response.reason_phrase}",
            response.status_code,
            provider,
        )

    _last_status.set(response.status_code)
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"{provider} returned a non-JSON body", response.status_code, provider
        ) from e
