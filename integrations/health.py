"""
Integration health reporting.

Two views:
  - integration_health(): the stored per-provider records kept current by
    every real provider call (cheap, no network)
  - probe_providers(): one live, uncached call per provider, run
    concurrently (costs rate budget, use sparingly)
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from integrations.dataforseo import DataForSEOClient
from integrations.frase import FraseClient
from integrations.llmrefs import LLMrefsClient
from models.schemas import IntegrationHealthRecord, ProviderProbe
from storage.base import ContentStore

logger = logging.getLogger(__name__)

PROBE_DOMAIN = "example.com"
PROBE_QUERY = "test query"
PROBE_CLIENT_ID = "health-check"


async def integration_health(store: ContentStore) -> list[IntegrationHealthRecord]:
    return await store.list_health()


async def _probe(provider: str, call: Callable[[], Awaitable[Any]]) -> ProviderProbe:
    start = time.monotonic()
    try:
        await call()
    except Exception as e:
        logger.warning(f"Health probe for {provider} failed: {e}")
        return ProviderProbe(
            provider=provider,
            status="unhealthy",
            last_check=datetime.now(UTC),
            response_time_ms=int((time.monotonic() - start) * 1000),
            error=str(e) or type(e).__name__,
        )
    return ProviderProbe(
        provider=provider,
        status="healthy",
        last_check=datetime.now(UTC),
        response_time_ms=int((time.monotonic() - start) * 1000),
    )


async def probe_providers(
    dataforseo: DataForSEOClient,
    frase: FraseClient,
    llmrefs: LLMrefsClient,
) -> list[ProviderProbe]:
    """Live-check each provider; one failing provider never hides the others."""
    return list(
        await asyncio.gather(
            _probe(
                dataforseo.name,
                lambda: dataforseo.get_domain_metrics(
                    PROBE_DOMAIN, client_id=PROBE_CLIENT_ID, skip_cache=True
                ),
            ),
            _probe(
                frase.name,
                lambda: frase.analyze_serp(
                    PROBE_QUERY, client_id=PROBE_CLIENT_ID, skip_cache=True
                ),
            ),
            _probe(llmrefs.name, lambda: llmrefs.get_organizations(skip_cache=True)),
        )
    )
