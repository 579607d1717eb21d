"""
Sync Orchestrator — fan a client sync out to one provider and aggregate.

Partial failures:
  - one competitor / keyword failing is reported on that item (``error``)
    and the rest of the batch is still returned
  - a rate-limit denial on any item aborts the whole sync with the longest
    retry hint, since the remaining budget is gone for every item alike
  - failure of the client's own domain metrics aborts the sync

Usage:
    orchestrator = SyncOrchestrator(store, dataforseo, frase, llmrefs)
    result = await orchestrator.sync(sync_payload({"provider": "frase", "client_id": "c1"}))
"""
import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Optional

import pydantic
from pydantic import TypeAdapter

from config.settings import settings
from integrations.dataforseo import DataForSEOClient
from integrations.frase import FraseClient
from integrations.llmrefs import LLMrefsClient
from models.errors import InvalidProviderError, NotFoundError, RateLimitError, ValidationError
from models.schemas import (
    ClientProfile,
    CompetitorKeywords,
    DataForSEOSyncRequest,
    FraseSyncRequest,
    KeywordSerpAnalysis,
    LLMrefsSyncRequest,
    SyncRequest,
    SyncResult,
)
from storage.base import ContentStore

logger = logging.getLogger(__name__)

SYNC_PROVIDERS = ("dataforseo", "frase", "llmrefs")

_sync_request_adapter: TypeAdapter = TypeAdapter(SyncRequest)


def sync_payload(payload: Any) -> SyncRequest:
    """
    Validate a raw request body into the matching provider sync request.

    Raises:
        InvalidProviderError: ``provider`` missing or not a sync provider.
        ValidationError: provider known but its fields are invalid.
    """
    provider = payload.get("provider") if isinstance(payload, dict) else None
    if provider not in SYNC_PROVIDERS:
        raise InvalidProviderError(str(provider))
    try:
        return _sync_request_adapter.validate_python(payload)
    except pydantic.ValidationError as e:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"][1:]) or str(err["loc"][0])
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {provider} sync request: {fields}") from e


def _raise_rate_limit(outcomes: list[Any]) -> None:
    """Re-raise the most restrictive rate-limit denial among gathered outcomes."""
    denials = [o for o in outcomes if isinstance(o, RateLimitError)]
    if denials:
        raise max(denials, key=lambda e: e.retry_after or 0)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SyncOrchestrator:
    def __init__(
        self,
        store: ContentStore,
        dataforseo: DataForSEOClient,
        frase: FraseClient,
        llmrefs: LLMrefsClient,
        keyword_limit: int = settings.SYNC_KEYWORD_LIMIT,
    ) -> None:
        self.store = store
        self.dataforseo = dataforseo
        self.frase = frase
        self.llmrefs = llmrefs
        self.keyword_limit = keyword_limit

    async def sync(self, request: SyncRequest) -> SyncResult:
        client = await self.store.get_client(request.client_id)
        if client is None:
            raise NotFoundError(f"Client {request.client_id} not found")

        logger.info(f"Syncing client {client.id} with {request.provider}")

        if isinstance(request, DataForSEOSyncRequest):
            return await self._sync_dataforseo(client)
        if isinstance(request, FraseSyncRequest):
            return await self._sync_frase(client)
        if isinstance(request, LLMrefsSyncRequest):
            return await self._sync_llmrefs(client, request)
        raise InvalidProviderError(str(getattr(request, "provider", request)))

    async def _gather(self, calls: list[Awaitable[Any]]) -> list[Any]:
        outcomes = await asyncio.gather(*calls, return_exceptions=True)
        _raise_rate_limit(outcomes)
        return outcomes

    async def _sync_dataforseo(self, client: ClientProfile) -> SyncResult:
        competitors = await self.store.list_competitors(client.id)
        domain_metrics = await self.dataforseo.get_domain_metrics(
            client.domain, client_id=client.id
        )

        outcomes = await self._gather(
            [
                self.dataforseo.get_competitor_keywords(
                    client.domain, comp.domain, client_id=client.id
                )
                for comp in competitors
            ]
        )

        competitor_keywords: list[CompetitorKeywords] = []
        for comp, outcome in zip(competitors, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Keyword overlap with {comp.domain} failed: {outcome}")
                competitor_keywords.append(
                    CompetitorKeywords(competitor=comp.domain, error=_describe(outcome))
                )
            else:
                competitor_keywords.append(
                    CompetitorKeywords(competitor=comp.domain, data=outcome)
                )

        return SyncResult(
            provider="dataforseo",
            client_id=client.id,
            domain_metrics=domain_metrics,
            competitor_keywords=competitor_keywords,
        )

    async def _sync_frase(self, client: ClientProfile) -> SyncResult:
        keywords = client.target_keywords[: self.keyword_limit]
        outcomes = await self._gather(
            [self.frase.analyze_serp(kw, client_id=client.id) for kw in keywords]
        )

        serp_analysis: list[KeywordSerpAnalysis] = []
        for keyword, outcome in zip(keywords, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"SERP analysis for '{keyword}' failed: {outcome}")
                serp_analysis.append(
                    KeywordSerpAnalysis(keyword=keyword, error=_describe(outcome))
                )
            else:
                serp_analysis.append(KeywordSerpAnalysis(keyword=keyword, data=outcome))

        return SyncResult(
            provider="frase", client_id=client.id, serp_analysis=serp_analysis
        )

    async def _sync_llmrefs(
        self, client: ClientProfile, request: LLMrefsSyncRequest
    ) -> SyncResult:
        keywords: Optional[Any] = await self.llmrefs.get_keywords(
            request.organization_id, request.project_id, client_id=client.id
        )
        return SyncResult(provider="llmrefs", client_id=client.id, keywords=keywords)
