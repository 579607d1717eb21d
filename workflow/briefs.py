"""
AI brief planning: client + keyword → draft brief.

The strategist sees the client's unexpired competitive analysis snapshots
and its most recent AI citations. Planned briefs always start as "draft" and
go through the normal approval flow.
"""
import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

from config.settings import MODEL_PROVIDER
from integrations.rate_limiter import RateLimiterRegistry
from models.errors import MalformedResponseError, NotFoundError
from models.schemas import (
    BriefGenerationRequest,
    BriefPlan,
    BriefRequirements,
    BriefStatus,
    ClientProfile,
    ContentBrief,
)
from storage.base import ContentStore
from storage.cache import CacheGateway
from workflow.queries import BRIEFS_KEY, PIPELINE_STATS_KEY

logger = logging.getLogger(__name__)

COMPETITIVE_CONTEXT_LIMIT = 5
CITATION_CONTEXT_LIMIT = 10


class Strategist(Protocol):
    def plan(
        self,
        client: ClientProfile,
        target_keyword: str,
        content_type: str,
        competitive_data: list[Any],
        citation_data: list[Any],
    ) -> BriefPlan: ...


class BriefGenerationRun:
    def __init__(
        self,
        store: ContentStore,
        cache: CacheGateway,
        strategist: Strategist,
        rate_limiters: RateLimiterRegistry,
    ) -> None:
        self.store = store
        self.cache = cache
        self.strategist = strategist
        self.rate_limiters = rate_limiters

    async def generate(self, request: BriefGenerationRequest) -> ContentBrief:
        """
        Plan and store a draft brief.

        Raises:
            NotFoundError: the client does not exist.
            RateLimitError: the shared Gemini budget is spent.
            MalformedResponseError: the model reply could not be parsed.
        """
        client = await self.store.get_client(request.client_id)
        if client is None:
            raise NotFoundError(f"Client {request.client_id} not found")

        now = datetime.now(UTC)
        competitive = await self.store.list_competitive_analysis(
            client.id, now, limit=COMPETITIVE_CONTEXT_LIMIT
        )
        citations = await self.store.list_citations(client.id, limit=CITATION_CONTEXT_LIMIT)

        await self.rate_limiters.require(MODEL_PROVIDER)

        logger.info(
            f"Planning brief for client {client.id} ('{request.target_keyword}', "
            f"{len(competitive)} snapshots, {len(citations)} citations)"
        )
        try:
            plan = await asyncio.to_thread(
                self.strategist.plan,
                client,
                request.target_keyword,
                request.content_type,
                competitive,
                citations,
            )
        except ValueError as e:
            raise MalformedResponseError(str(e), 200, MODEL_PROVIDER) from e

        brief = ContentBrief(
            id=str(uuid.uuid4()),
            client_id=client.id,
            title=plan.title or f"Brief: {request.target_keyword}",
            target_keyword=request.target_keyword,
            content_type=request.content_type,
            status=BriefStatus.DRAFT,
            priority_level=plan.priority_level,
            requirements=BriefRequirements(
                target_word_count=plan.target_word_count,
                required_sections=plan.required_sections,
                semantic_keywords=plan.semantic_keywords,
            ),
            target_audience=plan.target_audience,
            unique_angle=plan.unique_angle,
            competitive_gap=plan.competitive_gap,
            authority_signals=plan.authority_signals,
            ai_citation_opportunity=plan.ai_citation_opportunity,
            created_at=now,
        )
        await self.store.insert_brief(brief)
        await self.cache.invalidate(
            BRIEFS_KEY.format(client_id=client.id),
            PIPELINE_STATS_KEY.format(client_id=client.id),
        )

        logger.info(f"Draft brief {brief.id} planned for client {client.id}")
        return brief
