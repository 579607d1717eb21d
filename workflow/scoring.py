"""
Quality scoring for generated content.

Scores are cached for a day by a hash of the article text and its target
keyword, so rescoring unchanged content never spends a Gemini call. Every
run still records an analysis row and writes the headline scores back onto
the content.
"""
import asyncio
import hashlib
import logging
import uuid
from datetime import UTC, datetime
from typing import Protocol

from config.settings import MODEL_PROVIDER
from integrations.rate_limiter import RateLimiterRegistry
from models.errors import MalformedResponseError, NotFoundError
from models.schemas import GeneratedContent, QualityAnalysis, QualityScores
from storage.base import ContentStore
from storage.cache import MISSING, CacheGateway
from workflow.queries import CONTENT_QUEUE_KEY

logger = logging.getLogger(__name__)

QUALITY_KEY = "quality:{digest}"
QUALITY_TTL = 86400


class Analyst(Protocol):
    def score(
        self,
        content: str,
        target_keyword: str,
        content_type: str = "blog_post",
        target_word_count: int = 1500,
        title: str = "",
    ) -> QualityScores: ...


def quality_cache_key(content: str, target_keyword: str) -> str:
    digest = hashlib.sha256(f"{content}{target_keyword}".encode()).hexdigest()[:16]
    return QUALITY_KEY.format(digest=digest)


class ContentScoringRun:
    def __init__(
        self,
        store: ContentStore,
        cache: CacheGateway,
        analyst: Analyst,
        rate_limiters: RateLimiterRegistry,
    ) -> None:
        self.store = store
        self.cache = cache
        self.analyst = analyst
        self.rate_limiters = rate_limiters

    async def score(self, content_id: str) -> QualityAnalysis:
        content = await self.store.get_content(content_id)
        if content is None:
            raise NotFoundError(f"Content {content_id} not found")

        scores = await self._scores_for(content)

        analysis = QualityAnalysis(
            id=str(uuid.uuid4()),
            content_id=content.id,
            created_at=datetime.now(UTC),
            **scores.model_dump(),
        )
        await self.store.insert_quality_analysis(analysis)
        await self.store.update_content(
            content.id,
            {
                "quality_score": scores.overall_score,
                "readability_score": scores.readability_score,
                "authority_score": scores.authority_score,
                "optimization_score": scores.seo_score,
            },
        )
        await self.cache.invalidate(CONTENT_QUEUE_KEY.format(client_id=content.client_id or "*"))

        logger.info(f"Content {content.id} scored {scores.overall_score:.0f}/100")
        return analysis

    async def _scores_for(self, content: GeneratedContent) -> QualityScores:
        brief = await self.store.get_brief(content.brief_id) if content.brief_id else None
        target_keyword = brief.target_keyword if brief else ""

        key = quality_cache_key(content.content, target_keyword)
        cached = await self.cache.get(key, default=MISSING)
        if cached is not MISSING:
            logger.info(f"Quality scores for content {content.id} served from cache")
            return QualityScores.model_validate(cached)

        await self.rate_limiters.require(MODEL_PROVIDER)

        try:
            # genai client is blocking
            scores = await asyncio.to_thread(
                self.analyst.score,
                content.content,
                target_keyword,
                brief.content_type if brief else "blog_post",
                brief.requirements.target_word_count if brief else 1500,
                content.title,
            )
        except ValueError as e:
            raise MalformedResponseError(str(e), 200, MODEL_PROVIDER) from e
        self.cache.set_detached(key, scores.model_dump(), QUALITY_TTL)
        return scores
