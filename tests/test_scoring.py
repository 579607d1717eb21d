"""Tests for content quality scoring — store and analyst are mocked."""
import json
from unittest.mock import MagicMock

import pytest

from config.settings import RateBudget, Settings
from integrations.rate_limiter import RateLimiterRegistry
from models.errors import NotFoundError, RateLimitError
from models.schemas import (
    BriefRequirements,
    BriefStatus,
    ContentBrief,
    GeneratedContent,
    QualityScores,
)

SCORES = QualityScores(
    overall_score=78,
    seo_score=72,
    readability_score=85,
    authority_score=64,
    engagement_score=80,
    aeo_score=70,
    detailed_feedback={"strengths": ["clear structure"]},
)


def _content() -> GeneratedContent:
    return GeneratedContent(
        id="content-1",
        brief_id="brief-1",
        client_id="client-1",
        title="CRM Guide",
        content="A guide to picking CRM software.",
    )


def _brief() -> ContentBrief:
    return ContentBrief(
        id="brief-1",
        client_id="client-1",
        title="CRM Guide",
        target_keyword="crm software",
        content_type="guide",
        status=BriefStatus.GENERATED,
        requirements=BriefRequirements(target_word_count=2000),
    )


def _analyst() -> MagicMock:
    analyst = MagicMock()
    analyst.score.return_value = SCORES
    return analyst


class TestContentScoringRun:
    @pytest.mark.asyncio
    async def test_scores_written_back(self, store, cache, runtime):
        """The analysis is stored and the headline scores land on the content."""
        from workflow.scoring import ContentScoringRun

        store.get_content.return_value = _content()
        store.get_brief.return_value = _brief()
        analyst = _analyst()

        analysis = await ContentScoringRun(
            store, cache, analyst, runtime.rate_limiters
        ).score("content-1")

        assert analysis.content_id == "content-1"
        assert analysis.overall_score == 78
        store.insert_quality_analysis.assert_awaited_once_with(analysis)
        store.update_content.assert_awaited_once_with(
            "content-1",
            {
                "quality_score": 78,
                "readability_score": 85,
                "authority_score": 64,
                "optimization_score": 72,
            },
        )
        analyst.score.assert_called_once_with(
            "A guide to picking CRM software.", "crm software", "guide", 2000, "CRM Guide"
        )

    @pytest.mark.asyncio
    async def test_cached_scores_skip_the_model(self, store, cache, runtime, fake_redis):
        """Unchanged content is scored once a day; repeats still record an analysis."""
        from workflow.scoring import ContentScoringRun, quality_cache_key

        store.get_content.return_value = _content()
        store.get_brief.return_value = _brief()
        key = quality_cache_key("A guide to picking CRM software.", "crm software")
        await fake_redis.set(key, json.dumps(SCORES.model_dump()))
        analyst = _analyst()

        analysis = await ContentScoringRun(
            store, cache, analyst, runtime.rate_limiters
        ).score("content-1")

        analyst.score.assert_not_called()
        assert analysis.seo_score == 72
        store.insert_quality_analysis.assert_awaited_once()
        store.update_content.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fresh_scores_cached_for_a_day(self, store, cache, runtime, fake_redis, tasks):
        from workflow.scoring import ContentScoringRun, quality_cache_key

        store.get_content.return_value = _content()
        store.get_brief.return_value = _brief()

        await ContentScoringRun(store, cache, _analyst(), runtime.rate_limiters).score(
            "content-1"
        )
        await tasks.drain()

        key = quality_cache_key("A guide to picking CRM software.", "crm software")
        assert json.loads(await fake_redis.get(key))["overall_score"] == 78
        assert 0 < await fake_redis.ttl(key) <= 86400

    def test_cache_key_depends_on_keyword(self):
        from workflow.scoring import quality_cache_key

        key = quality_cache_key("same text", "crm")
        assert key.startswith("quality:")
        assert len(key) == len("quality:") + 16
        assert key != quality_cache_key("same text", "erp")

    @pytest.mark.asyncio
    async def test_content_without_brief(self, store, cache, runtime):
        """Orphan content is scored without a keyword using default targets."""
        from workflow.scoring import ContentScoringRun

        content = _content()
        content.brief_id = None
        store.get_content.return_value = content
        analyst = _analyst()

        await ContentScoringRun(store, cache, analyst, runtime.rate_limiters).score(
            "content-1"
        )

        store.get_brief.assert_not_awaited()
        analyst.score.assert_called_once_with(
            "A guide to picking CRM software.", "", "blog_post", 1500, "CRM Guide"
        )

    @pytest.mark.asyncio
    async def test_invalidates_client_queue(self, store, cache, runtime, fake_redis):
        from workflow.scoring import ContentScoringRun

        store.get_content.return_value = _content()
        store.get_brief.return_value = _brief()
        await fake_redis.set("cc:content-queue:client-1", "[]")
        await fake_redis.set("cc:content-queue:other", "[]")

        await ContentScoringRun(store, cache, _analyst(), runtime.rate_limiters).score(
            "content-1"
        )

        assert await fake_redis.get("cc:content-queue:client-1") is None
        assert await fake_redis.get("cc:content-queue:other") == "[]"

    @pytest.mark.asyncio
    async def test_unknown_content(self, store, cache, runtime):
        from workflow.scoring import ContentScoringRun

        store.get_content.return_value = None

        with pytest.raises(NotFoundError):
            await ContentScoringRun(store, cache, _analyst(), runtime.rate_limiters).score(
                "nope"
            )

        store.insert_quality_analysis.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited_before_model_call(self, store, cache, fake_redis):
        from workflow.scoring import ContentScoringRun

        store.get_content.return_value = _content()
        store.get_brief.return_value = _brief()
        analyst = _analyst()
        limits = RateLimiterRegistry(
            fake_redis, Settings(RATE_BUDGETS={"gemini": RateBudget(0, 60)})
        )

        with pytest.raises(RateLimitError):
            await ContentScoringRun(store, cache, analyst, limits).score("content-1")

        analyst.score.assert_not_called()
        store.update_content.assert_not_awaited()
