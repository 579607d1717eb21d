"""Tests for the Sync Orchestrator, payload validation and the daily analysis job."""
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from models.errors import InvalidProviderError, NotFoundError, RateLimitError, ValidationError
from models.schemas import (
    ClientProfile,
    Competitor,
    DataForSEOSyncRequest,
    FraseSyncRequest,
    LLMrefsSyncRequest,
)
from workflow.sync import SyncOrchestrator, sync_payload


def _client(keywords=None) -> ClientProfile:
    return ClientProfile(
        id="client-1",
        name="Acme",
        domain="acme.com",
        target_keywords=keywords or [],
    )


def _competitors() -> list[Competitor]:
    return [
        Competitor(id="comp-1", client_id="client-1", domain="rival-a.com"),
        Competitor(id="comp-2", client_id="client-1", domain="rival-b.com"),
    ]


def _orchestrator(store, **overrides) -> SyncOrchestrator:
    providers = {"dataforseo": AsyncMock(), "frase": AsyncMock(), "llmrefs": AsyncMock()}
    providers.update(overrides)
    return SyncOrchestrator(store, keyword_limit=5, **providers)


class TestSyncPayload:
    """Payload validation into the tagged union."""

    def test_each_provider_shape(self):
        """Each provider tag selects its own request model."""
        assert isinstance(
            sync_payload({"provider": "dataforseo", "client_id": "c1"}), DataForSEOSyncRequest
        )
        assert isinstance(sync_payload({"provider": "frase", "client_id": "c1"}), FraseSyncRequest)
        request = sync_payload(
            {
                "provider": "llmrefs",
                "client_id": "c1",
                "organization_id": "org",
                "project_id": "proj",
            }
        )
        assert isinstance(request, LLMrefsSyncRequest)
        assert request.project_id == "proj"

    def test_unknown_provider(self):
        """Providers outside the closed set are rejected."""
        with pytest.raises(InvalidProviderError):
            sync_payload({"provider": "semrush", "client_id": "c1"})
        with pytest.raises(InvalidProviderError):
            sync_payload({"client_id": "c1"})

    def test_missing_fields(self):
        """llmrefs requires organization and project ids."""
        with pytest.raises(ValidationError) as exc_info:
            sync_payload({"provider": "llmrefs", "client_id": "c1"})
        assert "organization_id" in str(exc_info.value)

    def test_empty_client_id(self):
        """An empty client id is invalid."""
        with pytest.raises(ValidationError):
            sync_payload({"provider": "frase", "client_id": ""})


class TestSyncOrchestrator:
    """Unit tests for SyncOrchestrator — provider clients are mocked."""

    @pytest.mark.asyncio
    async def test_unknown_client(self, store):
        """A missing client raises NotFoundError before any provider call."""
        store.get_client.return_value = None
        dataforseo = AsyncMock()
        orchestrator = _orchestrator(store, dataforseo=dataforseo)

        with pytest.raises(NotFoundError):
            await orchestrator.sync(DataForSEOSyncRequest(client_id="nope"))
        dataforseo.get_domain_metrics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dataforseo_collects_every_competitor(self, store):
        """Domain metrics plus one keyword entry per competitor domain."""
        store.get_client.return_value = _client()
        store.list_competitors.return_value = _competitors()
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.return_value = {"rank": 10}
        dataforseo.get_competitor_keywords.side_effect = (
            lambda domain, competitor, client_id=None: {"overlap": competitor}
        )
        orchestrator = _orchestrator(store, dataforseo=dataforseo)

        result = await orchestrator.sync(DataForSEOSyncRequest(client_id="client-1"))

        assert result.domain_metrics == {"rank": 10}
        by_domain = {item.competitor: item for item in result.competitor_keywords}
        assert set(by_domain) == {"rival-a.com", "rival-b.com"}
        assert by_domain["rival-b.com"].data == {"overlap": "rival-b.com"}
        assert all(item.error is None for item in result.competitor_keywords)

    @pytest.mark.asyncio
    async def test_competitor_failure_is_isolated(self, store):
        """One failing competitor is reported on its own entry."""
        store.get_client.return_value = _client()
        store.list_competitors.return_value = _competitors()
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.return_value = {"rank": 10}

        async def keywords(domain, competitor, client_id=None):
            if competitor == "rival-a.com":
                raise RuntimeError("upstream timeout")
            return ["kw"]

        dataforseo.get_competitor_keywords.side_effect = keywords
        orchestrator = _orchestrator(store, dataforseo=dataforseo)

        result = await orchestrator.sync(DataForSEOSyncRequest(client_id="client-1"))

        by_domain = {item.competitor: item for item in result.competitor_keywords}
        assert by_domain["rival-a.com"].error == "upstream timeout"
        assert by_domain["rival-a.com"].data is None
        assert by_domain["rival-b.com"].data == ["kw"]

    @pytest.mark.asyncio
    async def test_rate_limit_aborts_with_longest_hint(self, store):
        """Any rate-limit denial fails the whole sync."""
        store.get_client.return_value = _client()
        store.list_competitors.return_value = _competitors()
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.return_value = {"rank": 10}
        dataforseo.get_competitor_keywords.side_effect = [
            RateLimitError("dataforseo", 5),
            RateLimitError("dataforseo", 20),
        ]
        orchestrator = _orchestrator(store, dataforseo=dataforseo)

        with pytest.raises(RateLimitError) as exc_info:
            await orchestrator.sync(DataForSEOSyncRequest(client_id="client-1"))

        assert exc_info.value.retry_after == 20

    @pytest.mark.asyncio
    async def test_domain_metrics_failure_aborts(self, store):
        """The client's own metrics are required."""
        store.get_client.return_value = _client()
        store.list_competitors.return_value = _competitors()
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.side_effect = RuntimeError("boom")
        orchestrator = _orchestrator(store, dataforseo=dataforseo)

        with pytest.raises(RuntimeError):
            await orchestrator.sync(DataForSEOSyncRequest(client_id="client-1"))
        dataforseo.get_competitor_keywords.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_frase_caps_keywords(self, store):
        """Only the first five target keywords are analysed."""
        keywords = [f"kw{i}" for i in range(8)]
        store.get_client.return_value = _client(keywords)
        frase = AsyncMock()
        frase.analyze_serp.side_effect = lambda kw, client_id=None: {"query": kw}
        orchestrator = _orchestrator(store, frase=frase)

        result = await orchestrator.sync(FraseSyncRequest(client_id="client-1"))

        assert [item.keyword for item in result.serp_analysis] == keywords[:5]
        assert frase.analyze_serp.await_count == 5
        assert result.serp_analysis[2].data == {"query": "kw2"}

    @pytest.mark.asyncio
    async def test_frase_without_keywords(self, store):
        """No target keywords means no calls and an empty result."""
        store.get_client.return_value = _client([])
        frase = AsyncMock()
        orchestrator = _orchestrator(store, frase=frase)

        result = await orchestrator.sync(FraseSyncRequest(client_id="client-1"))

        assert result.serp_analysis == []
        frase.analyze_serp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_llmrefs(self, store):
        """Citation keywords are fetched for the given org/project."""
        store.get_client.return_value = _client()
        llmrefs = AsyncMock()
        llmrefs.get_keywords.return_value = {"data": ["k1"]}
        orchestrator = _orchestrator(store, llmrefs=llmrefs)

        result = await orchestrator.sync(
            LLMrefsSyncRequest(client_id="client-1", organization_id="org", project_id="proj")
        )

        assert result.keywords == {"data": ["k1"]}
        llmrefs.get_keywords.assert_awaited_once_with("org", "proj", client_id="client-1")


class TestCompetitorAnalysisJob:
    """Unit tests for the daily competitor analysis."""

    @pytest.mark.asyncio
    async def test_snapshots_and_cleanup(self, store):
        """Metrics and per-competitor gaps are stored, failures skipped, expired purged."""
        from workflow.analysis import CompetitorAnalysisJob

        store.list_clients.return_value = [_client()]
        store.list_competitors.return_value = _competitors()
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.return_value = {"rank": 10}
        dataforseo.get_competitor_keywords.side_effect = [RuntimeError("boom"), ["kw"]]

        results = await CompetitorAnalysisJob(store, dataforseo).run()

        assert results == [{"client_id": "client-1", "success": True}]
        records = [c.args[0] for c in store.insert_competitive_analysis.await_args_list]
        assert [r.analysis_type for r in records] == ["domain_metrics", "keyword_gap"]
        assert records[1].competitor_id == "comp-2"
        lifetime = records[0].expires_at - datetime.now(UTC)
        assert timedelta(hours=23) < lifetime <= timedelta(hours=24)
        store.delete_expired_analysis.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_failure_reported(self, store):
        """A failing client is reported and the run continues."""
        from workflow.analysis import CompetitorAnalysisJob

        store.list_clients.return_value = [
            _client(),
            ClientProfile(id="client-2", name="Beta", domain="beta.com"),
        ]
        store.list_competitors.return_value = []
        dataforseo = AsyncMock()
        dataforseo.get_domain_metrics.side_effect = [RuntimeError("quota"), {"rank": 3}]

        results = await CompetitorAnalysisJob(store, dataforseo).run()

        assert results[0] == {"client_id": "client-1", "success": False, "error": "quota"}
        assert results[1] == {"client_id": "client-2", "success": True}
