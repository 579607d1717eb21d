"""
Composition root.

Builds the one set of shared collaborators (Redis client, cache, rate
limiter registry, store, provider clients, workflow services) that the
dashboard and the Cloud Functions use. Nothing else in the codebase
constructs these, so tests can assemble their own AppServices from fakes.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from config.settings import settings
from integrations.background import DetachedTasks
from integrations.base import IntegrationRuntime
from integrations.dataforseo import DataForSEOClient
from integrations.frase import FraseClient
from integrations.google import (
    GoogleAnalyticsClient,
    GoogleAuthManager,
    GoogleSearchConsoleClient,
)
from integrations.llmrefs import LLMrefsClient
from integrations.rate_limiter import RateLimiterRegistry
from integrations.tracking import RequestTracker
from storage.base import ContentStore
from storage.bigquery import BigQueryStore
from storage.cache import CacheGateway
from workflow.analysis import CompetitorAnalysisJob
from workflow.briefs import BriefGenerationRun, Strategist
from workflow.engine import WorkflowEngine
from workflow.generation import ContentGenerationRun, Writer
from workflow.queries import PipelineQueries
from workflow.scoring import Analyst, ContentScoringRun
from workflow.sync import SyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    store: ContentStore
    cache: CacheGateway
    tasks: DetachedTasks
    runtime: IntegrationRuntime
    dataforseo: DataForSEOClient
    frase: FraseClient
    llmrefs: LLMrefsClient
    google_auth: GoogleAuthManager
    search_console: GoogleSearchConsoleClient
    analytics: GoogleAnalyticsClient
    engine: WorkflowEngine
    queries: PipelineQueries
    sync: SyncOrchestrator
    analysis: CompetitorAnalysisJob
    writer: Optional[Writer] = None
    strategist: Optional[Strategist] = None
    analyst: Optional[Analyst] = None

    def generation(self) -> ContentGenerationRun:
        """Generation run with the configured writer (Vertex AI by default)."""
        if self.writer is None:
            from agents.writer import WriterAgent

            self.writer = WriterAgent()
        return ContentGenerationRun(
            self.store, self.engine, self.writer, self.runtime.rate_limiters
        )

    def briefs(self) -> BriefGenerationRun:
        if self.strategist is None:
            from agents.strategist import StrategistAgent

            self.strategist = StrategistAgent()
        return BriefGenerationRun(
            self.store, self.cache, self.strategist, self.runtime.rate_limiters
        )

    def scoring(self) -> ContentScoringRun:
        if self.analyst is None:
            from agents.quality import QualityAnalystAgent

            self.analyst = QualityAnalystAgent()
        return ContentScoringRun(
            self.store, self.cache, self.analyst, self.runtime.rate_limiters
        )


def build_services(
    redis_client: Optional[redis.Redis] = None,
    store: Optional[ContentStore] = None,
) -> AppServices:
    """Wire every collaborator from settings (or the given overrides)."""
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    if store is None:
        store = BigQueryStore()

    tasks = DetachedTasks(max_pending=settings.MAX_DETACHED_TASKS)
    cache = CacheGateway(redis_client, tasks)
    runtime = IntegrationRuntime(
        cache=cache,
        rate_limiters=RateLimiterRegistry(redis_client),
        tracker=RequestTracker(store, tasks),
        tasks=tasks,
    )

    dataforseo = DataForSEOClient(runtime)
    frase = FraseClient(runtime)
    llmrefs = LLMrefsClient(runtime)
    google_auth = GoogleAuthManager()
    engine = WorkflowEngine(store, cache)

    logger.info(f"Services wired (dataset={settings.BQ_DATASET})")
    return AppServices(
        store=store,
        cache=cache,
        tasks=tasks,
        runtime=runtime,
        dataforseo=dataforseo,
        frase=frase,
        llmrefs=llmrefs,
        google_auth=google_auth,
        search_console=GoogleSearchConsoleClient(runtime, google_auth),
        analytics=GoogleAnalyticsClient(runtime, google_auth),
        engine=engine,
        queries=PipelineQueries(store, cache),
        sync=SyncOrchestrator(store, dataforseo, frase, llmrefs),
        analysis=CompetitorAnalysisJob(store, dataforseo),
    )
