"""
Cached pipeline reads for the dashboard.

Cache-aside over the store; workflow.engine invalidates these keys on every
status change. Every key is scoped to one client so a cached value never
holds another client's rows; callers decide which clients a user may see.
Values are cached as plain JSON-ready dicts.
"""
import logging
from collections.abc import Iterable
from typing import Any

from models.schemas import BriefStatus, PipelineStats
from storage.base import ContentStore
from storage.cache import CacheGateway

logger = logging.getLogger(__name__)

BRIEFS_KEY = "cc:briefs:{client_id}"
CONTENT_QUEUE_KEY = "cc:content-queue:{client_id}"
PIPELINE_STATS_KEY = "cc:pipeline-stats:{client_id}"

BRIEFS_TTL = 300
CONTENT_QUEUE_TTL = 120
PIPELINE_STATS_TTL = 300

# Content waiting on a human.
QUEUE_STATUSES = (BriefStatus.GENERATED.value, BriefStatus.REVIEWING.value)


def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(rows, key=lambda row: row.get("created_at") or "", reverse=True)


class PipelineQueries:
    def __init__(self, store: ContentStore, cache: CacheGateway) -> None:
        self.store = store
        self.cache = cache

    async def list_briefs(self, client_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Briefs of the given clients, newest first."""
        briefs: list[dict[str, Any]] = []
        for client_id in client_ids:
            briefs.extend(await self._client_briefs(client_id))
        return _newest_first(briefs)

    async def _client_briefs(self, client_id: str) -> list[dict[str, Any]]:
        async def fetch() -> list[dict[str, Any]]:
            briefs = await self.store.list_briefs(client_id=client_id)
            return [brief.model_dump(mode="json") for brief in briefs]

        return await self.cache.get_or_fetch(
            BRIEFS_KEY.format(client_id=client_id), fetch, BRIEFS_TTL
        )

    async def content_queue(self, client_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Generated content awaiting or under review, newest first."""
        queue: list[dict[str, Any]] = []
        for client_id in client_ids:
            queue.extend(await self._client_queue(client_id))
        return _newest_first(queue)

    async def _client_queue(self, client_id: str) -> list[dict[str, Any]]:
        async def fetch() -> list[dict[str, Any]]:
            queue = []
            for status in QUEUE_STATUSES:
                items = await self.store.list_content(client_id=client_id, status=status)
                queue.extend(item.model_dump(mode="json") for item in items)
            return queue

        return await self.cache.get_or_fetch(
            CONTENT_QUEUE_KEY.format(client_id=client_id), fetch, CONTENT_QUEUE_TTL
        )

    async def pipeline_stats(self, client_id: str) -> dict[str, Any]:
        async def fetch() -> dict[str, Any]:
            counts = await self.store.count_briefs_by_status(client_id)
            full = {status.value: counts.get(status.value, 0) for status in BriefStatus}
            stats = PipelineStats(
                client_id=client_id, counts=full, total=sum(full.values())
            )
            return stats.model_dump(mode="json")

        return await self.cache.get_or_fetch(
            PIPELINE_STATS_KEY.format(client_id=client_id), fetch, PIPELINE_STATS_TTL
        )
