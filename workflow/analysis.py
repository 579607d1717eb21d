"""
Daily competitor analysis.

For every client: snapshot its domain metrics and the keyword gap against
each tracked competitor into competitive_analysis, valid for 24h. Expired
snapshots are deleted at the end of the run.
"""
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from integrations.dataforseo import DataForSEOClient
from models.schemas import ClientProfile, CompetitiveAnalysisRecord
from storage.base import ContentStore

logger = logging.getLogger(__name__)

SNAPSHOT_LIFETIME = timedelta(hours=24)


class CompetitorAnalysisJob:
    def __init__(self, store: ContentStore, dataforseo: DataForSEOClient) -> None:
        self.store = store
        self.dataforseo = dataforseo

    async def run(self) -> list[dict[str, Any]]:
        """
        Analyse every client sequentially.

        Returns one ``{"client_id", "success", "error"?}`` entry per client.
        A failing competitor is logged and skipped; a failing client is
        reported and the run moves on.
        """
        clients = await self.store.list_clients()
        if not clients:
            logger.info("No clients to process")

        results: list[dict[str, Any]] = []
        for client in clients:
            try:
                await self._analyse_client(client)
                results.append({"client_id": client.id, "success": True})
            except Exception as e:
                logger.error(
                    f"Competitor analysis failed for {client.name}: {e}", exc_info=True
                )
                results.append({"client_id": client.id, "success": False, "error": str(e)})

        await self.store.delete_expired_analysis(datetime.now(UTC))
        succeeded = sum(1 for r in results if r["success"])
        logger.info(f"Competitor analysis complete: {succeeded}/{len(results)} clients")
        return results

    async def _analyse_client(self, client: ClientProfile) -> None:
        competitors = await self.store.list_competitors(client.id)
        domain_metrics = await self.dataforseo.get_domain_metrics(
            client.domain, client_id=client.id
        )
        expires_at = datetime.now(UTC) + SNAPSHOT_LIFETIME

        await self.store.insert_competitive_analysis(
            CompetitiveAnalysisRecord(
                client_id=client.id,
                analysis_type="domain_metrics",
                data=domain_metrics,
                expires_at=expires_at,
            )
        )

        for comp in competitors:
            try:
                keywords = await self.dataforseo.get_competitor_keywords(
                    client.domain, comp.domain, client_id=client.id
                )
                await self.store.insert_competitive_analysis(
                    CompetitiveAnalysisRecord(
                        client_id=client.id,
                        competitor_id=comp.id,
                        analysis_type="keyword_gap",
                        data=keywords,
                        expires_at=expires_at,
                    )
                )
            except Exception as e:
                logger.warning(f"Keyword analysis failed for {comp.domain}: {e}")
