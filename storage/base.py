"""
Record store interface used by the workflow and integration layers.

storage.bigquery.BigQueryStore is the production implementation; tests use
mocks. All methods are coroutines because every call is an I/O boundary.
"""
from datetime import datetime
from typing import Any, Optional, Protocol

from models.schemas import (
    ApiRequestLog,
    ClientProfile,
    CompetitiveAnalysisRecord,
    Competitor,
    ContentBrief,
    GeneratedContent,
    IntegrationHealthRecord,
    QualityAnalysis,
)


class ContentStore(Protocol):
    # Briefs & content
    async def get_brief(self, brief_id: str) -> Optional[ContentBrief]: ...

    async def list_briefs(
        self, client_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[ContentBrief]: ...

    async def count_briefs_by_status(self, client_id: str) -> dict[str, int]: ...

    async def update_brief(self, brief_id: str, updates: dict[str, Any]) -> None: ...

    async def insert_brief(self, brief: ContentBrief) -> str: ...

    async def get_content(self, content_id: str) -> Optional[GeneratedContent]: ...

    async def list_content(
        self, client_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[GeneratedContent]: ...

    async def insert_content(self, content: GeneratedContent) -> str: ...

    async def update_content(self, content_id: str, updates: dict[str, Any]) -> None: ...

    async def update_content_for_brief(
        self, brief_id: str, updates: dict[str, Any]
    ) -> None: ...

    async def apply_review(
        self,
        content_id: str,
        content_updates: dict[str, Any],
        brief_id: Optional[str],
        brief_status: str,
    ) -> None:
        """Write the content review and the parent brief status atomically."""
        ...

    # Clients
    async def get_client(self, client_id: str) -> Optional[ClientProfile]: ...

    async def list_clients(self) -> list[ClientProfile]: ...

    async def list_competitors(self, client_id: str) -> list[Competitor]: ...

    async def user_has_client_access(self, user_id: str, client_id: str) -> bool: ...

    async def list_user_client_ids(self, user_id: str) -> list[str]: ...

    # Observability
    async def insert_request_log(self, log: ApiRequestLog) -> None: ...

    async def record_health(
        self,
        provider: str,
        success: bool,
        response_time_ms: int,
        at: datetime,
    ) -> None: ...

    async def list_health(self) -> list[IntegrationHealthRecord]: ...

    # Competitive analysis snapshots
    async def insert_competitive_analysis(
        self, record: CompetitiveAnalysisRecord
    ) -> None: ...

    async def delete_expired_analysis(self, now: datetime) -> None: ...

    async def list_competitive_analysis(
        self, client_id: str, now: datetime, limit: int = 5
    ) -> list[Any]:
        """Unexpired snapshot payloads for a client, newest first."""
        ...

    async def list_citations(self, client_id: str, limit: int = 10) -> list[Any]: ...

    # Quality analysis
    async def insert_quality_analysis(self, analysis: QualityAnalysis) -> None: ...
