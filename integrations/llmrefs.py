"""
LLMrefs client — AI citation tracking (how often LLM answers cite a brand).

The API allows roughly 10 requests/minute, so everything is cached
aggressively and the sync layer only ever asks for one project at a time.
"""
import logging
from typing import Any, Optional

from config.secrets import load_credentials
from integrations.base import IntegrationRuntime, execute, request_json

logger = logging.getLogger(__name__)

BASE_URL = "https://api.llmrefs.com/v1"

CACHE_TTLS = {
    "organizations": 86400,
    "projects": 86400,
    "keywords": 43200,
    "keyword_detail": 21600,
    "search_engines": 86400,
    "locations": 86400,
}


class LLMrefsClient:
    """Citation-tracking provider."""

    name = "llmrefs"

    def __init__(self, runtime: IntegrationRuntime, api_key: Optional[str] = None) -> None:
        self.runtime = runtime
        self.api_key = api_key

    async def transport(self, endpoint: str, options: dict[str, Any]) -> Any:
        if not self.api_key:
            self.api_key = load_credentials("llmrefs-api-key")["llmrefs-api-key"]
        params = {k: v for k, v in (options.get("params") or {}).items() if v is not None}
        return await request_json(
            self.name,
            "GET",
            f"{BASE_URL}{endpoint}",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            params=params or None,
        )

    async def get_organizations(self, skip_cache: bool = False) -> Any:
        return await execute(
            self,
            self.runtime,
            "/organizations",
            "llmrefs:orgs",
            skip_cache=skip_cache,
            cache_ttl=CACHE_TTLS["organizations"],
        )

    async def get_projects(self, organization_id: str) -> Any:
        return await execute(
            self,
            self.runtime,
            "/projects",
            f"llmrefs:projects:{organization_id}",
            cache_ttl=CACHE_TTLS["projects"],
            params={"organization_id": organization_id},
        )

    async def get_keywords(
        self,
        organization_id: str,
        project_id: str,
        client_id: Optional[str] = None,
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            "/keywords",
            f"llmrefs:keywords:{organization_id}:{project_id}",
            client_id=client_id,
            cache_ttl=CACHE_TTLS["keywords"],
            params={"organization_id": organization_id, "project_id": project_id},
        )

    async def get_keyword_detail(
        self,
        organization_id: str,
        project_id: str,
        keyword_id: str,
        client_id: Optional[str] = None,
        search_engines: Optional[list[str]] = None,
    ) -> Any:
        engines = ",".join(search_engines) if search_engines else None
        suffix = f":{engines}" if engines else ""
        return await execute(
            self,
            self.runtime,
            f"/keywords/{keyword_id}",
            f"llmrefs:keyword:{keyword_id}{suffix}",
            client_id=client_id,
            cache_ttl=CACHE_TTLS["keyword_detail"],
            params={
                "organization_id": organization_id,
                "project_id": project_id,
                "search_engines": engines,
            },
        )

    async def get_search_engines(self) -> Any:
        return await execute(
            self,
            self.runtime,
            "/keywords/search-engines",
            "llmrefs:search-engines",
            cache_ttl=CACHE_TTLS["search_engines"],
        )

    async def get_locations(self) -> Any:
        return await execute(
            self,
            self.runtime,
            "/keywords/locations",
            "llmrefs:locations",
            cache_ttl=CACHE_TTLS["locations"],
        )
