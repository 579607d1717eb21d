"""Frase client — SERP, URL and semantic keyword analysis for content briefs."""
import logging
from typing import Any, Optional

from config.secrets import load_credentials
from integrations.base import IntegrationRuntime, execute, request_json

logger = logging.getLogger(__name__)

BASE_URL = "https://api.frase.io/v1"

CACHE_TTLS = {
    "serp_analysis": 43200,
    "url_analysis": 21600,
}


class FraseClient:
    """Content/SERP analysis provider."""

    name = "frase"

    def __init__(self, runtime: IntegrationRuntime, api_key: Optional[str] = None) -> None:
        self.runtime = runtime
        self.api_key = api_key

    def _auth_header(self) -> str:
        if not self.api_key:
            self.api_key = load_credentials("frase-api-key")["frase-api-key"]
        return f"Bearer {self.api_key}"

    async def transport(self, endpoint: str, options: dict[str, Any]) -> Any:
        body = options.get("body")
        return await request_json(
            self.name,
            "POST" if body is not None else "GET",
            f"{BASE_URL}{endpoint}",
            headers={
                "Authorization": self._auth_header(),
                "Content-Type": "application/json",
            },
            json=body,
        )

    async def analyze_serp(
        self, query: str, client_id: Optional[str] = None, skip_cache: bool = False
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            "/process/serp",
            f"frase:serp:{query}",
            client_id=client_id,
            skip_cache=skip_cache,
            cache_ttl=CACHE_TTLS["serp_analysis"],
            body={"query": query},
        )

    async def analyze_url(self, url: str, client_id: Optional[str] = None) -> Any:
        return await execute(
            self,
            self.runtime,
            "/process/url",
            f"frase:url:{url}",
            client_id=client_id,
            cache_ttl=CACHE_TTLS["url_analysis"],
            body={"url": url},
        )

    async def get_semantic_keywords(
        self, query: str, client_id: Optional[str] = None
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            "/process/semantic",
            f"frase:semantic:{query}",
            client_id=client_id,
            cache_ttl=CACHE_TTLS["serp_analysis"],
            body={"query": query},
        )
