"""
DataForSEO client — keyword, competitor and SERP data.

Basic auth with login/password. Every response carries a 5-digit
``status_code`` in its body (20000 = ok, 4xxxx = client error, 5xxxx =
server error) which is checked on top of the HTTP status.

Usage:
    dataforseo = DataForSEOClient(runtime)
    metrics = await dataforseo.get_domain_metrics("example.com", client_id="c1")
"""
import base64
import logging
from typing import Any, Optional

from config.secrets import load_credentials
from integrations.base import IntegrationRuntime, execute, request_json
from models.errors import APIError

logger = logging.getLogger(__name__)

BASE_URL = "https://api.dataforseo.com/v3"
OK_STATUS = 20000
LOCATION_US = 2840

# Seconds; reflects how fast each dataset changes.
CACHE_TTLS = {
    "keywords": 86400,
    "serp": 21600,
    "domain_metrics": 43200,
}


def http_class(status_code: int) -> int:
    """Map a DataForSEO 5-digit body code onto its HTTP class (40501 → 400)."""
    if status_code >= 10000:
        return (status_code // 10000) * 100
    return status_code


class DataForSEOClient:
    """High-volume SEO data provider."""

    name = "dataforseo"

    def __init__(
        self,
        runtime: IntegrationRuntime,
        login: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.runtime = runtime
        self.login = login
        self.password = password

    def _auth_header(self) -> str:
        if not self.login or not self.password:
            creds = load_credentials("dataforseo-login", "dataforseo-password")
            self.login = creds["dataforseo-login"]
            self.password = creds["dataforseo-password"]
        token = base64.b64encode(f"{self.login}:{self.password}".encode()).decode()
        return f"Basic {token}"

    async def transport(self, endpoint: str, options: dict[str, Any]) -> Any:
        body = options.get("body")
        data = await request_json(
            self.name,
            "POST" if body is not None else "GET",
            f"{BASE_URL}{endpoint}",
            headers={
                "Authorization": self._auth_header(),
                "Content-Type": "application/json",
            },
            json=body,
        )

        code = data.get("status_code")
        if code != OK_STATUS:
            raw = code if isinstance(code, int) else 0
            raise APIError(
                data.get("status_message") or "DataForSEO request failed",
                http_class(raw),
                self.name,
            )

        tasks = data.get("tasks") or []
        return tasks[0].get("result") if tasks else None

    async def get_competitor_keywords(
        self,
        domain: str,
        competitor_domain: str,
        client_id: Optional[str] = None,
        skip_cache: bool = False,
    ) -> Any:
        """Keywords both domains rank for (domain intersection)."""
        return await execute(
            self,
            self.runtime,
            "/dataforseo_labs/google/domain_intersection/live",
            f"dataforseo:keywords:{domain}:{competitor_domain}",
            client_id=client_id,
            skip_cache=skip_cache,
            cache_ttl=CACHE_TTLS["keywords"],
            body=[
                {
                    "target1": domain,
                    "target2": competitor_domain,
                    "language_code": "en",
                    "location_code": LOCATION_US,
                    "limit": 100,
                }
            ],
        )

    async def get_domain_metrics(
        self,
        domain: str,
        client_id: Optional[str] = None,
        skip_cache: bool = False,
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            "/dataforseo_labs/google/domain_rank_overview/live",
            f"dataforseo:domain:{domain}",
            client_id=client_id,
            skip_cache=skip_cache,
            cache_ttl=CACHE_TTLS["domain_metrics"],
            body=[
                {
                    "target": domain,
                    "language_code": "en",
                    "location_code": LOCATION_US,
                }
            ],
        )

    async def get_serp_results(
        self,
        keyword: str,
        client_id: Optional[str] = None,
        skip_cache: bool = False,
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            "/serp/google/organic/live/regular",
            f"dataforseo:serp:{keyword}",
            client_id=client_id,
            skip_cache=skip_cache,
            cache_ttl=CACHE_TTLS["serp"],
            body=[
                {
                    "keyword": keyword,
                    "language_code": "en",
                    "location_code": LOCATION_US,
                    "depth": 20,
                }
            ],
        )
