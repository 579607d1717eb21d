"""
Google Search Console & Analytics (GA4) clients with per-client OAuth.

OAuth flow (authorization code, offline access):
  1. get_auth_url(client_id)     → consent URL, state carries the client id
  2. exchange_code(code, client) → token pair stored in Secret Manager
  3. get_access_token(client)    → stored token, refreshed when it expires
                                   within 60s; the refreshed pair is stored back

Tokens live in the secret ``google-oauth-{client_id}`` as JSON:
    {"access_token": ..., "refresh_token": ..., "expires_at": <epoch seconds>}
"""
import asyncio
import json
import logging
import time
from typing import Any, Optional
from urllib.parse import quote, urlencode

from config.secrets import get_secret, load_credentials, store_secret
from config.settings import settings
from integrations.base import IntegrationRuntime, execute, request_json
from models.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SEARCH_CONSOLE_URL = "https://www.googleapis.com/webmasters/v3"
ANALYTICS_DATA_URL = "https://analyticsdata.googleapis.com/v1beta"

SCOPES = [
    "https://www.googleapis.com/auth/webmasters.readonly",
    "https://www.googleapis.com/auth/analytics.readonly",
]

REFRESH_MARGIN_SECONDS = 60
DEFAULT_TOKEN_LIFETIME = 3600
CACHE_TTL = 3600


def token_secret_id(client_id: str) -> str:
    return f"google-oauth-{client_id}"


class GoogleAuthManager:
    """OAuth2 token lifecycle for one Google app, many Content Command clients."""

    def __init__(
        self,
        oauth_client_id: Optional[str] = None,
        oauth_client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        clock=time.time,
    ) -> None:
        self.oauth_client_id = oauth_client_id
        self.oauth_client_secret = oauth_client_secret
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self._clock = clock

    def _app_credentials(self) -> tuple[str, str]:
        if not self.oauth_client_id or not self.oauth_client_secret:
            creds = load_credentials("google-client-id", "google-client-secret")
            self.oauth_client_id = creds["google-client-id"]
            self.oauth_client_secret = creds["google-client-secret"]
        return self.oauth_client_id, self.oauth_client_secret

    def get_auth_url(self, client_id: str, state: Optional[str] = None) -> str:
        """Consent URL; ``state`` defaults to the client id."""
        oauth_client_id, _ = self._app_credentials()
        params = {
            "client_id": oauth_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state or client_id,
        }
        return f"{AUTH_URL}?{urlencode(params, quote_via=quote)}"

    async def exchange_code(self, code: str, client_id: str) -> None:
        """Trade an authorization code for tokens and persist them."""
        oauth_client_id, oauth_client_secret = self._app_credentials()
        tokens = await request_json(
            "google",
            "POST",
            TOKEN_URL,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "code": code,
                "client_id": oauth_client_id,
                "client_secret": oauth_client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )

        if not tokens.get("access_token") or not tokens.get("refresh_token"):
            raise ValidationError("Failed to obtain OAuth tokens")

        await self._save(
            client_id,
            tokens["access_token"],
            tokens["refresh_token"],
            tokens.get("expires_in"),
        )
        logger.info(f"Google account connected for client {client_id}")

    async def get_access_token(self, client_id: str) -> str:
        """A valid access token for the client, refreshing it if needed."""
        stored = await self._load(client_id)
        if stored["expires_at"] - self._clock() > REFRESH_MARGIN_SECONDS:
            return stored["access_token"]

        logger.info(f"Refreshing Google access token for client {client_id}")
        oauth_client_id, oauth_client_secret = self._app_credentials()
        tokens = await request_json(
            "google",
            "POST",
            TOKEN_URL,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "client_id": oauth_client_id,
                "client_secret": oauth_client_secret,
                "refresh_token": stored["refresh_token"],
                "grant_type": "refresh_token",
            },
        )
        access_token = tokens.get("access_token")
        if not access_token:
            raise ValidationError("Google token refresh returned no access token")

        # Google only sometimes rotates the refresh token.
        refresh_token = tokens.get("refresh_token") or stored["refresh_token"]
        await self._save(client_id, access_token, refresh_token, tokens.get("expires_in"))
        return access_token

    async def _load(self, client_id: str) -> dict[str, Any]:
        raw = await asyncio.to_thread(get_secret, token_secret_id(client_id))
        if not raw:
            raise NotFoundError(f"No Google OAuth tokens found for client {client_id}")
        try:
            stored = json.loads(raw)
            return {
                "access_token": stored["access_token"],
                "refresh_token": stored["refresh_token"],
                "expires_at": float(stored.get("expires_at", 0)),
            }
        except (ValueError, KeyError, TypeError) as e:
            raise NotFoundError(
                f"Stored Google OAuth tokens for client {client_id} are unreadable"
            ) from e

    async def _save(
        self,
        client_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: Optional[int],
    ) -> None:
        payload = json.dumps(
            {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "expires_at": self._clock() + (expires_in or DEFAULT_TOKEN_LIFETIME),
                "scopes": SCOPES,
            }
        )
        await asyncio.to_thread(store_secret, token_secret_id(client_id), payload)


class _GoogleClient:
    """Shared transport: bearer token resolved per Content Command client."""

    name = "google"

    def __init__(self, runtime: IntegrationRuntime, auth: GoogleAuthManager) -> None:
        self.runtime = runtime
        self.auth = auth

    async def transport(self, endpoint: str, options: dict[str, Any]) -> Any:
        token = await self.auth.get_access_token(options["account"])
        body = options.get("body")
        return await request_json(
            self.name,
            "POST" if body is not None else "GET",
            f"{options['base_url']}{endpoint}",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            json=body,
        )


class GoogleSearchConsoleClient(_GoogleClient):
    async def get_search_analytics(
        self,
        client_id: str,
        site_url: str,
        start_date: str,
        end_date: str,
        dimensions: Optional[list[str]] = None,
        row_limit: int = 100,
    ) -> Any:
        dimensions = dimensions or ["query", "page"]
        return await execute(
            self,
            self.runtime,
            f"/sites/{quote(site_url, safe='')}/searchAnalytics/query",
            f"google:gsc:{client_id}:{site_url}:{start_date}:{end_date}:"
            f"{','.join(dimensions)}:{row_limit}",
            client_id=client_id,
            cache_ttl=CACHE_TTL,
            account=client_id,
            base_url=SEARCH_CONSOLE_URL,
            body={
                "startDate": start_date,
                "endDate": end_date,
                "dimensions": dimensions,
                "rowLimit": row_limit,
            },
        )

    async def get_sites(self, client_id: str) -> list[dict[str, Any]]:
        data = await execute(
            self,
            self.runtime,
            "/sites",
            f"google:gsc-sites:{client_id}",
            client_id=client_id,
            cache_ttl=CACHE_TTL,
            account=client_id,
            base_url=SEARCH_CONSOLE_URL,
        )
        return (data or {}).get("siteEntry", [])


class GoogleAnalyticsClient(_GoogleClient):
    async def get_page_metrics(
        self,
        client_id: str,
        property_id: str,
        start_date: str,
        end_date: str,
        page_path: Optional[str] = None,
    ) -> Any:
        body: dict[str, Any] = {
            "dateRanges": [{"startDate": start_date, "endDate": end_date}],
            "dimensions": [{"name": "pagePath"}],
            "metrics": [
                {"name": "screenPageViews"},
                {"name": "averageSessionDuration"},
                {"name": "bounceRate"},
            ],
        }
        if page_path:
            body["dimensionFilter"] = {
                "filter": {"fieldName": "pagePath", "stringFilter": {"value": page_path}}
            }
        return await execute(
            self,
            self.runtime,
            f"/properties/{property_id}:runReport",
            f"google:ga-pages:{client_id}:{property_id}:{start_date}:{end_date}:"
            f"{page_path or '*'}",
            client_id=client_id,
            cache_ttl=CACHE_TTL,
            account=client_id,
            base_url=ANALYTICS_DATA_URL,
            body=body,
        )

    async def get_traffic_sources(
        self, client_id: str, property_id: str, start_date: str, end_date: str
    ) -> Any:
        return await execute(
            self,
            self.runtime,
            f"/properties/{property_id}:runReport",
            f"google:ga-traffic:{client_id}:{property_id}:{start_date}:{end_date}",
            client_id=client_id,
            cache_ttl=CACHE_TTL,
            account=client_id,
            base_url=ANALYTICS_DATA_URL,
            body={
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "dimensions": [{"name": "sessionSource"}, {"name": "sessionMedium"}],
                "metrics": [
                    {"name": "sessions"},
                    {"name": "totalUsers"},
                    {"name": "screenPageViews"},
                ],
            },
        )
