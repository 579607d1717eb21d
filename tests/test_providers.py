"""Tests for the DataForSEO, Frase and LLMrefs clients and the shared HTTP helper."""
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from models.errors import APIError, MalformedResponseError, TransientProviderError


def _mock_http(mock_client, status_code: int = 200, body=None, json_error=None):
    """Wire a patched httpx.AsyncClient to return one response."""
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.reason_phrase = "Test"
    if json_error is not None:
        mock_response.json.side_effect = json_error
    else:
        mock_response.json.return_value = body

    mock_ctx = AsyncMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=mock_ctx)
    mock_ctx.__aexit__ = AsyncMock(return_value=None)
    mock_ctx.request = AsyncMock(return_value=mock_response)
    mock_client.return_value = mock_ctx
    return mock_ctx


class TestRequestJson:
    """Unit tests for request_json error mapping."""

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self):
        """5xx responses become retryable APIErrors."""
        from integrations.base import request_json

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            _mock_http(mock_client, status_code=503)

            with pytest.raises(APIError) as exc_info:
                await request_json("frase", "GET", "https://x.test", headers={})

        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_client_error_not_retryable(self):
        """4xx responses are permanent."""
        from integrations.base import request_json

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            _mock_http(mock_client, status_code=401)

            with pytest.raises(APIError) as exc_info:
                await request_json("frase", "GET", "https://x.test", headers={})

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """An undecodable 2xx body is malformed and not retryable."""
        from integrations.base import request_json

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            _mock_http(mock_client, json_error=ValueError("Expecting value"))

            with pytest.raises(MalformedResponseError) as exc_info:
                await request_json("frase", "GET", "https://x.test", headers={})

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_network_failure_is_transient(self):
        """Connection errors map to TransientProviderError."""
        from integrations.base import request_json

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(mock_client)
            mock_ctx.request.side_effect = httpx.ConnectError("refused")

            with pytest.raises(TransientProviderError) as exc_info:
                await request_json("frase", "GET", "https://x.test", headers={})

        assert exc_info.value.retryable is True


class TestDataForSEOClient:
    """Unit tests for DataForSEOClient — mocks httpx."""

    @pytest.mark.asyncio
    async def test_domain_metrics_returns_task_result(self, runtime):
        """Successful responses yield tasks[0].result."""
        from integrations.dataforseo import DataForSEOClient

        client = DataForSEOClient(runtime, login="user", password="pass")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(
                mock_client,
                body={
                    "status_code": 20000,
                    "tasks": [{"result": [{"target": "example.com", "metrics": {}}]}],
                },
            )

            result = await client.get_domain_metrics("example.com", client_id="c1")

        assert result == [{"target": "example.com", "metrics": {}}]
        method, url = mock_ctx.request.await_args.args
        kwargs = mock_ctx.request.await_args.kwargs
        assert method == "POST"
        assert url.endswith("/dataforseo_labs/google/domain_rank_overview/live")
        expected = base64.b64encode(b"user:pass").decode()
        assert kwargs["headers"]["Authorization"] == f"Basic {expected}"
        assert kwargs["json"][0]["target"] == "example.com"
        assert kwargs["json"][0]["location_code"] == 2840

    @pytest.mark.asyncio
    async def test_body_error_code_maps_to_http_class(self, runtime):
        """A 4xxxx body code is a non-retryable 400-class error."""
        from integrations.dataforseo import DataForSEOClient

        client = DataForSEOClient(runtime, login="user", password="pass")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(
                mock_client,
                body={"status_code": 40501, "status_message": "Invalid Field"},
            )

            with pytest.raises(APIError) as exc_info:
                await client.get_serp_results("crm software")

        assert exc_info.value.status_code == 400
        assert "Invalid Field" in str(exc_info.value)
        assert mock_ctx.request.await_count == 1

    @pytest.mark.asyncio
    async def test_server_body_code_is_retried(self, runtime):
        """A 5xxxx body code is retried as a server failure."""
        from integrations.dataforseo import DataForSEOClient, http_class

        assert http_class(50000) == 500
        assert http_class(40000) == 400
        client = DataForSEOClient(runtime, login="user", password="pass")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(
                mock_client, body={"status_code": 50000, "status_message": "Internal"}
            )

            with pytest.raises(APIError):
                await client.get_domain_metrics("example.com")

        assert mock_ctx.request.await_count == 4

    @pytest.mark.asyncio
    async def test_cache_keys(self, runtime, cache, tasks):
        """Results are cached under the provider's key conventions."""
        from integrations.dataforseo import DataForSEOClient

        client = DataForSEOClient(runtime, login="user", password="pass")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            _mock_http(mock_client, body={"status_code": 20000, "tasks": [{"result": ["kw"]}]})
            await client.get_competitor_keywords("a.com", "b.com")
            await tasks.drain()

        assert await cache.get("dataforseo:keywords:a.com:b.com") == ["kw"]


class TestFraseClient:
    """Unit tests for FraseClient."""

    @pytest.mark.asyncio
    async def test_analyze_serp(self, runtime, cache, tasks):
        """SERP analysis posts the query with a bearer token and is cached."""
        from integrations.frase import FraseClient

        client = FraseClient(runtime, api_key="frase-key")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(mock_client, body={"items": [1]})

            result = await client.analyze_serp("crm software", client_id="c1")
            await tasks.drain()

        assert result == {"items": [1]}
        kwargs = mock_ctx.request.await_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer frase-key"
        assert kwargs["json"] == {"query": "crm software"}
        assert await cache.get("frase:serp:crm software") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_missing_key_reported(self, runtime):
        """A missing API key names the secret that is missing."""
        from integrations.frase import FraseClient

        client = FraseClient(runtime)

        with patch("config.secrets.get_secret", return_value=None):
            with pytest.raises(ValueError, match="frase-api-key"):
                await client.analyze_url("https://example.com/post")


class TestLLMrefsClient:
    """Unit tests for LLMrefsClient."""

    @pytest.mark.asyncio
    async def test_get_keywords(self, runtime):
        """Keywords are fetched with organization and project params."""
        from integrations.llmrefs import LLMrefsClient

        client = LLMrefsClient(runtime, api_key="llm-key")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(mock_client, body={"data": [{"id": "k1"}]})

            result = await client.get_keywords("org-1", "proj-1", client_id="c1")

        assert result == {"data": [{"id": "k1"}]}
        method, url = mock_ctx.request.await_args.args
        kwargs = mock_ctx.request.await_args.kwargs
        assert method == "GET"
        assert url == "https://api.llmrefs.com/v1/keywords"
        assert kwargs["params"] == {"organization_id": "org-1", "project_id": "proj-1"}
        assert kwargs["headers"]["Authorization"] == "Bearer llm-key"

    @pytest.mark.asyncio
    async def test_keyword_detail_drops_empty_params(self, runtime):
        """Unset optional params are not sent."""
        from integrations.llmrefs import LLMrefsClient

        client = LLMrefsClient(runtime, api_key="llm-key")

        with patch("integrations.base.httpx.AsyncClient") as mock_client:
            mock_ctx = _mock_http(mock_client, body={"id": "k1"})

            await client.get_keyword_detail("org-1", "proj-1", "k1")

        params = mock_ctx.request.await_args.kwargs["params"]
        assert "search_engines" not in params
