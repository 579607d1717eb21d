"""
Cloud Functions entry points for Content Command.

Two HTTP-triggered functions:
  - sync_client: one client sync against one provider
  - daily_competitor_analysis: competitive snapshots for every client

Triggered by:
  - Cloud Scheduler (daily) for daily_competitor_analysis, with
    "Authorization: Bearer <cron-secret>"
  - HTTP POST for sync_client
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import functions_framework
import redis.asyncio as redis
from flask import Request, jsonify

from config.secrets import get_secret
from config.settings import settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run(work: Callable[[Any], Awaitable[T]]) -> T:
    """
    Run one invocation on a fresh event loop with freshly wired services.

    Detached side effects (request logs, health, cache writes) are drained
    before the loop closes, otherwise they would be lost.
    """
    from bootstrap import build_services

    async def invocation() -> T:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        services = build_services(redis_client=client)
        try:
            return await work(services)
        finally:
            await services.tasks.drain()
            await client.aclose()

    return asyncio.run(invocation())


@functions_framework.http
def sync_client(request: Request):
    """
    Sync one client with one provider.

    JSON body: {"provider": "dataforseo" | "frase" | "llmrefs", "client_id": "...",
                "organization_id": "...", "project_id": "..."}  (last two: llmrefs)
    """
    from models.errors import ContentEngineError, RateLimitError
    from workflow.sync import sync_payload

    data = request.get_json(silent=True) or {}

    try:
        sync_request = sync_payload(data)
        result = _run(lambda services: services.sync.sync(sync_request))
        return jsonify({"status": "success", "data": result.model_dump(mode="json")})

    except RateLimitError as e:
        return jsonify(
            {
                "error": "Rate limit exceeded",
                "kind": e.kind,
                "provider": e.provider,
                "retryAfter": e.retry_after,
            }
        ), 429
    except ContentEngineError as e:
        return jsonify({"error": str(e), "kind": e.kind}), e.http_status
    except Exception as e:
        logger.error(f"Sync failed: {e}", exc_info=True)
        return jsonify({"status": "error", "message": str(e)}), 500


@functions_framework.http
def daily_competitor_analysis(request: Request):
    """Store 24h competitive snapshots for every client, then purge expired ones."""
    expected = get_secret("cron-secret")
    if not expected or request.headers.get("Authorization") != f"Bearer {expected}":
        return jsonify({"error": "Unauthorized"}), 401

    try:
        results = _run(lambda services: services.analysis.run())
        if not results:
            return jsonify({"message": "No clients to process"})
        return jsonify({"results": results})

    except Exception as e:
        logger.error(f"Daily competitor analysis failed: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500
