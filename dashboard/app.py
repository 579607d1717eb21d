"""
Content Command API — FastAPI application over the workflow and integrations.

Deployed to Cloud Run. Provides:
- Brief approval, status transitions and content review
- AI brief planning, content generation and quality scoring
- Cached pipeline reads (briefs, review queue, pipeline stats)
- Provider sync and integration health
- Google OAuth connect/callback

Identity comes from the X-User-Id header set by the authenticating proxy;
access to a client's data is checked against the store.

Local dev: uvicorn dashboard.app:app --reload --port 8080
"""
import logging
import os
import uuid
from functools import lru_cache
from typing import Any, Literal, Optional

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.sessions import SessionMiddleware

from bootstrap import AppServices, build_services
from config.settings import LIVE_HEALTH_LIMIT
from integrations.health import integration_health, probe_providers
from models.errors import (
    AccessDeniedError,
    ContentEngineError,
    NotFoundError,
    RateLimitError,
    UnauthenticatedError,
    ValidationError,
)
from models.schemas import BriefGenerationRequest, ReviewSubmission
from workflow.sync import sync_payload

logger = logging.getLogger(__name__)

app = FastAPI(title="Content Command API")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.getenv("SESSION_SECRET", "dev-secret-change-in-prod"),
)


# --- Request bodies ---


class StatusChange(BaseModel):
    status: str = Field(min_length=1)


class ReviewBody(BaseModel):
    action: Literal["approve", "revision"]
    reviewer_notes: Optional[str] = None
    revision_requests: Optional[list[str]] = None
    review_time_minutes: Optional[int] = Field(default=None, ge=0)


class GenerateBody(BaseModel):
    brief_id: str = Field(min_length=1)


class ScoreBody(BaseModel):
    content_id: str = Field(min_length=1)


# --- Dependencies ---


@lru_cache(maxsize=1)
def get_services() -> AppServices:
    """Process-wide services; overridden in tests."""
    return build_services()


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id:
        raise UnauthenticatedError()
    return x_user_id


async def require_client_access(
    services: AppServices, user_id: str, client_id: Optional[str]
) -> None:
    if not client_id:
        return
    if not await services.store.user_has_client_access(user_id, client_id):
        raise AccessDeniedError()


async def visible_clients(
    services: AppServices, user_id: str, client_id: Optional[str]
) -> list[str]:
    """The one requested client (access-checked), else every client the user can see."""
    if client_id:
        await require_client_access(services, user_id, client_id)
        return [client_id]
    return await services.store.list_user_client_ids(user_id)


# --- Error rendering ---


@app.exception_handler(ContentEngineError)
async def content_engine_error(request: Request, exc: ContentEngineError):
    body: dict[str, Any] = {"error": str(exc), "kind": exc.kind}
    if isinstance(exc, RateLimitError):
        body["error"] = "Rate limit exceeded"
        body["provider"] = exc.provider
        body["retryAfter"] = exc.retry_after
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.http_status, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: {fields}", "kind": ValidationError.kind},
    )


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "kind": ContentEngineError.kind},
    )


# --- Briefs & content ---


@app.get("/api/content/briefs")
async def list_briefs(
    client_id: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    client_ids = await visible_clients(services, user_id, client_id)
    return {"data": await services.queries.list_briefs(client_ids)}


async def _brief_for_user(services: AppServices, brief_id: str, user_id: str):
    brief = await services.store.get_brief(brief_id)
    if brief is None:
        raise NotFoundError("Brief not found")
    await require_client_access(services, user_id, brief.client_id)
    return brief


@app.put("/api/content/briefs/{brief_id}/approve")
async def approve_brief(
    brief_id: str,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    brief = await _brief_for_user(services, brief_id, user_id)
    await services.engine.approve_brief(brief_id, user_id, current_status=brief.status)
    return {"success": True}


@app.put("/api/content/briefs/{brief_id}/status")
async def change_brief_status(
    brief_id: str,
    change: StatusChange,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    brief = await _brief_for_user(services, brief_id, user_id)
    await services.engine.transition_brief_status(
        brief_id, change.status, actor_id=user_id, current_status=brief.status
    )
    return {"success": True, "status": change.status}


@app.post("/api/content/briefs/{brief_id}/start-review")
async def start_review(
    brief_id: str,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    await _brief_for_user(services, brief_id, user_id)
    await services.engine.start_review(brief_id)
    return {"success": True}


@app.put("/api/content/{content_id}/review")
async def submit_review(
    content_id: str,
    review: ReviewBody,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    content = await services.store.get_content(content_id)
    if content is None:
        raise NotFoundError("Content not found")
    await require_client_access(services, user_id, content.client_id)

    status = await services.engine.submit_review(
        ReviewSubmission(content_id=content_id, **review.model_dump())
    )
    return {"success": True, "status": status.value}


@app.post("/api/content/generate")
async def generate_content(
    body: GenerateBody,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    await _brief_for_user(services, body.brief_id, user_id)
    content = await services.generation().generate(body.brief_id)
    return {"data": content.model_dump(mode="json")}


@app.post("/api/content/briefs/generate")
async def generate_brief(
    request: BriefGenerationRequest,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """Plan a draft brief for one of the user's clients."""
    await require_client_access(services, user_id, request.client_id)
    brief = await services.briefs().generate(request)
    return {"data": brief.model_dump(mode="json")}


@app.post("/api/content/score")
async def score_content(
    body: ScoreBody,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    content = await services.store.get_content(body.content_id)
    if content is None:
        raise NotFoundError("Content not found")
    await require_client_access(services, user_id, content.client_id)

    analysis = await services.scoring().score(body.content_id)
    return {"data": analysis.model_dump(mode="json")}


@app.get("/api/content/queue")
async def content_queue(
    client_id: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    client_ids = await visible_clients(services, user_id, client_id)
    return {"data": await services.queries.content_queue(client_ids)}


@app.get("/api/content/pipeline-stats/{client_id}")
async def pipeline_stats(
    client_id: str,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    await require_client_access(services, user_id, client_id)
    return {"data": await services.queries.pipeline_stats(client_id)}


# --- Integrations ---


@app.post("/api/integrations/sync")
async def sync_client(
    payload: dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    request = sync_payload(payload)
    await require_client_access(services, user_id, request.client_id)
    result = await services.sync.sync(request)
    return {"data": result.model_dump(mode="json")}


@app.get("/api/integrations/health")
async def integrations_health(
    live: bool = False,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """
    Stored health records; ``?live=true`` probes every provider instead.

    Live probes spend real provider budget, so they share one small
    limiter across all users and answer 429 when it is spent.
    """
    if live:
        await services.runtime.rate_limiters.require(LIVE_HEALTH_LIMIT)
        probes = await probe_providers(services.dataforseo, services.frase, services.llmrefs)
        return {"data": [p.model_dump(mode="json") for p in probes]}
    records = await integration_health(services.store)
    return {"data": [r.model_dump(mode="json") for r in records]}


# --- Google OAuth ---


@app.get("/auth/google")
async def google_auth(
    request: Request,
    client_id: str,
    user_id: str = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """Consent URL for connecting a client's Google account."""
    await require_client_access(services, user_id, client_id)

    state = str(uuid.uuid4())
    request.session["google_oauth_state"] = state
    request.session["google_oauth_client"] = client_id
    return {"url": services.google_auth.get_auth_url(client_id, state=state)}


@app.get("/auth/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    """Handle Google OAuth callback — exchange code for tokens."""
    if error:
        raise ValidationError(f"Google authorization failed: {error}")

    stored_state = request.session.pop("google_oauth_state", None)
    client_id = request.session.pop("google_oauth_client", None)
    if not state or state != stored_state or not client_id:
        raise UnauthenticatedError("CSRF state mismatch")

    if not code:
        raise ValidationError("No authorization code received")

    await services.google_auth.exchange_code(code, client_id)
    return {"success": True, "client_id": client_id}


# --- Health Check ---


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run."""
    return {"status": "ok"}
