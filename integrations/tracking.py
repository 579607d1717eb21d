"""
Request logging and provider health tracking.

Every provider call sequence produces one api_request_logs row and one
integration_health upsert. Both are dispatched as detached tasks: a slow
or failing store never reaches the caller.
"""
import logging
from datetime import UTC, datetime
from typing import Optional

from integrations.background import DetachedTasks
from models.schemas import ApiRequestLog
from storage.base import ContentStore

logger = logging.getLogger(__name__)


class RequestTracker:
    """Records outbound provider calls and keeps per-provider health current."""

    def __init__(self, store: ContentStore, tasks: DetachedTasks) -> None:
        self._store = store
        self._tasks = tasks

    def record(
        self,
        provider: str,
        endpoint: str,
        *,
        success: bool,
        status_code: int,
        response_time_ms: int,
        client_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        now = datetime.now(UTC)
        log = ApiRequestLog(
            provider=provider,
            endpoint=endpoint,
            status_code=status_code,
            response_time_ms=response_time_ms,
            client_id=client_id,
            error_message=error_message,
            created_at=now,
        )
        self._tasks.spawn(self._store.insert_request_log(log), label=f"log:{provider}")
        self._tasks.spawn(
            self._store.record_health(provider, success, response_time_ms, now),
            label=f"health:{provider}",
        )
        if not success:
            logger.warning(
                f"{provider} {endpoint} failed ({status_code}) after "
                f"{response_time_ms}ms: {error_message}"
            )
