"""
Brief / content workflow state machine.

    draft → approved → generating → generated → reviewing → published
                                                    ↓
                              draft / approved ← revision_requested

Every successful mutation invalidates the cached pipeline reads
(workflow.queries) so the cache-aside read path never serves a status the
store no longer has.
"""
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional, Union

from models.errors import NotFoundError, TransitionError
from models.schemas import BriefStatus, ReviewSubmission
from storage.base import ContentStore
from storage.cache import CacheGateway

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"approved"}),
    "approved": frozenset({"generating"}),
    "generating": frozenset({"generated"}),
    "generated": frozenset({"reviewing"}),
    "reviewing": frozenset({"published", "revision_requested"}),
    "revision_requested": frozenset({"draft", "approved"}),
    "published": frozenset(),
}

# Keys/patterns whose values depend on brief or content status.
INVALIDATED_KEYS = (
    "cc:pipeline-stats:*",
    "cc:briefs:*",
    "cc:content-queue:*",
)

Status = Union[str, BriefStatus]


def _raw(status: Any) -> Any:
    return status.value if isinstance(status, Enum) else status


def can_transition(from_status: Status, to_status: Status) -> bool:
    """Exact, case-sensitive lookup; unknown or empty states are never valid."""
    allowed = VALID_TRANSITIONS.get(_raw(from_status))
    return allowed is not None and _raw(to_status) in allowed


class WorkflowEngine:
    """Validates and persists brief/content status changes."""

    def __init__(self, store: ContentStore, cache: CacheGateway) -> None:
        self.store = store
        self.cache = cache

    async def transition_brief_status(
        self,
        brief_id: str,
        new_status: Status,
        actor_id: Optional[str] = None,
        current_status: Optional[Status] = None,
    ) -> None:
        """
        Move a brief to ``new_status``.

        Args:
            brief_id: Brief to transition.
            new_status: Target state.
            actor_id: User performing the change; stamped on approval.
            current_status: Known current state, saves a read when supplied.

        Raises:
            NotFoundError: brief does not exist (only when a read is needed).
            TransitionError: the move is not in VALID_TRANSITIONS.
        """
        if current_status is None:
            brief = await self.store.get_brief(brief_id)
            if brief is None:
                raise NotFoundError(f"Brief {brief_id} not found")
            current_status = brief.status

        source, target = _raw(current_status), _raw(new_status)
        if not can_transition(source, target):
            raise TransitionError(source, target)

        updates: dict[str, Any] = {"status": target}
        if target == BriefStatus.APPROVED.value and actor_id:
            updates["approved_at"] = datetime.now(UTC)
            updates["approved_by"] = actor_id

        await self.store.update_brief(brief_id, updates)
        logger.info(f"Brief {brief_id}: {source} → {target}")

        await self.cache.invalidate(*INVALIDATED_KEYS)

    async def approve_brief(
        self, brief_id: str, actor_id: str, current_status: Optional[Status] = None
    ) -> None:
        await self.transition_brief_status(
            brief_id, BriefStatus.APPROVED, actor_id, current_status
        )

    async def start_review(self, brief_id: str) -> None:
        """Hand generated content to a human reviewer."""
        await self.transition_brief_status(brief_id, BriefStatus.REVIEWING)
        await self.store.update_content_for_brief(
            brief_id, {"status": BriefStatus.REVIEWING.value}
        )

    async def submit_review(self, submission: ReviewSubmission) -> BriefStatus:
        """
        Record a reviewer's verdict on generated content.

        The content row and its parent brief's status are written in one
        store transaction, so they cannot disagree after a failure.

        Returns:
            The status now held by the content and its brief.

        Raises:
            NotFoundError: content does not exist.
            TransitionError: the content is not under review.
        """
        content = await self.store.get_content(submission.content_id)
        if content is None:
            raise NotFoundError(f"Content {submission.content_id} not found")

        if submission.action == "revision":
            new_status = BriefStatus.REVISION_REQUESTED
        else:
            new_status = BriefStatus.PUBLISHED
        if not can_transition(content.status, new_status):
            raise TransitionError(_raw(content.status), new_status.value)

        now = datetime.now(UTC)
        updates: dict[str, Any] = {
            "status": new_status.value,
            "reviewed_at": now,
            "reviewer_notes": submission.reviewer_notes,
            "human_review_time_minutes": submission.review_time_minutes,
        }
        if new_status == BriefStatus.REVISION_REQUESTED:
            updates["revision_requests"] = submission.revision_requests or []
        else:
            updates["approved_at"] = now

        await self.store.apply_review(
            content.id, updates, content.brief_id, new_status.value
        )
        logger.info(
            f"Review '{submission.action}' recorded for content {content.id} "
            f"(brief {content.brief_id} → {new_status.value})"
        )

        await self.cache.invalidate(*INVALIDATED_KEYS)
        return new_status
