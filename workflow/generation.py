"""
Content generation run: approved brief → generated article.

    approved ──(gemini slot)──▶ generating ──(writer)──▶ generated
        │                                     │
        └─ rate limited: stays "approved"     └─ failure: brief stays in "generating"
                                                 (the state machine has no way back)
"""
import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Protocol

from config.settings import MODEL_PROVIDER
from integrations.rate_limiter import RateLimiterRegistry
from models.errors import NotFoundError, TransitionError
from models.schemas import ArticleDraft, BriefStatus, ContentBrief, GeneratedContent
from storage.base import ContentStore
from workflow.engine import WorkflowEngine, can_transition

logger = logging.getLogger(__name__)


class Writer(Protocol):
    def write(self, brief: ContentBrief) -> ArticleDraft: ...


class ContentGenerationRun:
    def __init__(
        self,
        store: ContentStore,
        engine: WorkflowEngine,
        writer: Writer,
        rate_limiters: RateLimiterRegistry,
    ) -> None:
        self.store = store
        self.engine = engine
        self.writer = writer
        self.rate_limiters = rate_limiters

    async def generate(self, brief_id: str) -> GeneratedContent:
        brief = await self.store.get_brief(brief_id)
        if brief is None:
            raise NotFoundError(f"Brief {brief_id} not found")

        # Reject before taking a model slot.
        if not can_transition(brief.status, BriefStatus.GENERATING):
            raise TransitionError(brief.status.value, BriefStatus.GENERATING.value)

        await self.rate_limiters.require(MODEL_PROVIDER)

        await self.engine.transition_brief_status(
            brief_id, BriefStatus.GENERATING, current_status=brief.status
        )

        logger.info(f"Generating content for brief {brief_id} ('{brief.target_keyword}')")
        try:
            # genai client is blocking
            draft = await asyncio.to_thread(self.writer.write, brief)
        except Exception:
            logger.error(f"Generation failed; brief {brief_id} left in 'generating'")
            raise

        content = GeneratedContent(
            id=str(uuid.uuid4()),
            brief_id=brief.id,
            client_id=brief.client_id,
            title=draft.title,
            content=draft.content,
            word_count=draft.word_count,
            ai_model_used=draft.model,
            status=BriefStatus.GENERATED,
            created_at=datetime.now(UTC),
        )
        await self.store.insert_content(content)

        await self.engine.transition_brief_status(
            brief_id, BriefStatus.GENERATED, current_status=BriefStatus.GENERATING
        )
        logger.info(f"Content {content.id} generated ({content.word_count} words)")
        return content
