"""
Pydantic models for data flowing through the workflow and integration layers.

Pipeline: Brief (planned) → Generation → Scoring → Review → Publish
Sync:     Client → Provider(s) → SyncResult
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class BriefStatus(str, Enum):
    """Workflow states shared by briefs and their generated content."""

    DRAFT = "draft"
    APPROVED = "approved"
    GENERATING = "generating"
    GENERATED = "generated"
    REVIEWING = "reviewing"
    REVISION_REQUESTED = "revision_requested"
    PUBLISHED = "published"


class BriefRequirements(BaseModel):
    """Structured writing requirements attached to a brief."""

    target_word_count: int = 1500
    required_sections: list[str] = Field(default_factory=list)
    semantic_keywords: list[str] = Field(default_factory=list)


class ContentBrief(BaseModel):
    """A planned piece of content for a client."""

    id: str
    client_id: str
    title: str
    target_keyword: str
    content_type: str = "blog_post"
    status: BriefStatus = BriefStatus.DRAFT
    priority_level: str = "medium"
    requirements: BriefRequirements = Field(default_factory=BriefRequirements)
    target_audience: Optional[str] = None
    unique_angle: Optional[str] = None
    competitive_gap: Optional[str] = None
    authority_signals: Optional[str] = None
    ai_citation_opportunity: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class GeneratedContent(BaseModel):
    """One AI-produced article, tied to exactly one brief."""

    id: str
    brief_id: Optional[str] = None
    client_id: Optional[str] = None
    title: str = ""
    content: str = ""
    word_count: int = 0
    quality_score: Optional[float] = None
    authority_score: Optional[float] = None
    readability_score: Optional[float] = None
    optimization_score: Optional[float] = None
    ai_model_used: str = ""
    status: BriefStatus = BriefStatus.GENERATED
    reviewer_notes: Optional[str] = None
    revision_requests: Optional[list[str]] = None
    reviewed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    human_review_time_minutes: Optional[int] = None
    created_at: Optional[datetime] = None


class ReviewSubmission(BaseModel):
    """A human reviewer's verdict on generated content."""

    content_id: str
    action: Literal["approve", "revision"]
    reviewer_notes: Optional[str] = None
    revision_requests: Optional[list[str]] = None
    review_time_minutes: Optional[int] = None


class ArticleDraft(BaseModel):
    """Output of the writer agent for one brief."""

    title: str
    content: str
    meta_description: str = ""
    model: str = ""

    @property
    def word_count(self) -> int:
        return len(self.content.split())


class BriefGenerationRequest(BaseModel):
    """Ask the strategist for a new draft brief."""

    client_id: str = Field(min_length=1)
    target_keyword: str = Field(min_length=1)
    content_type: str = "blog_post"


class BriefPlan(BaseModel):
    """Output of the brief strategist agent; becomes a draft ContentBrief."""

    title: str = ""
    target_audience: Optional[str] = None
    unique_angle: Optional[str] = None
    competitive_gap: Optional[str] = None
    authority_signals: Optional[str] = None
    ai_citation_opportunity: Optional[str] = None
    target_word_count: int = 1500
    required_sections: list[str] = Field(default_factory=list)
    semantic_keywords: list[str] = Field(default_factory=list)
    priority_level: str = "medium"


class QualityScores(BaseModel):
    """Output of the quality analyst agent, every score 0-100."""

    overall_score: float = Field(ge=0, le=100)
    seo_score: float = Field(ge=0, le=100)
    readability_score: float = Field(ge=0, le=100)
    authority_score: float = Field(ge=0, le=100)
    engagement_score: float = Field(ge=0, le=100)
    aeo_score: float = Field(ge=0, le=100)
    detailed_feedback: dict[str, Any] = Field(default_factory=dict)


class QualityAnalysis(QualityScores):
    """Stored quality analysis for one piece of generated content."""

    id: str
    content_id: str
    created_at: datetime


# --- Integrations ---


HealthStatus = Literal["healthy", "degraded", "down", "unknown"]


class IntegrationHealthRecord(BaseModel):
    """Advisory per-provider health, one row per provider."""

    provider: str
    status: HealthStatus = "unknown"
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    error_count: int = 0
    avg_response_ms: Optional[int] = None
    updated_at: Optional[datetime] = None


class ApiRequestLog(BaseModel):
    """Append-only audit record for one outbound call attempt sequence."""

    provider: str
    endpoint: str
    status_code: int
    response_time_ms: int
    client_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime


class RateLimitDecision(BaseModel):
    """Outcome of a rate-limiter admission check."""

    allowed: bool
    retry_after_seconds: Optional[int] = None


class ProviderProbe(BaseModel):
    """Result of a live health probe against one provider."""

    provider: str
    status: Literal["healthy", "unhealthy"]
    last_check: datetime
    response_time_ms: Optional[int] = None
    error: str = ""


# --- Clients & sync ---


class ClientProfile(BaseModel):
    id: str
    name: str
    domain: str
    industry: Optional[str] = None
    target_keywords: list[str] = Field(default_factory=list)


class Competitor(BaseModel):
    id: str
    client_id: str
    domain: str


class DataForSEOSyncRequest(BaseModel):
    provider: Literal["dataforseo"] = "dataforseo"
    client_id: str = Field(min_length=1)


class FraseSyncRequest(BaseModel):
    provider: Literal["frase"] = "frase"
    client_id: str = Field(min_length=1)


class LLMrefsSyncRequest(BaseModel):
    provider: Literal["llmrefs"] = "llmrefs"
    client_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)


SyncRequest = Annotated[
    Union[DataForSEOSyncRequest, FraseSyncRequest, LLMrefsSyncRequest],
    Field(discriminator="provider"),
]


class CompetitorKeywords(BaseModel):
    """Keyword overlap with one competitor, or the error that prevented it."""

    competitor: str
    data: Any = None
    error: Optional[str] = None


class KeywordSerpAnalysis(BaseModel):
    keyword: str
    data: Any = None
    error: Optional[str] = None


class SyncResult(BaseModel):
    """Aggregated output of one client sync against one provider."""

    provider: str
    client_id: str
    domain_metrics: Any = None
    competitor_keywords: list[CompetitorKeywords] = Field(default_factory=list)
    serp_analysis: list[KeywordSerpAnalysis] = Field(default_factory=list)
    keywords: Any = None


class CompetitiveAnalysisRecord(BaseModel):
    """Provider data snapshot stored by the daily competitor analysis job."""

    client_id: str
    competitor_id: Optional[str] = None
    analysis_type: Literal["domain_metrics", "keyword_gap"]
    data: Any
    expires_at: datetime


class PipelineStats(BaseModel):
    """Brief counts per workflow status for one client."""

    client_id: str
    counts: dict[str, int] = Field(default_factory=dict)
    total: int = 0
