"""
Centralized configuration for Content Command.

Uses environment variables with sensible defaults.
Provider credentials are not settings: they are resolved through
config.secrets (env first, Secret Manager in prod).
"""
import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RateBudget:
    """Requests allowed per sliding window for one provider."""

    requests: int
    window_seconds: int


# Per-provider budgets. Anything not listed falls back to DEFAULT_RATE_BUDGET.
PROVIDER_RATE_BUDGETS: dict[str, RateBudget] = {
    "dataforseo": RateBudget(requests=2000, window_seconds=60),
    "frase": RateBudget(requests=500, window_seconds=3600),
    "google": RateBudget(requests=100, window_seconds=60),
    "llmrefs": RateBudget(requests=10, window_seconds=60),
    # Vertex AI Gemini: writer, brief strategist and quality analyst share it
    "gemini": RateBudget(requests=50, window_seconds=60),
    # Live provider probes from the dashboard, across all users
    "live-health": RateBudget(requests=2, window_seconds=300),
}
DEFAULT_RATE_BUDGET = RateBudget(requests=60, window_seconds=60)

# Limiter names for calls that do not go through a provider client.
MODEL_PROVIDER = "gemini"
LIVE_HEALTH_LIMIT = "live-health"


@dataclass(frozen=True)
class Settings:
    """Immutable application settings loaded from environment."""

    # GCP
    GCP_PROJECT: str = os.getenv("GCP_PROJECT", "content-command")
    GCP_REGION: str = os.getenv("GCP_REGION", "us-central1")

    # BigQuery
    BQ_DATASET: str = os.getenv("BQ_DATASET", "content_command")

    # Redis (cache + rate limiter counters)
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Vertex AI model used by the writer agent
    WRITER_MODEL: str = os.getenv("WRITER_MODEL", "gemini-2.5-pro")

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Health tracking: consecutive failures before a provider is marked "down"
    HEALTH_DOWN_THRESHOLD: int = int(os.getenv("HEALTH_DOWN_THRESHOLD", "5"))

    # Upper bound on in-flight fire-and-forget side effects
    MAX_DETACHED_TASKS: int = int(os.getenv("MAX_DETACHED_TASKS", "1000"))

    # Google OAuth
    GOOGLE_REDIRECT_URI: str = os.getenv(
        "GOOGLE_REDIRECT_URI",
        "http://localhost:8080/auth/google/callback",
    )

    # Sync: how many target keywords a Frase sync analyses
    SYNC_KEYWORD_LIMIT: int = int(os.getenv("SYNC_KEYWORD_LIMIT", "5"))

    # Dashboard
    DASHBOARD_PORT: int = int(os.getenv("PORT", "8080"))

    RATE_BUDGETS: dict[str, RateBudget] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.RATE_BUDGETS:
            object.__setattr__(self, "RATE_BUDGETS", dict(PROVIDER_RATE_BUDGETS))

    def rate_budget(self, provider: str) -> RateBudget:
        """Budget for a provider, or the conservative default."""
        return self.RATE_BUDGETS.get(provider, DEFAULT_RATE_BUDGET)


settings = Settings()
