"""
Error taxonomy shared by the workflow engine, the integrations and the
HTTP boundary.

Every caller-facing error carries a stable ``kind`` and the HTTP status the
boundary renders it with.
"""
from typing import Optional


class ContentEngineError(Exception):
    """Base class for errors the API layer knows how to render."""

    kind = "internal"
    http_status = 500


class UnauthenticatedError(ContentEngineError):
    kind = "unauthenticated"
    http_status = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class AccessDeniedError(ContentEngineError):
    kind = "forbidden"
    http_status = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(ContentEngineError):
    kind = "not_found"
    http_status = 404


class ValidationError(ContentEngineError):
    kind = "validation"
    http_status = 400


class TransitionError(ValidationError):
    """Illegal workflow state change."""

    kind = "invalid_transition"

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition: {from_status} → {to_status}")


class InvalidProviderError(ValidationError):
    kind = "invalid_provider"

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Invalid provider: {provider!r}")


class RateLimitError(ContentEngineError):
    """A provider's rate budget is spent. Not retried by the core."""

    kind = "rate_limited"
    http_status = 429

    def __init__(self, provider: str, retry_after: Optional[int] = None) -> None:
        self.provider = provider
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {provider}")


class APIError(ContentEngineError):
    """A provider call failed. Retried only for server-side failures."""

    kind = "provider_error"

    def __init__(self, message: str, status_code: int, provider: str) -> None:
        self.status_code = status_code
        self.provider = provider
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


class TransientProviderError(APIError):
    """Network-level failure (timeout, connection reset). Always retried."""

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message, 0, provider)

    @property
    def retryable(self) -> bool:
        return True


class MalformedResponseError(APIError):
    """The provider answered 2xx with a body we cannot parse."""

    @property
    def retryable(self) -> bool:
        return False
