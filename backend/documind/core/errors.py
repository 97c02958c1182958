"""
Error taxonomy shared by the gateway, the pipeline and the API layer.

  DocuMindError
    ├── ConfigurationError     no usable provider / credential        → 400
    ├── ProviderError          non-success upstream response          → 400 | 500
    ├── StorageError           blob write failed (document → ERROR)   → 500
    ├── PersistenceError       relational store failure               → 500
    └── InvalidTransitionError illegal document status transition

ExtractionError never leaves the extractor: it is folded into a placeholder
ExtractionOutcome (see processing/extractor.py).

ProviderError carries a structured `kind` decided once, by the gateway, from
the HTTP status code and the raw upstream text. describe_failure() is then a
plain total mapping from kind to a user-facing summary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DocuMindError(Exception):
    """Base class for every error raised by the core."""


class ConfigurationError(DocuMindError):
    """No usable provider configuration or credential."""


class ExtractionError(DocuMindError):
    """A content parser failed. Internal to processing/extractor.py."""


class StorageError(DocuMindError):
    """Blob store write/read failure."""


class PersistenceError(DocuMindError):
    """Relational store failure."""


class InvalidTransitionError(DocuMindError):
    """Attempted document status transition outside the state machine."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal status transition {current} -> {target}")
        self.current = current
        self.target = target


# ---------------------------------------------------------------------------
# ProviderError
# ---------------------------------------------------------------------------

class ProviderErrorKind(str, Enum):
    INVALID_KEY       = "invalid_key"
    QUOTA_EXCEEDED    = "quota_exceeded"
    NETWORK           = "network"
    MODEL_UNAVAILABLE = "model_unavailable"
    GENERIC           = "generic"


class ProviderError(DocuMindError):
    """
    Non-success response (or transport failure) from a model provider.

    raw_message is the upstream body verbatim; no provider error codes are
    parsed out of it.
    """

    def __init__(
        self,
        provider:    str,
        raw_message: str,
        kind:        ProviderErrorKind = ProviderErrorKind.GENERIC,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{provider} API error: {raw_message}")
        self.provider    = provider
        self.raw_message = raw_message
        self.kind        = kind
        self.status_code = status_code


def classify_provider_failure(status_code: int | None, raw_message: str) -> ProviderErrorKind:
    """
    Decide the ProviderErrorKind for an upstream failure.

    Status code wins when it is specific; otherwise the raw body is checked
    for the wording providers use for key, quota and model problems.
    status_code=None means the request never got a response.
    """
    if status_code is None:
        return ProviderErrorKind.NETWORK
    if status_code in (401, 403):
        return ProviderErrorKind.INVALID_KEY
    if status_code == 429:
        return ProviderErrorKind.QUOTA_EXCEEDED
    if status_code == 404:
        return ProviderErrorKind.MODEL_UNAVAILABLE

    text = raw_message.lower()
    if "api key" in text or "api_key" in text or "unauthorized" in text:
        return ProviderErrorKind.INVALID_KEY
    if "quota" in text or "rate limit" in text:
        return ProviderErrorKind.QUOTA_EXCEEDED
    if "model" in text and ("not found" in text or "does not exist" in text or "not available" in text):
        return ProviderErrorKind.MODEL_UNAVAILABLE
    return ProviderErrorKind.GENERIC


# ---------------------------------------------------------------------------
# User-facing failure summaries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FailureSummary:
    message:     str
    details:     str
    http_status: int

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.http_status < 500


_KIND_SUMMARIES: dict[ProviderErrorKind, tuple[str, str, int]] = {
    ProviderErrorKind.INVALID_KEY: (
        "Invalid API key",
        "The provided API key is invalid or has insufficient permissions",
        400,
    ),
    ProviderErrorKind.QUOTA_EXCEEDED: (
        "API quota exceeded",
        "You have exceeded your API usage limits",
        500,
    ),
    ProviderErrorKind.NETWORK: (
        "Network connection failed",
        "Unable to reach the AI provider. Check your internet connection.",
        500,
    ),
    ProviderErrorKind.MODEL_UNAVAILABLE: (
        "Model not available",
        "The specified model is not available or not supported",
        500,
    ),
}


def describe_failure(exc: Exception, generic_message: str = "Connection test failed") -> FailureSummary:
    """Map any exception raised by a gateway call to a FailureSummary."""
    if isinstance(exc, ConfigurationError):
        return FailureSummary(message=str(exc), details=str(exc), http_status=400)

    if isinstance(exc, ProviderError):
        summary = _KIND_SUMMARIES.get(exc.kind)
        if summary is None:
            return FailureSummary(generic_message, exc.raw_message or str(exc), 500)
        message, details, http_status = summary
        return FailureSummary(message, details, http_status)

    return FailureSummary(generic_message, str(exc) or type(exc).__name__, 500)
