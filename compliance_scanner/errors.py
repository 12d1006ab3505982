"""Error taxonomy for the scan pipeline.

Soft detectors (headers, transport, PII) never raise these; they degrade their
own evidence instead. Everything here is fatal to a scan and is turned into a
failed ``ScanResult`` by the orchestrator.
"""
from __future__ import annotations

from enum import Enum

import httpx

from .models import FailureInfo, FailureKind

CONTENT_FETCHER = "content-fetcher"
TEXT_GENERATION = "text-generation"


class ModelErrorCategory(str, Enum):
    ACCESS_DENIED = "ACCESS_DENIED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    TIMEOUT = "TIMEOUT"
    UNCLASSIFIED = "UNCLASSIFIED"


class ScanError(Exception):
    kind: FailureKind = "unclassified"
    collaborator: str | None = None
    category: str | None = None

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_failure(self) -> FailureInfo:
        return FailureInfo(
            kind=self.kind,
            collaborator=self.collaborator,
            category=self.category,
            detail=self.detail,
        )


class InvalidTargetError(ScanError, ValueError):
    kind: FailureKind = "input_error"
    category = "INVALID_URL"


class CollaboratorError(ScanError):
    kind: FailureKind = "collaborator_unavailable"

    def __init__(self, detail: str, *, category: str | None = None):
        super().__init__(detail)
        if category is not None:
            self.category = category


class ContentFetchError(CollaboratorError):
    collaborator = CONTENT_FETCHER
    category = "FETCH_FAILED"


class TextGenerationError(CollaboratorError):
    collaborator = TEXT_GENERATION

    def __init__(self, detail: str, *, category: ModelErrorCategory = ModelErrorCategory.UNCLASSIFIED):
        super().__init__(detail, category=category.value)
        self.model_category = category


class MalformedModelOutputError(ScanError):
    kind: FailureKind = "malformed_response"
    collaborator = TEXT_GENERATION
    category = "MALFORMED_OUTPUT"


_STATUS_CATEGORIES = {
    400: ModelErrorCategory.BAD_REQUEST,
    401: ModelErrorCategory.ACCESS_DENIED,
    403: ModelErrorCategory.ACCESS_DENIED,
    404: ModelErrorCategory.MODEL_NOT_FOUND,
    408: ModelErrorCategory.TIMEOUT,
    429: ModelErrorCategory.RATE_LIMITED,
}

_MESSAGE_HINTS = (
    (("permission_denied", "access denied", "permission denied", "api key not valid"), ModelErrorCategory.ACCESS_DENIED),
    (("not_found", "not found", "is not supported in your region", "location is not supported"), ModelErrorCategory.MODEL_NOT_FOUND),
    (("resource_exhausted", "rate limit", "throttl", "quota"), ModelErrorCategory.RATE_LIMITED),
    (("invalid_argument", "bad request", "invalid request"), ModelErrorCategory.BAD_REQUEST),
    (("deadline_exceeded", "timed out", "timeout"), ModelErrorCategory.TIMEOUT),
)


def _status_code(exc: BaseException) -> int | None:
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def classify_model_error(exc: BaseException) -> ModelErrorCategory:
    """Map an exception raised while calling the model service to a category.

    Status codes win; the message text is only consulted when no usable code
    is attached to the exception.
    """
    if isinstance(exc, httpx.TimeoutException):
        return ModelErrorCategory.TIMEOUT

    status = _status_code(exc)
    if status is not None and status in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status]

    message = str(exc).lower()
    for hints, category in _MESSAGE_HINTS:
        if any(hint in message for hint in hints):
            return category
    return ModelErrorCategory.UNCLASSIFIED


def model_error_reason(category: ModelErrorCategory) -> str:
    """Operator-facing reason for a model-service failure."""
    mapping = {
        ModelErrorCategory.ACCESS_DENIED: "Text-generation service denied access - check the API key and its permissions",
        ModelErrorCategory.MODEL_NOT_FOUND: "Model not found - check GEMINI_MODEL and that it is available in your region",
        ModelErrorCategory.RATE_LIMITED: "Text-generation service rate limit exceeded - wait a moment and retry",
        ModelErrorCategory.BAD_REQUEST: "Text-generation service rejected the request - check the model name and request size",
        ModelErrorCategory.NOT_CONFIGURED: "Text-generation service not configured - set GEMINI_API_KEY",
        ModelErrorCategory.TIMEOUT: "Text-generation service timed out",
        ModelErrorCategory.UNCLASSIFIED: "Text-generation service call failed",
    }
    return mapping.get(category, "Text-generation service call failed")


__all__ = [
    "CONTENT_FETCHER",
    "TEXT_GENERATION",
    "CollaboratorError",
    "ContentFetchError",
    "InvalidTargetError",
    "MalformedModelOutputError",
    "ModelErrorCategory",
    "ScanError",
    "TextGenerationError",
    "classify_model_error",
    "model_error_reason",
]
