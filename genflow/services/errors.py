"""Error classification for the remote generation service.

Maps an HTTP-style status plus a structured error body to an ``ErrorKind``
and then to a typed outcome. The mapping is table driven: ``STATUS_KIND_TABLE``
decides the kind for a status, ``CODE_KIND_TABLE`` refines client errors whose
body names a more specific code (a 403 that is really "no credits").
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from genflow.services.outcomes import (
    ErrorKind,
    Failed,
    GenerationOutcome,
    InsufficientCredits,
)

logger = logging.getLogger(__name__)


class RemoteServiceError(Exception):
    """Raised by the service client when the remote call returns a non-2xx status."""
    
    def __init__(self, status: int, body: Any = None):
        self.status = status
        self.body = body
        super().__init__(f"Remote service returned status {status}")


class EmptyResultError(Exception):
    """Raised when a successful response carries neither a result nor a job."""
    
    def __init__(self, message: Optional[str] = None):
        self.message = message or "The service did not return an image"
        super().__init__(self.message)


class RequestValidationError(Exception):
    """Raised when a generation request cannot be assembled from the session."""
    
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# CLASSIFICATION TABLES
# =============================================================================

STATUS_KIND_TABLE: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION_FAILED,
    401: ErrorKind.AUTH_REQUIRED,
    402: ErrorKind.INSUFFICIENT_CREDITS,
    403: ErrorKind.GENERATION_FAILED,
    408: ErrorKind.TIMEOUT,
    413: ErrorKind.VALIDATION_FAILED,
    415: ErrorKind.VALIDATION_FAILED,
    422: ErrorKind.VALIDATION_FAILED,
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.INTERNAL_ERROR,
    502: ErrorKind.INTERNAL_ERROR,
    503: ErrorKind.INTERNAL_ERROR,
    504: ErrorKind.TIMEOUT,
}

CODE_KIND_TABLE: dict[str, ErrorKind] = {
    "SHOP_NO_CREDITS": ErrorKind.INSUFFICIENT_CREDITS,
    "INSUFFICIENT_CREDITS": ErrorKind.INSUFFICIENT_CREDITS,
    "NO_CREDITS": ErrorKind.INSUFFICIENT_CREDITS,
    "AUTH_REQUIRED": ErrorKind.AUTH_REQUIRED,
    "RATE_LIMIT_EXCEEDED": ErrorKind.RATE_LIMITED,
    "PHOTO_TOO_LARGE": ErrorKind.VALIDATION_FAILED,
    "INVALID_PHOTO_TYPE": ErrorKind.VALIDATION_FAILED,
    "INVALID_PHOTO": ErrorKind.VALIDATION_FAILED,
    "GENERATION_FAILED": ErrorKind.GENERATION_FAILED,
}

DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION_FAILED: "Could not process the photo. Please upload a JPEG, PNG or WebP image under 10MB.",
    ErrorKind.AUTH_REQUIRED: "Please log in to generate images.",
    ErrorKind.INSUFFICIENT_CREDITS: "You don't have enough credits for this generation.",
    ErrorKind.RATE_LIMITED: "You've hit the limit for now. Please try again later.",
    ErrorKind.GENERATION_FAILED: "Could not generate an image for this input. Please try again.",
    ErrorKind.TIMEOUT: "Generation is taking too long. Please try again.",
    ErrorKind.INTERNAL_ERROR: "Something went wrong. Please try again.",
}


def kind_for_status(status: int) -> ErrorKind:
    """Table lookup of the error kind for a status; unknown statuses are internal errors."""
    return STATUS_KIND_TABLE.get(status, ErrorKind.INTERNAL_ERROR)


# =============================================================================
# ERROR BODY PARSING
# =============================================================================

@dataclass(frozen=True)
class ErrorBody:
    """Normalized structured error returned by the service."""
    
    code: Optional[str] = None
    message: Optional[str] = None
    retry_after: Optional[float] = None
    available: Optional[int] = None
    required: Optional[int] = None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_error_body(body: Any) -> ErrorBody:
    """
    Normalize an error body.
    
    Accepts the nested shape ``{"error": {"code", "message", "retry_after"}}``
    and the flat shape ``{"code", "message" | "error", "credits_available",
    "credits_required"}``. Anything that is not a mapping parses as empty.
    
    Args:
        body: Decoded JSON body (or None)
    
    Returns:
        ErrorBody with whichever fields were present
    """
    if not isinstance(body, dict):
        return ErrorBody()
    
    nested = body.get("error")
    fields = dict(body)
    if isinstance(nested, dict):
        fields.update(nested)
    
    message = fields.get("message")
    if not message and isinstance(nested, str):
        message = nested
    
    code = fields.get("code")
    
    return ErrorBody(
        code=str(code) if code else None,
        message=str(message) if message else None,
        retry_after=_as_float(fields.get("retry_after", fields.get("retryAfter"))),
        available=_as_int(fields.get("credits_available", fields.get("available"))),
        required=_as_int(fields.get("credits_required", fields.get("required"))),
    )


# =============================================================================
# CLASSIFIER
# =============================================================================

def classify_kind(status: int, error: ErrorBody) -> ErrorKind:
    """
    Decide the error kind for a failed response.
    
    The status table is authoritative; for client errors (4xx) a known
    ``code`` in the body refines it.
    """
    kind = kind_for_status(status)
    
    if 400 <= status < 500 and error.code:
        kind = CODE_KIND_TABLE.get(error.code.upper(), kind)
    
    return kind


def classify_failure(status: int, body: Any = None) -> GenerationOutcome:
    """
    Convert a remote failure into a typed outcome.
    
    Args:
        status: HTTP-style status code
        body: Decoded error body
    
    Returns:
        InsufficientCredits for credit refusals, Failed for everything else
    """
    error = parse_error_body(body)
    kind = classify_kind(status, error)
    message = error.message or DEFAULT_MESSAGES[kind]
    
    logger.info(
        f"Classified remote failure: status={status}, code={error.code}, kind={kind.value}"
    )
    
    if kind is ErrorKind.INSUFFICIENT_CREDITS:
        return InsufficientCredits(
            available=error.available if error.available is not None else 0,
            required=error.required if error.required is not None else 1,
            message=message,
        )
    
    return Failed(
        kind=kind,
        message=message,
        retry_after=error.retry_after if kind is ErrorKind.RATE_LIMITED else None,
    )


# =============================================================================
# UI CONTRACT
# =============================================================================

class RecoveryAction(str, Enum):
    """What the presentation layer offers next to a failure."""
    
    RETRY = "retry"
    LOGIN = "login"
    UPGRADE = "upgrade"


RECOVERY_ACTIONS: dict[ErrorKind, RecoveryAction] = {
    ErrorKind.VALIDATION_FAILED: RecoveryAction.RETRY,
    ErrorKind.AUTH_REQUIRED: RecoveryAction.LOGIN,
    ErrorKind.INSUFFICIENT_CREDITS: RecoveryAction.UPGRADE,
    ErrorKind.RATE_LIMITED: RecoveryAction.RETRY,
    ErrorKind.GENERATION_FAILED: RecoveryAction.RETRY,
    ErrorKind.TIMEOUT: RecoveryAction.RETRY,
    ErrorKind.INTERNAL_ERROR: RecoveryAction.RETRY,
}


@dataclass(frozen=True)
class ErrorNotice:
    """How a failed outcome should be surfaced."""
    
    kind: ErrorKind
    message: str
    action: RecoveryAction
    # Blocking notices are shown as a dialog instead of an inline message
    blocking: bool = False
    retry_after: Optional[float] = None
    available: Optional[int] = None
    required: Optional[int] = None


def describe_failure(outcome: GenerationOutcome) -> Optional[ErrorNotice]:
    """
    Build the UI notice for an outcome.
    
    Returns:
        ErrorNotice for failures, None for completed outcomes
    """
    if isinstance(outcome, InsufficientCredits):
        return ErrorNotice(
            kind=ErrorKind.INSUFFICIENT_CREDITS,
            message=outcome.message,
            action=RecoveryAction.UPGRADE,
            blocking=True,
            available=outcome.available,
            required=outcome.required,
        )
    
    if isinstance(outcome, Failed):
        return ErrorNotice(
            kind=outcome.kind,
            message=outcome.message,
            action=RECOVERY_ACTIONS[outcome.kind],
            retry_after=outcome.retry_after,
        )
    
    return None
