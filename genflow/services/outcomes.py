"""Typed results of a generation submission."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class ErrorKind(str, Enum):
    """Closed set of failure kinds that drive UI decisions."""
    
    VALIDATION_FAILED = "validation_failed"
    AUTH_REQUIRED = "auth_required"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    RATE_LIMITED = "rate_limited"
    GENERATION_FAILED = "generation_failed"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class Completed:
    """The remote service produced a result."""
    
    result_ref: str


@dataclass(frozen=True)
class Failed:
    """The submission failed; rendered inline with a message."""
    
    kind: ErrorKind
    message: str
    retry_after: Optional[float] = None
    # Set when the submission was superseded by a start-over
    cancelled: bool = False


@dataclass(frozen=True)
class InsufficientCredits:
    """The user cannot pay for the generation; routed to a blocking dialog."""
    
    available: int
    required: int
    message: str = "You don't have enough credits for this generation."
    
    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.INSUFFICIENT_CREDITS


GenerationOutcome = Union[Completed, Failed, InsufficientCredits]
