# Business logic services

from genflow.services.outcomes import (
    Completed,
    ErrorKind,
    Failed,
    GenerationOutcome,
    InsufficientCredits,
)
from genflow.services.errors import (
    EmptyResultError,
    ErrorNotice,
    RecoveryAction,
    RemoteServiceError,
    RequestValidationError,
    classify_failure,
    describe_failure,
    kind_for_status,
)
from genflow.services.generation_api import (
    DeferredJob,
    GenerationService,
    HttpGenerationService,
    ImmediateResult,
    JobStatus,
)
from genflow.services.credits import CreditsService

__all__ = [
    "Completed",
    "ErrorKind",
    "Failed",
    "GenerationOutcome",
    "InsufficientCredits",
    "EmptyResultError",
    "ErrorNotice",
    "RecoveryAction",
    "RemoteServiceError",
    "RequestValidationError",
    "classify_failure",
    "describe_failure",
    "kind_for_status",
    "DeferredJob",
    "GenerationService",
    "HttpGenerationService",
    "ImmediateResult",
    "JobStatus",
    "CreditsService",
]
