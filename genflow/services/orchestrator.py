"""Generation orchestration for a workflow session.

Decides between a fresh generation and an edit of the current result,
talks to the remote service, delegates deferred jobs to the poller, and
applies the outcome to the session. The orchestrator keeps no state between
submissions; the in-flight guard, the cancellation token and the epoch all
live on the session.
"""

import logging
from typing import Optional

import httpx

from genflow.services.credits import CreditsService
from genflow.services.errors import (
    EmptyResultError,
    RemoteServiceError,
    RequestValidationError,
    classify_failure,
)
from genflow.services.generation_api import DeferredJob, GenerationService
from genflow.services.outcomes import (
    Completed,
    ErrorKind,
    Failed,
    GenerationOutcome,
)
from genflow.session.history import replace_current
from genflow.session.models import WorkflowSession
from genflow.session.variants import get_variant
from genflow.states.submission import SubmissionStates
from genflow.tasks.cancellation import CancellationToken, OperationCancelled
from genflow.tasks.polling import JobPoller, StatusCallback
from genflow.utils.helpers import format_prompt_preview

logger = logging.getLogger(__name__)


class SubmissionInProgressError(Exception):
    """Raised when a submission is requested while another one is in flight."""
    
    def __init__(self, variant: str):
        self.variant = variant
        super().__init__(f"A submission is already in progress for {variant}")


CANCELLED_MESSAGE = "The generation was cancelled."
NETWORK_MESSAGE = "Unable to reach the server. Please check your connection and try again."


class GenerationOrchestrator:
    """Submits a session to the generation service and applies the outcome."""
    
    def __init__(
        self,
        service: GenerationService,
        poller: JobPoller,
        credits: Optional[CreditsService] = None,
    ):
        self.service = service
        self.poller = poller
        self.credits = credits
    
    @staticmethod
    def is_edit_submission(session: WorkflowSession) -> bool:
        """Edit mode, a non-empty instruction and a result to edit."""
        return (
            session.is_edit_mode
            and bool(session.instruction_text.strip())
            and session.current_result is not None
        )
    
    async def submit(
        self,
        session: WorkflowSession,
        on_status: Optional[StatusCallback] = None,
    ) -> GenerationOutcome:
        """
        Submit the session.
        
        Args:
            session: Session to submit; it is updated in place on success
            on_status: Receives intermediate job statuses while polling
        
        Returns:
            Completed, Failed or InsufficientCredits
        
        Raises:
            SubmissionInProgressError: If this session already has a
                submission in flight
        """
        if session.is_submitting:
            logger.info(f"[{session.variant}] submission already in progress, rejecting")
            raise SubmissionInProgressError(session.variant)
        
        epoch = session.epoch
        token = session.begin_submission()
        
        try:
            outcome = await self._run(session, token, on_status)
        except BaseException:
            # Task cancelled or unexpected error: release the in-flight guard
            if session.epoch == epoch and session.submission.in_flight:
                session.submission.transition(SubmissionStates.failed)
                session.cancel_token = None
            raise
        
        if token.cancelled or session.epoch != epoch:
            # Started over or forgotten while we were waiting
            logger.info(f"[{session.variant}] discarding outcome of a superseded submission")
            if session.epoch == epoch and session.submission.in_flight:
                # Cancelled without a start-over: the guard is still ours to release
                session.submission.transition(SubmissionStates.failed)
                session.cancel_token = None
            if isinstance(outcome, Failed) and outcome.cancelled:
                return outcome
            return Failed(
                kind=ErrorKind.INTERNAL_ERROR,
                message=CANCELLED_MESSAGE,
                cancelled=True,
            )
        
        self._apply(session, outcome)
        return outcome
    
    async def _run(
        self,
        session: WorkflowSession,
        token: CancellationToken,
        on_status: Optional[StatusCallback],
    ) -> GenerationOutcome:
        try:
            if self.is_edit_submission(session):
                return await self._edit(session)
            return await self._generate(session, token, on_status)
        
        except RequestValidationError as e:
            logger.info(f"[{session.variant}] request rejected locally: {e.message}")
            return Failed(kind=ErrorKind.VALIDATION_FAILED, message=e.message)
        
        except RemoteServiceError as e:
            return classify_failure(e.status, e.body)
        
        except EmptyResultError as e:
            logger.warning(f"[{session.variant}] service returned no result: {e.message}")
            return Failed(kind=ErrorKind.GENERATION_FAILED, message=e.message)
        
        except OperationCancelled:
            return Failed(
                kind=ErrorKind.INTERNAL_ERROR,
                message=CANCELLED_MESSAGE,
                cancelled=True,
            )
        
        except httpx.HTTPError as e:
            logger.error(f"[{session.variant}] transport error: {e}")
            return Failed(kind=ErrorKind.INTERNAL_ERROR, message=NETWORK_MESSAGE)
    
    async def _edit(self, session: WorkflowSession) -> GenerationOutcome:
        instruction = session.instruction_text.strip()
        logger.info(
            f"[{session.variant}] editing current result: {format_prompt_preview(instruction)}"
        )
        result_ref = await self.service.edit(session.current_result, instruction)
        return Completed(result_ref=result_ref)
    
    async def _generate(
        self,
        session: WorkflowSession,
        token: CancellationToken,
        on_status: Optional[StatusCallback],
    ) -> GenerationOutcome:
        variant = get_variant(session.variant)
        
        # Snapshot: later edits to inputs/selections do not affect this request
        request = variant.build_request(session)
        
        logger.info(
            f"[{session.variant}] generating from {len(request.subject_images)} image(s), "
            f"subject={request.subject_id}, backdrop={request.backdrop_id}"
        )
        
        response = await self.service.generate(request.feature, request.payload)
        token.raise_if_cancelled()
        
        if isinstance(response, DeferredJob):
            session.submission.transition(SubmissionStates.awaiting_job)
            return await self.poller.poll(
                request.feature,
                response.job_id,
                on_status=on_status,
                cancel_token=token,
            )
        
        return Completed(result_ref=response.result_ref)
    
    def _apply(self, session: WorkflowSession, outcome: GenerationOutcome) -> None:
        session.cancel_token = None
        
        if isinstance(outcome, Completed):
            replace_current(session, outcome.result_ref)
            session.is_edit_mode = True
            session.instruction_text = ""
            session.submission.transition(SubmissionStates.completed)
            
            if self.credits is not None:
                self.credits.invalidate()
            
            logger.info(
                f"[{session.variant}] generation completed, "
                f"{len(session.result_history)} earlier result(s) in history"
            )
            return
        
        # The instruction is kept so the user can retry unchanged
        session.submission.transition(SubmissionStates.failed)
        logger.info(f"[{session.variant}] generation failed: {outcome.kind.value}")
