"""Job polling for deferred generations.

Queries a job's status at a fixed interval until it completes, fails, or the
wall-clock budget runs out. Ticks are strictly sequential: the next status
check is only issued after the previous one resolved and the interval passed.
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Optional, Union

import httpx

from genflow.services.errors import RemoteServiceError
from genflow.services.generation_api import GenerationService, JobStatus
from genflow.services.outcomes import Completed, ErrorKind, Failed, GenerationOutcome
from genflow.tasks.cancellation import CancellationToken, OperationCancelled

logger = logging.getLogger(__name__)

StatusCallback = Callable[[JobStatus], Union[None, Awaitable[None]]]
SleepFunction = Callable[[float, CancellationToken], Awaitable[None]]

# 2 s interval, 60 attempts
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_TIMEOUT = 120.0
DEFAULT_MAX_CHECK_FAILURES = 3


async def interruptible_sleep(delay: float, token: CancellationToken) -> None:
    await token.sleep(delay)


class JobPoller:
    """Polls a deferred job to a terminal outcome."""
    
    def __init__(
        self,
        service: GenerationService,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        max_check_failures: int = DEFAULT_MAX_CHECK_FAILURES,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunction = interruptible_sleep,
    ):
        if interval < 0 or timeout <= 0:
            raise ValueError("Poll interval must be >= 0 and timeout > 0")
        self.service = service
        self.interval = interval
        self.timeout = timeout
        self.max_check_failures = max(max_check_failures, 1)
        self._clock = clock
        self._sleep = sleep
        self._callback_tasks: set[asyncio.Task] = set()
    
    def _notify(self, on_status: Optional[StatusCallback], status: JobStatus) -> None:
        """Report a status without letting the callback block or break polling."""
        if on_status is None:
            return
        
        try:
            result = on_status(status)
        except Exception:
            logger.exception(f"Status callback failed for job {status.job_id}")
            return
        
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_done)
    
    def _callback_done(self, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Async status callback failed", exc_info=error)
    
    async def poll(
        self,
        feature: str,
        job_id: str,
        on_status: Optional[StatusCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationOutcome:
        """
        Poll a job until it reaches a terminal state.
        
        Args:
            feature: Feature whose status endpoint serves the job
            job_id: Job handle returned by the generate endpoint
            on_status: Called with every status response (fire-and-forget)
            cancel_token: Stops polling as soon as it is cancelled
        
        Returns:
            Completed with the result reference, or Failed with
            GENERATION_FAILED (job failed), TIMEOUT (budget exceeded) or
            INTERNAL_ERROR (too many consecutive failed checks)
        
        Raises:
            OperationCancelled: If ``cancel_token`` fires
        """
        token = cancel_token or CancellationToken()
        started = self._clock()
        checks = 0
        consecutive_failures = 0
        
        logger.info(f"Polling {feature} job {job_id} every {self.interval}s (timeout {self.timeout}s)")
        
        while True:
            token.raise_if_cancelled()
            
            checks += 1
            try:
                status = await self.service.job_status(feature, job_id)
            except (RemoteServiceError, httpx.HTTPError) as e:
                consecutive_failures += 1
                logger.warning(
                    f"Status check {checks} for job {job_id} failed "
                    f"({consecutive_failures}/{self.max_check_failures}): {e}"
                )
                if consecutive_failures >= self.max_check_failures:
                    return Failed(
                        kind=ErrorKind.INTERNAL_ERROR,
                        message="Could not check the generation status. Please try again.",
                    )
            else:
                consecutive_failures = 0
                # A late answer must not reach a caller that already gave up
                token.raise_if_cancelled()
                self._notify(on_status, status)
                
                if status.status == "completed":
                    if status.result_ref:
                        logger.info(f"Job {job_id} completed after {checks} checks")
                        return Completed(result_ref=status.result_ref)
                    return Failed(
                        kind=ErrorKind.GENERATION_FAILED,
                        message="The job completed without an image",
                    )
                
                if status.status == "failed":
                    logger.info(f"Job {job_id} failed after {checks} checks: {status.error}")
                    return Failed(
                        kind=ErrorKind.GENERATION_FAILED,
                        message=str(status.error or "Generation failed"),
                    )
            
            if self._clock() - started >= self.timeout:
                logger.warning(f"Job {job_id} timed out after {checks} checks")
                return Failed(
                    kind=ErrorKind.TIMEOUT,
                    message="Generation is taking too long. Please try again.",
                )
            
            await self._sleep(self.interval, token)
