"""
Tests for the job poller.

Time is driven by a fake clock so timeouts are deterministic; the real
interruptible sleep is only used to check prompt cancellation.
"""

import asyncio
import logging

import httpx
import pytest

from genflow.services.errors import RemoteServiceError
from genflow.services.generation_api import JobStatus
from genflow.services.outcomes import Completed, ErrorKind, Failed
from genflow.tasks.cancellation import CancellationToken, OperationCancelled
from genflow.tasks.polling import JobPoller

from tests.conftest import RESULT_URL, completed, pending


class TestJobPoller:
    """Tests for JobPoller.poll."""
    
    @pytest.mark.asyncio
    async def test_completes_after_pending_checks(self, fake_service, poller, fake_clock):
        fake_service.statuses = [pending(), pending(), completed(RESULT_URL)]
        seen = []
        
        outcome = await poller.poll("on-model", "j1", on_status=seen.append)
        
        assert outcome == Completed(result_ref=RESULT_URL)
        assert len(fake_service.status_calls) == 3
        assert fake_service.status_calls[0] == ("on-model", "j1")
        assert [s.status for s in seen] == ["pending", "pending", "completed"]
        assert fake_clock.sleeps == [2.0, 2.0]
    
    @pytest.mark.asyncio
    async def test_failed_job_is_generation_failed(self, fake_service, poller):
        fake_service.statuses = [
            pending(),
            JobStatus(job_id="j1", status="failed", error="Model refused the input"),
        ]
        
        outcome = await poller.poll("flatlay", "j1")
        
        assert outcome == Failed(
            kind=ErrorKind.GENERATION_FAILED,
            message="Model refused the input",
        )
    
    @pytest.mark.asyncio
    async def test_completed_without_result_is_generation_failed(self, fake_service, poller):
        fake_service.statuses = [JobStatus(job_id="j1", status="completed")]
        
        outcome = await poller.poll("flatlay", "j1")
        
        assert isinstance(outcome, Failed)
        assert outcome.kind is ErrorKind.GENERATION_FAILED
    
    @pytest.mark.asyncio
    async def test_times_out_and_stops_polling(self, fake_service, fake_clock):
        fake_service.statuses = [pending()]
        poller = JobPoller(
            fake_service,
            interval=2.0,
            timeout=6.0,
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
        
        outcome = await poller.poll("background", "j1")
        
        assert isinstance(outcome, Failed)
        assert outcome.kind is ErrorKind.TIMEOUT
        # Checks at t=0, 2, 4, 6
        assert len(fake_service.status_calls) == 4
        
        await asyncio.sleep(0)
        assert len(fake_service.status_calls) == 4, "No tick may run after the timeout"
    
    @pytest.mark.asyncio
    async def test_single_failed_check_is_tolerated(self, fake_service, poller):
        fake_service.statuses = [
            RemoteServiceError(503, None),
            pending(),
            completed(RESULT_URL),
        ]
        
        outcome = await poller.poll("on-model", "j1")
        
        assert outcome == Completed(result_ref=RESULT_URL)
        assert len(fake_service.status_calls) == 3
    
    @pytest.mark.asyncio
    async def test_failures_counter_resets_after_success(self, fake_service, poller):
        fake_service.statuses = [
            RemoteServiceError(502, None),
            RemoteServiceError(502, None),
            pending(),
            httpx.ConnectError("boom"),
            httpx.ConnectError("boom"),
            completed(RESULT_URL),
        ]
        
        outcome = await poller.poll("on-model", "j1")
        
        assert outcome == Completed(result_ref=RESULT_URL)
    
    @pytest.mark.asyncio
    async def test_consecutive_failures_escalate(self, fake_service, poller):
        fake_service.statuses = [httpx.ConnectError("unreachable")]
        
        outcome = await poller.poll("on-model", "j1")
        
        assert isinstance(outcome, Failed)
        assert outcome.kind is ErrorKind.INTERNAL_ERROR
        assert len(fake_service.status_calls) == poller.max_check_failures
    
    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_polling(self, fake_service, poller):
        fake_service.statuses = [pending(), completed(RESULT_URL)]
        
        def broken_callback(status):
            raise RuntimeError("render failed")
        
        outcome = await poller.poll("on-model", "j1", on_status=broken_callback)
        
        assert outcome == Completed(result_ref=RESULT_URL)
    
    @pytest.mark.asyncio
    async def test_async_callback_is_fire_and_forget(self, fake_service, poller):
        fake_service.statuses = [pending(), completed(RESULT_URL)]
        release = asyncio.Event()
        seen = []
        
        async def slow_callback(status):
            await release.wait()
            seen.append(status.status)
        
        outcome = await poller.poll("on-model", "j1", on_status=slow_callback)
        
        assert outcome == Completed(result_ref=RESULT_URL)
        assert seen == []
        
        release.set()
        await asyncio.sleep(0.01)
        assert sorted(seen) == ["completed", "pending"]
    
    @pytest.mark.asyncio
    async def test_already_cancelled_token_makes_no_call(self, fake_service, poller):
        fake_service.statuses = [pending()]
        token = CancellationToken()
        token.cancel()
        
        with pytest.raises(OperationCancelled):
            await poller.poll("on-model", "j1", cancel_token=token)
        
        assert fake_service.status_calls == []
    
    @pytest.mark.asyncio
    async def test_cancel_wakes_sleeping_poller(self, fake_service):
        fake_service.statuses = [pending()]
        poller = JobPoller(fake_service, interval=30.0, timeout=300.0)
        token = CancellationToken()
        
        def cancel_on_first_status(status):
            asyncio.get_running_loop().call_later(0.01, token.cancel)
        
        with pytest.raises(OperationCancelled):
            await asyncio.wait_for(
                poller.poll("on-model", "j1", on_status=cancel_on_first_status, cancel_token=token),
                timeout=2.0,
            )
        
        assert len(fake_service.status_calls) == 1
    
    def test_invalid_timing_rejected(self, fake_service):
        with pytest.raises(ValueError):
            JobPoller(fake_service, interval=-1.0)
        with pytest.raises(ValueError):
            JobPoller(fake_service, timeout=0)


class TestStatusCallbacks:
    """Failures of fire-and-forget status callbacks."""
    
    @pytest.mark.asyncio
    async def test_async_callback_error_is_logged(self, fake_service, poller, caplog):
        fake_service.statuses = [completed(RESULT_URL)]
        
        async def broken_callback(status):
            raise RuntimeError("render failed")
        
        with caplog.at_level(logging.ERROR, logger="genflow.tasks.polling"):
            outcome = await poller.poll("on-model", "j1", on_status=broken_callback)
            await asyncio.sleep(0.01)
        
        assert outcome == Completed(result_ref=RESULT_URL)
        assert any(
            "Async status callback failed" in record.getMessage() for record in caplog.records
        ), "Expected the callback failure to be logged"
        assert poller._callback_tasks == set()
