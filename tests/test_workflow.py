"""
End-to-end tests of the workflow facade wired by the engine.

The remote service is the scripted fake; sessions live in MemoryStorage
unless a test configures the database.
"""

import pytest

from genflow.main import Engine
from genflow.services.errors import RecoveryAction, RemoteServiceError
from genflow.services.generation_api import DeferredJob, ImmediateResult
from genflow.services.orchestrator import SubmissionInProgressError
from genflow.services.outcomes import Completed, ErrorKind
from genflow.session.manager import SessionManager
from genflow.session.step_gate import StepLockedError
from genflow.session.variants import BACKGROUND_SWAP, COMPOSITE, TOP_BACK, TOP_FRONT

from tests.conftest import JPEG, PNG, completed, make_config, pending


@pytest.fixture
def engine(fake_service):
    return Engine(make_config(poll_interval_seconds=0.0), service=fake_service)


class TestWorkflow:
    """Tests for the Workflow facade."""
    
    @pytest.mark.asyncio
    async def test_background_swap_walkthrough(self, engine, fake_service):
        wf = await engine.open_workflow(1, "background_swap")
        
        with pytest.raises(StepLockedError):
            await wf.next_step()
        
        await wf.upload(0, PNG)
        assert await wf.next_step() == 1
        
        with pytest.raises(StepLockedError):
            await wf.next_step()
        
        await wf.select_backdrop(7)
        assert await wf.next_step() == 2
        
        fake_service.generate_result = ImmediateResult(result_ref="r1")
        outcome = await wf.next_step()
        
        assert outcome == Completed(result_ref="r1")
        assert wf.notice() is None
        assert wf.session.current_result == "r1"
        assert wf.can_undo is False
        
        feature, payload = fake_service.generate_calls[0]
        assert feature == "background"
        assert payload["backgroundId"] == "7"
        
        await wf.set_instruction("warmer light")
        fake_service.edit_result = "r1-warm"
        outcome = await wf.next_step()
        
        assert outcome == Completed(result_ref="r1-warm")
        assert fake_service.edit_calls == [("r1", "warmer light")]
        assert wf.can_undo is True
        
        assert await wf.undo() == "r1"
        assert wf.can_undo is False
    
    @pytest.mark.asyncio
    async def test_state_survives_reopening(self, engine):
        wf = await engine.open_workflow(1, "on_model")
        await wf.upload(0, PNG)
        await wf.select_subject("model-9")
        await wf.next_step()
        await wf.set_output_prefs(aspect_ratio="3:4")
        
        # A new manager over the same store sees the saved state
        restored = await SessionManager(engine.store).get(1, "on_model")
        
        assert restored.session == wf.session
        assert restored.session.output_prefs.aspect_ratio == "3:4"
        
        assert await wf.go_to(0) is True
        assert await wf.go_to(3) is False
        assert await wf.go_to(1) is True
    
    @pytest.mark.asyncio
    async def test_composite_groups_garments(self, engine, fake_service):
        wf = await engine.open_workflow(2, COMPOSITE.name)
        await wf.upload(TOP_FRONT, PNG)
        await wf.upload(TOP_BACK, JPEG)
        await wf.select_subject(4)
        await wf.select_backdrop(5)
        for _ in range(3):
            await wf.next_step()
        
        fake_service.generate_result = DeferredJob(job_id="j9")
        fake_service.statuses = [pending("j9"), completed("r9", job_id="j9")]
        statuses = []
        
        outcome = await wf.next_step(on_status=statuses.append)
        
        assert outcome == Completed(result_ref="r9")
        assert fake_service.status_calls == [("flatlay", "j9"), ("flatlay", "j9")]
        assert len(statuses) == 2
        
        _, payload = fake_service.generate_calls[0]
        assert payload["products"] == [{"type": "top", "frontImage": PNG, "backImage": JPEG}]
        assert payload["modelId"] == "4"
    
    @pytest.mark.asyncio
    async def test_rate_limit_notice(self, engine, fake_service):
        wf = await engine.open_workflow(3, BACKGROUND_SWAP.name)
        await wf.upload(0, PNG)
        await wf.select_backdrop("custom-1")
        await wf.next_step()
        await wf.next_step()
        await wf.set_instruction("keep the shadow")
        
        fake_service.generate_result = RemoteServiceError(
            429,
            {"error": {"code": "RATE_LIMIT_EXCEEDED", "message": "Too many requests", "retry_after": 10}},
        )
        outcome = await wf.submit()
        notice = wf.notice()
        
        assert outcome.kind is ErrorKind.RATE_LIMITED
        assert notice.action is RecoveryAction.RETRY
        assert notice.retry_after == 10.0
        assert wf.session.instruction_text == "keep the shadow"
    
    @pytest.mark.asyncio
    async def test_submit_rejected_while_in_flight(self, engine):
        wf = await engine.open_workflow(4, BACKGROUND_SWAP.name)
        wf.session.begin_submission()
        
        with pytest.raises(SubmissionInProgressError):
            await wf.submit()
    
    @pytest.mark.asyncio
    async def test_start_over(self, engine, fake_service):
        wf = await engine.open_workflow(5, BACKGROUND_SWAP.name)
        await wf.upload(0, PNG)
        await wf.select_backdrop(1)
        await wf.next_step()
        await wf.next_step()
        fake_service.generate_result = ImmediateResult(result_ref="r1")
        await wf.submit()
        
        await wf.start_over()
        
        assert wf.session == BACKGROUND_SWAP.new_session()
        assert wf.last_outcome is None
        assert await engine.store.load(5, BACKGROUND_SWAP.name) is None
        
        # Other variants of the same owner are untouched
        other = await engine.open_workflow(5, "on_model")
        assert other.session.variant == "on_model"


class TestEngine:
    """Tests for engine wiring."""
    
    @pytest.mark.asyncio
    async def test_database_storage(self, fake_service, tmp_path):
        cfg = make_config(
            session_storage="database",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}",
        )
        engine = Engine(cfg, service=fake_service)
        await engine.start()
        
        try:
            wf = await engine.open_workflow(9, "on_model")
            await wf.upload(0, PNG)
            
            stored = await engine.store.load(9, "on_model")
            assert stored["inputs"] == {"0": PNG}
        finally:
            await engine.close()
    
    @pytest.mark.asyncio
    async def test_http_service_built_from_config(self):
        engine = Engine(make_config(api_token="t0k"))
        
        assert engine.credits is not None
        assert engine.credits.client is engine.service.client
        assert engine.poller.interval == 2.0
        assert engine.poller.timeout == 10.0
        
        await engine.close()
        assert engine.service.client.is_closed
    
    @pytest.mark.asyncio
    async def test_unknown_variant(self, engine):
        with pytest.raises(KeyError):
            await engine.open_workflow(1, "video")
