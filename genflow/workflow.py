"""Workflow facade driven by the presentation layer.

Every user action goes through here: it mutates the session, consults the
step gate, runs submissions through the orchestrator, and saves the session
after each change so it survives navigation.
"""

import logging
from typing import Optional, Union

from genflow.services.errors import ErrorNotice, describe_failure
from genflow.services.orchestrator import GenerationOrchestrator
from genflow.services.outcomes import GenerationOutcome
from genflow.session import history
from genflow.session.manager import SessionContainer
from genflow.session.models import CatalogId, WorkflowSession
from genflow.session.step_gate import StepGate
from genflow.tasks.polling import StatusCallback

logger = logging.getLogger(__name__)


class Workflow:
    """One owner's live workflow of a single variant."""
    
    def __init__(self, container: SessionContainer, orchestrator: GenerationOrchestrator):
        self.container = container
        self.orchestrator = orchestrator
        self.gate = StepGate.for_variant(container.variant)
        self.last_outcome: Optional[GenerationOutcome] = None
    
    @property
    def session(self) -> WorkflowSession:
        return self.container.session
    
    @property
    def variant_name(self) -> str:
        return self.container.variant.name
    
    # -------------------------------------------------------------------------
    # Inputs and choices
    # -------------------------------------------------------------------------
    
    async def upload(self, slot: int, image: str) -> None:
        self.session.set_input(slot, image)
        await self.container.save()
    
    async def remove_input(self, slot: int) -> None:
        self.session.remove_input(slot)
        await self.container.save()
    
    async def clear_inputs(self) -> None:
        self.session.clear_inputs()
        await self.container.save()
    
    async def select_subject(self, subject_id: Optional[CatalogId]) -> None:
        self.session.select_subject(subject_id)
        await self.container.save()
    
    async def select_backdrop(self, backdrop_id: Optional[CatalogId]) -> None:
        self.session.select_backdrop(backdrop_id)
        await self.container.save()
    
    async def set_instruction(self, text: str) -> None:
        self.session.set_instruction(text)
        await self.container.save()
    
    async def set_output_prefs(
        self,
        aspect_ratio: Optional[str] = None,
        resolution: Optional[str] = None,
    ) -> None:
        self.session.set_output_prefs(aspect_ratio=aspect_ratio, resolution=resolution)
        await self.container.save()
    
    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------
    
    def can_proceed(self) -> bool:
        return self.gate.can_advance_session(self.session)
    
    async def go_to(self, step: int) -> bool:
        moved = self.gate.go_to(self.session, step)
        if moved:
            await self.container.save()
        return moved
    
    async def next_step(
        self,
        on_status: Optional[StatusCallback] = None,
    ) -> Union[int, GenerationOutcome]:
        """
        The "next" button.
        
        On the final step this submits; everywhere else it advances.
        
        Returns:
            The new step index, or the submission outcome on the final step
        
        Raises:
            StepLockedError: If the current step is not complete
            SubmissionInProgressError: If a submission is already running
        """
        if self.gate.is_final(self.session.current_step):
            return await self.submit(on_status=on_status)
        
        step = self.gate.advance(self.session)
        await self.container.save()
        return step
    
    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------
    
    async def submit(self, on_status: Optional[StatusCallback] = None) -> GenerationOutcome:
        """Submit (or re-submit after a failure) the current session."""
        epoch = self.session.epoch
        outcome = await self.orchestrator.submit(self.session, on_status=on_status)
        
        if self.session.epoch == epoch:
            self.last_outcome = outcome
            await self.container.save()
        
        return outcome
    
    def notice(self) -> Optional[ErrorNotice]:
        """How to surface the last outcome, if it was a failure."""
        if self.last_outcome is None:
            return None
        return describe_failure(self.last_outcome)
    
    # -------------------------------------------------------------------------
    # Edit history
    # -------------------------------------------------------------------------
    
    @property
    def can_undo(self) -> bool:
        return bool(self.session.result_history)
    
    async def undo(self) -> Optional[str]:
        result = history.undo(self.session)
        await self.container.save()
        return result
    
    async def select_history_entry(self, result_ref: str, index: int) -> None:
        history.select_history_entry(self.session, result_ref, index)
        await self.container.save()
    
    # -------------------------------------------------------------------------
    # Start over
    # -------------------------------------------------------------------------
    
    async def start_over(self) -> None:
        await self.container.reset()
        self.last_outcome = None
        logger.info(f"[{self.variant_name}] owner {self.container.owner_id} started over")
