"""Step gate: forward navigation only through steps whose predicate held."""

import logging
from typing import Sequence

from aiogram.fsm.state import State

from genflow.session.models import WorkflowSession
from genflow.session.variants import StepPredicate, WorkflowVariant

logger = logging.getLogger(__name__)


class StepLockedError(Exception):
    """Raised when advancing from a step whose completion predicate fails."""
    
    def __init__(self, step: int, step_name: str):
        self.step = step
        self.step_name = step_name
        super().__init__(f"Step {step} ({step_name}) is not complete")


class StepGate:
    """
    State machine over an ordered list of steps.
    
    The gate keeps no state of its own: ``current_step`` and
    ``max_unlocked_step`` live on the session so they persist with it.
    Invariants: ``current_step <= max_unlocked_step`` and the frontier
    never moves backward.
    """
    
    def __init__(self, steps: Sequence[State], predicates: Sequence[StepPredicate]):
        if not steps:
            raise ValueError("A step gate needs at least one step")
        if len(steps) != len(predicates):
            raise ValueError("Every step needs exactly one predicate")
        self.steps = tuple(steps)
        self.predicates = tuple(predicates)
    
    @classmethod
    def for_variant(cls, variant: WorkflowVariant) -> "StepGate":
        return cls(variant.step_states, variant.predicates)
    
    @property
    def step_count(self) -> int:
        return len(self.steps)
    
    @property
    def last_step(self) -> int:
        return len(self.steps) - 1
    
    def step_name(self, step: int) -> str:
        return self.steps[step].state
    
    def current_state(self, session: WorkflowSession) -> State:
        return self.steps[session.current_step]
    
    def is_final(self, step: int) -> bool:
        return step == self.last_step
    
    def is_step_complete(self, session: WorkflowSession, step: int) -> bool:
        return bool(self.predicates[step](session))
    
    def can_advance(self, step: int, predicate_result: bool) -> bool:
        """A step can be left forward only if it exists and its predicate held."""
        return 0 <= step < self.step_count and bool(predicate_result)
    
    def can_advance_session(self, session: WorkflowSession) -> bool:
        step = session.current_step
        return self.can_advance(step, self.is_step_complete(session, step))
    
    def advance(self, session: WorkflowSession) -> int:
        """
        Move forward one step and extend the frontier.
        
        The final step never advances; its "next" action is a submission and
        is handled by the caller.
        
        Returns:
            The new current step
        
        Raises:
            StepLockedError: If the current step's predicate is not satisfied
            ValueError: If called on the final step
        """
        step = session.current_step
        
        if self.is_final(step):
            raise ValueError("The final step submits instead of advancing")
        
        if not self.can_advance_session(session):
            raise StepLockedError(step, self.step_name(step))
        
        next_step = step + 1
        session.current_step = next_step
        session.max_unlocked_step = max(session.max_unlocked_step, next_step)
        
        logger.debug(
            f"[{session.variant}] advanced to {self.step_name(next_step)}, "
            f"frontier {session.max_unlocked_step}"
        )
        return next_step
    
    def go_to(self, session: WorkflowSession, target: int) -> bool:
        """
        Jump to any step up to the unlocked frontier.
        
        Returns:
            True if the jump happened, False if ``target`` is beyond the
            frontier or out of range
        """
        if target < 0 or target >= self.step_count:
            return False
        
        if target > session.max_unlocked_step:
            return False
        
        session.current_step = target
        return True
