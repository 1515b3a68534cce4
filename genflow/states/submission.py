"""Explicit state machine for a single workflow's in-flight submission."""

import logging

from aiogram.fsm.state import State, StatesGroup

logger = logging.getLogger(__name__)


class SubmissionStates(StatesGroup):
    """Lifecycle of a generation submission."""
    
    # Nothing submitted yet, or the session was started over
    idle = State()
    
    # Request sent to the generate/edit endpoint
    submitting = State()
    
    # Remote service answered with a job handle that is being polled
    awaiting_job = State()
    
    completed = State()
    failed = State()


class InvalidTransitionError(Exception):
    """Raised when a submission state change is not allowed."""
    
    def __init__(self, current: State, target: State):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid submission transition: {current.state} -> {target.state}"
        )


# Allowed transitions; start-over may return to idle from anywhere
TRANSITIONS: dict[State, frozenset[State]] = {
    SubmissionStates.idle: frozenset({SubmissionStates.submitting}),
    SubmissionStates.submitting: frozenset({
        SubmissionStates.awaiting_job,
        SubmissionStates.completed,
        SubmissionStates.failed,
    }),
    SubmissionStates.awaiting_job: frozenset({
        SubmissionStates.completed,
        SubmissionStates.failed,
    }),
    SubmissionStates.completed: frozenset({SubmissionStates.submitting}),
    SubmissionStates.failed: frozenset({SubmissionStates.submitting}),
}

IN_FLIGHT_STATES = frozenset({
    SubmissionStates.submitting,
    SubmissionStates.awaiting_job,
})


class SubmissionMachine:
    """Holds the current submission state and applies transitions."""
    
    def __init__(self) -> None:
        self.state: State = SubmissionStates.idle
    
    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES
    
    def transition(self, target: State) -> None:
        """
        Move to ``target``.
        
        Raises:
            InvalidTransitionError: If ``target`` is not reachable from the
                current state
        """
        if target is not SubmissionStates.idle and target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        
        logger.debug(f"Submission state {self.state.state} -> {target.state}")
        self.state = target
    
    def reset(self) -> None:
        self.transition(SubmissionStates.idle)
