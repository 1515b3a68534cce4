"""FSM states package."""

from genflow.states.steps import CompositeSteps, OnModelSteps, BackgroundSwapSteps
from genflow.states.submission import (
    SubmissionStates,
    SubmissionMachine,
    InvalidTransitionError,
)

__all__ = [
    "CompositeSteps",
    "OnModelSteps",
    "BackgroundSwapSteps",
    "SubmissionStates",
    "SubmissionMachine",
    "InvalidTransitionError",
]
