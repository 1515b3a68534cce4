"""Session state for a single workflow variant.

``WorkflowSession`` holds everything the user entered and everything that
must survive navigation. Fields that only exist while a submission runs
(the submission machine, the cancellation token, the epoch) are transient
and never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from genflow.states.submission import SubmissionMachine, SubmissionStates
from genflow.tasks.cancellation import CancellationToken

logger = logging.getLogger(__name__)


AspectRatio = Literal[
    "auto", "1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"
]
Resolution = Literal["1K", "2K", "4K"]

ASPECT_RATIOS: tuple[str, ...] = (
    "auto", "1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9",
)
RESOLUTIONS: tuple[str, ...] = ("1K", "2K", "4K")

DEFAULT_ASPECT_RATIO: AspectRatio = "auto"
DEFAULT_RESOLUTION: Resolution = "2K"

# Catalog identifiers may be numeric (system catalog) or strings (custom items)
CatalogId = Union[str, int]


def is_valid_aspect_ratio(value: str) -> bool:
    """Validate aspect ratio string."""
    return value in ASPECT_RATIOS


def is_valid_resolution(value: str) -> bool:
    """Validate resolution string."""
    return value in RESOLUTIONS


@dataclass(frozen=True)
class OutputPrefs:
    """Output format preferences shared by every submission of a session."""
    
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    resolution: Resolution = DEFAULT_RESOLUTION
    
    def __post_init__(self) -> None:
        if not is_valid_aspect_ratio(self.aspect_ratio):
            raise ValueError(f"Unsupported aspect ratio: {self.aspect_ratio}")
        if not is_valid_resolution(self.resolution):
            raise ValueError(f"Unsupported resolution: {self.resolution}")


@dataclass
class Selections:
    """Catalog choices; None until the user picks one."""
    
    subject_id: Optional[CatalogId] = None
    backdrop_id: Optional[CatalogId] = None


@dataclass
class WorkflowSession:
    """Navigable, resumable state of one workflow variant."""
    
    variant: str
    current_step: int = 0
    max_unlocked_step: int = 0
    inputs: dict[int, str] = field(default_factory=dict)
    selections: Selections = field(default_factory=Selections)
    instruction_text: str = ""
    is_edit_mode: bool = False
    result_history: list[str] = field(default_factory=list)
    current_result: Optional[str] = None
    output_prefs: OutputPrefs = field(default_factory=OutputPrefs)
    
    # Transient
    submission: SubmissionMachine = field(
        default_factory=SubmissionMachine, repr=False, compare=False
    )
    cancel_token: Optional[CancellationToken] = field(
        default=None, repr=False, compare=False
    )
    epoch: int = field(default=0, repr=False, compare=False)
    
    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------
    
    def set_input(self, slot: int, image: str) -> None:
        """Store an uploaded image in a slot, replacing what was there."""
        if not image:
            raise ValueError("Image data must not be empty")
        self.inputs[int(slot)] = image
    
    def remove_input(self, slot: int) -> None:
        self.inputs.pop(int(slot), None)
    
    def clear_inputs(self) -> None:
        self.inputs.clear()
    
    # -------------------------------------------------------------------------
    # Selections, instruction, output preferences
    # -------------------------------------------------------------------------
    
    def select_subject(self, subject_id: Optional[CatalogId]) -> None:
        self.selections.subject_id = subject_id
    
    def select_backdrop(self, backdrop_id: Optional[CatalogId]) -> None:
        self.selections.backdrop_id = backdrop_id
    
    def set_instruction(self, text: str) -> None:
        self.instruction_text = text or ""
    
    def set_output_prefs(
        self,
        aspect_ratio: Optional[str] = None,
        resolution: Optional[str] = None,
    ) -> None:
        """
        Update output preferences.
        
        Raises:
            ValueError: If a value is not supported
        """
        self.output_prefs = OutputPrefs(
            aspect_ratio=aspect_ratio or self.output_prefs.aspect_ratio,
            resolution=resolution or self.output_prefs.resolution,
        )
    
    # -------------------------------------------------------------------------
    # Submission lifecycle
    # -------------------------------------------------------------------------
    
    @property
    def is_submitting(self) -> bool:
        return self.submission.in_flight
    
    def begin_submission(self) -> CancellationToken:
        """Mark a submission as started and hand out its cancellation token."""
        self.submission.transition(SubmissionStates.submitting)
        self.cancel_token = CancellationToken()
        return self.cancel_token
    
    def reset(self) -> None:
        """
        Start over: restore defaults in place.
        
        Cancels an outstanding submission and bumps the epoch so a late
        response is recognized as stale.
        """
        if self.cancel_token is not None:
            self.cancel_token.cancel()
        
        fresh = WorkflowSession(variant=self.variant)
        self.current_step = fresh.current_step
        self.max_unlocked_step = fresh.max_unlocked_step
        self.inputs = fresh.inputs
        self.selections = fresh.selections
        self.instruction_text = fresh.instruction_text
        self.is_edit_mode = fresh.is_edit_mode
        self.result_history = fresh.result_history
        self.current_result = fresh.current_result
        self.output_prefs = fresh.output_prefs
        
        self.submission.reset()
        self.cancel_token = None
        self.epoch += 1
        
        logger.info(f"Session for variant {self.variant} reset (epoch {self.epoch})")
    
    # -------------------------------------------------------------------------
    # Persistence shape
    # -------------------------------------------------------------------------
    
    def to_dict(self) -> dict[str, Any]:
        """Persisted shape: everything except transient fields."""
        return {
            "variant": self.variant,
            "current_step": self.current_step,
            "max_unlocked_step": self.max_unlocked_step,
            "inputs": {str(slot): image for slot, image in self.inputs.items()},
            "selections": {
                "subject_id": self.selections.subject_id,
                "backdrop_id": self.selections.backdrop_id,
            },
            "instruction_text": self.instruction_text,
            "is_edit_mode": self.is_edit_mode,
            "result_history": list(self.result_history),
            "current_result": self.current_result,
            "output_prefs": {
                "aspect_ratio": self.output_prefs.aspect_ratio,
                "resolution": self.output_prefs.resolution,
            },
        }
    
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowSession":
        """
        Restore a session from its persisted shape.
        
        JSON storages turn slot keys into strings; they are converted back.
        Unknown output preferences fall back to defaults.
        """
        selections = data.get("selections") or {}
        prefs = data.get("output_prefs") or {}
        
        try:
            output_prefs = OutputPrefs(
                aspect_ratio=prefs.get("aspect_ratio", DEFAULT_ASPECT_RATIO),
                resolution=prefs.get("resolution", DEFAULT_RESOLUTION),
            )
        except ValueError as e:
            logger.warning(f"Ignoring stored output preferences: {e}")
            output_prefs = OutputPrefs()
        
        current_step = int(data.get("current_step", 0))
        max_unlocked_step = max(int(data.get("max_unlocked_step", 0)), current_step)
        
        return cls(
            variant=data["variant"],
            current_step=current_step,
            max_unlocked_step=max_unlocked_step,
            inputs={int(slot): image for slot, image in (data.get("inputs") or {}).items()},
            selections=Selections(
                subject_id=selections.get("subject_id"),
                backdrop_id=selections.get("backdrop_id"),
            ),
            instruction_text=data.get("instruction_text", ""),
            is_edit_mode=bool(data.get("is_edit_mode", False)),
            result_history=list(data.get("result_history") or []),
            current_result=data.get("current_result"),
            output_prefs=output_prefs,
        )
