"""The three workflow variants and how each assembles a generation request.

A variant bundles its ordered steps, the completion predicate of every step,
and the function that snapshots a session into a ``GenerationRequest``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from aiogram.fsm.state import State, StatesGroup

from genflow.services.errors import RequestValidationError
from genflow.session.models import CatalogId, WorkflowSession
from genflow.states.steps import BackgroundSwapSteps, CompositeSteps, OnModelSteps
from genflow.utils.helpers import is_usable_image_source, preview_image_source

logger = logging.getLogger(__name__)


# Composite slots: front/back of the top and bottom garment
TOP_FRONT = 0
TOP_BACK = 1
BOTTOM_FRONT = 2
BOTTOM_BACK = 3

COMPOSITE_SLOTS: dict[int, tuple[str, str]] = {
    TOP_FRONT: ("top", "front"),
    TOP_BACK: ("top", "back"),
    BOTTOM_FRONT: ("bottom", "front"),
    BOTTOM_BACK: ("bottom", "back"),
}


@dataclass(frozen=True)
class SubjectImage:
    """A usable input image with its role in the request."""
    
    slot: int
    image: str
    # "photo" for sequential uploads, "top_front", "bottom_back", ... for garments
    role: str


@dataclass(frozen=True)
class GenerationRequest:
    """Snapshot of a session taken at submission time."""
    
    feature: str
    subject_images: tuple[SubjectImage, ...]
    subject_id: Optional[CatalogId]
    backdrop_id: Optional[CatalogId]
    instruction_text: Optional[str]
    aspect_ratio: str
    resolution: str
    payload: dict[str, Any]


StepPredicate = Callable[[WorkflowSession], bool]


def has_input(session: WorkflowSession) -> bool:
    return len(session.inputs) > 0


def has_subject(session: WorkflowSession) -> bool:
    return session.selections.subject_id is not None


def has_backdrop(session: WorkflowSession) -> bool:
    return session.selections.backdrop_id is not None


def always(session: WorkflowSession) -> bool:
    return True


def not_submitting(session: WorkflowSession) -> bool:
    return not session.is_submitting


# =============================================================================
# REQUEST ASSEMBLY
# =============================================================================

def _usable_inputs(session: WorkflowSession) -> list[tuple[int, str]]:
    """Inputs in slot order, dropping anything the service cannot accept."""
    usable = []
    for slot in sorted(session.inputs):
        image = session.inputs[slot]
        if is_usable_image_source(image):
            usable.append((slot, image))
        else:
            logger.warning(
                f"Dropping unusable input in slot {slot}: {preview_image_source(image)}"
            )
    return usable


def _instruction(session: WorkflowSession) -> Optional[str]:
    text = session.instruction_text.strip()
    return text or None


def _common_fields(session: WorkflowSession, instruction: Optional[str]) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "aspectRatio": session.output_prefs.aspect_ratio,
        "resolution": session.output_prefs.resolution,
    }
    if instruction:
        fields["prompt"] = instruction
    return fields


def _require_usable(images: list) -> None:
    if not images:
        raise RequestValidationError("no usable input")


def build_composite_request(session: WorkflowSession, feature: str) -> GenerationRequest:
    """Garments grouped into top/bottom products, each with front/back images."""
    usable = [(slot, image) for slot, image in _usable_inputs(session) if slot in COMPOSITE_SLOTS]
    _require_usable(usable)
    
    if session.selections.subject_id is None:
        raise RequestValidationError("Please select a model")
    if session.selections.backdrop_id is None:
        raise RequestValidationError("Please select a background")
    
    products: dict[str, dict[str, str]] = {}
    images = []
    for slot, image in usable:
        garment, side = COMPOSITE_SLOTS[slot]
        product = products.setdefault(garment, {"type": garment})
        product[f"{side}Image"] = image
        images.append(SubjectImage(slot=slot, image=image, role=f"{garment}_{side}"))
    
    instruction = _instruction(session)
    payload = {
        "products": list(products.values()),
        "modelId": str(session.selections.subject_id),
        "backgroundId": str(session.selections.backdrop_id),
        **_common_fields(session, instruction),
    }
    
    return GenerationRequest(
        feature=feature,
        subject_images=tuple(images),
        subject_id=session.selections.subject_id,
        backdrop_id=session.selections.backdrop_id,
        instruction_text=instruction,
        aspect_ratio=session.output_prefs.aspect_ratio,
        resolution=session.output_prefs.resolution,
        payload=payload,
    )


def _photo_images(session: WorkflowSession) -> list[SubjectImage]:
    usable = _usable_inputs(session)
    _require_usable(usable)
    return [SubjectImage(slot=slot, image=image, role="photo") for slot, image in usable]


def build_on_model_request(session: WorkflowSession, feature: str) -> GenerationRequest:
    """Photos dressed on the selected model; backdrop optional."""
    images = _photo_images(session)
    
    if session.selections.subject_id is None:
        raise RequestValidationError("Please select a model")
    
    instruction = _instruction(session)
    payload: dict[str, Any] = {
        "photos": [{"id": str(img.slot), "image": img.image} for img in images],
        "modelId": str(session.selections.subject_id),
    }
    # Without a backdrop the original background is kept
    if session.selections.backdrop_id is not None:
        payload["backgroundId"] = str(session.selections.backdrop_id)
    payload.update(_common_fields(session, instruction))
    
    return GenerationRequest(
        feature=feature,
        subject_images=tuple(images),
        subject_id=session.selections.subject_id,
        backdrop_id=session.selections.backdrop_id,
        instruction_text=instruction,
        aspect_ratio=session.output_prefs.aspect_ratio,
        resolution=session.output_prefs.resolution,
        payload=payload,
    )


def build_background_swap_request(session: WorkflowSession, feature: str) -> GenerationRequest:
    """Photos placed onto the selected backdrop."""
    images = _photo_images(session)
    
    if session.selections.backdrop_id is None:
        raise RequestValidationError("Please select a background")
    
    instruction = _instruction(session)
    payload = {
        "photos": [{"id": str(img.slot), "image": img.image} for img in images],
        "backgroundId": str(session.selections.backdrop_id),
        **_common_fields(session, instruction),
    }
    
    return GenerationRequest(
        feature=feature,
        subject_images=tuple(images),
        subject_id=None,
        backdrop_id=session.selections.backdrop_id,
        instruction_text=instruction,
        aspect_ratio=session.output_prefs.aspect_ratio,
        resolution=session.output_prefs.resolution,
        payload=payload,
    )


# =============================================================================
# VARIANTS
# =============================================================================

@dataclass(frozen=True)
class WorkflowVariant:
    """Static description of one workflow."""
    
    name: str
    # Query flag on the generate endpoint and path segment of the status endpoint
    feature: str
    steps: type[StatesGroup]
    predicates: tuple[StepPredicate, ...]
    request_builder: Callable[[WorkflowSession, str], GenerationRequest]
    
    def __post_init__(self) -> None:
        if len(self.predicates) != len(self.step_states):
            raise ValueError(
                f"Variant {self.name}: {len(self.step_states)} steps "
                f"but {len(self.predicates)} predicates"
            )
    
    @property
    def step_states(self) -> tuple[State, ...]:
        return self.steps.__states__
    
    def new_session(self) -> WorkflowSession:
        return WorkflowSession(variant=self.name)
    
    def build_request(self, session: WorkflowSession) -> GenerationRequest:
        """
        Snapshot the session into a request.
        
        Raises:
            RequestValidationError: If no usable input or a required selection
                is missing
        """
        return self.request_builder(session, self.feature)


COMPOSITE = WorkflowVariant(
    name="composite",
    feature="flatlay",
    steps=CompositeSteps,
    predicates=(has_input, has_subject, has_backdrop, not_submitting),
    request_builder=build_composite_request,
)

ON_MODEL = WorkflowVariant(
    name="on_model",
    feature="on-model",
    steps=OnModelSteps,
    predicates=(has_input, has_subject, always, not_submitting),
    request_builder=build_on_model_request,
)

BACKGROUND_SWAP = WorkflowVariant(
    name="background_swap",
    feature="background",
    steps=BackgroundSwapSteps,
    predicates=(has_input, has_backdrop, not_submitting),
    request_builder=build_background_swap_request,
)

VARIANTS: dict[str, WorkflowVariant] = {
    variant.name: variant for variant in (COMPOSITE, ON_MODEL, BACKGROUND_SWAP)
}


def get_variant(name: str) -> WorkflowVariant:
    """
    Look up a variant by name.
    
    Raises:
        KeyError: If the variant is unknown
    """
    try:
        return VARIANTS[name]
    except KeyError:
        raise KeyError(f"Unknown workflow variant: {name}") from None
