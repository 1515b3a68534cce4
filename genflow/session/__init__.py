"""Workflow session state, navigation, history and persistence."""

from genflow.session.models import OutputPrefs, Selections, WorkflowSession
from genflow.session.variants import (
    BACKGROUND_SWAP,
    COMPOSITE,
    ON_MODEL,
    VARIANTS,
    GenerationRequest,
    SubjectImage,
    WorkflowVariant,
    get_variant,
)
from genflow.session.step_gate import StepGate, StepLockedError
from genflow.session.history import push_current, replace_current, select_history_entry, undo
from genflow.session.store import (
    DatabaseSessionStore,
    FSMSessionStore,
    SessionStore,
    create_session_store,
)
from genflow.session.manager import SessionContainer, SessionManager

__all__ = [
    "OutputPrefs",
    "Selections",
    "WorkflowSession",
    "BACKGROUND_SWAP",
    "COMPOSITE",
    "ON_MODEL",
    "VARIANTS",
    "GenerationRequest",
    "SubjectImage",
    "WorkflowVariant",
    "get_variant",
    "StepGate",
    "StepLockedError",
    "push_current",
    "replace_current",
    "select_history_entry",
    "undo",
    "DatabaseSessionStore",
    "FSMSessionStore",
    "SessionStore",
    "create_session_store",
    "SessionContainer",
    "SessionManager",
]
