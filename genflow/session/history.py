"""Edit history of a session's results.

The combined timeline is ``[*result_history, current_result]``, oldest first.
After every operation ``result_history`` holds no copy of ``current_result``.
"""

import logging
from typing import Optional

from genflow.session.models import WorkflowSession

logger = logging.getLogger(__name__)


def _drop_current_duplicates(session: WorkflowSession) -> None:
    if session.current_result is not None:
        session.result_history = [
            ref for ref in session.result_history if ref != session.current_result
        ]


def push_current(session: WorkflowSession) -> None:
    """Move the current result onto the history, right before it is replaced."""
    if session.current_result is None:
        return
    
    session.result_history.append(session.current_result)


def replace_current(session: WorkflowSession, result_ref: str) -> None:
    """Push the current result and make ``result_ref`` the new current one."""
    push_current(session)
    session.current_result = result_ref
    _drop_current_duplicates(session)


def undo(session: WorkflowSession) -> Optional[str]:
    """
    Go back to the most recent history entry.
    
    The current result is discarded. No-op when the history is empty.
    
    Returns:
        The new current result
    """
    if not session.result_history:
        return session.current_result
    
    session.current_result = session.result_history.pop()
    _drop_current_duplicates(session)
    
    logger.debug(
        f"[{session.variant}] undo, {len(session.result_history)} entries left"
    )
    return session.current_result


def select_history_entry(session: WorkflowSession, result_ref: str, index: int) -> None:
    """
    Make a specific entry of the combined timeline the current result.
    
    The selected entry is taken out of the timeline and the remainder, in
    its original order, becomes the new history. Selecting the entry that
    is already current is a no-op.
    
    Args:
        session: Session to update
        result_ref: The selected result
        index: Position of ``result_ref`` in ``[*history, current]``
    
    Raises:
        ValueError: If ``result_ref`` is not part of the timeline
    """
    if session.current_result is None:
        return
    
    if result_ref == session.current_result:
        return
    
    timeline = [*session.result_history, session.current_result]
    
    if not (0 <= index < len(timeline)) or timeline[index] != result_ref:
        # Index went stale (e.g. the timeline changed); fall back to the value
        if result_ref not in timeline:
            raise ValueError(f"Result is not in the edit history: {result_ref}")
        index = timeline.index(result_ref)
    
    remainder = timeline[:index] + timeline[index + 1:]
    session.current_result = result_ref
    session.result_history = remainder
    _drop_current_duplicates(session)
