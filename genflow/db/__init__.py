"""Database module for server-side workflow sessions."""

from genflow.db.database import Base, create_engine_from_url, create_session_maker, init_db
from genflow.db.models import WorkflowSessionRecord
from genflow.db.repositories import SessionRepository

__all__ = [
    "Base",
    "create_engine_from_url",
    "create_session_maker",
    "init_db",
    "WorkflowSessionRecord",
    "SessionRepository",
]
