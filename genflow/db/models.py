"""SQLAlchemy models for server-side workflow sessions."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from genflow.db.database import Base


class WorkflowSessionRecord(Base):
    """Persisted state of one owner's workflow variant."""
    
    __tablename__ = "workflow_sessions"
    __table_args__ = (
        UniqueConstraint("owner_id", "variant", name="uq_workflow_sessions_owner_variant"),
    )
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    variant: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # "composite" | "on_model" | "background_swap"
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )
