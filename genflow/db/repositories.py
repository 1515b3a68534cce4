"""Repository classes for database CRUD operations."""

from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from genflow.db.models import WorkflowSessionRecord


class SessionRepository:
    """Repository for WorkflowSessionRecord CRUD operations."""
    
    def __init__(self, session: AsyncSession):
        self.session = session
    
    async def get(self, owner_id: int, variant: str) -> Optional[WorkflowSessionRecord]:
        """Get the stored session of an owner's variant."""
        result = await self.session.execute(
            select(WorkflowSessionRecord).where(
                WorkflowSessionRecord.owner_id == owner_id,
                WorkflowSessionRecord.variant == variant,
            )
        )
        return result.scalar_one_or_none()
    
    async def upsert(
        self,
        owner_id: int,
        variant: str,
        data: dict[str, Any],
    ) -> WorkflowSessionRecord:
        """
        Create or replace the stored session.
        
        Args:
            owner_id: Owner (user) ID
            variant: Workflow variant name
            data: Persisted session shape
        
        Returns:
            The stored record
        """
        record = await self.get(owner_id, variant)
        
        if record is None:
            record = WorkflowSessionRecord(owner_id=owner_id, variant=variant, data=data)
            self.session.add(record)
        else:
            record.data = data
        
        await self.session.commit()
        await self.session.refresh(record)
        
        return record
    
    async def delete(self, owner_id: int, variant: str) -> bool:
        """
        Delete the stored session.
        
        Returns:
            True if a record was deleted
        """
        result = await self.session.execute(
            delete(WorkflowSessionRecord).where(
                WorkflowSessionRecord.owner_id == owner_id,
                WorkflowSessionRecord.variant == variant,
            )
        )
        await self.session.commit()
        return result.rowcount > 0
