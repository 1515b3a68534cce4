"""Per-owner session containers with lazy creation and start-over."""

import logging
from typing import Optional

from genflow.session.models import WorkflowSession
from genflow.session.store import SessionStore
from genflow.session.variants import WorkflowVariant, get_variant

logger = logging.getLogger(__name__)


class SessionContainer:
    """A live session bound to its persistence key."""
    
    def __init__(
        self,
        owner_id: int,
        variant: WorkflowVariant,
        session: WorkflowSession,
        store: SessionStore,
    ):
        self.owner_id = owner_id
        self.variant = variant
        self.session = session
        self.store = store
    
    async def save(self) -> None:
        await self.store.save(self.owner_id, self.variant.name, self.session.to_dict())
    
    async def reset(self) -> None:
        """Start over: cancel in-flight work, restore defaults, drop the stored copy."""
        self.session.reset()
        await self.store.delete(self.owner_id, self.variant.name)


class SessionManager:
    """
    Hands out one container per (owner, variant).
    
    Containers are created on first use, restored from the store when a
    persisted copy exists, and then kept for the life of the process so
    navigation between pages reuses the same live session.
    """
    
    def __init__(self, store: SessionStore):
        self.store = store
        self._containers: dict[tuple[int, str], SessionContainer] = {}
    
    async def get(self, owner_id: int, variant_name: str) -> SessionContainer:
        """
        Get or lazily create the container of an owner's variant.
        
        Raises:
            KeyError: If the variant is unknown
        """
        variant = get_variant(variant_name)
        key = (owner_id, variant.name)
        
        container = self._containers.get(key)
        if container is not None:
            return container
        
        session = await self._restore(owner_id, variant)
        
        # A concurrent get() may have finished restoring while we awaited the store
        return self._containers.setdefault(
            key, SessionContainer(owner_id, variant, session, self.store)
        )
    
    async def _restore(self, owner_id: int, variant: WorkflowVariant) -> WorkflowSession:
        data: Optional[dict] = await self.store.load(owner_id, variant.name)
        
        if data:
            try:
                session = WorkflowSession.from_dict({**data, "variant": variant.name})
                logger.info(f"Restored {variant.name} session for owner {owner_id}")
                return session
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    f"Discarding unreadable {variant.name} session for owner {owner_id}: {e}"
                )
        
        logger.info(f"Created {variant.name} session for owner {owner_id}")
        return variant.new_session()
    
    def forget(self, owner_id: int) -> None:
        """Drop the live containers of an owner (e.g. on logout)."""
        for key in [key for key in self._containers if key[0] == owner_id]:
            container = self._containers.pop(key)
            if container.session.cancel_token is not None:
                container.session.cancel_token.cancel()
