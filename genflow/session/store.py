"""Persistence adapters for workflow sessions.

Sessions are keyed by owner and variant. Two backends are provided:

- ``FSMSessionStore`` keeps sessions in an aiogram FSM storage
  (``MemoryStorage`` in-process, ``RedisStorage`` across processes).
- ``DatabaseSessionStore`` keeps them in the ``workflow_sessions`` table.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from aiogram.fsm.storage.base import BaseStorage, StorageKey
from aiogram.fsm.storage.memory import MemoryStorage
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from genflow.config import Config
from genflow.db.database import create_engine_from_url, create_session_maker, init_db
from genflow.db.repositories import SessionRepository

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Abstract storage of persisted session shapes."""
    
    @abstractmethod
    async def load(self, owner_id: int, variant: str) -> Optional[dict[str, Any]]:
        pass
    
    @abstractmethod
    async def save(self, owner_id: int, variant: str, data: dict[str, Any]) -> None:
        pass
    
    @abstractmethod
    async def delete(self, owner_id: int, variant: str) -> None:
        pass
    
    async def prepare(self) -> None:
        """Create whatever the backend needs before first use."""
        pass
    
    async def close(self) -> None:
        pass


class FSMSessionStore(SessionStore):
    """Session store on top of an aiogram FSM storage."""
    
    # Sessions are not tied to a bot; the key only needs to be unique per owner
    BOT_ID = 0
    
    def __init__(self, storage: Optional[BaseStorage] = None):
        self.storage = storage or MemoryStorage()
    
    def _key(self, owner_id: int, variant: str) -> StorageKey:
        return StorageKey(
            bot_id=self.BOT_ID,
            chat_id=owner_id,
            user_id=owner_id,
            destiny=f"{variant}-storage",
        )
    
    async def load(self, owner_id: int, variant: str) -> Optional[dict[str, Any]]:
        data = await self.storage.get_data(key=self._key(owner_id, variant))
        return dict(data) if data else None
    
    async def save(self, owner_id: int, variant: str, data: dict[str, Any]) -> None:
        await self.storage.set_data(key=self._key(owner_id, variant), data=data)
    
    async def delete(self, owner_id: int, variant: str) -> None:
        await self.storage.set_data(key=self._key(owner_id, variant), data={})
    
    async def close(self) -> None:
        await self.storage.close()


class DatabaseSessionStore(SessionStore):
    """Session store backed by the async SQLAlchemy repository."""
    
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self.session_maker = session_maker
        # Only an engine the store created itself is disposed on close
        self.engine = engine
    
    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseSessionStore":
        engine = create_engine_from_url(database_url)
        return cls(create_session_maker(engine), engine=engine)
    
    async def prepare(self) -> None:
        if self.engine is not None:
            await init_db(self.engine)
            logger.info("Session tables initialized")
    
    async def load(self, owner_id: int, variant: str) -> Optional[dict[str, Any]]:
        async with self.session_maker() as session:
            record = await SessionRepository(session).get(owner_id, variant)
            return dict(record.data) if record is not None else None
    
    async def save(self, owner_id: int, variant: str, data: dict[str, Any]) -> None:
        async with self.session_maker() as session:
            await SessionRepository(session).upsert(owner_id, variant, data)
    
    async def delete(self, owner_id: int, variant: str) -> None:
        async with self.session_maker() as session:
            await SessionRepository(session).delete(owner_id, variant)
    
    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connections closed")


def create_session_store(cfg: Config) -> SessionStore:
    """
    Build the session store selected by ``SESSION_STORAGE``.
    
    Raises:
        ValueError: If the storage name is unknown
    """
    kind = cfg.session_storage.lower()
    
    if kind == "memory":
        logger.info("Session store: MemoryStorage")
        return FSMSessionStore(MemoryStorage())
    
    if kind == "redis":
        from aiogram.fsm.storage.redis import RedisStorage
        
        logger.info(f"Session store: RedisStorage at {cfg.redis_url}")
        return FSMSessionStore(RedisStorage.from_url(cfg.redis_url))
    
    if kind == "database":
        logger.info("Session store: database")
        return DatabaseSessionStore.from_url(cfg.database_url)
    
    raise ValueError(f"Unknown session storage: {cfg.session_storage}")
