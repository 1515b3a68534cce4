"""Async SQLAlchemy engine and session factories for server-side sessions."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def create_engine_from_url(database_url: str) -> AsyncEngine:
    """
    Create the async engine of the session database.
    
    Raises:
        ValueError: If no URL is configured
    """
    if not database_url:
        raise ValueError("DATABASE_URL is not configured")
    return create_async_engine(database_url, pool_pre_ping=True)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Records are read after commit, so they must not expire
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create the tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
