"""
Database Base Configuration

Async SQLAlchemy engine and session factory helpers for the SQL event store.
The default URL is a local SQLite file via aiosqlite; any SQLAlchemy async
URL works.

Usage:
    from lingo_engine.db.base import create_engine, create_session_maker, init_db

    engine = create_engine(settings.DATABASE_URL)
    session_maker = create_session_maker(engine)
    await init_db(engine)
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from lingo_engine.config.settings import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine (defaults from settings)."""
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG if echo is None else echo,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to `engine`."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """
    Initialize database tables.

    Creates the session and event tables if they don't exist.
    """
    # Register models with Base.metadata
    from lingo_engine.db import models_learning  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
