"""
Database infrastructure for DevSprint API.

Async SQLAlchemy engine and session management. One ``Database`` is built at
startup and handed to the services that need it.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def make_async_url(url: str) -> str:
    """Convert a sync database URL to its async driver form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql+psycopg://"):
        return url
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("sqlite+aiosqlite://"):
        return url
    raise ValueError(f"Unsupported database URL scheme: {url}")


class Database:
    """Owns the async engine and session factory."""

    def __init__(self, url: str, echo: bool = False):
        async_url = make_async_url(url)
        engine_kwargs = {"echo": echo}
        if async_url.startswith("postgresql"):
            engine_kwargs.update(
                pool_size=10,
                max_overflow=5,
                pool_timeout=30,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(async_url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("database_initialized", url=url.split("@")[-1])

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional async session scope."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables defined in models (for development/testing)."""
        # Register the ORM models on Base.metadata
        from devsprint.db import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created")

    async def dispose(self) -> None:
        """Dispose the engine and release connections."""
        await self.engine.dispose()
        logger.info("database_closed")
