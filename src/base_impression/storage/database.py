"""Database engine and session management.

This module provides the async engine, session factory and schema
bootstrap for the storage layer.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from base_impression.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def normalize_async_database_url(database_url: str) -> str:
    """Swap a sync PostgreSQL URL for its asyncpg equivalent."""
    if database_url.startswith("postgresql://"):
        logger.warning(
            "Database URL uses sync dialect 'postgresql://'; using async driver 'postgresql+asyncpg://'."
        )
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_async_db_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an asynchronous SQLAlchemy engine.

    Args:
        database_url: Database connection URL (e.g., sqlite+aiosqlite:///...).
        **kwargs: Additional engine options.

    Returns:
        SQLAlchemy AsyncEngine instance.
    """
    return create_async_engine(normalize_async_database_url(database_url), **kwargs)


async def init_async_db(engine: AsyncEngine) -> None:
    """Create all tables defined in the models."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")


class DatabaseManager:
    """Owns the async engine and hands out transactional sessions.

    Example:
        ```python
        db = DatabaseManager("sqlite+aiosqlite:///./base_impression.db")
        await db.init_schema()
        async with db.get_async_session() as session:
            repo = UserStatsRepository(session)
            stats = await repo.get(address)
        await db.dispose()
        ```
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        """Initialize database manager.

        Args:
            database_url: Database connection URL.
            pool_size: Connection pool size (server databases only).
            max_overflow: Maximum overflow connections (server databases only).
            echo: Echo SQL statements for debugging.
        """
        self.database_url = database_url
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo

        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            kwargs: dict[str, Any] = {"echo": self._echo}
            if not self.is_sqlite:
                kwargs["pool_size"] = self._pool_size
                kwargs["max_overflow"] = self._max_overflow
            self._engine = create_async_db_engine(self.database_url, **kwargs)
        return self._engine

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self._get_engine(), expire_on_commit=False
            )

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def init_schema(self) -> None:
        """Create missing tables."""
        await init_async_db(self._get_engine())

    async def dispose(self) -> None:
        """Dispose of all database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
        logger.info("Database connections disposed")
