"""Database engine and session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ..storage.tables import Base

logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def normalize_database_url(url: str | None) -> str:
    """Use async drivers: asyncpg for PostgreSQL, aiosqlite for SQLite."""
    if not url:
        return IN_MEMORY_DATABASE_URL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


class DatabaseManager:
    """Owns the engine and hands out sessions."""

    def __init__(self):
        self._engine = None
        self._session_factory = None

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    def init(self, database_url: str | None, echo: bool = False) -> None:
        if self.is_initialized:
            logger.warning("Database already initialized, skipping re-initialization")
            return

        url = normalize_database_url(database_url)
        if url.startswith("sqlite"):
            # One shared connection keeps an in-memory database alive across sessions
            self._engine = create_async_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            logger.info("Using SQLite database (%s)", url)
        else:
            self._engine = create_async_engine(url, echo=echo, pool_pre_ping=True, pool_recycle=300)
            logger.info("Using PostgreSQL database")

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connection closed")
        self._engine = None
        self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        if not self.is_initialized:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# Global database manager instance
db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with db_manager.session() as session:
        yield session
