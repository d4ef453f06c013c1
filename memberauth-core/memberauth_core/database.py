"""
Database Module
===============
Async SQLAlchemy engine and session handling for the member/profile stores.
"""

from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
from contextlib import asynccontextmanager
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class Database:
    """
    Owns one async engine and its session factory.

    Usage:
        db = Database("postgresql+asyncpg://...")
        await db.create_all()
        async with db.session() as session:
            ...
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        """
        Args:
            database_url: Async connection string (postgresql+asyncpg://, sqlite+aiosqlite://)
            pool_size: Connection pool size, ignored for SQLite
            max_overflow: Max overflow connections, ignored for SQLite
            pool_pre_ping: Enable connection health checks
            echo: Log SQL statements
        """
        options = {"pool_pre_ping": pool_pre_ping, "echo": echo}
        if not database_url.startswith("sqlite"):
            options.update(pool_size=pool_size, max_overflow=max_overflow)

        self.engine: AsyncEngine = create_async_engine(database_url, **options)
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine initialized", dialect=self.engine.dialect.name)

    async def create_all(self) -> None:
        """Create tables for all registered models."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a session that commits on success and rolls back on exception.
        """
        if self._session_factory is None:
            raise RuntimeError("Database closed")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        """Dispose the engine. Call during application shutdown."""
        if self._session_factory is not None:
            await self.engine.dispose()
            self._session_factory = None
            logger.info("Database engine closed")
