"""
DatabaseService: async SQLAlchemy engine and transactional sessions.

Purpose
-------
Owns the async engine and session factory used by the database-backed
key-value store. All writes go through ``get_transaction()``, which commits
on success and rolls back on any exception.

Responsibilities
----------------
- Engine lifecycle (initialize, shutdown, health check)
- Transaction scoping with PostgreSQL statement timeouts
- Schema creation from SQLModel metadata

Non-Responsibilities
--------------------
- Key layout or JSON documents (see ``brightbuddy.core.storage``)
- Business logic

Architecture Notes
------------------
- ``expire_on_commit=False`` so rows stay readable after commit
- NullPool in the testing environment, QueuePool elsewhere
- Instance-based; the ServiceContainer owns the single instance
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

import brightbuddy.database.models  # noqa: F401  (registers tables on SQLModel.metadata)
from brightbuddy.core.config.config import Config
from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when the engine cannot be configured or created."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before ``initialize()``."""


class DatabaseService:
    """
    Async engine and transaction provider.

    >>> db = DatabaseService(config_manager)
    >>> await db.initialize()
    >>> async with db.get_transaction() as session:
    ...     await session.execute(...)
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        url: Optional[str] = None,
    ) -> None:
        self._config_manager = config_manager
        self._url = url or Config.DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

        timeout = 5000
        if config_manager is not None:
            timeout = int(config_manager.get("core.database.statement_timeout_ms", timeout))
        self._statement_timeout_ms = timeout

    @property
    def is_postgres(self) -> bool:
        return self._url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotInitializedError("DatabaseService not initialized")
        return self._engine

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Create the engine and session factory. Idempotent.

        Raises
        ------
        DatabaseInitializationError
            If DATABASE_URL is missing or engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                return

            if not self._url:
                raise DatabaseInitializationError(
                    "DATABASE_URL must be configured as a non-empty string"
                )

            engine_kwargs: dict[str, Any] = {"echo": Config.DATABASE_ECHO}
            if Config.is_testing():
                engine_kwargs["poolclass"] = NullPool
            else:
                engine_kwargs.update(
                    pool_size=Config.DATABASE_POOL_SIZE,
                    max_overflow=Config.DATABASE_MAX_OVERFLOW,
                    pool_recycle=Config.DATABASE_POOL_RECYCLE,
                    pool_pre_ping=True,
                )

            try:
                self._engine = create_async_engine(self._url, **engine_kwargs)
            except (SQLAlchemyError, ValueError, ImportError) as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.info(
                "DatabaseService initialized successfully",
                extra={"url_scheme": self._url.split("://")[0]},
            )

    async def create_tables(self) -> None:
        """Create every table registered on SQLModel metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables created")

    async def shutdown(self) -> None:
        async with self._init_lock:
            if self._engine is None:
                return
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None

    async def health_check(self) -> bool:
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    # ========================================================================
    # Transactions
    # ========================================================================

    @asynccontextmanager
    async def get_transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside an atomic transaction.

        Commits on normal exit; rolls back and re-raises on any exception.
        Never call ``commit()`` or ``rollback()`` yourself inside the block.
        """
        if self._session_factory is None:
            raise DatabaseNotInitializedError("DatabaseService not initialized")

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                if self.is_postgres:
                    await session.execute(
                        text(f"SET LOCAL statement_timeout = {self._statement_timeout_ms}")
                    )
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)},
                )
            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Database transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    },
                )
                raise
