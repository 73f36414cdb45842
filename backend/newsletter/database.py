"""
Newsletter Backend — Database Lifecycle and Session Management
===============================================================

What:  An explicitly constructed `Database` owning the async SQLAlchemy engine
       and session factory, plus the declarative `Base` for ORM models.
Why:   The store handle is an injected dependency with a defined
       init/teardown lifecycle rather than a module-level engine, so each
       test run (or each worker) gets its own isolated store.
How:   `connect()` builds the engine with connection pooling, `session()`
       yields a session that commits on success and rolls back on error,
       `dispose()` closes every pooled connection.
Who:   Created by the FastAPI lifespan (production) and by test fixtures.

Connection Pooling Strategy:
    pool_size / max_overflow:  Only applied to server databases; SQLite's
                               async driver manages its own connections.
    pool_pre_ping:             Validates connections before use.
    pool_recycle=3600:         Recycles connections every hour.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from newsletter.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


class Database:
    """
    Owns one engine and its session factory.

    Lifecycle:
        db = Database(url)
        await db.connect()       # builds the engine (idempotent)
        async with db.session() as session: ...
        await db.dispose()       # closes pooled connections
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.database_url
        self.echo = settings.log_level == "DEBUG" if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.echo}
        if make_url(self.url).get_backend_name() != "sqlite":
            options.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
            )
        return options

    async def connect(self) -> None:
        """Create the engine and session factory. Safe to call twice."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, **self._engine_options())
        # expire_on_commit=False: records stay readable after the session closes
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine created (%s)", make_url(self.url).get_backend_name())

    async def create_schema(self) -> None:
        """
        Create all tables registered on `Base.metadata`.

        Used by tests and local development; production schemas are managed
        by Alembic migrations.
        """
        import newsletter.models.subscriber  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """Run `SELECT 1`; raises whatever the driver raises."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional session scope.

        Commits when the block exits cleanly, rolls back on any exception
        and re-raises it, and always returns the connection to the pool.
        """
        if self._session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def dispose(self) -> None:
        """Close all pooled connections. Safe to call when never connected."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")
