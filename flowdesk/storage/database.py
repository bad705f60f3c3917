# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
FlowDesk database layer — async PostgreSQL through SQLAlchemy 2.0 + asyncpg.

Tenant deletion relies on ``ON DELETE CASCADE`` foreign keys
(organization → workspaces → projects → tasks), so the schema must be
created from ``Base.metadata`` (or matching migrations) and not by hand.

Request lifecycle:
  - ``get_db`` opens one session per request
  - the session commits after the route returns
  - the fan-out outbox flushes only after that commit succeeds (see api.deps)
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from flowdesk.core.config import settings

logger = logging.getLogger("flowdesk.storage")


class Base(DeclarativeBase):
    """Declarative base for the FlowDesk tables."""


_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def _sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Records are converted to pydantic before commit; keep rows readable after it.
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
            echo=settings.DB_ECHO,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _sessions
    if _sessions is None:
        _sessions = _sessionmaker(get_engine())
    return _sessions


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request.

    Commits when the route returns normally; rolls back and re-raises when
    the route (or the commit itself) fails, so callers further out in the
    dependency stack see the failure.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Check connectivity at startup; logs the target without credentials."""
    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info(
        "PostgreSQL ready at %s (pool_size=%d, max_overflow=%d)",
        make_url(settings.DATABASE_URL).render_as_string(hide_password=True),
        settings.DB_POOL_SIZE, settings.DB_MAX_OVERFLOW,
    )


async def close_db() -> None:
    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None


async def create_all_tables() -> None:
    """Create every FlowDesk table. Local development and integration tests only."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all_tables() -> None:
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def override_engine_for_test(engine: AsyncEngine) -> None:
    """Point the session factory at a test engine (integration suite)."""
    global _engine, _sessions
    _engine = engine
    _sessions = _sessionmaker(engine)
