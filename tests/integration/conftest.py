# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Integration test fixtures — Real Redis + Real PostgreSQL.

These tests require running services (skipped when unreachable):
  - Redis at REDIS_URL
  - PostgreSQL at DATABASE_URL
"""

import pytest
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from flowdesk.core.config import settings
from flowdesk.kernel.redis_client import inject_redis_for_test
from flowdesk.storage.database import (
    close_db,
    create_all_tables,
    drop_all_tables,
    get_session_factory,
    override_engine_for_test,
)

# Import models so tables are registered
import flowdesk.storage.models  # noqa: F401


@pytest.fixture
async def real_redis():
    """Connect to real Redis; skip the test when it is not running."""
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await r.ping()
    except (RedisError, OSError) as exc:
        await r.aclose()
        pytest.skip(f"Redis not reachable: {exc}")
    inject_redis_for_test(r)

    yield r

    await r.aclose()


@pytest.fixture
async def real_db():
    """Create real PG tables, yield session factory, drop after test."""
    override_engine_for_test(create_async_engine(settings.DATABASE_URL, echo=False))
    try:
        await create_all_tables()
    except (OperationalError, DBAPIError, OSError) as exc:
        await close_db()
        pytest.skip(f"PostgreSQL not reachable: {exc}")

    yield get_session_factory()

    # Drop tables after test
    await drop_all_tables()
    await close_db()
