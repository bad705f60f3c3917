# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Redis client for the room fan-out bus.

One process-wide pool carries two kinds of traffic:
  - PUBLISH of task and notification events to ``flowdesk:room:*`` channels
  - one long-lived pub/sub connection per websocket session (RoomBus)

Size the pool with REDIS_MAX_CONNECTIONS: a worker serving N sockets needs
N connections for subscriptions plus a few for publishing.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry
from redis.exceptions import (
    BusyLoadingError,
    ConnectionError,
    RedisError,
    TimeoutError,
)

from flowdesk.core.config import settings

logger = logging.getLogger("flowdesk.kernel.redis")

_client: Optional[aioredis.Redis] = None

# Publishes are retried; a subscriber that loses its socket is rebuilt by the
# websocket session instead.
_RETRY = Retry(ExponentialBackoff(cap=2, base=0.1), retries=3)
_RETRY_ERRORS = [ConnectionError, TimeoutError, BusyLoadingError, OSError]


def _build_client(url: str) -> aioredis.Redis:
    # No socket_timeout: pub/sub listeners block in listen() on idle rooms.
    return aioredis.from_url(
        url,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        health_check_interval=15,
        retry_on_timeout=True,
        retry_on_error=_RETRY_ERRORS,
        retry=_RETRY,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )


async def get_redis_pool() -> aioredis.Redis:
    """Return the shared client, creating it from REDIS_URL on first use."""
    global _client
    if _client is None:
        _client = _build_client(settings.REDIS_URL)
        logger.info(
            "Redis fan-out pool created (max_connections=%d)",
            settings.REDIS_MAX_CONNECTIONS,
        )
    return _client


async def redis_reachable(client: aioredis.Redis) -> bool:
    """PING the fan-out bus. Used by /health; never raises."""
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis fan-out bus unreachable: %s", exc)
        return False


async def close_redis_pool() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def inject_redis_for_test(redis_instance: aioredis.Redis) -> None:
    """Swap in a FakeRedis (or a throwaway real client) for the fan-out bus."""
    global _client
    _client = redis_instance
