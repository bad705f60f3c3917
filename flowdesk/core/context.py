# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Platform Context — Singleton that holds the shared runtime components.

Initialized at startup, injected into API routes via FastAPI Depends.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis

from flowdesk.core.config import FlowdeskSettings, settings as default_settings
from flowdesk.core.metrics import service_metrics
from flowdesk.kernel.bus import RoomBus
from flowdesk.kernel.fanout import (
    FanOutPublisher,
    FanOutTransport,
    HttpFanOutTransport,
    RedisFanOutTransport,
)

logger = logging.getLogger("flowdesk.context")


class PlatformContext:
    """
    Holds all runtime references for the service.
    Created once at startup, used by all API handlers.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        config: Optional[FlowdeskSettings] = None,
        transport: Optional[FanOutTransport] = None,
    ) -> None:
        self.redis = redis
        self.settings = config or default_settings
        self.transport = transport or self._build_transport()
        self.publisher = FanOutPublisher(
            self.transport,
            timeout=self.settings.FANOUT_TIMEOUT,
            metrics=service_metrics,
        )

    def _build_transport(self) -> FanOutTransport:
        backend = self.settings.FANOUT_BACKEND.lower()
        if backend == "http":
            logger.info("Fan-out via HTTP broadcast endpoint %s", self.settings.FANOUT_BROADCAST_URL)
            return HttpFanOutTransport(
                self.settings.FANOUT_BROADCAST_URL,
                timeout=self.settings.FANOUT_TIMEOUT,
                token=self.settings.BROADCAST_TOKEN,
            )
        if backend != "redis":
            raise ValueError(f"Unknown FANOUT_BACKEND '{self.settings.FANOUT_BACKEND}'")
        return RedisFanOutTransport(self.get_bus())

    def get_bus(self) -> RoomBus:
        """Create a RoomBus on the shared Redis pool. Subscribers need their own."""
        return RoomBus(self.redis)

    async def shutdown(self) -> None:
        await self.publisher.drain()
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()


# ── Global singleton ────────────────────────────────────────

_ctx: Optional[PlatformContext] = None


def init_platform_context(
    redis: aioredis.Redis,
    config: Optional[FlowdeskSettings] = None,
    transport: Optional[FanOutTransport] = None,
) -> PlatformContext:
    global _ctx
    _ctx = PlatformContext(redis, config=config, transport=transport)
    return _ctx


def get_platform_context() -> PlatformContext:
    if _ctx is None:
        raise RuntimeError("PlatformContext not initialized. Call init_platform_context() first.")
    return _ctx
