# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Observability API — Metrics and health check.
"""

from __future__ import annotations

from fastapi import APIRouter

from flowdesk.core.context import get_platform_context
from flowdesk.core.metrics import service_metrics
from flowdesk.kernel.redis_client import redis_reachable

router = APIRouter(tags=["observability"])


async def _redis_status() -> str:
    try:
        ctx = get_platform_context()
    except RuntimeError:
        return "not_initialized"
    return "connected" if await redis_reachable(ctx.redis) else "unreachable"


@router.get("/health")
async def health_check():
    """Health check with component status."""
    redis_status = await _redis_status()
    service_metrics.set_gauge("fanout_pending", _pending())
    return {
        "status": "ok" if redis_status == "connected" else "degraded",
        "version": "0.1.0",
        "redis": redis_status,
        "metrics": service_metrics.snapshot(),
    }


def _pending() -> int:
    try:
        return get_platform_context().publisher.pending
    except RuntimeError:
        return 0


@router.get("/api/metrics")
async def get_metrics():
    """Return current service metrics."""
    service_metrics.set_gauge("fanout_pending", _pending())
    return service_metrics.snapshot()
