# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
FlowDesk Application Entry Point.

FastAPI app with lifespan, middleware, error mapping and all API routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowdesk.api.errors import (
    APIError,
    api_error_handler,
    authorization_error_handler,
    invalid_input_handler,
    not_found_handler,
)
from flowdesk.api.members import router as members_router
from flowdesk.api.middleware import TraceMiddleware
from flowdesk.api.notifications import router as notifications_router
from flowdesk.api.observability import router as observability_router
from flowdesk.api.orgs import router as orgs_router
from flowdesk.api.projects import router as projects_router
from flowdesk.api.tasks import router as tasks_router
from flowdesk.api.workspaces import router as workspaces_router
from flowdesk.api.ws import router as ws_router
from flowdesk.auth.errors import AuthorizationError
from flowdesk.board.service import InvalidAssignee, ProjectNotFound, TaskNotFound
from flowdesk.core.config import settings
from flowdesk.core.context import init_platform_context
from flowdesk.core.logging import setup_logging
from flowdesk.kernel.redis_client import close_redis_pool, get_redis_pool
from flowdesk.storage.database import close_db, init_db

logger = logging.getLogger("flowdesk.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of service resources."""
    # Startup
    setup_logging(settings.LOG_LEVEL)
    redis = await get_redis_pool()
    ctx = init_platform_context(redis)
    await init_db()
    logger.info("[FlowDesk] Service ready (fan-out: %s)", settings.FANOUT_BACKEND)
    yield
    # Shutdown
    await ctx.shutdown()
    await close_db()
    await close_redis_pool()
    logger.info("[FlowDesk] Shutdown complete")


app = FastAPI(
    title="FlowDesk",
    description="Multi-tenant task boards with real-time fan-out",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(TraceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Error Handlers ──────────────────────────────────────────
app.add_exception_handler(APIError, api_error_handler)
app.add_exception_handler(AuthorizationError, authorization_error_handler)
app.add_exception_handler(TaskNotFound, not_found_handler)
app.add_exception_handler(ProjectNotFound, not_found_handler)
app.add_exception_handler(InvalidAssignee, invalid_input_handler)

# ── Routes ──────────────────────────────────────────────────
app.include_router(orgs_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(workspaces_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(ws_router)
app.include_router(observability_router)
