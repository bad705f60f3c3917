# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
API Middleware — request tracing.

Each request gets an X-Trace-Id (the client's, or a fresh uuid4). The id is
echoed on the response and bound to the logging context, so fan-out and
repository logs from the same request share it.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from flowdesk.core.config import settings
from flowdesk.core.logging import trace_id_var

logger = logging.getLogger("flowdesk.api")

TRACE_HEADER = "X-Trace-Id"
_MAX_TRACE_LEN = 128


def _incoming_trace_id(request: Request) -> str:
    value = (request.headers.get(TRACE_HEADER) or "").strip()
    if not value or len(value) > _MAX_TRACE_LEN:
        return str(uuid.uuid4())
    return value


class TraceMiddleware(BaseHTTPMiddleware):
    """Propagates X-Trace-Id and logs one line per request with tenant and caller."""

    async def dispatch(self, request: Request, call_next):
        trace_id = _incoming_trace_id(request)
        request.state.trace_id = trace_id
        token = trace_id_var.set(trace_id)

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        finally:
            trace_id_var.reset(token)
        elapsed = (time.perf_counter() - start) * 1000

        response.headers[TRACE_HEADER] = trace_id
        logger.info(
            "%s %s → %d (%.0fms)",
            request.method, request.url.path,
            response.status_code, elapsed,
            extra={
                "trace_id": trace_id,
                "caller_id": request.headers.get(settings.USER_HEADER),
                "tenant_id": request.headers.get(settings.TENANT_HEADER),
            },
        )
        return response
