# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Structured Logging — one JSON object per line.

Every record carries the request's trace id (bound by TraceMiddleware).
Call sites add board context through ``extra=``:

    logger.info("Task moved", extra={"tenant_id": org, "task_id": tid})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from typing import Optional

# Set per request by api.middleware.TraceMiddleware.
trace_id_var: ContextVar[Optional[str]] = ContextVar("flowdesk_trace_id", default=None)

CONTEXT_FIELDS = (
    "trace_id",
    "tenant_id",
    "caller_id",
    "task_id",
    "room",
    "event_type",
)

# Request lines come from TraceMiddleware instead.
_QUIET_LOGGERS = ("uvicorn.access",)


class StructuredFormatter(logging.Formatter):
    """JSON formatter that lifts tenant/task/fan-out fields out of ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        if not getattr(record, "trace_id", None):
            record.trace_id = trace_id_var.get()
        for key in CONTEXT_FIELDS:
            val = getattr(record, key, None)
            if val:
                entry[key] = val

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger (LOG_LEVEL setting)."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
