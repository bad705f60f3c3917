# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
API Error Handling — Unified error structure.

Every error response has the shape {code, message, trace_id, details}.
Authorization failures are collapsed so a caller cannot tell "no such
tenant" from "not a member" from "role too low".
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from flowdesk.auth.errors import AuthorizationError, MissingTenantContext, Unauthenticated

FORBIDDEN_MESSAGE = "You do not have access to this organization"


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.trace_id = trace_id
        super().__init__(message)


class BadRequestError(APIError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="BAD_REQUEST", message=message, status_code=400, details=details)


class NotFoundError(APIError):
    def __init__(self, message: str):
        super().__init__(code="NOT_FOUND", message=message, status_code=404)


class ForbiddenError(APIError):
    def __init__(self, message: str = FORBIDDEN_MESSAGE):
        super().__init__(code="FORBIDDEN", message=message, status_code=403)


class ConflictError(APIError):
    def __init__(self, message: str):
        super().__init__(code="CONFLICT", message=message, status_code=409)


def _trace_id(request: Request, fallback: Optional[str] = None) -> str:
    return fallback or getattr(request.state, "trace_id", None) or str(uuid.uuid4())


def _respond(request: Request, status_code: int, code: str, message: str,
             details: Optional[Dict[str, Any]] = None, trace_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "trace_id": _trace_id(request, trace_id),
            "details": details or {},
        },
    )


def to_api_error(exc: AuthorizationError) -> APIError:
    """Map an internal authorization failure to its public form."""
    if isinstance(exc, Unauthenticated):
        return APIError(code="UNAUTHENTICATED", message="Please sign in", status_code=401)
    if isinstance(exc, MissingTenantContext):
        return BadRequestError("Organization id is required")
    # NotMember, InsufficientRole and anything newer look identical
    return ForbiddenError()


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Global exception handler for APIError."""
    return _respond(request, exc.status_code, exc.code, exc.message, exc.details, exc.trace_id)


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    err = to_api_error(exc)
    return _respond(request, err.status_code, err.code, err.message)


async def not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
    """TaskNotFound, ProjectNotFound."""
    return _respond(request, 404, "NOT_FOUND", str(exc))


async def invalid_input_handler(request: Request, exc: ValueError) -> JSONResponse:
    """InvalidAssignee."""
    return _respond(request, 400, "BAD_REQUEST", str(exc))
