# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
API Dependencies — FastAPI dependency injection.

Tenant-scoped routes declare `ctx: AuthorizedContext = Depends(require_tenant("MEMBER"))`.
The dependency runs the TenantGuard over the request's merged payload
(query parameters + JSON body) and hands the route an AuthorizedContext,
or raises an AuthorizationError that the app maps to 400/401/403.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from flowdesk.api.errors import BadRequestError
from flowdesk.auth.errors import Unauthenticated
from flowdesk.auth.guard import GuardRequest, TenantGuard
from flowdesk.auth.resolver import TenantResolver
from flowdesk.board.service import TaskBoardService
from flowdesk.core.config import settings
from flowdesk.core.context import get_platform_context
from flowdesk.core.tenant import AuthorizedContext, CallerIdentity
from flowdesk.kernel.fanout import FanOutOutbox, FanOutPublisher
from flowdesk.storage.database import get_db, get_session_factory
from flowdesk.storage.repositories import Repositories


def get_publisher() -> FanOutPublisher:
    return get_platform_context().publisher


async def get_outbox(
    publisher: FanOutPublisher = Depends(get_publisher),
) -> AsyncIterator[FanOutOutbox]:
    """
    Request-scoped fan-out buffer.

    Flushed when the request completes without error, dropped otherwise.
    """
    outbox = FanOutOutbox(publisher)
    try:
        yield outbox
    except Exception:
        outbox.discard()
        raise
    outbox.flush()


async def get_repositories(
    outbox: FanOutOutbox = Depends(get_outbox),
    db: AsyncSession = Depends(get_db),
) -> Repositories:
    # Outbox is entered before the session, so on exit the session commits
    # first and a failed commit reaches the outbox as an exception.
    return Repositories.from_session(db)


async def get_task_service(
    repos: Repositories = Depends(get_repositories),
    outbox: FanOutOutbox = Depends(get_outbox),
) -> TaskBoardService:
    return TaskBoardService(repos, outbox, my_tasks_limit=settings.MY_TASKS_LIMIT)


async def get_current_caller(
    request: Request,
    repos: Repositories = Depends(get_repositories),
) -> Optional[CallerIdentity]:
    """
    Resolve the authenticated caller from the auth proxy header.

    Headers:
      - X-User-Id: id of a known user (set by the authentication proxy)

    Returns None when absent or unknown; the guard turns that into 401.
    """
    user_id = (request.headers.get(settings.USER_HEADER) or "").strip()
    if not user_id:
        return None
    return await repos.users.get_identity(user_id)


async def require_caller(
    caller: Optional[CallerIdentity] = Depends(get_current_caller),
) -> CallerIdentity:
    """For routes that need a signed-in caller but no tenant."""
    if caller is None:
        raise Unauthenticated()
    return caller


async def read_payload(request: Request) -> Any:
    """Query parameters merged with the JSON body (body wins on conflicts)."""
    payload: Dict[str, Any] = dict(request.query_params)
    raw = await request.body()
    if not raw:
        return payload
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BadRequestError("Request body is not valid JSON", {"error": str(exc)}) from exc
    if isinstance(body, dict):
        payload.update(body)
        return payload
    return body


def require_tenant(min_role: Optional[str] = None):
    """
    Dependency factory: authorize the request for its tenant.

    An unknown `min_role` fails here, at route definition time.
    """
    guard = TenantGuard(min_role=min_role, resolver=TenantResolver.from_settings(settings))

    async def _authorize(
        request: Request,
        caller: Optional[CallerIdentity] = Depends(get_current_caller),
        repos: Repositories = Depends(get_repositories),
        payload: Any = Depends(read_payload),
    ) -> AuthorizedContext:
        return await guard.authorize(
            GuardRequest(
                caller=caller,
                payload=payload,
                load_memberships=repos.memberships.list_for_user,
                bound_tenant_id=request.headers.get(settings.TENANT_HEADER),
            )
        )

    _authorize.guard = guard
    return _authorize


@asynccontextmanager
async def repository_scope() -> AsyncIterator[Repositories]:
    """Short-lived session for long-lived connections (WebSockets)."""
    async with get_session_factory()() as session:
        yield Repositories.from_session(session)


def get_repository_scope() -> Callable[[], AsyncContextManager[Repositories]]:
    return repository_scope
