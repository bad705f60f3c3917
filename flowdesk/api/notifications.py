# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Notifications API — the caller's inbox within one organization.

Every route is scoped to the caller and the resolved tenant, so one
user's notifications in one org are never visible from another.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import Field

from flowdesk.api.deps import get_repositories, require_tenant
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.protocols.schema import WireModel
from flowdesk.storage.repositories import Repositories

router = APIRouter(prefix="/notifications", tags=["notifications"])


class MarkReadRequest(WireModel):
    ids: List[str] = Field(..., min_length=1)


@router.get("")
async def list_notifications(
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    items = await repos.notifications.list_for_user(ctx.caller_id, ctx.tenant_id)
    return [n.to_wire() for n in items]


@router.post("/read")
async def mark_read(
    req: MarkReadRequest,
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    updated = await repos.notifications.mark_read(ctx.caller_id, ctx.tenant_id, req.ids)
    return {"updated": updated}


@router.get("/unread-count")
async def unread_count(
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    count = await repos.notifications.unread_count(ctx.caller_id, ctx.tenant_id)
    return {"count": count}


@router.post("/read-all")
async def mark_all_read(
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    updated = await repos.notifications.mark_all_read(ctx.caller_id, ctx.tenant_id)
    return {"updated": updated}
