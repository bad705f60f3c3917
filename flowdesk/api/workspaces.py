# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Workspaces API — groups of projects inside an organization.

Any member can list and open workspaces; creating, renaming and deleting
one needs ADMIN. Deleting a workspace deletes its projects and their tasks.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from flowdesk.api.deps import get_repositories, require_tenant
from flowdesk.api.errors import ConflictError, NotFoundError
from flowdesk.api.orgs import check_slug, slugify
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.protocols.schema import WireModel
from flowdesk.storage.repositories import Repositories

router = APIRouter(prefix="/workspaces", tags=["workspaces"])
logger = logging.getLogger("flowdesk.api.workspaces")

_COLOR = r"^#[0-9a-fA-F]{6}$"


class CreateWorkspaceRequest(WireModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, pattern=_COLOR)


class UpdateWorkspaceRequest(WireModel):
    id: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=_COLOR)


class WorkspaceRef(WireModel):
    id: str = Field(..., min_length=1)


@router.post("", status_code=201)
async def create_workspace(
    req: CreateWorkspaceRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    slug = check_slug(req.slug or slugify(req.name))
    if await repos.workspaces.slug_exists(ctx.tenant_id, slug):
        raise ConflictError(f"Workspace slug '{slug}' is taken")

    workspace = await repos.workspaces.create(
        org_id=ctx.tenant_id,
        name=req.name,
        slug=slug,
        created_by=ctx.caller_id,
        color=req.color,
    )
    logger.info(
        "Workspace %s created", workspace.slug,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return workspace.to_wire()


@router.get("")
async def list_workspaces(
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    workspaces = await repos.workspaces.list(ctx.tenant_id)
    return [w.to_wire() for w in workspaces]


@router.get("/by-slug")
async def get_workspace_by_slug(
    slug: str = Query(..., min_length=1),
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    """A workspace with its projects."""
    workspace = await repos.workspaces.get_by_slug(ctx.tenant_id, slug)
    if workspace is None:
        raise NotFoundError("Workspace not found")
    projects = await repos.projects.list(ctx.tenant_id, workspace_id=workspace.id)
    return workspace.model_copy(update={"projects": projects}).to_wire()


@router.patch("")
async def update_workspace(
    req: UpdateWorkspaceRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    changes = {k: v for k, v in req.model_dump(exclude_unset=True).items() if k != "id" and v is not None}
    workspace = await repos.workspaces.update(ctx.tenant_id, req.id, changes)
    if workspace is None:
        raise NotFoundError("Workspace not found")
    return workspace.to_wire()


@router.delete("")
async def delete_workspace(
    req: WorkspaceRef,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    if not await repos.workspaces.delete(ctx.tenant_id, req.id):
        raise NotFoundError("Workspace not found")
    logger.info(
        "Workspace %s deleted", req.id,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return {"success": True}
