# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Projects API — task containers inside a workspace.

Members create and edit projects; deleting one (and with it every task on
its board) needs ADMIN.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from flowdesk.api.deps import get_repositories, require_tenant
from flowdesk.api.errors import BadRequestError, ConflictError, NotFoundError
from flowdesk.api.orgs import slugify
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.protocols.schema import WireModel
from flowdesk.storage.repositories import Repositories

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger("flowdesk.api.projects")


class ProjectStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class CreateProjectRequest(WireModel):
    workspace_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)


class UpdateProjectRequest(WireModel):
    """Partial update. `description: null` clears the description."""

    id: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[ProjectStatus] = None
    icon: Optional[str] = Field(default=None, max_length=10)

    def changes(self):
        changes = {name: getattr(self, name) for name in self.model_fields_set if name != "id"}
        changes = {k: v for k, v in changes.items() if v is not None or k == "description"}
        if "status" in changes:
            changes["status"] = changes["status"].value
        return changes


class ProjectRef(WireModel):
    id: str = Field(..., min_length=1)


@router.post("", status_code=201)
async def create_project(
    req: CreateProjectRequest,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    repos: Repositories = Depends(get_repositories),
):
    if await repos.workspaces.get(ctx.tenant_id, req.workspace_id) is None:
        raise NotFoundError("Workspace not found")
    slug = slugify(req.slug or req.name)
    if not slug:
        raise BadRequestError("Project name must contain letters or digits")
    if await repos.projects.slug_exists(ctx.tenant_id, slug):
        raise ConflictError(f"Project slug '{slug}' is taken")

    project = await repos.projects.create(
        org_id=ctx.tenant_id,
        workspace_id=req.workspace_id,
        name=req.name,
        slug=slug,
        created_by=ctx.caller_id,
        description=req.description,
    )
    return project.to_wire()


@router.get("")
async def list_projects(
    workspace_id: Optional[str] = Query(default=None, alias="workspaceId"),
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    projects = await repos.projects.list(ctx.tenant_id, workspace_id=workspace_id)
    return [p.to_wire() for p in projects]


@router.patch("")
async def update_project(
    req: UpdateProjectRequest,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    repos: Repositories = Depends(get_repositories),
):
    project = await repos.projects.update(ctx.tenant_id, req.id, req.changes())
    if project is None:
        raise NotFoundError("Project not found")
    return project.to_wire()


@router.delete("")
async def delete_project(
    req: ProjectRef,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    if not await repos.projects.delete(ctx.tenant_id, req.id):
        raise NotFoundError("Project not found")
    logger.info(
        "Project %s deleted", req.id,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return {"success": True}
