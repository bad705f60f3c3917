# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Organizations API — create, list, rename and delete orgs; accept invitations.

Renaming needs ADMIN in the org. Deleting needs OWNER and removes every
workspace, project and task of the org with it.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from flowdesk.api.deps import get_repositories, require_caller, require_tenant
from flowdesk.api.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from flowdesk.core.roles import Role
from flowdesk.core.tenant import AuthorizedContext, CallerIdentity
from flowdesk.protocols.schema import WireModel
from flowdesk.storage.repositories import Repositories

router = APIRouter(tags=["organizations"])
logger = logging.getLogger("flowdesk.api.orgs")

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class CreateOrgRequest(WireModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=50)


class UpdateOrgRequest(WireModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=50)


class AcceptInvitationRequest(WireModel):
    token: str = Field(..., min_length=1)


def check_slug(slug: str) -> str:
    if not _SLUG_RE.match(slug):
        raise BadRequestError("Slug must be lowercase letters, digits and dashes", {"slug": slug})
    return slug


@router.post("/orgs", status_code=201)
async def create_org(
    req: CreateOrgRequest,
    caller: CallerIdentity = Depends(require_caller),
    repos: Repositories = Depends(get_repositories),
):
    """Create an organization. The creator becomes its OWNER."""
    slug = check_slug(req.slug or slugify(req.name))
    if await repos.organizations.slug_exists(slug):
        raise ConflictError(f"Organization slug '{slug}' is taken")

    org = await repos.organizations.create(name=req.name, slug=slug, created_by=caller.id)
    await repos.memberships.add(org.id, caller.id, Role.OWNER.value)
    logger.info("Organization %s created", org.slug, extra={"tenant_id": org.id, "caller_id": caller.id})
    return org.model_copy(update={"role": Role.OWNER.value}).to_wire()


@router.get("/orgs")
async def list_orgs(
    caller: CallerIdentity = Depends(require_caller),
    repos: Repositories = Depends(get_repositories),
):
    """Organizations the caller belongs to, with the caller's role in each."""
    orgs = await repos.organizations.list_for_user(caller.id)
    return [org.to_wire() for org in orgs]


@router.patch("/orgs")
async def update_org(
    req: UpdateOrgRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    changes = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    if "slug" in changes:
        check_slug(changes["slug"])
        if await repos.organizations.slug_exists(changes["slug"]):
            raise ConflictError(f"Organization slug '{changes['slug']}' is taken")

    org = await repos.organizations.update(ctx.tenant_id, changes)
    if org is None:
        raise NotFoundError("Organization not found")
    logger.info(
        "Organization updated: %s", sorted(changes),
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return org.model_copy(update={"role": ctx.role.value}).to_wire()


@router.delete("/orgs")
async def delete_org(
    ctx: AuthorizedContext = Depends(require_tenant("OWNER")),
    repos: Repositories = Depends(get_repositories),
):
    if not await repos.organizations.delete(ctx.tenant_id):
        raise NotFoundError("Organization not found")
    logger.warning("Organization deleted", extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id})
    return {"success": True}


@router.post("/invitations/accept")
async def accept_invitation(
    req: AcceptInvitationRequest,
    caller: CallerIdentity = Depends(require_caller),
    repos: Repositories = Depends(get_repositories),
):
    """
    Join an organization through an invitation token.

    The invitation must be unused, unexpired and addressed to the caller's
    email. Accepting when already a member keeps the existing role.
    """
    invitation = await repos.invitations.get_by_token(req.token)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.accepted_at is not None:
        raise ConflictError("Invitation has already been used")
    now = datetime.now(timezone.utc)
    if invitation.expires_at <= now:
        raise BadRequestError("Invitation has expired")
    if invitation.email.lower() != caller.email.strip().lower():
        raise ForbiddenError("This invitation was sent to a different email address")

    member = await repos.memberships.get(invitation.tenant_id, caller.id)
    if member is None:
        member = await repos.memberships.add(
            invitation.tenant_id, caller.id, invitation.role, invited_by=invitation.invited_by,
        )
    await repos.invitations.mark_accepted(invitation.id, now)
    logger.info(
        "Invitation accepted as %s", member.role,
        extra={"tenant_id": invitation.tenant_id, "caller_id": caller.id},
    )
    return member.to_wire()
