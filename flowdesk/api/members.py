# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Members API — list, change roles, remove and invite organization members.

OWNER memberships are protected: only an OWNER may change or remove one,
the last OWNER can never be demoted or removed, and OWNER is never granted
through this API.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator

from flowdesk.api.deps import get_outbox, get_repositories, require_tenant
from flowdesk.api.errors import ConflictError, ForbiddenError, NotFoundError
from flowdesk.core.config import settings
from flowdesk.core.roles import Role, parse_role
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.kernel.fanout import FanOutOutbox
from flowdesk.kernel.namespace import user_room
from flowdesk.protocols.events import INVITE_RECEIVED, NOTIFICATION
from flowdesk.protocols.records import MemberRecord
from flowdesk.protocols.schema import FanOutEvent, WireModel
from flowdesk.storage.repositories import Repositories

router = APIRouter(prefix="/members", tags=["members"])
logger = logging.getLogger("flowdesk.api.members")

_GRANTABLE = {Role.ADMIN, Role.MEMBER, Role.VIEWER}


def _grantable_role(value: str) -> str:
    role = parse_role(value)
    if role not in _GRANTABLE:
        raise ValueError("role must be one of ADMIN, MEMBER, VIEWER")
    return role.value


class UpdateRoleRequest(WireModel):
    user_id: str = Field(..., min_length=1)
    role: str

    @field_validator("role")
    @classmethod
    def role_must_be_grantable(cls, v: str) -> str:
        return _grantable_role(v)


class RemoveMemberRequest(WireModel):
    user_id: str = Field(..., min_length=1)


class InviteRequest(WireModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: str = Role.MEMBER.value

    @field_validator("email")
    @classmethod
    def email_must_look_valid(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("invalid email address")
        return v

    @field_validator("role")
    @classmethod
    def role_must_be_grantable(cls, v: str) -> str:
        return _grantable_role(v)


async def _target_member(repos: Repositories, ctx: AuthorizedContext, user_id: str) -> MemberRecord:
    member = await repos.memberships.get(ctx.tenant_id, user_id)
    if member is None:
        raise NotFoundError("Member not found")
    return member


async def _check_owner_change(repos: Repositories, ctx: AuthorizedContext, target: MemberRecord) -> None:
    if target.role != Role.OWNER.value:
        return
    if ctx.role != Role.OWNER:
        raise ForbiddenError("Only an owner can change another owner")
    if await repos.memberships.count_role(ctx.tenant_id, Role.OWNER.value) <= 1:
        raise ConflictError("An organization must keep at least one owner")


@router.get("")
async def list_members(
    ctx: AuthorizedContext = Depends(require_tenant()),
    repos: Repositories = Depends(get_repositories),
):
    members = await repos.memberships.list_for_org(ctx.tenant_id)
    return [m.to_wire() for m in members]


@router.patch("/role")
async def update_role(
    req: UpdateRoleRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    target = await _target_member(repos, ctx, req.user_id)
    await _check_owner_change(repos, ctx, target)

    updated = await repos.memberships.update_role(ctx.tenant_id, req.user_id, req.role)
    logger.info(
        "Member %s role %s -> %s", req.user_id, target.role, req.role,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return updated.to_wire()


@router.delete("")
async def remove_member(
    req: RemoveMemberRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
):
    target = await _target_member(repos, ctx, req.user_id)
    await _check_owner_change(repos, ctx, target)

    await repos.memberships.remove(ctx.tenant_id, req.user_id)
    logger.info(
        "Member %s removed", req.user_id,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return {"success": True}


@router.post("/invite", status_code=201)
async def invite_member(
    req: InviteRequest,
    ctx: AuthorizedContext = Depends(require_tenant("ADMIN")),
    repos: Repositories = Depends(get_repositories),
    outbox: FanOutOutbox = Depends(get_outbox),
):
    """Create an invitation token. Delivery of the token is up to the caller."""
    invitation = await repos.invitations.create(
        org_id=ctx.tenant_id,
        email=req.email,
        role=req.role,
        invited_by=ctx.caller_id,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.INVITATION_TTL_HOURS),
    )

    invitee = await repos.users.get_by_email(invitation.email)
    if invitee is not None and invitee.id != ctx.caller_id:
        notification = await repos.notifications.create(
            user_id=invitee.id,
            org_id=ctx.tenant_id,
            type=INVITE_RECEIVED,
            title="Organization Invitation",
            body=f"You have been invited to join as {invitation.role}",
            payload={"invitationId": invitation.id, "tenantId": ctx.tenant_id},
        )
        outbox.add(FanOutEvent.create(
            event_type=NOTIFICATION, room=user_room(invitee.id), payload=notification.to_wire(),
        ))

    logger.info(
        "Invitation created for %s as %s", invitation.email, invitation.role,
        extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
    )
    return invitation.to_wire()
