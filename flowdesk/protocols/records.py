# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Records returned by repositories and the HTTP API (besides tasks).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from flowdesk.protocols.schema import WireModel


class OrganizationRecord(WireModel):
    id: str
    name: str
    slug: str
    created_by: str
    role: Optional[str] = None  # caller's role when listed for a user


class MemberRecord(WireModel):
    tenant_id: str
    user_id: str
    role: str
    name: str = ""
    email: str = ""
    invited_by: Optional[str] = None
    joined_at: Optional[datetime] = None


class WorkspaceRecord(WireModel):
    id: str
    tenant_id: str
    name: str
    slug: str
    color: str = "#6366f1"
    created_by: Optional[str] = None
    projects: Optional[List["ProjectRecord"]] = None  # filled by the by-slug lookup


class ProjectRecord(WireModel):
    id: str
    tenant_id: str
    workspace_id: str
    name: str
    slug: str
    description: Optional[str] = None
    status: str = "ACTIVE"
    icon: Optional[str] = None
    created_by: Optional[str] = None


class InvitationRecord(WireModel):
    id: str
    tenant_id: str
    email: str
    role: str
    token: str
    invited_by: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None


class NotificationRecord(WireModel):
    id: str
    user_id: str
    tenant_id: str
    type: str
    title: str
    body: str = ""
    payload: Dict[str, Any] = {}
    read: bool = False
    created_at: Optional[datetime] = None


WorkspaceRecord.model_rebuild()
