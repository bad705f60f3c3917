# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
ORM Models — PostgreSQL table definitions.

Tables:
  - users: Identities known to the authentication collaborator
  - organizations: Tenants (top-level isolation boundary)
  - org_members: One role per (org, user)
  - invitations: Pending membership grants, accepted by token
  - workspaces: Groups of projects inside an org
  - projects: Task containers inside a workspace
  - tasks: Board items; status + position drive the kanban columns
  - notifications: Per-user inbox rows (fan-out is not persisted)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, JSON,
    DateTime, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from flowdesk.storage.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow():
    return datetime.now(timezone.utc)


def _genuuid():
    return str(uuid.uuid4())


# ── Users ───────────────────────────────────────────────────

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_genuuid)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


# ── Organizations ───────────────────────────────────────────

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_genuuid)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), nullable=False, unique=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<Org {self.slug}>"


# ── Memberships ─────────────────────────────────────────────

class OrgMember(Base):
    __tablename__ = "org_members"

    id = Column(String(36), primary_key=True, default=_genuuid)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False, default="MEMBER")  # OWNER/ADMIN/MEMBER/VIEWER
    invited_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_members_org_user"),
        Index("idx_org_members_user", "user_id"),
    )

    def __repr__(self):
        return f"<Member {self.user_id}@{self.org_id} {self.role}>"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=_genuuid)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="MEMBER")
    token = Column(String(255), nullable=False, unique=True)
    invited_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<Invitation {self.email}@{self.org_id}>"


# ── Workspaces, Projects & Tasks ────────────────────────────

class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=_genuuid)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False, default="#6366f1")
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "slug", name="uq_workspaces_org_slug"),
    )

    def __repr__(self):
        return f"<Workspace {self.slug}>"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_genuuid)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="ACTIVE")  # ACTIVE/ARCHIVED
    icon = Column(String(10), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "slug", name="uq_projects_org_slug"),
    )

    def __repr__(self):
        return f"<Project {self.slug}>"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=_genuuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(JSONType, nullable=True)
    status = Column(String(16), nullable=False, default="TODO")
    priority = Column(String(16), nullable=False, default="NONE")
    position = Column(Integer, nullable=False, default=0)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_tasks_board", "org_id", "project_id", "status", "position"),
        Index("idx_tasks_assignee", "org_id", "assignee_id"),
    )

    def __repr__(self):
        return f"<Task {self.id} {self.status}#{self.position}>"


# ── Notifications ───────────────────────────────────────────

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_genuuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False, default="")
    payload = Column(JSONType, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "org_id", "created_at"),
    )

    def __repr__(self):
        return f"<Notification {self.type} → {self.user_id}>"
