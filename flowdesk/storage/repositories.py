# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Repository Layer — CRUD operations for all service tables.

Each repository takes an AsyncSession and returns protocol records, never
ORM rows. Every tenant-owned lookup is filtered by org id, so a row from
another tenant is indistinguishable from a missing row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flowdesk.core.tenant import CallerIdentity, Membership
from flowdesk.protocols.records import (
    InvitationRecord,
    MemberRecord,
    NotificationRecord,
    OrganizationRecord,
    ProjectRecord,
    WorkspaceRecord,
)
from flowdesk.protocols.schema import TaskRecord
from flowdesk.storage.models import (
    Invitation,
    Notification,
    Organization,
    OrgMember,
    Project,
    Task,
    User,
    Workspace,
)


def _task_record(row: Task) -> TaskRecord:
    return TaskRecord(
        id=row.id,
        tenant_id=row.org_id,
        project_id=row.project_id,
        title=row.title,
        description=row.description,
        status=row.status,
        priority=row.priority,
        position=row.position,
        assignee_id=row.assignee_id,
        created_by=row.created_by,
        due_date=row.due_date,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
    )


def _member_record(row: OrgMember, user: Optional[User] = None) -> MemberRecord:
    return MemberRecord(
        tenant_id=row.org_id,
        user_id=row.user_id,
        role=row.role,
        name=user.name if user else "",
        email=user.email if user else "",
        invited_by=row.invited_by,
        joined_at=row.joined_at,
    )


# ── User Repository ─────────────────────────────────────────

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_identity(self, user_id: str) -> Optional[CallerIdentity]:
        user = await self.db.get(User, user_id)
        if user is None:
            return None
        return CallerIdentity(id=user.id, name=user.name, email=user.email)

    async def get_by_email(self, email: str) -> Optional[CallerIdentity]:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return CallerIdentity(id=user.id, name=user.name, email=user.email)

    async def create(self, email: str, name: str = "") -> CallerIdentity:
        user = User(email=email.strip().lower(), name=name)
        self.db.add(user)
        await self.db.flush()
        return CallerIdentity(id=user.id, name=user.name, email=user.email)


# ── Membership Repository ───────────────────────────────────

class MembershipRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(self, user_id: str) -> List[Membership]:
        """All (tenant, role) pairs the user holds. Loaded once per request."""
        result = await self.db.execute(
            select(OrgMember.org_id, OrgMember.role).where(OrgMember.user_id == user_id)
        )
        return [Membership(tenant_id=org_id, role=role) for org_id, role in result.all()]

    async def list_for_org(self, org_id: str) -> List[MemberRecord]:
        result = await self.db.execute(
            select(OrgMember, User)
            .join(User, User.id == OrgMember.user_id)
            .where(OrgMember.org_id == org_id)
            .order_by(OrgMember.joined_at.asc())
        )
        return [_member_record(m, u) for m, u in result.all()]

    async def get(self, org_id: str, user_id: str) -> Optional[MemberRecord]:
        result = await self.db.execute(
            select(OrgMember).where(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        return _member_record(row) if row else None

    async def add(
        self,
        org_id: str,
        user_id: str,
        role: str,
        invited_by: Optional[str] = None,
    ) -> MemberRecord:
        row = OrgMember(org_id=org_id, user_id=user_id, role=role, invited_by=invited_by)
        self.db.add(row)
        await self.db.flush()
        return _member_record(row)

    async def update_role(self, org_id: str, user_id: str, role: str) -> Optional[MemberRecord]:
        result = await self.db.execute(
            select(OrgMember).where(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        row.role = role
        await self.db.flush()
        return _member_record(row)

    async def remove(self, org_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            delete(OrgMember).where(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
        )
        return (result.rowcount or 0) > 0

    async def count_role(self, org_id: str, role: str) -> int:
        result = await self.db.execute(
            select(func.count(OrgMember.id))
            .where(OrgMember.org_id == org_id)
            .where(OrgMember.role == role)
        )
        return int(result.scalar() or 0)


# ── Organization Repository ─────────────────────────────────

class OrganizationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, name: str, slug: str, created_by: str) -> OrganizationRecord:
        org = Organization(name=name, slug=slug, created_by=created_by)
        self.db.add(org)
        await self.db.flush()
        return OrganizationRecord(id=org.id, name=org.name, slug=org.slug, created_by=org.created_by)

    async def slug_exists(self, slug: str) -> bool:
        result = await self.db.execute(select(Organization.id).where(Organization.slug == slug))
        return result.scalar_one_or_none() is not None

    async def list_for_user(self, user_id: str) -> List[OrganizationRecord]:
        result = await self.db.execute(
            select(Organization, OrgMember.role)
            .join(OrgMember, OrgMember.org_id == Organization.id)
            .where(OrgMember.user_id == user_id)
            .order_by(Organization.name.asc())
        )
        return [
            OrganizationRecord(
                id=org.id, name=org.name, slug=org.slug,
                created_by=org.created_by, role=role,
            )
            for org, role in result.all()
        ]

    async def update(self, org_id: str, fields: Dict[str, Any]) -> Optional[OrganizationRecord]:
        org = await self.db.get(Organization, org_id)
        if org is None:
            return None
        for key, value in fields.items():
            setattr(org, key, value)
        await self.db.flush()
        return OrganizationRecord(id=org.id, name=org.name, slug=org.slug, created_by=org.created_by)

    async def delete(self, org_id: str) -> bool:
        """Delete an org; members, workspaces, projects and tasks cascade in the database."""
        result = await self.db.execute(delete(Organization).where(Organization.id == org_id))
        return (result.rowcount or 0) > 0


# ── Invitation Repository ───────────────────────────────────

class InvitationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _record(row: Invitation) -> InvitationRecord:
        return InvitationRecord(
            id=row.id, tenant_id=row.org_id, email=row.email, role=row.role,
            token=row.token, invited_by=row.invited_by,
            expires_at=row.expires_at, accepted_at=row.accepted_at,
        )

    async def create(
        self,
        org_id: str,
        email: str,
        role: str,
        invited_by: str,
        token: str,
        expires_at: datetime,
    ) -> InvitationRecord:
        row = Invitation(
            org_id=org_id, email=email.strip().lower(), role=role,
            invited_by=invited_by, token=token, expires_at=expires_at,
        )
        self.db.add(row)
        await self.db.flush()
        return self._record(row)

    async def get_by_token(self, token: str) -> Optional[InvitationRecord]:
        result = await self.db.execute(select(Invitation).where(Invitation.token == token))
        row = result.scalar_one_or_none()
        return self._record(row) if row else None

    async def mark_accepted(self, invitation_id: str, accepted_at: datetime) -> None:
        await self.db.execute(
            update(Invitation)
            .where(Invitation.id == invitation_id)
            .values(accepted_at=accepted_at)
        )


# ── Workspace Repository ────────────────────────────────────

class WorkspaceRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _record(row: Workspace) -> WorkspaceRecord:
        return WorkspaceRecord(
            id=row.id, tenant_id=row.org_id, name=row.name, slug=row.slug,
            color=row.color, created_by=row.created_by,
        )

    async def _row(self, org_id: str, workspace_id: str) -> Optional[Workspace]:
        result = await self.db.execute(
            select(Workspace).where(Workspace.id == workspace_id, Workspace.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        org_id: str,
        name: str,
        slug: str,
        created_by: str,
        color: Optional[str] = None,
    ) -> WorkspaceRecord:
        row = Workspace(org_id=org_id, name=name, slug=slug, created_by=created_by)
        if color:
            row.color = color
        self.db.add(row)
        await self.db.flush()
        return self._record(row)

    async def get(self, org_id: str, workspace_id: str) -> Optional[WorkspaceRecord]:
        row = await self._row(org_id, workspace_id)
        return self._record(row) if row else None

    async def get_by_slug(self, org_id: str, slug: str) -> Optional[WorkspaceRecord]:
        result = await self.db.execute(
            select(Workspace).where(Workspace.org_id == org_id, Workspace.slug == slug)
        )
        row = result.scalar_one_or_none()
        return self._record(row) if row else None

    async def slug_exists(self, org_id: str, slug: str) -> bool:
        return await self.get_by_slug(org_id, slug) is not None

    async def list(self, org_id: str) -> List[WorkspaceRecord]:
        result = await self.db.execute(
            select(Workspace).where(Workspace.org_id == org_id).order_by(Workspace.name.asc())
        )
        return [self._record(r) for r in result.scalars().all()]

    async def update(self, org_id: str, workspace_id: str, fields: Dict[str, Any]) -> Optional[WorkspaceRecord]:
        row = await self._row(org_id, workspace_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        await self.db.flush()
        return self._record(row)

    async def delete(self, org_id: str, workspace_id: str) -> bool:
        result = await self.db.execute(
            delete(Workspace).where(Workspace.id == workspace_id, Workspace.org_id == org_id)
        )
        return (result.rowcount or 0) > 0


# ── Project Repository ──────────────────────────────────────

class ProjectRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _record(row: Project) -> ProjectRecord:
        return ProjectRecord(
            id=row.id, tenant_id=row.org_id, workspace_id=row.workspace_id,
            name=row.name, slug=row.slug, description=row.description,
            status=row.status, icon=row.icon, created_by=row.created_by,
        )

    async def _row(self, org_id: str, project_id: str) -> Optional[Project]:
        result = await self.db.execute(
            select(Project).where(Project.id == project_id, Project.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        org_id: str,
        workspace_id: str,
        name: str,
        slug: str,
        created_by: str,
        description: Optional[str] = None,
    ) -> ProjectRecord:
        row = Project(
            org_id=org_id, workspace_id=workspace_id, name=name, slug=slug,
            description=description, created_by=created_by,
        )
        self.db.add(row)
        await self.db.flush()
        return self._record(row)

    async def update(self, org_id: str, project_id: str, fields: Dict[str, Any]) -> Optional[ProjectRecord]:
        row = await self._row(org_id, project_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        await self.db.flush()
        return self._record(row)

    async def delete(self, org_id: str, project_id: str) -> bool:
        """Delete a project; its tasks cascade in the database."""
        result = await self.db.execute(
            delete(Project).where(Project.id == project_id, Project.org_id == org_id)
        )
        return (result.rowcount or 0) > 0

    async def get(self, org_id: str, project_id: str) -> Optional[ProjectRecord]:
        row = await self._row(org_id, project_id)
        return self._record(row) if row else None

    async def slug_exists(self, org_id: str, slug: str) -> bool:
        result = await self.db.execute(
            select(Project.id).where(Project.org_id == org_id, Project.slug == slug)
        )
        return result.scalar_one_or_none() is not None

    async def list(self, org_id: str, workspace_id: Optional[str] = None) -> List[ProjectRecord]:
        query = select(Project).where(Project.org_id == org_id)
        if workspace_id:
            query = query.where(Project.workspace_id == workspace_id)
        result = await self.db.execute(query.order_by(Project.name.asc()))
        return [self._record(r) for r in result.scalars().all()]


# ── Task Repository ─────────────────────────────────────────

class TaskRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, org_id: str, task_id: str) -> Optional[Task]:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def next_position(self, org_id: str, project_id: str, status: str) -> int:
        """Position after the last task of a column (0 for an empty column)."""
        result = await self.db.execute(
            select(func.max(Task.position))
            .where(Task.org_id == org_id)
            .where(Task.project_id == project_id)
            .where(Task.status == status)
        )
        last = result.scalar()
        return 0 if last is None else int(last) + 1

    async def create(
        self,
        org_id: str,
        project_id: str,
        created_by: str,
        fields: Dict[str, Any],
    ) -> TaskRecord:
        row = Task(org_id=org_id, project_id=project_id, created_by=created_by, **fields)
        self.db.add(row)
        await self.db.flush()
        return _task_record(row)

    async def get(self, org_id: str, task_id: str) -> Optional[TaskRecord]:
        row = await self._row(org_id, task_id)
        return _task_record(row) if row else None

    async def list_by_project(self, org_id: str, project_id: str) -> List[TaskRecord]:
        result = await self.db.execute(
            select(Task)
            .where(Task.org_id == org_id, Task.project_id == project_id)
            .order_by(Task.position.asc())
        )
        return [_task_record(r) for r in result.scalars().all()]

    async def list_assigned(self, org_id: str, user_id: str, limit: int = 50) -> List[TaskRecord]:
        result = await self.db.execute(
            select(Task)
            .where(Task.org_id == org_id, Task.assignee_id == user_id)
            .order_by(Task.updated_at.desc())
            .limit(limit)
        )
        return [_task_record(r) for r in result.scalars().all()]

    async def update(self, org_id: str, task_id: str, fields: Dict[str, Any]) -> Optional[TaskRecord]:
        """Apply `fields` to one task in one write. None if not in this tenant."""
        row = await self._row(org_id, task_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        await self.db.flush()
        return _task_record(row)

    async def delete(self, org_id: str, task_id: str) -> bool:
        result = await self.db.execute(
            delete(Task).where(Task.id == task_id, Task.org_id == org_id)
        )
        return (result.rowcount or 0) > 0


# ── Notification Repository ─────────────────────────────────

class NotificationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _record(row: Notification) -> NotificationRecord:
        return NotificationRecord(
            id=row.id, user_id=row.user_id, tenant_id=row.org_id, type=row.type,
            title=row.title, body=row.body or "", payload=row.payload or {},
            read=row.read, created_at=row.created_at,
        )

    async def create(
        self,
        user_id: str,
        org_id: str,
        type: str,
        title: str,
        body: str = "",
        payload: Optional[Dict[str, Any]] = None,
    ) -> NotificationRecord:
        row = Notification(
            user_id=user_id, org_id=org_id, type=type,
            title=title, body=body, payload=payload or {},
        )
        self.db.add(row)
        await self.db.flush()
        return self._record(row)

    async def list_for_user(self, user_id: str, org_id: str, limit: int = 50) -> List[NotificationRecord]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id, Notification.org_id == org_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return [self._record(r) for r in result.scalars().all()]

    async def mark_read(self, user_id: str, org_id: str, ids: Iterable[str]) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.org_id == org_id)
            .where(Notification.id.in_(list(ids)))
            .values(read=True)
        )
        return int(result.rowcount or 0)

    async def unread_count(self, user_id: str, org_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id))
            .where(Notification.user_id == user_id)
            .where(Notification.org_id == org_id)
            .where(Notification.read.is_(False))
        )
        return int(result.scalar() or 0)

    async def mark_all_read(self, user_id: str, org_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.org_id == org_id)
            .where(Notification.read.is_(False))
            .values(read=True)
        )
        return int(result.rowcount or 0)


# ── Bundle ──────────────────────────────────────────────────

@dataclass
class Repositories:
    """All repositories bound to one request's session."""

    users: UserRepository
    memberships: MembershipRepository
    organizations: OrganizationRepository
    invitations: InvitationRepository
    workspaces: WorkspaceRepository
    projects: ProjectRepository
    tasks: TaskRepository
    notifications: NotificationRepository

    @classmethod
    def from_session(cls, db: AsyncSession) -> Repositories:
        return cls(
            users=UserRepository(db),
            memberships=MembershipRepository(db),
            organizations=OrganizationRepository(db),
            invitations=InvitationRepository(db),
            workspaces=WorkspaceRepository(db),
            projects=ProjectRepository(db),
            tasks=TaskRepository(db),
            notifications=NotificationRepository(db),
        )
