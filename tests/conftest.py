# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Shared test fixtures for all FlowDesk tests.

API tests run against in-memory repositories (no PostgreSQL) and a
recording fan-out transport (no delivery), injected through FastAPI
dependency overrides.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest
import fakeredis.aioredis
from httpx import ASGITransport, AsyncClient

from flowdesk.core.context import init_platform_context
from flowdesk.core.metrics import service_metrics
from flowdesk.core.tenant import CallerIdentity, Membership
from flowdesk.kernel.redis_client import inject_redis_for_test
from flowdesk.protocols.records import (
    InvitationRecord,
    MemberRecord,
    NotificationRecord,
    OrganizationRecord,
    ProjectRecord,
    WorkspaceRecord,
)
from flowdesk.protocols.schema import FanOutEvent, TaskRecord
from flowdesk.storage.repositories import Repositories


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _id() -> str:
    return str(uuid.uuid4())


# ── Recording fan-out transport ──────────────────────────────


class RecordingTransport:
    """FanOutTransport that keeps every delivered event in order."""

    def __init__(self):
        self.events: List[FanOutEvent] = []

    async def deliver(self, event: FanOutEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[FanOutEvent]:
        return [e for e in self.events if e.event_type == event_type]


# ── In-memory repositories ───────────────────────────────────


class InMemoryStore:
    def __init__(self):
        self.users: Dict[str, CallerIdentity] = {}
        self.orgs: Dict[str, OrganizationRecord] = {}
        self.members: Dict[Tuple[str, str], MemberRecord] = {}
        self.invitations: Dict[str, InvitationRecord] = {}
        self.workspaces: Dict[str, WorkspaceRecord] = {}
        self.projects: Dict[str, ProjectRecord] = {}
        self.tasks: Dict[str, TaskRecord] = {}
        self.notifications: Dict[str, NotificationRecord] = {}
        self.task_writes = 0
        self.membership_loads = 0


class MockUserRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_identity(self, user_id: str) -> Optional[CallerIdentity]:
        return self.store.users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[CallerIdentity]:
        email = email.strip().lower()
        return next((u for u in self.store.users.values() if u.email == email), None)

    async def create(self, email: str, name: str = "") -> CallerIdentity:
        user = CallerIdentity(id=_id(), name=name, email=email.strip().lower())
        self.store.users[user.id] = user
        return user


class MockMembershipRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_for_user(self, user_id: str) -> List[Membership]:
        self.store.membership_loads += 1
        return [
            Membership(tenant_id=m.tenant_id, role=m.role)
            for (_, uid), m in self.store.members.items()
            if uid == user_id
        ]

    async def list_for_org(self, org_id: str) -> List[MemberRecord]:
        result = []
        for (oid, uid), m in self.store.members.items():
            if oid == org_id:
                user = self.store.users.get(uid)
                result.append(m.model_copy(update={
                    "name": user.name if user else "",
                    "email": user.email if user else "",
                }))
        return result

    async def get(self, org_id: str, user_id: str) -> Optional[MemberRecord]:
        return self.store.members.get((org_id, user_id))

    async def add(self, org_id: str, user_id: str, role: str, invited_by: Optional[str] = None) -> MemberRecord:
        member = MemberRecord(
            tenant_id=org_id, user_id=user_id, role=role,
            invited_by=invited_by, joined_at=_now(),
        )
        self.store.members[(org_id, user_id)] = member
        return member

    async def update_role(self, org_id: str, user_id: str, role: str) -> Optional[MemberRecord]:
        member = self.store.members.get((org_id, user_id))
        if member is None:
            return None
        member = member.model_copy(update={"role": role})
        self.store.members[(org_id, user_id)] = member
        return member

    async def remove(self, org_id: str, user_id: str) -> bool:
        return self.store.members.pop((org_id, user_id), None) is not None

    async def count_role(self, org_id: str, role: str) -> int:
        return sum(
            1 for (oid, _), m in self.store.members.items()
            if oid == org_id and m.role == role
        )


class MockOrganizationRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, name: str, slug: str, created_by: str) -> OrganizationRecord:
        org = OrganizationRecord(id=_id(), name=name, slug=slug, created_by=created_by)
        self.store.orgs[org.id] = org
        return org

    async def slug_exists(self, slug: str) -> bool:
        return any(o.slug == slug for o in self.store.orgs.values())

    async def list_for_user(self, user_id: str) -> List[OrganizationRecord]:
        result = []
        for (oid, uid), m in self.store.members.items():
            if uid == user_id and oid in self.store.orgs:
                result.append(self.store.orgs[oid].model_copy(update={"role": m.role}))
        return sorted(result, key=lambda o: o.name)

    async def update(self, org_id: str, fields: Dict[str, Any]) -> Optional[OrganizationRecord]:
        org = self.store.orgs.get(org_id)
        if org is None:
            return None
        org = org.model_copy(update=fields)
        self.store.orgs[org_id] = org
        return org

    async def delete(self, org_id: str) -> bool:
        if self.store.orgs.pop(org_id, None) is None:
            return False
        # Mirrors ON DELETE CASCADE
        s = self.store
        s.members = {k: m for k, m in s.members.items() if k[0] != org_id}
        s.workspaces = {k: w for k, w in s.workspaces.items() if w.tenant_id != org_id}
        s.projects = {k: p for k, p in s.projects.items() if p.tenant_id != org_id}
        s.tasks = {k: t for k, t in s.tasks.items() if t.tenant_id != org_id}
        s.notifications = {k: n for k, n in s.notifications.items() if n.tenant_id != org_id}
        return True


class MockInvitationRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, org_id, email, role, invited_by, token, expires_at) -> InvitationRecord:
        inv = InvitationRecord(
            id=_id(), tenant_id=org_id, email=email.strip().lower(), role=role,
            token=token, invited_by=invited_by, expires_at=expires_at,
        )
        self.store.invitations[inv.id] = inv
        return inv

    async def get_by_token(self, token: str) -> Optional[InvitationRecord]:
        return next((i for i in self.store.invitations.values() if i.token == token), None)

    async def mark_accepted(self, invitation_id: str, accepted_at: datetime) -> None:
        inv = self.store.invitations[invitation_id]
        self.store.invitations[invitation_id] = inv.model_copy(update={"accepted_at": accepted_at})


class MockWorkspaceRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, org_id, name, slug, created_by, color=None) -> WorkspaceRecord:
        ws = WorkspaceRecord(id=_id(), tenant_id=org_id, name=name, slug=slug, created_by=created_by)
        if color:
            ws = ws.model_copy(update={"color": color})
        self.store.workspaces[ws.id] = ws
        return ws

    async def get(self, org_id: str, workspace_id: str) -> Optional[WorkspaceRecord]:
        ws = self.store.workspaces.get(workspace_id)
        return ws if ws and ws.tenant_id == org_id else None

    async def get_by_slug(self, org_id: str, slug: str) -> Optional[WorkspaceRecord]:
        return next(
            (w for w in self.store.workspaces.values() if w.tenant_id == org_id and w.slug == slug),
            None,
        )

    async def slug_exists(self, org_id: str, slug: str) -> bool:
        return await self.get_by_slug(org_id, slug) is not None

    async def list(self, org_id: str) -> List[WorkspaceRecord]:
        return sorted(
            (w for w in self.store.workspaces.values() if w.tenant_id == org_id),
            key=lambda w: w.name,
        )

    async def update(self, org_id: str, workspace_id: str, fields: Dict[str, Any]) -> Optional[WorkspaceRecord]:
        ws = await self.get(org_id, workspace_id)
        if ws is None:
            return None
        ws = ws.model_copy(update=fields)
        self.store.workspaces[workspace_id] = ws
        return ws

    async def delete(self, org_id: str, workspace_id: str) -> bool:
        if await self.get(org_id, workspace_id) is None:
            return False
        del self.store.workspaces[workspace_id]
        s = self.store
        gone = {k for k, p in s.projects.items() if p.workspace_id == workspace_id}
        s.projects = {k: p for k, p in s.projects.items() if k not in gone}
        s.tasks = {k: t for k, t in s.tasks.items() if t.project_id not in gone}
        return True


class MockProjectRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, org_id, workspace_id, name, slug, created_by, description=None) -> ProjectRecord:
        project = ProjectRecord(
            id=_id(), tenant_id=org_id, workspace_id=workspace_id, name=name, slug=slug,
            description=description, created_by=created_by,
        )
        self.store.projects[project.id] = project
        return project

    async def get(self, org_id: str, project_id: str) -> Optional[ProjectRecord]:
        project = self.store.projects.get(project_id)
        return project if project and project.tenant_id == org_id else None

    async def slug_exists(self, org_id: str, slug: str) -> bool:
        return any(p.tenant_id == org_id and p.slug == slug for p in self.store.projects.values())

    async def list(self, org_id: str, workspace_id: Optional[str] = None) -> List[ProjectRecord]:
        return sorted(
            (
                p for p in self.store.projects.values()
                if p.tenant_id == org_id and (not workspace_id or p.workspace_id == workspace_id)
            ),
            key=lambda p: p.name,
        )

    async def update(self, org_id: str, project_id: str, fields: Dict[str, Any]) -> Optional[ProjectRecord]:
        project = await self.get(org_id, project_id)
        if project is None:
            return None
        project = project.model_copy(update=fields)
        self.store.projects[project_id] = project
        return project

    async def delete(self, org_id: str, project_id: str) -> bool:
        if await self.get(org_id, project_id) is None:
            return False
        del self.store.projects[project_id]
        self.store.tasks = {k: t for k, t in self.store.tasks.items() if t.project_id != project_id}
        return True


class MockTaskRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _owned(self, org_id: str, task_id: str) -> Optional[TaskRecord]:
        task = self.store.tasks.get(task_id)
        return task if task and task.tenant_id == org_id else None

    async def next_position(self, org_id: str, project_id: str, status: str) -> int:
        positions = [
            t.position for t in self.store.tasks.values()
            if t.tenant_id == org_id and t.project_id == project_id and t.status.value == status
        ]
        return max(positions) + 1 if positions else 0

    async def create(self, org_id: str, project_id: str, created_by: str, fields: Dict[str, Any]) -> TaskRecord:
        task = TaskRecord(
            id=_id(), tenant_id=org_id, project_id=project_id,
            created_by=created_by, updated_at=_now(), **fields,
        )
        self.store.tasks[task.id] = task
        self.store.task_writes += 1
        return task

    async def get(self, org_id: str, task_id: str) -> Optional[TaskRecord]:
        return self._owned(org_id, task_id)

    async def list_by_project(self, org_id: str, project_id: str) -> List[TaskRecord]:
        return sorted(
            (t for t in self.store.tasks.values()
             if t.tenant_id == org_id and t.project_id == project_id),
            key=lambda t: t.position,
        )

    async def list_assigned(self, org_id: str, user_id: str, limit: int = 50) -> List[TaskRecord]:
        tasks = [
            t for t in self.store.tasks.values()
            if t.tenant_id == org_id and t.assignee_id == user_id
        ]
        return sorted(tasks, key=lambda t: t.updated_at, reverse=True)[:limit]

    async def update(self, org_id: str, task_id: str, fields: Dict[str, Any]) -> Optional[TaskRecord]:
        task = self._owned(org_id, task_id)
        if task is None:
            return None
        updated = TaskRecord.model_validate({**task.model_dump(), **fields, "updated_at": _now()})
        self.store.tasks[task_id] = updated
        self.store.task_writes += 1
        return updated

    async def delete(self, org_id: str, task_id: str) -> bool:
        if self._owned(org_id, task_id) is None:
            return False
        del self.store.tasks[task_id]
        self.store.task_writes += 1
        return True


class MockNotificationRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, user_id, org_id, type, title, body="", payload=None) -> NotificationRecord:
        n = NotificationRecord(
            id=_id(), user_id=user_id, tenant_id=org_id, type=type,
            title=title, body=body, payload=payload or {}, created_at=_now(),
        )
        self.store.notifications[n.id] = n
        return n

    async def list_for_user(self, user_id: str, org_id: str, limit: int = 50) -> List[NotificationRecord]:
        items = [
            n for n in self.store.notifications.values()
            if n.user_id == user_id and n.tenant_id == org_id
        ]
        return sorted(items, key=lambda n: n.created_at, reverse=True)[:limit]

    async def mark_read(self, user_id: str, org_id: str, ids: Iterable[str]) -> int:
        count = 0
        for nid in ids:
            n = self.store.notifications.get(nid)
            if n and n.user_id == user_id and n.tenant_id == org_id:
                self.store.notifications[nid] = n.model_copy(update={"read": True})
                count += 1
        return count

    def _unread(self, user_id: str, org_id: str) -> List[NotificationRecord]:
        return [
            n for n in self.store.notifications.values()
            if n.user_id == user_id and n.tenant_id == org_id and not n.read
        ]

    async def unread_count(self, user_id: str, org_id: str) -> int:
        return len(self._unread(user_id, org_id))

    async def mark_all_read(self, user_id: str, org_id: str) -> int:
        unread = self._unread(user_id, org_id)
        for n in unread:
            self.store.notifications[n.id] = n.model_copy(update={"read": True})
        return len(unread)


def build_repositories(store: InMemoryStore) -> Repositories:
    return Repositories(
        users=MockUserRepository(store),
        memberships=MockMembershipRepository(store),
        organizations=MockOrganizationRepository(store),
        invitations=MockInvitationRepository(store),
        workspaces=MockWorkspaceRepository(store),
        projects=MockProjectRepository(store),
        tasks=MockTaskRepository(store),
        notifications=MockNotificationRepository(store),
    )


# ── Fixtures ─────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_metrics():
    service_metrics.reset()
    yield
    service_metrics.reset()


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def mock_redis(recording_transport):
    """Provide a FakeRedis async instance and initialize PlatformContext."""
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    inject_redis_for_test(r)

    # API routes call get_platform_context(); fan-out is recorded, not delivered
    init_platform_context(r, transport=recording_transport)
    return r


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repos(store) -> Repositories:
    return build_repositories(store)


@pytest.fixture
async def api_client(mock_redis, repos):
    """AsyncClient on the real app with repositories swapped for in-memory ones."""
    from flowdesk.api.deps import get_repositories, get_repository_scope
    from flowdesk.main import app

    @asynccontextmanager
    async def _scope():
        yield repos

    app.dependency_overrides[get_repositories] = lambda: repos
    app.dependency_overrides[get_repository_scope] = lambda: _scope
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def acme(store, repos):
    """Org `acme` with an owner, an admin, a member and a viewer, plus one workspace and project."""
    users = {}
    for role in ("OWNER", "ADMIN", "MEMBER", "VIEWER"):
        user = await repos.users.create(f"{role.lower()}@acme.test", name=role.title())
        users[role] = user
    org = await repos.organizations.create(name="Acme", slug="acme", created_by=users["OWNER"].id)
    for role, user in users.items():
        await repos.memberships.add(org.id, user.id, role)
    workspace = await repos.workspaces.create(org.id, "Product", "product", users["OWNER"].id)
    project = await repos.projects.create(org.id, workspace.id, "Launch", "launch", users["OWNER"].id)
    return {"org": org, "users": users, "workspace": workspace, "project": project}
