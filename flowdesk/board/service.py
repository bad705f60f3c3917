# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
TaskBoardService — server-side task mutations for an authorized tenant.

Every read and write is scoped by the context's tenant id, so a task of
another tenant looks exactly like a missing one. Each write queues its
fan-out event in the request outbox; the outbox publishes only after the
transaction commits, and the service never waits for delivery.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flowdesk.core.metrics import Metrics, service_metrics
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.kernel.fanout import FanOutOutbox
from flowdesk.kernel.namespace import org_room, user_room
from flowdesk.protocols.events import (
    NOTIFICATION,
    TASK_ASSIGNED,
    TASK_CREATED,
    TASK_DELETED,
    TASK_UPDATED,
)
from flowdesk.protocols.schema import (
    BulkUpdateTasks,
    CreateTask,
    FanOutEvent,
    MoveTask,
    TaskRecord,
    TaskStatus,
    UpdateTask,
)
from flowdesk.storage.repositories import Repositories

logger = logging.getLogger("flowdesk.board")


class TaskNotFound(LookupError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class ProjectNotFound(LookupError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project '{project_id}' not found")


class InvalidAssignee(ValueError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User '{user_id}' is not a member of this organization")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members to their stored string values."""
    return {k: getattr(v, "value", v) for k, v in fields.items()}


class TaskBoardService:
    def __init__(
        self,
        repos: Repositories,
        outbox: FanOutOutbox,
        metrics: Optional[Metrics] = None,
        my_tasks_limit: int = 50,
    ) -> None:
        self._repos = repos
        self._outbox = outbox
        self._metrics = metrics or service_metrics
        self._my_tasks_limit = my_tasks_limit

    # ── Queries ─────────────────────────────────────────────────

    async def list_by_project(self, ctx: AuthorizedContext, project_id: str) -> List[TaskRecord]:
        return await self._repos.tasks.list_by_project(ctx.tenant_id, project_id)

    async def my_tasks(self, ctx: AuthorizedContext) -> List[TaskRecord]:
        """Tasks assigned to the caller, most recently updated first."""
        return await self._repos.tasks.list_assigned(
            ctx.tenant_id, ctx.caller_id, limit=self._my_tasks_limit
        )

    async def get(self, ctx: AuthorizedContext, task_id: str) -> TaskRecord:
        task = await self._repos.tasks.get(ctx.tenant_id, task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    # ── Mutations ───────────────────────────────────────────────

    async def create(self, ctx: AuthorizedContext, data: CreateTask) -> TaskRecord:
        project = await self._repos.projects.get(ctx.tenant_id, data.project_id)
        if project is None:
            raise ProjectNotFound(data.project_id)
        if data.assignee_id:
            await self._check_assignee(ctx, data.assignee_id)

        position = await self._repos.tasks.next_position(
            ctx.tenant_id, project.id, data.status.value
        )
        fields = _plain(data.model_dump(exclude={"project_id"}))
        fields["position"] = position
        if data.status == TaskStatus.DONE:
            fields["completed_at"] = _utcnow()

        task = await self._repos.tasks.create(ctx.tenant_id, project.id, ctx.caller_id, fields)
        self._metrics.inc("task_mutation:create")
        logger.info(
            "Task %s created in project %s", task.id, project.id,
            extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
        )

        self._emit(TASK_CREATED, org_room(ctx.tenant_id), task.to_wire())
        await self._notify_assignment(ctx, task, previous=None, title="New Task Assigned")
        return task

    async def update(self, ctx: AuthorizedContext, data: UpdateTask) -> TaskRecord:
        current = await self.get(ctx, data.id)
        changes = data.changes()
        if not changes:
            return current
        if changes.get("assignee_id"):
            await self._check_assignee(ctx, changes["assignee_id"])
        if "status" in changes:
            done = changes["status"] == TaskStatus.DONE
            changes["completed_at"] = _utcnow() if done else None

        updated = await self._write(ctx, data.id, changes, op="update")
        if "assignee_id" in changes:
            await self._notify_assignment(
                ctx, updated, previous=current.assignee_id, title="Task Assigned"
            )
        return updated

    async def move(self, ctx: AuthorizedContext, move: MoveTask) -> TaskRecord:
        """Drag-drop commit. One write; completion time follows the DONE column."""
        fields = {
            "status": move.status,
            "position": move.position,
            "completed_at": _utcnow() if move.status == TaskStatus.DONE else None,
        }
        return await self._write(ctx, move.id, fields, op="move")

    async def bulk_update(self, ctx: AuthorizedContext, data: BulkUpdateTasks) -> List[TaskRecord]:
        """Apply the same changes to several tasks. Ids outside the tenant are skipped."""
        changes = data.changes()
        if changes.get("assignee_id"):
            await self._check_assignee(ctx, changes["assignee_id"])
        if "status" in changes:
            done = changes["status"] == TaskStatus.DONE
            changes["completed_at"] = _utcnow() if done else None

        results: List[TaskRecord] = []
        for task_id in dict.fromkeys(data.ids):
            current = await self._repos.tasks.get(ctx.tenant_id, task_id)
            if current is None:
                logger.debug("Bulk update skipped unknown task %s", task_id)
                continue
            if not changes:
                results.append(current)
                continue
            updated = await self._write(ctx, task_id, changes, op="bulk_update")
            if "assignee_id" in changes:
                await self._notify_assignment(
                    ctx, updated, previous=current.assignee_id, title="Task Assigned"
                )
            results.append(updated)
        return results

    async def delete(self, ctx: AuthorizedContext, task_id: str) -> None:
        current = await self.get(ctx, task_id)
        if not await self._repos.tasks.delete(ctx.tenant_id, task_id):
            raise TaskNotFound(task_id)

        self._metrics.inc("task_mutation:delete")
        self._emit(
            TASK_DELETED,
            org_room(ctx.tenant_id),
            {"id": current.id, "projectId": current.project_id, "tenantId": current.tenant_id},
        )

    # ── Internals ───────────────────────────────────────────────

    async def _write(
        self,
        ctx: AuthorizedContext,
        task_id: str,
        fields: Dict[str, Any],
        op: str,
    ) -> TaskRecord:
        updated = await self._repos.tasks.update(ctx.tenant_id, task_id, _plain(fields))
        if updated is None:
            raise TaskNotFound(task_id)

        self._metrics.inc(f"task_mutation:{op}")
        logger.info(
            "Task %s %s -> %s#%d", task_id, op, updated.status.value, updated.position,
            extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id},
        )
        self._emit(TASK_UPDATED, org_room(ctx.tenant_id), updated.to_wire())
        return updated

    async def _check_assignee(self, ctx: AuthorizedContext, user_id: str) -> None:
        if await self._repos.memberships.get(ctx.tenant_id, user_id) is None:
            raise InvalidAssignee(user_id)

    async def _notify_assignment(
        self,
        ctx: AuthorizedContext,
        task: TaskRecord,
        previous: Optional[str],
        title: str,
    ) -> None:
        assignee = task.assignee_id
        if not assignee or assignee == ctx.caller_id or assignee == previous:
            return

        notification = await self._repos.notifications.create(
            user_id=assignee,
            org_id=ctx.tenant_id,
            type=TASK_ASSIGNED,
            title=title,
            body=f'You have been assigned to task "{task.title}"',
            payload={"taskId": task.id, "projectId": task.project_id},
        )
        self._emit(NOTIFICATION, user_room(assignee), notification.to_wire())

    def _emit(self, event_type: str, room: str, payload: Dict[str, Any]) -> None:
        self._outbox.add(FanOutEvent.create(event_type=event_type, room=room, payload=payload))
