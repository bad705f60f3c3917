# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Tasks API — board reads and mutations.

Reads need any membership; writes need MEMBER. Every mutation fans out
TASK_* events to the org room after the write, without waiting for delivery.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from flowdesk.api.deps import get_task_service, require_tenant
from flowdesk.board.service import TaskBoardService
from flowdesk.core.tenant import AuthorizedContext
from flowdesk.protocols.schema import (
    BulkUpdateTasks,
    CreateTask,
    MoveTask,
    UpdateTask,
    WireModel,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskRef(WireModel):
    id: str


@router.post("", status_code=201)
async def create_task(
    req: CreateTask,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    service: TaskBoardService = Depends(get_task_service),
):
    task = await service.create(ctx, req)
    return task.to_wire()


@router.get("")
async def list_tasks(
    project_id: str = Query(..., alias="projectId"),
    ctx: AuthorizedContext = Depends(require_tenant()),
    service: TaskBoardService = Depends(get_task_service),
):
    """All tasks of a project, ordered by position."""
    tasks = await service.list_by_project(ctx, project_id)
    return [t.to_wire() for t in tasks]


@router.get("/mine")
async def my_tasks(
    ctx: AuthorizedContext = Depends(require_tenant()),
    service: TaskBoardService = Depends(get_task_service),
):
    tasks = await service.my_tasks(ctx)
    return [t.to_wire() for t in tasks]


@router.patch("")
async def update_task(
    req: UpdateTask,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    service: TaskBoardService = Depends(get_task_service),
):
    task = await service.update(ctx, req)
    return task.to_wire()


@router.post("/move")
async def move_task(
    req: MoveTask,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    service: TaskBoardService = Depends(get_task_service),
):
    """Drag-drop commit."""
    task = await service.move(ctx, req)
    return task.to_wire()


@router.post("/bulk")
async def bulk_update_tasks(
    req: BulkUpdateTasks,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    service: TaskBoardService = Depends(get_task_service),
):
    tasks = await service.bulk_update(ctx, req)
    return [t.to_wire() for t in tasks]


@router.delete("")
async def delete_task(
    req: TaskRef,
    ctx: AuthorizedContext = Depends(require_tenant("MEMBER")),
    service: TaskBoardService = Depends(get_task_service),
):
    await service.delete(ctx, req.id)
    return {"success": True}
