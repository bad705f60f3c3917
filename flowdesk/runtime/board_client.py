# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Board HTTP Client — headless client side of the FlowDesk task API.

Supplies the commit and refetch calls a BoardSynchronizer needs, so a
script or a test can drive a board exactly like the web client does.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from flowdesk.board.sync import BoardSynchronizer
from flowdesk.protocols.schema import CreateTask, MoveTask, TaskRecord

logger = logging.getLogger("flowdesk.board_client")


class BoardClient:
    """
    FlowDesk HTTP API client bound to one caller and one organization.

    Usage:
        client = BoardClient("http://localhost:8000", user_id=uid, tenant_id=org_id)
        board = await client.open_board(project_id)
        board.begin_drag(task_id)
        await board.drop("IN_PROGRESS")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        user_id: str,
        tenant_id: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url
        self.tenant_id = tenant_id
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"X-User-Id": user_id}

    # ── Tasks ─────────────────────────────────────────────────

    async def list_tasks(self, project_id: str) -> List[TaskRecord]:
        resp = await self._client.get(
            "/api/tasks",
            params={"tenantId": self.tenant_id, "projectId": project_id},
            headers=self._headers,
        )
        resp.raise_for_status()
        return [TaskRecord.model_validate(item) for item in resp.json()]

    async def create_task(self, data: CreateTask) -> TaskRecord:
        resp = await self._client.post(
            "/api/tasks", json=self._body(data.to_wire()), headers=self._headers,
        )
        resp.raise_for_status()
        return TaskRecord.model_validate(resp.json())

    async def move(self, move: MoveTask) -> TaskRecord:
        """Commit one drag-drop. Raises httpx.HTTPStatusError on rejection."""
        resp = await self._client.post(
            "/api/tasks/move", json=self._body(move.to_wire()), headers=self._headers,
        )
        resp.raise_for_status()
        return TaskRecord.model_validate(resp.json())

    def _body(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {**data, "tenantId": self.tenant_id}

    # ── Boards ────────────────────────────────────────────────

    async def open_board(self, project_id: str) -> BoardSynchronizer:
        """Load a project's tasks into a synchronizer wired to this client."""

        async def refetch() -> List[TaskRecord]:
            return await self.list_tasks(project_id)

        tasks = await refetch()
        logger.debug("Opened board %s with %d tasks", project_id, len(tasks))
        return BoardSynchronizer(project_id, commit=self.move, tasks=tasks, refetch=refetch)

    # ── Lifecycle ─────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def health_check(self) -> bool:
        try:
            resp = await self._client.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False
