# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
BoardSnapshot — client-local view of one project's tasks by status column.

Columns are ordered by (position, arrival order). Moving a task only
changes that task's own status and position, so reverting a move restores
the board exactly and never disturbs other tasks.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from flowdesk.protocols.schema import BOARD_COLUMNS, TaskRecord, TaskStatus


class BoardSnapshot:
    def __init__(self, tasks: Iterable[TaskRecord] = ()) -> None:
        self._tasks: Dict[str, TaskRecord] = {}
        self._order: Dict[str, int] = {}
        self._seq = 0
        for task in tasks:
            self.upsert(task)

    def _touch(self, task_id: str) -> None:
        if task_id not in self._order:
            self._order[task_id] = self._seq
            self._seq += 1

    def get(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.get(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def upsert(self, task: TaskRecord) -> None:
        self._touch(task.id)
        self._tasks[task.id] = task

    def remove(self, task_id: str) -> Optional[TaskRecord]:
        self._order.pop(task_id, None)
        return self._tasks.pop(task_id, None)

    def place(self, task_id: str, status: TaskStatus, position: int) -> TaskRecord:
        """Set one task's status and position. KeyError if unknown."""
        task = self._tasks[task_id]
        moved = task.model_copy(update={"status": status, "position": position})
        self._tasks[task_id] = moved
        return moved

    def column(self, status: TaskStatus) -> List[TaskRecord]:
        tasks = [t for t in self._tasks.values() if t.status == status]
        return sorted(tasks, key=lambda t: (t.position, self._order[t.id]))

    def columns(self) -> Dict[TaskStatus, List[TaskRecord]]:
        return {status: self.column(status) for status in BOARD_COLUMNS}

    def tasks(self) -> List[TaskRecord]:
        return [t for status in BOARD_COLUMNS for t in self.column(status)]

    def end_of_column(self, status: TaskStatus, exclude: Optional[str] = None) -> int:
        """Position after the last task of `status` (0 when empty)."""
        positions = [t.position for t in self.column(status) if t.id != exclude]
        return max(positions) + 1 if positions else 0

    def replace_all(self, tasks: Iterable[TaskRecord], keep: Iterable[str] = ()) -> None:
        """Rebuild from authoritative data, keeping local copies of `keep` ids."""
        kept = {tid: self._tasks[tid] for tid in keep if tid in self._tasks}
        self._tasks.clear()
        self._order.clear()
        for task in tasks:
            self.upsert(kept.pop(task.id, task))
        for task in kept.values():
            self.upsert(task)

    def status_of(self, task_id: str) -> Optional[TaskStatus]:
        task = self._tasks.get(task_id)
        return task.status if task else None
