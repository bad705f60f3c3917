# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Task Board Synchronizer — optimistic drag/drop with server reconciliation.

One synchronizer owns one project's BoardSnapshot. Drag interactions update
the snapshot immediately (optimistic overlay); a drop that changes the task's
column sends exactly one commit. A failed commit puts the task back where it
started and raises MutationCommitFailed; the board stays usable.

Fan-out events from other clients are merged by task id (last arrival wins),
except for a task that is being dragged or committed locally: those events
are dropped and the post-commit refetch brings the task back in line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from flowdesk.board.fsm import (
    CANCEL,
    COMMIT_FAILED,
    COMMIT_OK,
    DRAG_START,
    DROP_CHANGED,
    DROP_UNCHANGED,
    HOVER,
    DragFSM,
    DragState,
    InvalidTransitionError,
)
from flowdesk.board.snapshot import BoardSnapshot
from flowdesk.protocols.events import BOARD_EVENT_TYPES, TASK_DELETED
from flowdesk.protocols.schema import FanOutEvent, MoveTask, TaskRecord, TaskStatus

logger = logging.getLogger("flowdesk.board")

CommitFn = Callable[[MoveTask], Awaitable[object]]
RefetchFn = Callable[[], Awaitable[Iterable[TaskRecord]]]


class TaskPendingCommit(InvalidTransitionError):
    """The task has a commit in flight and cannot be dragged again yet."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' has a commit in flight")


class MutationCommitFailed(Exception):
    """A drag commit was rejected or never reached the server. Retryable."""

    def __init__(self, task_id: str, cause: BaseException):
        self.task_id = task_id
        self.cause = cause
        super().__init__(f"Could not save move of task '{task_id}': {cause}")


@dataclass
class _Interaction:
    task_id: str
    original_status: TaskStatus
    original_position: int


class BoardSynchronizer:
    def __init__(
        self,
        project_id: str,
        commit: CommitFn,
        tasks: Iterable[TaskRecord] = (),
        refetch: Optional[RefetchFn] = None,
        fsm: Optional[DragFSM] = None,
    ) -> None:
        self.project_id = project_id
        self._commit = commit
        self._refetch = refetch
        self._fsm = fsm or DragFSM()
        self._snapshot = BoardSnapshot(t for t in tasks if t.project_id == project_id)
        self._states: Dict[str, DragState] = {}
        self._active: Optional[_Interaction] = None
        self._pending: Dict[str, _Interaction] = {}

    # ── Introspection ───────────────────────────────────────────

    @property
    def snapshot(self) -> BoardSnapshot:
        return self._snapshot

    @property
    def active_task_id(self) -> Optional[str]:
        return self._active.task_id if self._active else None

    @property
    def pending_task_ids(self) -> Tuple[str, ...]:
        return tuple(self._pending)

    def state_of(self, task_id: str) -> DragState:
        return self._states.get(task_id, self._fsm.initial_state)

    def in_flight(self, task_id: str) -> bool:
        return self.state_of(task_id) != DragState.IDLE

    def _advance(self, task_id: str, event: str) -> DragState:
        new_state = self._fsm.transition(self.state_of(task_id), event)
        if new_state == DragState.IDLE:
            self._states.pop(task_id, None)
        else:
            self._states[task_id] = new_state
        return new_state

    # ── Drag interaction ────────────────────────────────────────

    def begin_drag(self, task_id: str) -> None:
        task = self._snapshot.get(task_id)
        if task is None:
            raise KeyError(f"Task '{task_id}' is not on this board")
        if self.state_of(task_id) == DragState.COMMITTING:
            raise TaskPendingCommit(task_id)
        if self._active is not None:
            raise InvalidTransitionError(
                f"Task '{self._active.task_id}' is already being dragged"
            )

        self._advance(task_id, DRAG_START)
        self._active = _Interaction(task_id, task.status, task.position)

    def _require_active(self) -> _Interaction:
        if self._active is None:
            raise InvalidTransitionError("No drag in progress")
        return self._active

    def _candidate(self, task_id: str, target: str) -> Optional[Tuple[TaskStatus, int]]:
        """Where the dragged task would land over `target` (column or task id)."""
        try:
            status = TaskStatus(target)
        except ValueError:
            status = None
        if status is not None:
            return status, self._snapshot.end_of_column(status, exclude=task_id)

        hovered = self._snapshot.get(target)
        if hovered is None or hovered.id == task_id:
            return None
        return hovered.status, hovered.position

    def drag_over(self, target: str) -> TaskStatus:
        """Project the dragged task onto `target` locally. No network call."""
        interaction = self._require_active()
        candidate = self._candidate(interaction.task_id, target)
        self._advance(interaction.task_id, HOVER)
        if candidate is not None:
            self._snapshot.place(interaction.task_id, *candidate)
        return self._snapshot.status_of(interaction.task_id)

    def cancel_drag(self) -> None:
        """Release outside any drop target: revert, no network call."""
        interaction = self._require_active()
        self._active = None
        self._revert(interaction)
        self._advance(interaction.task_id, CANCEL)

    async def drop(self, target: Optional[str] = None) -> Optional[TaskRecord]:
        """
        Finish the drag over `target`.

        Returns the task as committed, or None when nothing was sent (cancel
        or a drop back into the original column). Raises MutationCommitFailed
        after reverting if the commit fails.
        """
        interaction = self._require_active()
        if target is None:
            self.cancel_drag()
            return None

        task_id = interaction.task_id
        candidate = self._candidate(task_id, target)
        if candidate is not None:
            self._snapshot.place(task_id, *candidate)
        self._active = None

        moved = self._snapshot.get(task_id)
        if moved.status == interaction.original_status:
            self._revert(interaction)
            self._advance(task_id, DROP_UNCHANGED)
            return None

        self._advance(task_id, DROP_CHANGED)
        self._pending[task_id] = interaction
        request = MoveTask(id=task_id, status=moved.status, position=moved.position)

        try:
            await self._commit(request)
        except Exception as exc:
            self._pending.pop(task_id, None)
            self._revert(interaction)
            self._advance(task_id, COMMIT_FAILED)
            logger.warning("Commit of task %s failed, reverted: %s", task_id, exc)
            raise MutationCommitFailed(task_id, exc) from exc

        self._pending.pop(task_id, None)
        self._advance(task_id, COMMIT_OK)
        committed = self._snapshot.get(task_id)

        if self._refetch is not None:
            try:
                await self.refresh()
            except Exception as exc:
                # The commit succeeded; the next refresh will reconcile.
                logger.warning("Refetch after commit of %s failed: %s", task_id, exc)
        return committed

    def _revert(self, interaction: _Interaction) -> None:
        if interaction.task_id in self._snapshot:
            self._snapshot.place(
                interaction.task_id,
                interaction.original_status,
                interaction.original_position,
            )

    # ── Reconciliation ──────────────────────────────────────────

    def apply_event(self, event: FanOutEvent) -> bool:
        """Merge one fan-out event by task id. Returns True if applied."""
        if event.event_type not in BOARD_EVENT_TYPES:
            return False
        task_id = event.payload.get("id")
        if not isinstance(task_id, str):
            return False
        if self.in_flight(task_id):
            logger.debug("Dropped %s for in-flight task %s", event.event_type, task_id)
            return False

        if event.event_type == TASK_DELETED:
            return self._snapshot.remove(task_id) is not None

        try:
            task = TaskRecord.model_validate(event.payload)
        except ValidationError as exc:
            logger.warning("Ignoring malformed %s payload: %s", event.event_type, exc)
            return False
        if task.project_id != self.project_id:
            return False

        self._snapshot.upsert(task)
        return True

    def handle_message(self, raw: str | bytes) -> bool:
        """Entry point for raw socket frames."""
        try:
            event = FanOutEvent.from_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring malformed fan-out frame: %s", exc)
            return False
        return self.apply_event(event)

    def reconcile(self, tasks: Iterable[TaskRecord]) -> None:
        """Adopt authoritative tasks; in-flight tasks keep their local overlay."""
        keep = [tid for tid in self._states]
        self._snapshot.replace_all(
            (t for t in tasks if t.project_id == self.project_id),
            keep=keep,
        )

    async def refresh(self) -> None:
        if self._refetch is None:
            raise RuntimeError("BoardSynchronizer has no refetch callable")
        self.reconcile(await self._refetch())
