# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
FlowDesk Protocol Schema — task records and fan-out events.

Wire format is camelCase JSON (`tenantId`, `projectId`, `assigneeId`);
Python code uses snake_case attributes. Both spellings are accepted on input.

Design decisions:
  - Fan-out `event_type` enforced UPPERCASE to prevent silent misrouting.
  - `room` mandatory: an event without a destination is a bug, not a broadcast.
"""

from __future__ import annotations

import enum
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"


# Board column order
BOARD_COLUMNS: List[TaskStatus] = [
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.IN_REVIEW,
    TaskStatus.DONE,
]


class TaskPriority(str, enum.Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskRecord(WireModel):
    """A task as stored, returned by the API and carried in fan-out payloads."""

    id: str
    tenant_id: str
    project_id: str
    title: str
    description: Optional[Any] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.NONE
    position: int = Field(default=0, ge=0)
    assignee_id: Optional[str] = None
    created_by: Optional[str] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MoveTask(WireModel):
    """Drag-drop commit: one task to a status column at a position."""

    id: str
    status: TaskStatus
    position: int = Field(default=0, ge=0)


# ── Fan-out ─────────────────────────────────────────────────

class FanOutEvent(BaseModel):
    """
    Ephemeral broadcast message. Never persisted; delivered at most once,
    best effort, to whoever is subscribed to `room` at the time.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique event identifier (UUID v4)",
    )
    event_type: str = Field(
        ...,
        min_length=1,
        description="Event type constant — MUST be UPPERCASE",
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Event data (a task record for board events)",
    )
    room: str = Field(
        ...,
        min_length=1,
        description="Destination room, e.g. org:<tenantId> or user:<userId>",
    )
    created_at: float = Field(
        default_factory=time.time,
        description="Unix timestamp of event creation",
    )

    @field_validator("event_type")
    @classmethod
    def type_must_be_uppercase(cls, v: str) -> str:
        if v != v.upper():
            raise ValueError(
                f"Event type must be UPPERCASE, got '{v}'. "
                f"Did you mean '{v.upper()}'?"
            )
        return v

    def to_json(self) -> str:
        """Serialize to JSON string (for Redis / HTTP transport)."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> FanOutEvent:
        return cls.model_validate_json(data)

    @classmethod
    def create(
        cls,
        *,
        event_type: str,
        room: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> FanOutEvent:
        return cls(event_type=event_type, room=room, payload=payload or {})

    def __repr__(self) -> str:
        return f"FanOutEvent(type={self.event_type!r}, room={self.room!r})"


# ── Task mutation inputs ────────────────────────────────────

_REQUIRED_TASK_FIELDS = frozenset({"title", "status", "priority"})


class CreateTask(WireModel):
    project_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[Any] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.NONE
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None


class UpdateTask(WireModel):
    """Partial update. Only fields present in the request are written."""

    id: str
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[Any] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None

    def changes(self) -> Dict[str, Any]:
        changes = {name: getattr(self, name) for name in self.model_fields_set if name != "id"}
        # null clears only the nullable fields
        return {
            k: v for k, v in changes.items()
            if v is not None or k not in _REQUIRED_TASK_FIELDS
        }


class BulkUpdateTasks(WireModel):
    ids: List[str] = Field(..., min_length=1)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        changes = {name: getattr(self, name) for name in self.model_fields_set if name != "ids"}
        return {
            k: v for k, v in changes.items()
            if v is not None or k not in _REQUIRED_TASK_FIELDS
        }
