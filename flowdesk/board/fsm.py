# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Drag Lifecycle FSM — per-task interaction states on a board.

    IDLE --DRAG_START--> DRAGGING --HOVER--> DRAGGING
    DRAGGING --DROP_CHANGED--> COMMITTING --COMMIT_OK|COMMIT_FAILED--> IDLE
    DRAGGING --DROP_UNCHANGED|CANCEL--> IDLE

Transition rules are plain data; the engine only looks them up.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("flowdesk.board.fsm")


class InvalidTransitionError(Exception):
    """Raised when a drag lifecycle transition is not permitted."""
    pass


class DragState(str, enum.Enum):
    IDLE = "IDLE"
    DRAGGING = "DRAGGING"
    COMMITTING = "COMMITTING"


# Events
DRAG_START = "DRAG_START"
HOVER = "HOVER"
DROP_CHANGED = "DROP_CHANGED"
DROP_UNCHANGED = "DROP_UNCHANGED"
CANCEL = "CANCEL"
COMMIT_OK = "COMMIT_OK"
COMMIT_FAILED = "COMMIT_FAILED"

DRAG_LIFECYCLE: Dict[str, Any] = {
    "states": [s.value for s in DragState],
    "initial_state": DragState.IDLE.value,
    "transitions": [
        {"from": "IDLE", "event": DRAG_START, "to": "DRAGGING"},
        {"from": "DRAGGING", "event": HOVER, "to": "DRAGGING"},
        {"from": "DRAGGING", "event": DROP_CHANGED, "to": "COMMITTING"},
        {"from": "DRAGGING", "event": DROP_UNCHANGED, "to": "IDLE"},
        {"from": "DRAGGING", "event": CANCEL, "to": "IDLE"},
        {"from": "COMMITTING", "event": COMMIT_OK, "to": "IDLE"},
        {"from": "COMMITTING", "event": COMMIT_FAILED, "to": "IDLE"},
    ],
}


class DragFSM:
    """
    Table-driven finite state machine.

    Config shape:
        states: [IDLE, DRAGGING, ...]
        transitions:
          - from: IDLE
            event: DRAG_START
            to: DRAGGING
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        config = config or DRAG_LIFECYCLE
        self._states: List[str] = config.get("states", [])
        self._initial_state: str = config.get("initial_state", self._states[0] if self._states else "IDLE")
        self._lookup: Dict[tuple, str] = {
            (t["from"], t["event"]): t["to"] for t in config.get("transitions", [])
        }

    @property
    def states(self) -> List[str]:
        return list(self._states)

    @property
    def initial_state(self) -> DragState:
        return DragState(self._initial_state)

    def transition(self, current_state: DragState | str, event_type: str) -> DragState:
        """
        Compute the next state given current state and event type.

        Raises InvalidTransitionError if no matching rule exists.
        """
        current = getattr(current_state, "value", current_state)
        key = (current, event_type)
        if key not in self._lookup:
            raise InvalidTransitionError(
                f"No transition from state '{current}' on event '{event_type}'"
            )
        next_state = self._lookup[key]
        logger.debug("Drag transition: %s -[%s]-> %s", current, event_type, next_state)
        return DragState(next_state)

    def get_valid_events(self, current_state: DragState | str) -> List[str]:
        current = getattr(current_state, "value", current_state)
        return [event for (state, event) in self._lookup if state == current]
