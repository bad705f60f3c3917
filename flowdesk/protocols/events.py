# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Event Type Constants — The vocabulary of the fan-out channel.

All event types MUST be UPPERCASE strings.
"""

# --- Task board ---
TASK_CREATED = "TASK_CREATED"
TASK_UPDATED = "TASK_UPDATED"
TASK_DELETED = "TASK_DELETED"
TASK_MOVED = "TASK_MOVED"  # accepted from older servers; merged like TASK_UPDATED

# --- Personal notifications (user:<id> rooms) ---
NOTIFICATION = "NOTIFICATION"

# --- Notification kinds (persisted rows) ---
TASK_ASSIGNED = "TASK_ASSIGNED"
INVITE_RECEIVED = "INVITE_RECEIVED"

# Events a board merges into its snapshot
BOARD_EVENT_TYPES = {
    TASK_CREATED,
    TASK_UPDATED,
    TASK_MOVED,
    TASK_DELETED,
}

# All known event types (for validation)
ALL_EVENT_TYPES = {
    TASK_CREATED,
    TASK_UPDATED,
    TASK_MOVED,
    TASK_DELETED,
    NOTIFICATION,
}
