# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Namespace Helper — Room names and their Redis channels.

Rooms are the fan-out addressing unit:
    org:<tenant_id>    everyone viewing a tenant's boards
    user:<user_id>     one user's personal notification channel

Each room maps to one Redis Pub/Sub channel: flowdesk:room:<room>.
"""

from __future__ import annotations

ORG_ROOM_PREFIX = "org:"
USER_ROOM_PREFIX = "user:"


def org_room(tenant_id: str) -> str:
    """
    Example:
        org_room("acme") -> "org:acme"
    """
    return f"{ORG_ROOM_PREFIX}{tenant_id}"


def user_room(user_id: str) -> str:
    """
    Example:
        user_room("u_001") -> "user:u_001"
    """
    return f"{USER_ROOM_PREFIX}{user_id}"


def get_channel(room: str) -> str:
    """
    Build the Pub/Sub channel name for a room.

    Example:
        get_channel("org:acme") -> "flowdesk:room:org:acme"
    """
    return f"flowdesk:room:{room}"
