# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
WebSocket Board Push — Real-time fan-out delivery to connected boards.

A socket is authorized with the same TenantGuard as HTTP routes before it
joins any room, then receives every event published to org:<tenant> and
user:<caller>. The internal broadcast endpoint lets other processes push
an event into a room. It is closed unless BROADCAST_TOKEN is configured, and
every call must present that token in X-Broadcast-Token.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from flowdesk.api.deps import get_repository_scope
from flowdesk.api.errors import APIError, BadRequestError, ForbiddenError, to_api_error
from flowdesk.auth.errors import AuthorizationError
from flowdesk.auth.guard import GuardRequest, TenantGuard
from flowdesk.auth.resolver import TenantResolver
from flowdesk.core.config import settings
from flowdesk.core.context import get_platform_context
from flowdesk.kernel.fanout import BROADCAST_TOKEN_HEADER
from flowdesk.kernel.namespace import org_room, user_room
from flowdesk.protocols.events import ALL_EVENT_TYPES
from flowdesk.protocols.schema import FanOutEvent

router = APIRouter()
logger = logging.getLogger("flowdesk.ws")

_board_guard = TenantGuard(resolver=TenantResolver.from_settings(settings))


async def require_broadcast_token(
    token: Optional[str] = Header(default=None, alias=BROADCAST_TOKEN_HEADER),
) -> None:
    expected = settings.BROADCAST_TOKEN
    if not expected:
        raise ForbiddenError("Broadcast endpoint is disabled")
    if not token or not secrets.compare_digest(token.encode(), expected.encode()):
        raise APIError(code="UNAUTHENTICATED", message="Invalid broadcast token", status_code=401)


@router.post("/internal/broadcast", dependencies=[Depends(require_broadcast_token)])
async def broadcast(body: Dict[str, Any] = Body(...)):
    """
    Publish `{event, data, room}` to a room.

    Same contract as the HTTP fan-out transport, so one process can act as
    the broadcast endpoint for others.
    """
    event_type = body.get("event")
    room = body.get("room")
    if not event_type or not room:
        raise BadRequestError("Missing event or room")
    if event_type not in ALL_EVENT_TYPES:
        raise BadRequestError("Unknown event type", {"event": event_type})

    try:
        event = FanOutEvent.create(event_type=event_type, room=room, payload=body.get("data") or {})
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise BadRequestError("Invalid broadcast", {"errors": errors}) from exc

    receivers = await get_platform_context().get_bus().publish(event)
    return {"success": True, "receivers": receivers}


@router.websocket("/ws/board")
async def board_socket(websocket: WebSocket, open_repositories=Depends(get_repository_scope)):
    """
    Board event stream.

    Handshake: `?tenantId=<org>` (or X-Tenant-Id) and the caller in
    X-User-Id (or `?userId=` where headers cannot be set). Rejected with
    1008 before accept when the caller may not see the tenant.
    """
    user_id = websocket.headers.get(settings.USER_HEADER) or websocket.query_params.get("userId")
    payload = dict(websocket.query_params)

    async with open_repositories() as repos:
        caller = await repos.users.get_identity(user_id) if user_id else None
        try:
            ctx = await _board_guard.authorize(
                GuardRequest(
                    caller=caller,
                    payload=payload,
                    load_memberships=repos.memberships.list_for_user,
                    bound_tenant_id=websocket.headers.get(settings.TENANT_HEADER),
                )
            )
        except AuthorizationError as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=to_api_error(exc).code)
            return

    await websocket.accept()
    rooms = [org_room(ctx.tenant_id), user_room(ctx.caller_id)]
    logger.info("WS joined %s", rooms, extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id})

    bus = get_platform_context().get_bus()

    async def forward(event: FanOutEvent) -> None:
        await websocket.send_text(event.to_json())

    await bus.subscribe(rooms, forward)
    try:
        while True:
            # Inbound frames are keep-alives only
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("WS left %s", rooms, extra={"tenant_id": ctx.tenant_id, "caller_id": ctx.caller_id})
    finally:
        await bus.close()
