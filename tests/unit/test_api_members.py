# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.
"""API tests for member management."""

import pytest

from flowdesk.core.context import get_platform_context
from flowdesk.protocols.events import INVITE_RECEIVED, NOTIFICATION


def _as(user):
    return {"X-User-Id": user.id}


class TestMembers:
    @pytest.mark.asyncio
    async def test_list(self, api_client, acme):
        resp = await api_client.get(
            "/api/members", params={"tenantId": acme["org"].id}, headers=_as(acme["users"]["VIEWER"]),
        )
        assert resp.status_code == 200
        assert {m["role"] for m in resp.json()} == {"OWNER", "ADMIN", "MEMBER", "VIEWER"}
        assert {m["email"] for m in resp.json()} >= {"viewer@acme.test"}

    @pytest.mark.asyncio
    async def test_admin_changes_role(self, api_client, store, acme):
        member = acme["users"]["MEMBER"]
        resp = await api_client.patch(
            "/api/members/role",
            json={"tenantId": acme["org"].id, "userId": member.id, "role": "viewer"},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.status_code == 200
        assert store.members[(acme["org"].id, member.id)].role == "VIEWER"

    @pytest.mark.asyncio
    async def test_member_cannot_change_roles(self, api_client, acme):
        resp = await api_client.patch(
            "/api/members/role",
            json={"tenantId": acme["org"].id, "userId": acme["users"]["VIEWER"].id, "role": "ADMIN"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_never_granted(self, api_client, acme):
        resp = await api_client.patch(
            "/api/members/role",
            json={"tenantId": acme["org"].id, "userId": acme["users"]["MEMBER"].id, "role": "OWNER"},
            headers=_as(acme["users"]["OWNER"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_admin_cannot_touch_owner(self, api_client, acme):
        resp = await api_client.request(
            "DELETE", "/api/members",
            json={"tenantId": acme["org"].id, "userId": acme["users"]["OWNER"].id},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_last_owner_stays(self, api_client, acme):
        owner = acme["users"]["OWNER"]
        resp = await api_client.patch(
            "/api/members/role",
            json={"tenantId": acme["org"].id, "userId": owner.id, "role": "ADMIN"},
            headers=_as(owner),
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_remove(self, api_client, store, acme):
        viewer = acme["users"]["VIEWER"]
        resp = await api_client.request(
            "DELETE", "/api/members",
            json={"tenantId": acme["org"].id, "userId": viewer.id},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.json() == {"success": True}
        assert (acme["org"].id, viewer.id) not in store.members

        denied = await api_client.get(
            "/api/members", params={"tenantId": acme["org"].id}, headers=_as(viewer),
        )
        assert denied.status_code == 403

    @pytest.mark.asyncio
    async def test_remove_unknown(self, api_client, acme):
        resp = await api_client.request(
            "DELETE", "/api/members",
            json={"tenantId": acme["org"].id, "userId": "ghost"},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.status_code == 404


class TestInvite:
    @pytest.mark.asyncio
    async def test_existing_user_is_notified(self, api_client, repos, recording_transport, acme):
        erin = await repos.users.create("erin@example.test")
        resp = await api_client.post(
            "/api/members/invite",
            json={"tenantId": acme["org"].id, "email": "erin@example.test"},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "MEMBER"
        assert resp.json()["token"]

        await get_platform_context().publisher.drain()
        notes = recording_transport.of_type(NOTIFICATION)
        assert [n.room for n in notes] == [f"user:{erin.id}"]
        assert notes[0].payload["type"] == INVITE_RECEIVED

    @pytest.mark.asyncio
    async def test_invalid_email(self, api_client, acme):
        resp = await api_client.post(
            "/api/members/invite",
            json={"tenantId": acme["org"].id, "email": "not-an-email"},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_member_cannot_invite(self, api_client, acme):
        resp = await api_client.post(
            "/api/members/invite",
            json={"tenantId": acme["org"].id, "email": "x@example.test"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 403
