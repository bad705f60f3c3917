# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.
"""API tests for projects and notifications."""

import pytest


def _as(user):
    return {"X-User-Id": user.id}


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_and_list(self, api_client, acme):
        resp = await api_client.post(
            "/api/projects",
            json={"tenantId": acme["org"].id, "workspaceId": acme["workspace"].id, "name": "Q3 Roadmap"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 201
        assert resp.json()["slug"] == "q3-roadmap"
        assert resp.json()["workspaceId"] == acme["workspace"].id

        listed = await api_client.get(
            "/api/projects", params={"tenantId": acme["org"].id}, headers=_as(acme["users"]["VIEWER"]),
        )
        assert [p["name"] for p in listed.json()] == ["Launch", "Q3 Roadmap"]

    @pytest.mark.asyncio
    async def test_slug_conflict(self, api_client, acme):
        resp = await api_client.post(
            "/api/projects",
            json={"tenantId": acme["org"].id, "workspaceId": acme["workspace"].id, "name": "Launch"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_name_without_slug_characters(self, api_client, acme):
        resp = await api_client.post(
            "/api/projects",
            json={"tenantId": acme["org"].id, "workspaceId": acme["workspace"].id, "name": "!!!"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_viewer_cannot_create(self, api_client, acme):
        resp = await api_client.post(
            "/api/projects",
            json={"tenantId": acme["org"].id, "workspaceId": acme["workspace"].id, "name": "Nope"},
            headers=_as(acme["users"]["VIEWER"]),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_workspace_of_other_tenant(self, api_client, acme, repos):
        other = await repos.organizations.create("Globex", "globex", "someone")
        foreign = await repos.workspaces.create(other.id, "Ops", "ops", "someone")
        resp = await api_client.post(
            "/api/projects",
            json={"tenantId": acme["org"].id, "workspaceId": foreign.id, "name": "Sneaky"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_list_filtered_by_workspace(self, api_client, acme, repos):
        org_id = acme["org"].id
        ops = await repos.workspaces.create(org_id, "Ops", "ops", acme["users"]["OWNER"].id)
        await repos.projects.create(org_id, ops.id, "Oncall", "oncall", acme["users"]["OWNER"].id)
        resp = await api_client.get(
            "/api/projects",
            params={"tenantId": org_id, "workspaceId": ops.id},
            headers=_as(acme["users"]["VIEWER"]),
        )
        assert [p["name"] for p in resp.json()] == ["Oncall"]


class TestProjectSettings:
    @pytest.mark.asyncio
    async def test_member_updates_project(self, api_client, acme, store):
        project_id = acme["project"].id
        resp = await api_client.patch(
            "/api/projects",
            json={"tenantId": acme["org"].id, "id": project_id, "name": "Launch v2", "status": "ARCHIVED"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 200
        assert (resp.json()["name"], resp.json()["status"]) == ("Launch v2", "ARCHIVED")
        assert store.projects[project_id].status == "ARCHIVED"

    @pytest.mark.asyncio
    async def test_viewer_cannot_update(self, api_client, acme):
        resp = await api_client.patch(
            "/api/projects",
            json={"tenantId": acme["org"].id, "id": acme["project"].id, "name": "x"},
            headers=_as(acme["users"]["VIEWER"]),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, api_client, acme):
        resp = await api_client.patch(
            "/api/projects",
            json={"tenantId": acme["org"].id, "id": acme["project"].id, "status": "DELETED"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_member_cannot_delete(self, api_client, acme, store):
        resp = await api_client.request(
            "DELETE", "/api/projects",
            json={"tenantId": acme["org"].id, "id": acme["project"].id},
            headers=_as(acme["users"]["MEMBER"]),
        )
        assert resp.status_code == 403
        assert acme["project"].id in store.projects

    @pytest.mark.asyncio
    async def test_admin_deletes_project_and_tasks(self, api_client, acme, store):
        org_id = acme["org"].id
        await api_client.post(
            "/api/tasks",
            json={"tenantId": org_id, "projectId": acme["project"].id, "title": "Doomed"},
            headers=_as(acme["users"]["MEMBER"]),
        )
        resp = await api_client.request(
            "DELETE", "/api/projects",
            json={"tenantId": org_id, "id": acme["project"].id},
            headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.json() == {"success": True}
        assert store.projects == {} and store.tasks == {}

    @pytest.mark.asyncio
    async def test_delete_other_tenant_project_is_not_found(self, api_client, acme, repos):
        owner = acme["users"]["OWNER"]
        other = await repos.organizations.create("Globex", "globex", owner.id)
        await repos.memberships.add(other.id, owner.id, "OWNER")
        resp = await api_client.request(
            "DELETE", "/api/projects",
            json={"tenantId": other.id, "id": acme["project"].id},
            headers=_as(owner),
        )
        assert resp.status_code == 404


class TestNotifications:
    @pytest.mark.asyncio
    async def test_assignment_shows_up_and_marks_read(self, api_client, acme):
        viewer = acme["users"]["VIEWER"]
        org_id = acme["org"].id
        await api_client.post(
            "/api/tasks",
            json={"tenantId": org_id, "projectId": acme["project"].id, "title": "Review", "assigneeId": viewer.id},
            headers=_as(acme["users"]["MEMBER"]),
        )

        listed = await api_client.get("/api/notifications", params={"tenantId": org_id}, headers=_as(viewer))
        items = listed.json()
        assert len(items) == 1
        assert items[0]["type"] == "TASK_ASSIGNED"
        assert items[0]["read"] is False

        marked = await api_client.post(
            "/api/notifications/read",
            json={"tenantId": org_id, "ids": [items[0]["id"], "someone-elses"]},
            headers=_as(viewer),
        )
        assert marked.json() == {"updated": 1}

    @pytest.mark.asyncio
    async def test_only_own_notifications(self, api_client, acme):
        await api_client.post(
            "/api/tasks",
            json={
                "tenantId": acme["org"].id, "projectId": acme["project"].id,
                "title": "x", "assigneeId": acme["users"]["VIEWER"].id,
            },
            headers=_as(acme["users"]["MEMBER"]),
        )
        resp = await api_client.get(
            "/api/notifications", params={"tenantId": acme["org"].id}, headers=_as(acme["users"]["ADMIN"]),
        )
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_all_read(self, api_client, acme):
        viewer = acme["users"]["VIEWER"]
        org_id = acme["org"].id
        for title in ("one", "two"):
            await api_client.post(
                "/api/tasks",
                json={"tenantId": org_id, "projectId": acme["project"].id, "title": title, "assigneeId": viewer.id},
                headers=_as(acme["users"]["MEMBER"]),
            )

        count = await api_client.get(
            "/api/notifications/unread-count", params={"tenantId": org_id}, headers=_as(viewer),
        )
        assert count.json() == {"count": 2}

        marked = await api_client.post(
            "/api/notifications/read-all", json={"tenantId": org_id}, headers=_as(viewer),
        )
        assert marked.json() == {"updated": 2}

        count = await api_client.get(
            "/api/notifications/unread-count", params={"tenantId": org_id}, headers=_as(viewer),
        )
        assert count.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_mark_all_read_touches_only_caller(self, api_client, acme, store):
        org_id = acme["org"].id
        await api_client.post(
            "/api/tasks",
            json={
                "tenantId": org_id, "projectId": acme["project"].id,
                "title": "x", "assigneeId": acme["users"]["VIEWER"].id,
            },
            headers=_as(acme["users"]["MEMBER"]),
        )
        marked = await api_client.post(
            "/api/notifications/read-all", json={"tenantId": org_id}, headers=_as(acme["users"]["ADMIN"]),
        )
        assert marked.json() == {"updated": 0}
        assert [n.read for n in store.notifications.values()] == [False]
