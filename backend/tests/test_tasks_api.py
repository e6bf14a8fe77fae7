# tests/test_tasks_api.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from tenantdesk.core.roles import Role
from tenantdesk.core.statuses import TaskPriority, TaskStatus
from tenantdesk.models.task import Task


@pytest.mark.asyncio
async def test_register_login_and_track_a_task(client):
    r = await client.post(
        "/api/v1/auth/register-tenant",
        json={
            "tenantName": "Acme",
            "subdomain": "acme",
            "adminEmail": "a@acme.com",
            "adminPassword": "Secret123",
            "adminFullName": "Ann Acme",
        },
    )
    assert r.status_code == 201, r.text

    r = await client.post(
        "/api/v1/auth/login",
        json={"email": "a@acme.com", "password": "Secret123", "tenantSubdomain": "acme"},
    )
    assert r.status_code == 200, r.text
    auth = {"Authorization": f"Bearer {r.json()['data']['token']}"}

    r = await client.post("/api/v1/projects", json={"name": "Launch"}, headers=auth)
    assert r.status_code == 201, r.text
    project_id = r.json()["data"]["id"]

    r = await client.post(
        f"/api/v1/projects/{project_id}/tasks",
        json={"title": "Write copy", "priority": "high"},
        headers=auth,
    )
    assert r.status_code == 201, r.text
    assert r.json()["message"] == "Task created successfully"

    r = await client.get(f"/api/v1/projects/{project_id}/tasks", headers=auth)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total"] == 1
    (task,) = data["tasks"]
    assert task["title"] == "Write copy"
    assert task["status"] == "todo"
    assert task["priority"] == "high"
    assert task["assignedTo"] is None
    assert task["projectName"] == "Launch"


@pytest.mark.asyncio
async def test_task_listing_order(client, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    project = await factory.project(tenant, member)
    await factory.task(project, "low-early", priority=TaskPriority.LOW, due_date=date(2025, 1, 1))
    await factory.task(project, "high-undated", priority=TaskPriority.HIGH)
    await factory.task(project, "high-march", priority=TaskPriority.HIGH, due_date=date(2025, 3, 1))
    await factory.task(project, "medium-feb", priority=TaskPriority.MEDIUM, due_date=date(2025, 2, 1))
    await factory.task(project, "high-jan", priority=TaskPriority.HIGH, due_date=date(2025, 1, 15))

    r = await client.get(f"/api/v1/projects/{project.id}/tasks", headers=headers(member))
    assert r.status_code == 200, r.text
    titles = [t["title"] for t in r.json()["data"]["tasks"]]
    assert titles == ["high-jan", "high-march", "high-undated", "medium-feb", "low-early"]


@pytest.mark.asyncio
async def test_task_filters(client, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    helper = await factory.user(tenant, full_name="Helper")
    project = await factory.project(tenant, member)
    await factory.task(project, "Fix login bug", priority=TaskPriority.HIGH, assigned_to=helper)
    await factory.task(project, "Write release notes", status=TaskStatus.COMPLETED)
    await factory.task(project, "Fix typo", priority=TaskPriority.LOW)
    url = f"/api/v1/projects/{project.id}/tasks"

    r = await client.get(url, params={"search": "fix"}, headers=headers(member))
    assert {t["title"] for t in r.json()["data"]["tasks"]} == {"Fix login bug", "Fix typo"}

    r = await client.get(url, params={"status": "completed"}, headers=headers(member))
    assert [t["title"] for t in r.json()["data"]["tasks"]] == ["Write release notes"]

    r = await client.get(url, params={"assignedTo": str(helper.id)}, headers=headers(member))
    (task,) = r.json()["data"]["tasks"]
    assert task["assignedTo"]["fullName"] == "Helper"
    assert task["assignedTo"]["email"] == helper.email

    r = await client.get(url, params={"priority": "urgent"}, headers=headers(member))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_create_task_validates_assignee(client, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    project = await factory.project(tenant, member)
    stranger = await factory.user(await factory.tenant())
    url = f"/api/v1/projects/{project.id}/tasks"

    r = await client.post(url, json={"title": "Ghost", "assignedTo": str(stranger.id)}, headers=headers(member))
    assert r.status_code == 400
    assert r.json()["message"] == "Assigned user invalid"

    r = await client.post(url, json={"title": "   "}, headers=headers(member))
    assert r.status_code == 400

    r = await client.post(
        url,
        json={"title": "Real", "assignedTo": str(member.id), "dueDate": "2025-06-30"},
        headers=headers(member),
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["assignedTo"]["id"] == str(member.id)
    assert data["dueDate"] == "2025-06-30"
    assert data["priority"] == "medium"
    assert data["tenantId"] == str(tenant.id)


@pytest.mark.asyncio
async def test_update_task_null_clears_and_omission_keeps(client, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    project = await factory.project(tenant, member)
    task = await factory.task(project, "Draft", assigned_to=member, due_date=date(2025, 5, 1))
    url = f"/api/v1/tasks/{task.id}"

    r = await client.put(url, json={"title": "Final draft", "priority": "high"}, headers=headers(member))
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["title"] == "Final draft"
    assert data["assignedTo"]["id"] == str(member.id)
    assert data["dueDate"] == "2025-05-01"

    r = await client.put(url, json={"assignedTo": None}, headers=headers(member))
    data = r.json()["data"]
    assert data["assignedTo"] is None
    assert data["dueDate"] == "2025-05-01"
    assert data["title"] == "Final draft"

    r = await client.put(url, json={"dueDate": None, "title": None}, headers=headers(member))
    data = r.json()["data"]
    assert data["dueDate"] is None
    assert data["title"] == "Final draft"

    stranger = await factory.user(await factory.tenant())
    r = await client.put(url, json={"assignedTo": str(stranger.id)}, headers=headers(member))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_patch_task_status(client, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    project = await factory.project(tenant, member)
    task = await factory.task(project)
    url = f"/api/v1/tasks/{task.id}/status"

    r = await client.patch(url, json={"status": "in_progress"}, headers=headers(member))
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Task status updated"
    assert r.json()["data"]["status"] == "in_progress"

    r = await client.patch(url, json={"status": "done"}, headers=headers(member))
    assert r.status_code == 400

    outsider = await factory.user(await factory.tenant(), role=Role.TENANT_ADMIN)
    r = await client.patch(url, json={"status": "completed"}, headers=headers(outsider))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_delete_task(client, db, factory, headers):
    tenant = await factory.tenant()
    member = await factory.user(tenant)
    project = await factory.project(tenant, member)
    task = await factory.task(project)
    outsider = await factory.user(await factory.tenant(), role=Role.TENANT_ADMIN)

    assert (await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(outsider))).status_code == 403

    r = await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(member))
    assert r.status_code == 200
    assert r.json()["message"] == "Task deleted"
    assert (await db.execute(select(Task.id).where(Task.id == task.id))).first() is None

    r = await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(member))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_tenant_and_platform_task_listings(client, factory, headers):
    root = await factory.super_admin()
    acme = await factory.tenant("acme")
    globex = await factory.tenant("globex")
    member = await factory.user(acme)
    first = await factory.project(acme, member, "First")
    second = await factory.project(acme, member, "Second")
    foreign = await factory.project(globex, None, "Foreign")
    await factory.task(first, "f1")
    await factory.task(second, "s1")
    await factory.task(foreign, "g1")

    r = await client.get("/api/v1/tasks", headers=headers(member))
    assert r.status_code == 200, r.text
    assert {t["title"] for t in r.json()["data"]["tasks"]} == {"f1", "s1"}

    r = await client.get("/api/v1/tasks", params={"projectId": str(second.id)}, headers=headers(member))
    assert [t["title"] for t in r.json()["data"]["tasks"]] == ["s1"]

    r = await client.get("/api/v1/tasks/all", headers=headers(member))
    assert r.status_code == 403

    r = await client.get("/api/v1/tasks/all", headers=headers(root))
    assert r.json()["data"]["total"] == 3

    r = await client.get("/api/v1/tasks/all", params={"tenantSubdomain": "globex"}, headers=headers(root))
    (task,) = r.json()["data"]["tasks"]
    assert task["title"] == "g1"
    assert task["tenantSubdomain"] == "globex"

    # another tenant's project is off limits
    r = await client.get(f"/api/v1/projects/{foreign.id}/tasks", headers=headers(member))
    assert r.status_code == 403
    r = await client.post(f"/api/v1/projects/{foreign.id}/tasks", json={"title": "x"}, headers=headers(member))
    assert r.status_code == 403
