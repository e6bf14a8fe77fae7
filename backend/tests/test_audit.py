# tests/test_audit.py
from __future__ import annotations

import pytest
from sqlalchemy import func, select

import tenantdesk.crud.audit as audit_store
from tenantdesk.core.roles import Role
from tenantdesk.crud.audit import log_action
from tenantdesk.models.audit_log import AuditLog


@pytest.fixture()
def failing_audit(monkeypatch):
    """Every audit insert violates NOT NULL on action."""

    def entry_without_action(**kwargs):
        return AuditLog(**{**kwargs, "action": None})

    monkeypatch.setattr(audit_store, "AuditLog", entry_without_action)


async def _audit_count(db) -> int:
    return int((await db.execute(select(func.count(AuditLog.id)))).scalar() or 0)


@pytest.mark.asyncio
async def test_log_action_swallows_database_errors(db, factory, failing_audit):
    tenant = await factory.tenant()

    await log_action(db, action="LOGIN", tenant_id=tenant.id, entity_type="user")

    assert await _audit_count(db) == 0
    # rows already loaded in the caller's session stay readable
    assert tenant.subdomain.startswith("t-")


@pytest.mark.asyncio
async def test_mutations_are_audited_with_client_ip(client, db, factory, headers):
    tenant = await factory.tenant()
    admin = await factory.user(tenant, role=Role.TENANT_ADMIN)

    r = await client.post(
        "/api/v1/projects",
        json={"name": "Audited"},
        headers={**headers(admin), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert r.status_code == 201, r.text
    project_id = r.json()["data"]["id"]

    rows = (await db.execute(select(AuditLog).where(AuditLog.action == "CREATE_PROJECT"))).scalars().all()
    assert len(rows) == 1
    entry = rows[0]
    assert entry.tenant_id == tenant.id
    assert entry.user_id == admin.id
    assert entry.entity_type == "project"
    assert entry.entity_id == project_id
    assert entry.ip_address == "203.0.113.7"


@pytest.mark.asyncio
async def test_failing_audit_does_not_fail_project_create(client, db, factory, headers, failing_audit):
    tenant = await factory.tenant()
    admin = await factory.user(tenant, role=Role.TENANT_ADMIN)

    r = await client.post("/api/v1/projects", json={"name": "Still saved"}, headers=headers(admin))
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["name"] == "Still saved"
    assert data["tenantId"] == str(tenant.id)
    assert await _audit_count(db) == 0


@pytest.mark.asyncio
async def test_failing_audit_does_not_fail_registration_or_login(client, db, failing_audit):
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
    assert r.json()["data"]["adminUser"]["email"] == "a@acme.com"

    r = await client.post(
        "/api/v1/auth/login",
        json={"email": "a@acme.com", "password": "Secret123", "tenantSubdomain": "acme"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["user"]["email"] == "a@acme.com"
    assert await _audit_count(db) == 0


@pytest.mark.asyncio
async def test_failing_audit_does_not_fail_user_and_tenant_updates(client, db, factory, headers, failing_audit):
    tenant = await factory.tenant()
    admin = await factory.user(tenant, role=Role.TENANT_ADMIN)

    r = await client.post(
        f"/api/v1/tenants/{tenant.id}/users",
        json={"email": "new@example.com", "password": "Secret123", "fullName": "New Person"},
        headers=headers(admin),
    )
    assert r.status_code == 201, r.text
    user_id = r.json()["data"]["id"]

    r = await client.put(f"/api/v1/users/{user_id}", json={"fullName": "Renamed Person"}, headers=headers(admin))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["fullName"] == "Renamed Person"

    r = await client.put(f"/api/v1/tenants/{tenant.id}", json={"name": "Renamed Co"}, headers=headers(admin))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["name"] == "Renamed Co"

    assert await _audit_count(db) == 0
