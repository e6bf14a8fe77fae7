# tests/test_auth_api.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from tenantdesk.auth.principal import Principal
from tenantdesk.core.plans import TenantStatus
from tenantdesk.core.roles import Role
from tenantdesk.core.security import create_access_token
from tenantdesk.models.audit_log import AuditLog
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

REGISTER = "/api/v1/auth/register-tenant"
LOGIN = "/api/v1/auth/login"
ME = "/api/v1/auth/me"


def registration(subdomain: str = "acme", **overrides) -> dict:
    body = {
        "tenantName": "Acme Inc",
        "subdomain": subdomain,
        "adminEmail": f"a@{subdomain}.com",
        "adminPassword": "Secret123",
        "adminFullName": "Alice Admin",
    }
    body.update(overrides)
    return body


async def count(db, model, *where) -> int:
    return int((await db.execute(select(func.count()).select_from(model).where(*where))).scalar())


# ---------------------------------------------------------
# Registration
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_register_tenant_creates_free_tenant_and_admin(client, db):
    r = await client.post(REGISTER, json=registration(subdomain="Acme"))

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Tenant registered successfully"
    data = body["data"]
    assert data["subdomain"] == "acme"
    assert data["adminUser"]["email"] == "a@acme.com"
    assert data["adminUser"]["role"] == "tenant_admin"

    tenant = (await db.execute(select(Tenant).where(Tenant.subdomain == "acme"))).scalar_one()
    assert str(tenant.id) == data["tenantId"]
    assert tenant.subscription_plan.value == "free"
    assert tenant.status is TenantStatus.ACTIVE
    assert (tenant.max_users, tenant.max_projects) == (5, 3)

    actions = (await db.execute(select(AuditLog.action))).scalars().all()
    assert "REGISTER_TENANT" in actions


@pytest.mark.asyncio
async def test_duplicate_subdomain_conflicts_without_partial_rows(client, db):
    r1 = await client.post(REGISTER, json=registration())
    assert r1.status_code == 201

    r2 = await client.post(REGISTER, json=registration(adminEmail="other@acme.com"))
    assert r2.status_code == 409
    assert r2.json() == {"success": False, "message": "Subdomain already exists"}

    assert await count(db, Tenant) == 1
    assert await count(db, User) == 1
    assert await count(db, User, User.email == "other@acme.com") == 0


@pytest.mark.asyncio
async def test_register_failure_after_tenant_insert_rolls_back(client, db, monkeypatch):
    import tenantdesk.crud.tenants as tenant_store

    def exploding_hash(password: str) -> str:
        raise RuntimeError("hasher unavailable")

    monkeypatch.setattr(tenant_store, "hash_password", exploding_hash)

    r = await client.post(REGISTER, json=registration())
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Registration failed"}

    assert await count(db, Tenant) == 0
    assert await count(db, User) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"subdomain": "ab"},
        {"subdomain": "-acme"},
        {"subdomain": "ac_me"},
        {"subdomain": "admin"},
        {"adminPassword": "short1A"},
        {"adminPassword": "alllowercase1"},
        {"adminEmail": "not-an-email"},
        {"tenantName": "   "},
    ],
)
async def test_register_validation_errors(client, db, overrides):
    r = await client.post(REGISTER, json={**registration(), **overrides})

    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation error"
    assert body["errors"]
    assert await count(db, Tenant) == 0


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_login_by_subdomain_and_by_id(client, factory):
    tenant = await factory.tenant("acme")
    user = await factory.user(tenant, "Bob@Example.com", role=Role.USER)

    r = await client.post(LOGIN, json={"email": "bob@example.com", "password": "Secret123", "tenantSubdomain": "ACME"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["expiresIn"] == 24 * 60 * 60
    assert data["user"] == {
        "id": str(user.id),
        "email": "bob@example.com",
        "fullName": "Test User",
        "role": "user",
        "tenantId": str(tenant.id),
    }

    r = await client.post(LOGIN, json={"email": "BOB@example.com", "password": "Secret123", "tenantId": str(tenant.id)})
    assert r.status_code == 200
    token = r.json()["data"]["token"]

    me = await client.get(ME, headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["tenant"]["subdomain"] == "acme"


@pytest.mark.asyncio
async def test_login_failures(client, factory):
    tenant = await factory.tenant("acme")
    await factory.user(tenant, "bob@example.com")
    await factory.user(tenant, "gone@example.com", is_active=False)
    suspended = await factory.tenant("frozen", status=TenantStatus.SUSPENDED)
    await factory.user(suspended, "ice@example.com")

    cases = [
        ({"email": "bob@example.com", "password": "Wrong1234", "tenantSubdomain": "acme"}, 401, "Invalid credentials"),
        ({"email": "nobody@example.com", "password": "Secret123", "tenantSubdomain": "acme"}, 401, "Invalid credentials"),
        ({"email": "bob@example.com", "password": "Secret123", "tenantSubdomain": "nope"}, 404, "Tenant not found"),
        ({"email": "bob@example.com", "password": "Secret123", "tenantId": str(uuid.uuid4())}, 404, "Tenant not found"),
        ({"email": "bob@example.com", "password": "Secret123"}, 400, "tenantSubdomain or tenantId required"),
        ({"email": "gone@example.com", "password": "Secret123", "tenantSubdomain": "acme"}, 403, "Account inactive"),
        ({"email": "ice@example.com", "password": "Secret123", "tenantSubdomain": "frozen"}, 403, "Account suspended/inactive"),
    ]
    for body, status_code, message in cases:
        r = await client.post(LOGIN, json=body)
        assert r.status_code == status_code, (body, r.text)
        assert r.json()["message"] == message


@pytest.mark.asyncio
async def test_super_admin_logs_in_without_tenant(client, factory, db):
    admin = await factory.super_admin("root@example.com")

    r = await client.post(LOGIN, json={"email": "root@example.com", "password": "Secret123"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["user"]["role"] == "super_admin"
    assert data["user"]["tenantId"] is None

    me = await client.get(ME, headers={"Authorization": f"Bearer {data['token']}"})
    assert me.json()["data"]["tenant"] is None
    assert me.json()["data"]["id"] == str(admin.id)

    bad = await client.post(LOGIN, json={"email": "root@example.com", "password": "nope"})
    assert bad.status_code == 401

    logins = await count(db, AuditLog, AuditLog.action == "LOGIN", AuditLog.user_id == admin.id)
    assert logins == 1


# ---------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_me_and_logout(client, factory, headers, db):
    tenant = await factory.tenant("acme")
    user = await factory.user(tenant, role=Role.TENANT_ADMIN)

    me = await client.get(ME, headers=headers(user))
    assert me.status_code == 200
    data = me.json()["data"]
    assert data["role"] == "tenant_admin"
    assert data["isActive"] is True
    assert data["tenant"]["maxUsers"] == 5
    assert data["tenant"]["subscriptionPlan"] == "free"

    out = await client.post("/api/v1/auth/logout", headers=headers(user))
    assert out.status_code == 200
    assert out.json()["message"] == "Logged out successfully"
    assert await count(db, AuditLog, AuditLog.action == "LOGOUT", AuditLog.user_id == user.id) == 1


@pytest.mark.asyncio
async def test_me_for_deleted_user_is_not_found(client, headers, factory):
    tenant = await factory.tenant()
    ghost = User(id=uuid.uuid4(), tenant_id=tenant.id, role=Role.USER)

    r = await client.get(ME, headers=headers(ghost))
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("path, method", [(ME, "get"), ("/api/v1/projects", "get"), ("/api/v1/auth/logout", "post")])
async def test_bad_tokens_are_unauthenticated_not_forbidden(client, path, method):
    expired = create_access_token(
        Principal(user_id=uuid.uuid4(), tenant_id=uuid.uuid4(), role=Role.TENANT_ADMIN),
        expires_minutes=-5,
    )
    for hdrs in ({}, {"Authorization": "Bearer garbage"}, {"Authorization": f"Bearer {expired}"}):
        r = await getattr(client, method)(path, headers=hdrs)
        assert r.status_code == 401, (hdrs, r.text)
        assert r.json()["success"] is False
