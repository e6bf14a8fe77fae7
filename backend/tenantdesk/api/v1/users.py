# backend/tenantdesk/api/v1/users.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.api.deps.auth import client_ip, get_current_principal
from tenantdesk.api.responses import created, ok, paginated
from tenantdesk.auth.principal import Principal
from tenantdesk.core.pagination import clamp_page
from tenantdesk.core.roles import Role
from tenantdesk.crud import users as user_store
from tenantdesk.crud.audit import log_action
from tenantdesk.db.session import get_db
from tenantdesk.schemas.user import UserCreate, UserOut, UserUpdate, UserWithTenantOut

router = APIRouter(tags=["users"])

DEFAULT_USER_PAGE_SIZE = 50


@router.post("/tenants/{tenant_id}/users")
async def add_user(
    tenant_id: uuid.UUID,
    payload: UserCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await user_store.create_user(
        db,
        principal,
        tenant_id,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
    )
    await log_action(
        db,
        action="CREATE_USER",
        tenant_id=tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user.id,
        ip=client_ip(request),
    )
    return created(UserOut.model_validate(user).to_wire(), "User created successfully")


@router.get("/tenants/{tenant_id}/users")
async def list_tenant_users(
    tenant_id: uuid.UUID,
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    role: Optional[Role] = Query(default=None),
    search: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_USER_PAGE_SIZE)
    users, total = await user_store.list_tenant_users(db, principal, tenant_id, page=p, role=role, search=search)
    return ok(paginated("users", [UserOut.model_validate(u).to_wire() for u in users], total, p))


@router.get("/users/all")
async def list_all_users(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    role: Optional[Role] = Query(default=None),
    search: Optional[str] = Query(default=None),
    tenant_subdomain: Optional[str] = Query(default=None, alias="tenantSubdomain"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """super_admin only: users of every tenant plus the platform admins."""
    p = clamp_page(page, limit, default_limit=DEFAULT_USER_PAGE_SIZE)
    rows, total = await user_store.list_all_users(
        db, principal, page=p, role=role, search=search, tenant_subdomain=tenant_subdomain
    )
    users = [
        UserWithTenantOut(
            **UserOut.model_validate(u).model_dump(),
            tenant_name=tenant_name,
            tenant_subdomain=tenant_subdomain,
        ).to_wire()
        for u, tenant_name, tenant_subdomain in rows
    ]
    return ok(paginated("users", users, total, p))


@router.put("/users/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await user_store.update_user(db, principal, user_id, payload.model_dump(exclude_unset=True))
    await log_action(
        db,
        action="UPDATE_USER",
        tenant_id=user.tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user.id,
        ip=client_ip(request),
    )
    return ok(UserOut.model_validate(user).to_wire(), "User updated successfully")


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await user_store.delete_user(db, principal, user_id)
    await log_action(
        db,
        action="DELETE_USER",
        tenant_id=user.tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user_id,
        ip=client_ip(request),
    )
    return ok(message="User deleted successfully")
