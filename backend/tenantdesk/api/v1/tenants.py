# backend/tenantdesk/api/v1/tenants.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.api.deps.auth import client_ip, get_current_principal
from tenantdesk.api.deps.registry import get_tenant_registry
from tenantdesk.api.responses import created, ok
from tenantdesk.auth.principal import Principal
from tenantdesk.core.pagination import clamp_page
from tenantdesk.core.plans import SubscriptionPlan, TenantStatus
from tenantdesk.crud.audit import log_action
from tenantdesk.crud.tenants import TenantRegistry
from tenantdesk.db.session import get_db
from tenantdesk.schemas.tenant import (
    TenantCreate,
    TenantDetailOut,
    TenantListItem,
    TenantOut,
    TenantStats,
    TenantUpdate,
)

router = APIRouter(prefix="/tenants", tags=["tenants"])

DEFAULT_TENANT_PAGE_SIZE = 10


# ---------------------------------------------------------
# Platform (super_admin)
# ---------------------------------------------------------
@router.post("")
async def create_tenant(
    payload: TenantCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    tenant = await registry.create_tenant(
        db,
        principal,
        name=payload.name,
        subdomain=payload.subdomain,
        plan=payload.subscription_plan,
        status=payload.status,
        max_users=payload.max_users,
        max_projects=payload.max_projects,
    )
    await log_action(
        db,
        action="CREATE_TENANT",
        tenant_id=tenant.id,
        user_id=principal.user_id,
        entity_type="tenant",
        entity_id=tenant.id,
        ip=client_ip(request),
    )
    return created(TenantOut.model_validate(tenant).to_wire(), "Tenant created successfully")


@router.get("")
async def list_tenants(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    status: Optional[TenantStatus] = Query(default=None),
    subscription_plan: Optional[SubscriptionPlan] = Query(default=None, alias="subscriptionPlan"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_TENANT_PAGE_SIZE)
    rows, total = await registry.list_tenants(db, principal, page=p, status=status, plan=subscription_plan)

    tenants = [
        TenantListItem(
            id=t.id,
            name=t.name,
            subdomain=t.subdomain,
            status=t.status,
            subscription_plan=t.subscription_plan,
            max_users=t.max_users,
            max_projects=t.max_projects,
            total_users=counts.total_users,
            total_projects=counts.total_projects,
            created_at=t.created_at,
        ).to_wire()
        for t, counts in rows
    ]
    pagination = p.meta(total)
    pagination["totalTenants"] = total
    return ok({"tenants": tenants, "pagination": pagination})


# ---------------------------------------------------------
# Single tenant
# ---------------------------------------------------------
@router.get("/{tenant_id}")
async def get_tenant(
    tenant_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    tenant, counts = await registry.get_tenant(db, principal, tenant_id)
    body = TenantDetailOut(
        **TenantOut.model_validate(tenant).model_dump(),
        stats=TenantStats(
            total_users=counts.total_users,
            total_projects=counts.total_projects,
            total_tasks=counts.total_tasks,
        ),
    )
    return ok(body.to_wire())


@router.put("/{tenant_id}")
async def update_tenant(
    tenant_id: uuid.UUID,
    payload: TenantUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    tenant = await registry.update_tenant(db, principal, tenant_id, payload.model_dump(exclude_unset=True))
    await log_action(
        db,
        action="UPDATE_TENANT",
        tenant_id=tenant.id,
        user_id=principal.user_id,
        entity_type="tenant",
        entity_id=tenant.id,
        ip=client_ip(request),
    )
    return ok(TenantOut.model_validate(tenant).to_wire(), "Tenant updated successfully")
