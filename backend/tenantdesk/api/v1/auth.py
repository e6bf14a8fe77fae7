# backend/tenantdesk/api/v1/auth.py
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.api.deps.auth import client_ip, get_current_principal
from tenantdesk.api.deps.registry import get_tenant_registry
from tenantdesk.api.responses import created, ok
from tenantdesk.auth.principal import Principal
from tenantdesk.core.config import settings
from tenantdesk.core.security import create_access_token
from tenantdesk.crud.audit import log_action
from tenantdesk.crud.tenants import TenantRegistry
from tenantdesk.crud.users import authenticate, get_user
from tenantdesk.db.session import get_db
from tenantdesk.models.tenant import Tenant
from tenantdesk.schemas.auth import (
    AdminUserOut,
    LoginRequest,
    LoginResponse,
    LoginUser,
    RegisterTenantOut,
    RegisterTenantRequest,
)
from tenantdesk.schemas.tenant import TenantSummary
from tenantdesk.schemas.user import MeResponse

router = APIRouter(prefix="/auth", tags=["auth"])

logger = structlog.get_logger(__name__)


@router.post("/register-tenant", status_code=status.HTTP_201_CREATED)
async def register_tenant(
    payload: RegisterTenantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    """
    Self-service signup. Creates the tenant (free plan) and its first
    tenant_admin in one transaction.
    """
    tenant, admin = await registry.register_tenant(
        db,
        tenant_name=payload.tenant_name,
        subdomain=payload.subdomain,
        admin_email=payload.admin_email,
        admin_password=payload.admin_password,
        admin_full_name=payload.admin_full_name,
    )
    await log_action(
        db,
        action="REGISTER_TENANT",
        tenant_id=tenant.id,
        user_id=admin.id,
        entity_type="tenant",
        entity_id=tenant.id,
        ip=client_ip(request),
    )

    body = RegisterTenantOut(
        tenant_id=tenant.id,
        subdomain=tenant.subdomain,
        admin_user=AdminUserOut.model_validate(admin),
    )
    return created(body.to_wire(), "Tenant registered successfully")


@router.post("/login")
async def login(payload: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email", "password", "tenantSubdomain" | "tenantId"}
    The tenant may be omitted only by the super admin.
    """
    user, tenant = await authenticate(
        db,
        email=payload.email,
        password=payload.password,
        tenant_subdomain=payload.tenant_subdomain,
        tenant_id=payload.tenant_id,
    )
    principal = Principal(user_id=user.id, tenant_id=tenant.id if tenant else None, role=user.role)
    token = create_access_token(principal)

    await log_action(
        db,
        action="LOGIN",
        tenant_id=principal.tenant_id,
        user_id=user.id,
        entity_type="user",
        entity_id=user.id,
        ip=client_ip(request),
    )
    logger.info("login_succeeded", user_id=str(user.id), tenant_id=str(principal.tenant_id))

    body = LoginResponse(
        user=LoginUser(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            tenant_id=principal.tenant_id,
        ),
        token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
    )
    return ok(body.to_wire(), "Login successful")


@router.get("/me")
async def me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await get_user(db, principal.user_id)

    tenant_summary = None
    if user.tenant_id is not None:
        tenant = await db.get(Tenant, user.tenant_id)
        if tenant is not None:
            tenant_summary = TenantSummary.model_validate(tenant)

    body = MeResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
        tenant=tenant_summary,
    )
    return ok(body.to_wire())


@router.post("/logout")
async def logout(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Tokens are stateless; logging out only leaves an audit entry."""
    await log_action(
        db,
        action="LOGOUT",
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=principal.user_id,
        ip=client_ip(request),
    )
    return ok(message="Logged out successfully")
