# tenantdesk/crud/quotas.py
from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.core.exceptions import NotFound, QuotaExceeded
from tenantdesk.models.project import Project
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)


async def _lock_tenant(db: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
    """
    Lock the tenant row for the rest of the caller's transaction so that
    concurrent creates for the same tenant serialize on check-then-insert.
    """
    tenant = (
        await db.execute(select(Tenant).where(Tenant.id == tenant_id).with_for_update())
    ).scalar_one_or_none()
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


async def count_users(db: AsyncSession, tenant_id: uuid.UUID) -> int:
    """Active and inactive users both occupy a seat."""
    stmt = select(func.count(User.id)).where(User.tenant_id == tenant_id)
    return int((await db.execute(stmt)).scalar() or 0)


async def count_projects(db: AsyncSession, tenant_id: uuid.UUID) -> int:
    stmt = select(func.count(Project.id)).where(Project.tenant_id == tenant_id)
    return int((await db.execute(stmt)).scalar() or 0)


async def check_user_quota(db: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
    tenant = await _lock_tenant(db, tenant_id)
    current = await count_users(db, tenant_id)
    if current >= tenant.max_users:
        logger.info("quota_exceeded", tenant_id=str(tenant_id), kind="users", limit=tenant.max_users, current=current)
        raise QuotaExceeded(
            "Subscription limit reached",
            details={"limit": tenant.max_users, "current": current},
        )
    return tenant


async def check_project_quota(db: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
    tenant = await _lock_tenant(db, tenant_id)
    current = await count_projects(db, tenant_id)
    if current >= tenant.max_projects:
        logger.info(
            "quota_exceeded", tenant_id=str(tenant_id), kind="projects", limit=tenant.max_projects, current=current
        )
        raise QuotaExceeded(
            "Project limit reached",
            details={"limit": tenant.max_projects, "current": current},
        )
    return tenant
