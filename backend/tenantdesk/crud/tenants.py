# tenantdesk/crud/tenants.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.auth.permissions import PLATFORM, Action, Resource, authorize
from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import AppError, Conflict, Forbidden, NotFound, ValidationError
from tenantdesk.core.pagination import Page
from tenantdesk.core.plans import (
    DEFAULT_PLAN_LIMITS,
    PlanLimits,
    SubscriptionPlan,
    TenantStatus,
    normalize_plan,
    resolve_limits,
)
from tenantdesk.core.roles import Role
from tenantdesk.core.security import hash_password
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)

# Fields a tenant_admin may change on its own tenant
TENANT_ADMIN_EDITABLE = frozenset({"name"})


@dataclass(frozen=True)
class TenantCounts:
    total_users: int
    total_projects: int
    total_tasks: int = 0


def _count(model, tenant_id):
    return select(func.count(model.id)).where(model.tenant_id == tenant_id).scalar_subquery()


class TenantRegistry:
    """
    Tenant lifecycle: creation (self-service registration or super_admin),
    reads with live counts, and role-restricted updates.

    Plan caps come from the mapping given at construction time.
    """

    def __init__(self, plan_limits: Mapping[SubscriptionPlan, PlanLimits] = DEFAULT_PLAN_LIMITS):
        self.plan_limits = plan_limits

    def limits_for(
        self,
        plan: SubscriptionPlan,
        *,
        max_users: Optional[int] = None,
        max_projects: Optional[int] = None,
    ) -> PlanLimits:
        return resolve_limits(self.plan_limits, plan, max_users=max_users, max_projects=max_projects)

    # ---------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------
    async def get_by_subdomain(self, db: AsyncSession, subdomain: str) -> Optional[Tenant]:
        stmt = select(Tenant).where(Tenant.subdomain == subdomain.strip().lower())
        return (await db.execute(stmt)).scalar_one_or_none()

    async def counts(self, db: AsyncSession, tenant_id: uuid.UUID) -> TenantCounts:
        stmt = select(_count(User, tenant_id), _count(Project, tenant_id), _count(Task, tenant_id))
        users, projects, tasks = (await db.execute(stmt)).one()
        return TenantCounts(total_users=int(users or 0), total_projects=int(projects or 0), total_tasks=int(tasks or 0))

    # ---------------------------------------------------------
    # Creation
    # ---------------------------------------------------------
    async def _new_tenant(
        self,
        db: AsyncSession,
        *,
        name: str,
        subdomain: str,
        plan: SubscriptionPlan | str | None = None,
        status: TenantStatus = TenantStatus.ACTIVE,
        max_users: Optional[int] = None,
        max_projects: Optional[int] = None,
    ) -> Tenant:
        """Adds (and flushes) a tenant inside the caller's transaction."""
        subdomain = subdomain.strip().lower()
        if await self.get_by_subdomain(db, subdomain) is not None:
            raise Conflict("Subdomain already exists")

        try:
            plan = normalize_plan(plan)
        except ValueError:
            raise ValidationError("Invalid subscription plan")

        limits = self.limits_for(plan, max_users=max_users, max_projects=max_projects)
        tenant = Tenant(
            name=name.strip(),
            subdomain=subdomain,
            status=status,
            subscription_plan=plan,
            max_users=limits.max_users,
            max_projects=limits.max_projects,
        )
        db.add(tenant)
        await db.flush()
        return tenant

    async def create_tenant(
        self,
        db: AsyncSession,
        principal: Principal,
        *,
        name: str,
        subdomain: str,
        plan: SubscriptionPlan | str | None = None,
        status: TenantStatus = TenantStatus.ACTIVE,
        max_users: Optional[int] = None,
        max_projects: Optional[int] = None,
    ) -> Tenant:
        authorize(principal, Action.TENANT_CREATE, PLATFORM, "Only super_admin can create tenants")
        try:
            tenant = await self._new_tenant(
                db,
                name=name,
                subdomain=subdomain,
                plan=plan,
                status=status,
                max_users=max_users,
                max_projects=max_projects,
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict("Subdomain already exists")
        except AppError:
            await db.rollback()
            raise

        await db.refresh(tenant)
        logger.info("tenant_created", tenant_id=str(tenant.id), subdomain=tenant.subdomain)
        return tenant

    async def register_tenant(
        self,
        db: AsyncSession,
        *,
        tenant_name: str,
        subdomain: str,
        admin_email: str,
        admin_password: str,
        admin_full_name: str,
    ) -> tuple[Tenant, User]:
        """
        Self-service signup: tenant (free plan, active) + its first tenant_admin,
        all or nothing.
        """
        try:
            tenant = await self._new_tenant(db, name=tenant_name, subdomain=subdomain)
            admin = User(
                tenant_id=tenant.id,
                email=User.normalize_email(admin_email),
                password_hash=hash_password(admin_password),
                full_name=admin_full_name,
                role=Role.TENANT_ADMIN,
                is_active=True,
            )
            db.add(admin)
            await db.commit()
        except AppError:
            await db.rollback()
            raise
        except IntegrityError:
            # lost a race against a concurrent registration of the same subdomain
            await db.rollback()
            raise Conflict("Subdomain already exists")
        except Exception as exc:
            await db.rollback()
            logger.exception("tenant_registration_failed", subdomain=subdomain)
            raise ValidationError("Registration failed") from exc

        logger.info("tenant_registered", tenant_id=str(tenant.id), subdomain=tenant.subdomain)
        return tenant, admin

    # ---------------------------------------------------------
    # Reads
    # ---------------------------------------------------------
    async def get_tenant(
        self, db: AsyncSession, principal: Principal, tenant_id: uuid.UUID
    ) -> tuple[Tenant, TenantCounts]:
        authorize(principal, Action.TENANT_READ, Resource(tenant_id=tenant_id), "Unauthorized access")
        tenant = await db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")
        return tenant, await self.counts(db, tenant.id)

    async def list_tenants(
        self,
        db: AsyncSession,
        principal: Principal,
        *,
        page: Page,
        status: Optional[TenantStatus] = None,
        plan: Optional[SubscriptionPlan] = None,
    ) -> tuple[list[tuple[Tenant, TenantCounts]], int]:
        authorize(principal, Action.TENANT_LIST, PLATFORM, "Only super_admin can list tenants")

        filters = []
        if status is not None:
            filters.append(Tenant.status == status)
        if plan is not None:
            filters.append(Tenant.subscription_plan == plan)

        total = int((await db.execute(select(func.count(Tenant.id)).where(*filters))).scalar() or 0)

        stmt = (
            select(
                Tenant,
                _count(User, Tenant.id).label("total_users"),
                _count(Project, Tenant.id).label("total_projects"),
            )
            .where(*filters)
            .order_by(Tenant.created_at.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        rows = (await db.execute(stmt)).all()
        items = [
            (tenant, TenantCounts(total_users=int(users or 0), total_projects=int(projects or 0)))
            for tenant, users, projects in rows
        ]
        return items, total

    # ---------------------------------------------------------
    # Updates
    # ---------------------------------------------------------
    async def update_tenant(
        self,
        db: AsyncSession,
        principal: Principal,
        tenant_id: uuid.UUID,
        changes: Mapping[str, Any],
    ) -> Tenant:
        """
        changes holds only the fields present in the request.
        tenant_admin: name only. super_admin: any field; a plan change without
        explicit caps re-derives the caps from the plan table.
        """
        authorize(principal, Action.TENANT_UPDATE, Resource(tenant_id=tenant_id), "Unauthorized access")

        changes = {k: v for k, v in changes.items() if v is not None}
        if not principal.is_super_admin:
            restricted = set(changes) - TENANT_ADMIN_EDITABLE
            if restricted:
                raise Forbidden(f"tenant_admin may only update: name (got {', '.join(sorted(restricted))})")

        tenant = await db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")

        if "name" in changes:
            tenant.name = changes["name"].strip()
        if "status" in changes:
            tenant.status = changes["status"]
        if "subscription_plan" in changes:
            plan = normalize_plan(changes["subscription_plan"])
            if plan != tenant.subscription_plan:
                limits = self.limits_for(plan)
                tenant.max_users = limits.max_users
                tenant.max_projects = limits.max_projects
            tenant.subscription_plan = plan
        if "max_users" in changes:
            tenant.max_users = changes["max_users"]
        if "max_projects" in changes:
            tenant.max_projects = changes["max_projects"]

        await db.commit()
        await db.refresh(tenant)
        logger.info("tenant_updated", tenant_id=str(tenant.id), fields=sorted(changes))
        return tenant


tenant_registry = TenantRegistry()
