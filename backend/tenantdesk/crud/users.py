# tenantdesk/crud/users.py
from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.auth.permissions import PLATFORM, Action, Resource, authorize
from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import AppError, Conflict, Forbidden, NotFound, Unauthenticated, ValidationError
from tenantdesk.core.pagination import Page
from tenantdesk.core.plans import TenantStatus
from tenantdesk.core.roles import TENANT_ASSIGNABLE_ROLES, Role
from tenantdesk.core.security import hash_password, pwd_context, verify_password
from tenantdesk.crud.quotas import check_user_quota
from tenantdesk.crud.tenants import tenant_registry
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)

# Fields a plain user may change on their own profile
SELF_EDITABLE = frozenset({"full_name"})


def _search_filter(search: Optional[str]):
    s = (search or "").strip()
    if not s:
        return None
    pattern = f"%{s.lower()}%"
    return or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern))


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
async def authenticate(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    tenant_subdomain: Optional[str] = None,
    tenant_id: Optional[uuid.UUID] = None,
) -> tuple[User, Optional[Tenant]]:
    """
    Two paths:
      - an email matching a tenant-less row is the super_admin login
      - anyone else must name their tenant (id wins over subdomain)
    """
    email = User.normalize_email(email)

    stmt = select(User).where(User.email == email).where(User.tenant_id.is_(None))
    candidate = (await db.execute(stmt)).scalar_one_or_none()
    if candidate is not None:
        if candidate.role is not Role.SUPER_ADMIN or not verify_password(password, candidate.password_hash):
            raise Unauthenticated("Invalid credentials")
        if not candidate.is_active:
            raise Forbidden("Account inactive")
        return candidate, None

    if tenant_id is not None:
        tenant = await db.get(Tenant, tenant_id)
    elif tenant_subdomain:
        tenant = await tenant_registry.get_by_subdomain(db, tenant_subdomain)
    else:
        raise ValidationError("tenantSubdomain or tenantId required")

    if tenant is None:
        raise NotFound("Tenant not found")
    if tenant.status is not TenantStatus.ACTIVE:
        raise Forbidden("Account suspended/inactive")

    stmt = select(User).where(User.tenant_id == tenant.id).where(User.email == email)
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        # keep the unknown-email path as slow as a wrong password
        pwd_context.dummy_verify()
        raise Unauthenticated("Invalid credentials")
    if not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account inactive")
    return user, tenant


# ---------------------------------------------------------
# Create
# ---------------------------------------------------------
async def create_user(
    db: AsyncSession,
    principal: Principal,
    tenant_id: uuid.UUID,
    *,
    email: str,
    password: str,
    full_name: str,
    role: Role = Role.USER,
) -> User:
    authorize(principal, Action.USER_CREATE, Resource(tenant_id=tenant_id))
    if role not in TENANT_ASSIGNABLE_ROLES:
        raise ValidationError("Invalid role")

    email = User.normalize_email(email)
    try:
        await check_user_quota(db, tenant_id)

        stmt = select(User.id).where(User.tenant_id == tenant_id).where(User.email == email)
        if (await db.execute(stmt)).first() is not None:
            raise Conflict("Email already exists in this tenant")

        user = User(
            tenant_id=tenant_id,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=role,
            is_active=True,
        )
        db.add(user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email already exists in this tenant")
    except AppError:
        await db.rollback()
        raise

    await db.refresh(user)
    logger.info("user_created", tenant_id=str(tenant_id), user_id=str(user.id), role=role.value)
    return user


# ---------------------------------------------------------
# Lists
# ---------------------------------------------------------
async def list_tenant_users(
    db: AsyncSession,
    principal: Principal,
    tenant_id: uuid.UUID,
    *,
    page: Page,
    role: Optional[Role] = None,
    search: Optional[str] = None,
) -> tuple[list[User], int]:
    authorize(principal, Action.USER_LIST, Resource(tenant_id=tenant_id), "Unauthorized")

    filters = [User.tenant_id == tenant_id]
    if role is not None:
        filters.append(User.role == role)
    match = _search_filter(search)
    if match is not None:
        filters.append(match)

    total = int((await db.execute(select(func.count(User.id)).where(*filters))).scalar() or 0)
    stmt = (
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id)
        .limit(page.limit)
        .offset(page.offset)
    )
    users = list((await db.execute(stmt)).scalars().all())
    return users, total


async def list_all_users(
    db: AsyncSession,
    principal: Principal,
    *,
    page: Page,
    role: Optional[Role] = None,
    search: Optional[str] = None,
    tenant_subdomain: Optional[str] = None,
) -> tuple[list[tuple[User, Optional[str], Optional[str]]], int]:
    """Every user on the platform, with their tenant's name and subdomain (None for super admins)."""
    authorize(principal, Action.USER_LIST_ALL, PLATFORM, "Only super admin can view all users")

    filters = []
    if role is not None:
        filters.append(User.role == role)
    match = _search_filter(search)
    if match is not None:
        filters.append(match)
    if tenant_subdomain and tenant_subdomain.strip():
        filters.append(Tenant.subdomain == tenant_subdomain.strip().lower())

    base = select(User).outerjoin(Tenant, Tenant.id == User.tenant_id).where(*filters)
    total = int((await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0)

    stmt = (
        select(User, Tenant.name, Tenant.subdomain)
        .outerjoin(Tenant, Tenant.id == User.tenant_id)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id)
        .limit(page.limit)
        .offset(page.offset)
    )
    rows = [(user, name, subdomain) for user, name, subdomain in (await db.execute(stmt)).all()]
    return rows, total


# ---------------------------------------------------------
# Update / delete
# ---------------------------------------------------------
async def update_user(
    db: AsyncSession,
    principal: Principal,
    user_id: uuid.UUID,
    changes: Mapping[str, Any],
) -> User:
    """
    Admins may change full_name, role and is_active; a plain user only their
    own full_name. Null values in changes are ignored.
    """
    user = await get_user(db, user_id)
    authorize(principal, Action.USER_UPDATE, Resource(tenant_id=user.tenant_id, owner_user_id=user.id), "Unauthorized")

    changes = {k: v for k, v in changes.items() if v is not None}
    if principal.role is Role.USER and set(changes) - SELF_EDITABLE:
        raise Forbidden("Users may only update their own full name")

    if "role" in changes:
        role = changes["role"]
        if user.tenant_id is None or role not in TENANT_ASSIGNABLE_ROLES:
            raise ValidationError("Invalid role")
        user.role = role
    if "full_name" in changes:
        name = User.normalize_full_name(changes["full_name"])
        if name:
            user.full_name = name
    if "is_active" in changes:
        user.is_active = bool(changes["is_active"])

    await db.commit()
    await db.refresh(user)
    logger.info("user_updated", user_id=str(user.id), fields=sorted(changes))
    return user


async def delete_user(db: AsyncSession, principal: Principal, user_id: uuid.UUID) -> User:
    """
    Unassigns the user's tasks and clears project authorship, then removes the
    row; one transaction.
    """
    user = await get_user(db, user_id)
    message = "Cannot delete yourself" if user.id == principal.user_id else "Not authorized"
    authorize(principal, Action.USER_DELETE, Resource(tenant_id=user.tenant_id, owner_user_id=user.id), message)

    try:
        await db.execute(update(Task).where(Task.assigned_to == user.id).values(assigned_to=None))
        await db.execute(update(Project).where(Project.created_by == user.id).values(created_by=None))
        await db.delete(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("user_deleted", tenant_id=str(user.tenant_id), user_id=str(user.id))
    return user
