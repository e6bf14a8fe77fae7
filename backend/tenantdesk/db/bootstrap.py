# tenantdesk/db/bootstrap.py
"""
Startup tasks: apply Alembic migrations, then seed the platform super admin
and a demo tenant exactly once. The seed outcome is stored in app_status and
drives the readiness probe.
"""
from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Optional

import structlog
from alembic import command
from alembic.config import Config
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantdesk.core.config import settings
from tenantdesk.core.plans import SubscriptionPlan, TenantStatus
from tenantdesk.core.roles import Role
from tenantdesk.core.security import hash_password
from tenantdesk.core.statuses import ProjectStatus, TaskPriority, TaskStatus
from tenantdesk.crud.tenants import TenantRegistry, tenant_registry
from tenantdesk.models.app_status import SEED_STATUS_KEY, AppStatus
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"

SEED_PENDING = "pending"
SEED_DONE = "done"
SEED_SKIPPED = "skipped"
READY_STATES = frozenset({SEED_DONE, SEED_SKIPPED})

SUPER_ADMIN_EMAIL = "superadmin@system.com"
SUPER_ADMIN_PASSWORD = "Admin@123"

DEMO_SUBDOMAIN = "demo"
DEMO_USERS = (
    # email, password, full name, role
    ("admin@demo.com", "Demo@123", "Demo Admin", Role.TENANT_ADMIN),
    ("user1@demo.com", "User@123", "User One", Role.USER),
    ("user2@demo.com", "User@123", "User Two", Role.USER),
)
DEMO_PROJECTS = (
    ("Project Alpha", "First demo project"),
    ("Project Beta", "Second demo project"),
)
DEMO_TASKS = (
    # project, title, assignee email, priority, status
    ("Project Alpha", "Design homepage mockup", "user1@demo.com", TaskPriority.HIGH, TaskStatus.IN_PROGRESS),
    ("Project Alpha", "Implement authentication", "user2@demo.com", TaskPriority.MEDIUM, TaskStatus.TODO),
    ("Project Alpha", "Set up CI/CD", None, TaskPriority.LOW, TaskStatus.TODO),
    ("Project Beta", "Database schema review", "user1@demo.com", TaskPriority.HIGH, TaskStatus.COMPLETED),
    ("Project Beta", "Write API docs", "user2@demo.com", TaskPriority.MEDIUM, TaskStatus.IN_PROGRESS),
)


# ---------------------------------------------------------
# Migrations
# ---------------------------------------------------------
def _upgrade_head() -> None:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    # env.py would otherwise fileConfig() alembic.ini and reset the root logger to WARN
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")


async def run_migrations() -> None:
    # alembic is synchronous; keep it off the event loop
    logger.info("migrations_started")
    await asyncio.to_thread(_upgrade_head)
    logger.info("migrations_completed")


# ---------------------------------------------------------
# Seed status
# ---------------------------------------------------------
async def get_seed_status(db: AsyncSession) -> Optional[str]:
    row = await db.get(AppStatus, SEED_STATUS_KEY)
    return row.value if row else None


async def _set_seed_status(db: AsyncSession, value: str) -> None:
    row = await db.get(AppStatus, SEED_STATUS_KEY)
    if row is None:
        db.add(AppStatus(key=SEED_STATUS_KEY, value=value))
    else:
        row.value = value
    await db.flush()


async def is_ready(db: AsyncSession) -> bool:
    return await get_seed_status(db) in READY_STATES


async def mark_seed_skipped(db: AsyncSession) -> None:
    """Seeding disabled: the API is ready as soon as the schema exists."""
    if await get_seed_status(db) != SEED_DONE:
        await _set_seed_status(db, SEED_SKIPPED)
        await db.commit()


# ---------------------------------------------------------
# Seed
# ---------------------------------------------------------
async def _ensure_super_admin(db: AsyncSession) -> None:
    stmt = select(User.id).where(User.tenant_id.is_(None)).where(User.email == SUPER_ADMIN_EMAIL)
    if (await db.execute(stmt)).first() is not None:
        return
    db.add(
        User(
            tenant_id=None,
            email=SUPER_ADMIN_EMAIL,
            password_hash=hash_password(SUPER_ADMIN_PASSWORD),
            full_name="Super Admin",
            role=Role.SUPER_ADMIN,
            is_active=True,
        )
    )
    await db.flush()


async def _ensure_demo_tenant(db: AsyncSession, registry: TenantRegistry) -> Tenant:
    tenant = await registry.get_by_subdomain(db, DEMO_SUBDOMAIN)
    if tenant is not None:
        return tenant
    limits = registry.limits_for(SubscriptionPlan.PRO)
    tenant = Tenant(
        name="Demo Company",
        subdomain=DEMO_SUBDOMAIN,
        status=TenantStatus.ACTIVE,
        subscription_plan=SubscriptionPlan.PRO,
        max_users=limits.max_users,
        max_projects=limits.max_projects,
    )
    db.add(tenant)
    await db.flush()
    return tenant


async def _ensure_user(
    db: AsyncSession, tenant_id: uuid.UUID, email: str, password: str, full_name: str, role: Role
) -> uuid.UUID:
    stmt = select(User.id).where(User.tenant_id == tenant_id).where(User.email == email)
    existing = (await db.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        return existing
    user = User(
        tenant_id=tenant_id,
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    return user.id


async def _ensure_project(
    db: AsyncSession, tenant_id: uuid.UUID, name: str, description: str, created_by: uuid.UUID
) -> uuid.UUID:
    stmt = select(Project.id).where(Project.tenant_id == tenant_id).where(Project.name == name)
    existing = (await db.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        return existing
    project = Project(
        tenant_id=tenant_id,
        name=name,
        description=description,
        status=ProjectStatus.ACTIVE,
        created_by=created_by,
    )
    db.add(project)
    await db.flush()
    return project.id


async def _ensure_task(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    project_id: uuid.UUID,
    title: str,
    assigned_to: Optional[uuid.UUID],
    priority: TaskPriority,
    status: TaskStatus,
) -> None:
    stmt = select(Task.id).where(Task.project_id == project_id).where(Task.title == title)
    if (await db.execute(stmt)).first() is not None:
        return
    db.add(
        Task(
            project_id=project_id,
            tenant_id=tenant_id,
            title=title,
            description=f"{title} description",
            status=status,
            priority=priority,
            assigned_to=assigned_to,
        )
    )
    await db.flush()


async def seed(db: AsyncSession, registry: TenantRegistry = tenant_registry) -> bool:
    """
    Populate the super admin and the demo tenant unless the seed already ran.
    Every step is idempotent, so a seed interrupted halfway can simply run again.
    Returns True when this call did the seeding.
    """
    if await get_seed_status(db) == SEED_DONE:
        return False
    await _set_seed_status(db, SEED_PENDING)

    await _ensure_super_admin(db)
    tenant = await _ensure_demo_tenant(db, registry)

    user_ids = {}
    for email, password, full_name, role in DEMO_USERS:
        user_ids[email] = await _ensure_user(db, tenant.id, email, password, full_name, role)

    admin_id = user_ids[DEMO_USERS[0][0]]
    project_ids = {}
    for name, description in DEMO_PROJECTS:
        project_ids[name] = await _ensure_project(db, tenant.id, name, description, admin_id)

    for project_name, title, assignee, priority, status in DEMO_TASKS:
        await _ensure_task(
            db,
            tenant.id,
            project_ids[project_name],
            title,
            user_ids.get(assignee) if assignee else None,
            priority,
            status,
        )

    await _set_seed_status(db, SEED_DONE)
    await db.commit()
    logger.info("seed_completed", tenant_id=str(tenant.id))
    return True


async def run_startup(session_factory: async_sessionmaker) -> None:
    """Lifespan entry point: migrations, then seed (or mark it skipped)."""
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        await run_migrations()

    async with session_factory() as db:
        try:
            if settings.SEED_ON_STARTUP:
                await seed(db)
            else:
                await mark_seed_skipped(db)
        except Exception:
            await db.rollback()
            logger.exception("seed_failed")
            raise
