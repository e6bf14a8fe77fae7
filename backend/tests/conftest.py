from __future__ import annotations

import os

# Settings are read at import time; point them at SQLite before tenantdesk is imported.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///./tenantdesk-test.db")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("SEED_ON_STARTUP", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import uuid
from datetime import date
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from tenantdesk.auth.principal import Principal
from tenantdesk.core.plans import DEFAULT_PLAN_LIMITS, SubscriptionPlan, TenantStatus
from tenantdesk.core.roles import Role
from tenantdesk.core.security import create_access_token, hash_password
from tenantdesk.core.statuses import ProjectStatus, TaskPriority, TaskStatus
from tenantdesk.db.session import build_engine, build_sessionmaker, get_db

# Ensure Base + models are registered before create_all
from tenantdesk.db.base import Base
import tenantdesk.models  # noqa: F401
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

DEFAULT_PASSWORD = "Secret123"


# ---------------------------------------------------------
# Engine + schema lifecycle: one SQLite file per test
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from tenantdesk.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------
# Row factories
# ---------------------------------------------------------
class Factory:
    """Inserts rows directly, bypassing the API (and its quotas)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def tenant(
        self,
        subdomain: Optional[str] = None,
        *,
        plan: SubscriptionPlan = SubscriptionPlan.FREE,
        status: TenantStatus = TenantStatus.ACTIVE,
        max_users: Optional[int] = None,
        max_projects: Optional[int] = None,
    ) -> Tenant:
        limits = DEFAULT_PLAN_LIMITS[plan]
        tenant = Tenant(
            name=f"Tenant {uuid.uuid4().hex[:6]}",
            subdomain=subdomain or f"t-{uuid.uuid4().hex[:8]}",
            status=status,
            subscription_plan=plan,
            max_users=max_users if max_users is not None else limits.max_users,
            max_projects=max_projects if max_projects is not None else limits.max_projects,
        )
        self.db.add(tenant)
        await self.db.commit()
        return tenant

    async def user(
        self,
        tenant: Optional[Tenant],
        email: Optional[str] = None,
        *,
        role: Role = Role.USER,
        password: str = DEFAULT_PASSWORD,
        full_name: str = "Test User",
        is_active: bool = True,
    ) -> User:
        user = User(
            tenant_id=tenant.id if tenant else None,
            email=(email or f"user-{uuid.uuid4().hex[:8]}@example.com").lower(),
            password_hash=hash_password(password),
            full_name=full_name,
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def super_admin(self, email: str = "root@example.com") -> User:
        return await self.user(None, email, role=Role.SUPER_ADMIN, full_name="Root")

    async def project(self, tenant: Tenant, created_by: Optional[User] = None, name: str = "Project") -> Project:
        project = Project(
            tenant_id=tenant.id,
            name=name,
            status=ProjectStatus.ACTIVE,
            created_by=created_by.id if created_by else None,
        )
        self.db.add(project)
        await self.db.commit()
        return project

    async def task(
        self,
        project: Project,
        title: str = "Task",
        *,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.TODO,
        assigned_to: Optional[User] = None,
        due_date: Optional[date] = None,
    ) -> Task:
        task = Task(
            project_id=project.id,
            tenant_id=project.tenant_id,
            title=title,
            priority=priority,
            status=status,
            assigned_to=assigned_to.id if assigned_to else None,
            due_date=due_date,
        )
        self.db.add(task)
        await self.db.commit()
        return task


@pytest.fixture()
def factory(db) -> Factory:
    return Factory(db)


def auth_headers(user: User) -> dict[str, str]:
    """Bearer header for a user, minted without going through /auth/login."""
    token = create_access_token(Principal(user_id=user.id, tenant_id=user.tenant_id, role=user.role))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers():
    return auth_headers
