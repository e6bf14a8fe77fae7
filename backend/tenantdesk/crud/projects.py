# tenantdesk/crud/projects.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.auth.permissions import PLATFORM, Action, Resource, authorize
from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import AppError, NotFound, ValidationError
from tenantdesk.core.pagination import Page
from tenantdesk.core.statuses import ProjectStatus, TaskStatus
from tenantdesk.crud.quotas import check_project_quota
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProjectRow:
    """A project joined with its creator, task counters and owning tenant."""

    project: Project
    creator_name: Optional[str]
    task_count: int
    completed_task_count: int
    tenant_name: Optional[str] = None
    tenant_subdomain: Optional[str] = None


def _task_count():
    return (
        select(func.count(Task.id))
        .where(Task.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )


def _completed_count():
    return (
        select(func.coalesce(func.sum(case((Task.status == TaskStatus.COMPLETED, 1), else_=0)), 0))
        .where(Task.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )


def _row_query():
    return (
        select(
            Project,
            User.full_name,
            _task_count().label("task_count"),
            _completed_count().label("completed_task_count"),
            Tenant.name,
            Tenant.subdomain,
        )
        .outerjoin(User, User.id == Project.created_by)
        .join(Tenant, Tenant.id == Project.tenant_id)
    )


def _to_row(row) -> ProjectRow:
    project, creator_name, task_count, completed, tenant_name, tenant_subdomain = row
    return ProjectRow(
        project=project,
        creator_name=creator_name,
        task_count=int(task_count or 0),
        completed_task_count=int(completed or 0),
        tenant_name=tenant_name,
        tenant_subdomain=tenant_subdomain,
    )


def _list_filters(status: Optional[ProjectStatus], search: Optional[str]) -> list:
    filters = []
    if status is not None:
        filters.append(Project.status == status)
    s = (search or "").strip().lower()
    if s:
        filters.append(func.lower(Project.name).like(f"%{s}%"))
    return filters


async def _page(db: AsyncSession, filters: list, page: Page) -> tuple[list[ProjectRow], int]:
    count_stmt = (
        select(func.count(Project.id))
        .join(Tenant, Tenant.id == Project.tenant_id)
        .where(*filters)
    )
    total = int((await db.execute(count_stmt)).scalar() or 0)

    stmt = (
        _row_query()
        .where(*filters)
        .order_by(Project.created_at.desc(), Project.id)
        .limit(page.limit)
        .offset(page.offset)
    )
    rows = [_to_row(r) for r in (await db.execute(stmt)).all()]
    return rows, total


async def get_project(db: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


async def create_project(
    db: AsyncSession,
    principal: Principal,
    *,
    name: str,
    description: Optional[str] = None,
    status: ProjectStatus = ProjectStatus.ACTIVE,
) -> Project:
    """The project belongs to the caller's tenant, never to one named by the client."""
    if principal.tenant_id is None:
        raise ValidationError("Projects must be created inside a tenant")
    tenant_id = principal.tenant_id
    authorize(principal, Action.PROJECT_CREATE, Resource(tenant_id=tenant_id))

    try:
        await check_project_quota(db, tenant_id)
        project = Project(
            tenant_id=tenant_id,
            name=name,
            description=description or None,
            status=status,
            created_by=principal.user_id,
        )
        db.add(project)
        await db.commit()
    except AppError:
        await db.rollback()
        raise

    await db.refresh(project)
    logger.info("project_created", tenant_id=str(tenant_id), project_id=str(project.id))
    return project


async def read_project(db: AsyncSession, principal: Principal, project_id: uuid.UUID) -> ProjectRow:
    project = await get_project(db, project_id)
    authorize(principal, Action.PROJECT_READ, Resource(tenant_id=project.tenant_id), "Unauthorized")
    row = (await db.execute(_row_query().where(Project.id == project_id))).one()
    return _to_row(row)


async def list_projects(
    db: AsyncSession,
    principal: Principal,
    *,
    page: Page,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
) -> tuple[list[ProjectRow], int]:
    if principal.tenant_id is None:
        # a tenant-less caller has no own projects; /projects/all is the platform view
        return [], 0
    authorize(principal, Action.PROJECT_READ, Resource(tenant_id=principal.tenant_id))
    filters = [Project.tenant_id == principal.tenant_id, *_list_filters(status, search)]
    return await _page(db, filters, page)


async def list_all_projects(
    db: AsyncSession,
    principal: Principal,
    *,
    page: Page,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    tenant_subdomain: Optional[str] = None,
) -> tuple[list[ProjectRow], int]:
    authorize(principal, Action.PROJECT_LIST_ALL, PLATFORM, "Only super admin can view all projects")
    filters = _list_filters(status, search)
    if tenant_subdomain and tenant_subdomain.strip():
        filters.append(Tenant.subdomain == tenant_subdomain.strip().lower())
    return await _page(db, filters, page)


async def update_project(
    db: AsyncSession,
    principal: Principal,
    project_id: uuid.UUID,
    changes: Mapping[str, Any],
) -> Project:
    project = await get_project(db, project_id)
    authorize(
        principal,
        Action.PROJECT_UPDATE,
        Resource(tenant_id=project.tenant_id, owner_user_id=project.created_by),
    )

    for field in ("name", "description", "status"):
        value = changes.get(field)
        if value is not None:
            setattr(project, field, value)

    await db.commit()
    await db.refresh(project)
    logger.info("project_updated", project_id=str(project.id))
    return project


async def delete_project(db: AsyncSession, principal: Principal, project_id: uuid.UUID) -> Project:
    """Removes the project together with its tasks."""
    project = await get_project(db, project_id)
    authorize(
        principal,
        Action.PROJECT_DELETE,
        Resource(tenant_id=project.tenant_id, owner_user_id=project.created_by),
    )

    try:
        await db.execute(delete(Task).where(Task.project_id == project.id))
        await db.delete(project)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("project_deleted", tenant_id=str(project.tenant_id), project_id=str(project.id))
    return project
