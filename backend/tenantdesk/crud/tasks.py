# tenantdesk/crud/tasks.py
from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.auth.permissions import PLATFORM, Action, Resource, authorize
from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import NotFound, ValidationError
from tenantdesk.core.pagination import Page
from tenantdesk.core.statuses import PRIORITY_RANK, TaskPriority, TaskStatus
from tenantdesk.crud.projects import get_project
from tenantdesk.models.project import Project
from tenantdesk.models.task import Task
from tenantdesk.models.tenant import Tenant
from tenantdesk.models.user import User

logger = structlog.get_logger(__name__)

# Fields where an explicit null clears the value instead of being ignored
CLEARABLE_FIELDS = ("assigned_to", "due_date")


@dataclass(frozen=True)
class TaskFilters:
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[uuid.UUID] = None
    search: Optional[str] = None

    def clauses(self) -> list:
        out = []
        if self.status is not None:
            out.append(Task.status == self.status)
        if self.priority is not None:
            out.append(Task.priority == self.priority)
        if self.assigned_to is not None:
            out.append(Task.assigned_to == self.assigned_to)
        s = (self.search or "").strip().lower()
        if s:
            out.append(func.lower(Task.title).like(f"%{s}%"))
        return out


@dataclass(frozen=True)
class TaskRow:
    task: Task
    assignee_name: Optional[str]
    assignee_email: Optional[str]
    project_name: Optional[str]
    tenant_subdomain: Optional[str]


# high, medium, low; then due date ascending with undated tasks last; then newest first
TASK_ORDER = (
    case(
        *((Task.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()),
        else_=len(PRIORITY_RANK),
    ),
    case((Task.due_date.is_(None), 1), else_=0),
    Task.due_date.asc(),
    Task.created_at.desc(),
    Task.id,
)


def _row_query():
    return (
        select(Task, User.full_name, User.email, Project.name, Tenant.subdomain)
        .outerjoin(User, User.id == Task.assigned_to)
        .join(Project, Project.id == Task.project_id)
        .join(Tenant, Tenant.id == Task.tenant_id)
    )


def _to_row(row) -> TaskRow:
    task, full_name, email, project_name, subdomain = row
    return TaskRow(
        task=task,
        assignee_name=full_name,
        assignee_email=email,
        project_name=project_name,
        tenant_subdomain=subdomain,
    )


async def _page(db: AsyncSession, clauses: list, page: Page) -> tuple[list[TaskRow], int]:
    count_stmt = select(func.count(Task.id)).join(Tenant, Tenant.id == Task.tenant_id).where(*clauses)
    total = int((await db.execute(count_stmt)).scalar() or 0)

    stmt = _row_query().where(*clauses).order_by(*TASK_ORDER).limit(page.limit).offset(page.offset)
    rows = [_to_row(r) for r in (await db.execute(stmt)).all()]
    return rows, total


async def _check_assignee(db: AsyncSession, user_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
    stmt = select(User.id).where(User.id == user_id).where(User.tenant_id == tenant_id)
    if (await db.execute(stmt)).first() is None:
        raise ValidationError("Assigned user invalid")


async def get_task(db: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    return task


async def read_task_row(db: AsyncSession, task_id: uuid.UUID) -> TaskRow:
    row = (await db.execute(_row_query().where(Task.id == task_id))).one_or_none()
    if row is None:
        raise NotFound("Task not found")
    return _to_row(row)


async def create_task(
    db: AsyncSession,
    principal: Principal,
    project_id: uuid.UUID,
    *,
    title: str,
    description: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    priority: TaskPriority = TaskPriority.MEDIUM,
    due_date: Optional[dt.date] = None,
) -> Task:
    """The task inherits its tenant from the project."""
    project = await get_project(db, project_id)
    authorize(principal, Action.TASK_CREATE, Resource(tenant_id=project.tenant_id), "Unauthorized")

    if assigned_to is not None:
        await _check_assignee(db, assigned_to, project.tenant_id)

    task = Task(
        project_id=project.id,
        tenant_id=project.tenant_id,
        title=title,
        description=description or None,
        status=TaskStatus.TODO,
        priority=priority,
        assigned_to=assigned_to,
        due_date=due_date,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("task_created", tenant_id=str(task.tenant_id), task_id=str(task.id))
    return task


async def list_project_tasks(
    db: AsyncSession,
    principal: Principal,
    project_id: uuid.UUID,
    *,
    page: Page,
    filters: TaskFilters = TaskFilters(),
) -> tuple[list[TaskRow], int]:
    project = await get_project(db, project_id)
    authorize(principal, Action.TASK_READ, Resource(tenant_id=project.tenant_id), "Unauthorized")
    return await _page(db, [Task.project_id == project.id, *filters.clauses()], page)


async def list_tasks(
    db: AsyncSession,
    principal: Principal,
    *,
    page: Page,
    project_id: Optional[uuid.UUID] = None,
    filters: TaskFilters = TaskFilters(),
) -> tuple[list[TaskRow], int]:
    """Tasks across every project of the caller's tenant."""
    if principal.tenant_id is None:
        return [], 0
    authorize(principal, Action.TASK_READ, Resource(tenant_id=principal.tenant_id))

    clauses = [Task.tenant_id == principal.tenant_id, *filters.clauses()]
    if project_id is not None:
        clauses.append(Task.project_id == project_id)
    return await _page(db, clauses, page)


async def list_all_tasks(
    db: AsyncSession,
    principal: Principal,
    *,
    page: Page,
    project_id: Optional[uuid.UUID] = None,
    tenant_subdomain: Optional[str] = None,
    filters: TaskFilters = TaskFilters(),
) -> tuple[list[TaskRow], int]:
    authorize(principal, Action.TASK_LIST_ALL, PLATFORM, "Only super admin can view all tasks")

    clauses = filters.clauses()
    if project_id is not None:
        clauses.append(Task.project_id == project_id)
    if tenant_subdomain and tenant_subdomain.strip():
        clauses.append(Tenant.subdomain == tenant_subdomain.strip().lower())
    return await _page(db, clauses, page)


async def update_task_status(
    db: AsyncSession, principal: Principal, task_id: uuid.UUID, status: TaskStatus
) -> Task:
    task = await get_task(db, task_id)
    authorize(principal, Action.TASK_UPDATE, Resource(tenant_id=task.tenant_id), "Unauthorized")

    task.status = status
    await db.commit()
    await db.refresh(task)
    return task


async def update_task(
    db: AsyncSession,
    principal: Principal,
    task_id: uuid.UUID,
    changes: Mapping[str, Any],
) -> Task:
    """
    changes must contain only the fields the client actually sent.
    assigned_to / due_date: present with None clears, absent keeps.
    Other fields: None is ignored.
    """
    task = await get_task(db, task_id)
    authorize(principal, Action.TASK_UPDATE, Resource(tenant_id=task.tenant_id), "Unauthorized")

    if changes.get("assigned_to") is not None:
        await _check_assignee(db, changes["assigned_to"], task.tenant_id)

    for field, value in changes.items():
        if field in CLEARABLE_FIELDS:
            setattr(task, field, value)
        elif field in ("title", "description", "status", "priority") and value is not None:
            setattr(task, field, value)

    await db.commit()
    await db.refresh(task)
    logger.info("task_updated", task_id=str(task.id), fields=sorted(changes))
    return task


async def delete_task(db: AsyncSession, principal: Principal, task_id: uuid.UUID) -> Task:
    task = await get_task(db, task_id)
    authorize(principal, Action.TASK_DELETE, Resource(tenant_id=task.tenant_id), "Unauthorized")

    await db.delete(task)
    await db.commit()
    logger.info("task_deleted", tenant_id=str(task.tenant_id), task_id=str(task.id))
    return task
