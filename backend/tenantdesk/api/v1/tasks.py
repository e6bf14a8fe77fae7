# backend/tenantdesk/api/v1/tasks.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.api.deps.auth import client_ip, get_current_principal
from tenantdesk.api.responses import created, ok, paginated
from tenantdesk.auth.principal import Principal
from tenantdesk.core.pagination import clamp_page
from tenantdesk.core.statuses import TaskPriority, TaskStatus
from tenantdesk.crud import tasks as task_store
from tenantdesk.crud.audit import log_action
from tenantdesk.crud.tasks import TaskFilters, TaskRow
from tenantdesk.db.session import get_db
from tenantdesk.schemas.task import TaskAssignee, TaskCreate, TaskOut, TaskStatusUpdate, TaskUpdate

router = APIRouter(tags=["tasks"])

DEFAULT_TASK_PAGE_SIZE = 50


def _task_out(row: TaskRow) -> dict:
    t = row.task
    assignee = None
    if t.assigned_to is not None:
        assignee = TaskAssignee(id=t.assigned_to, full_name=row.assignee_name, email=row.assignee_email)
    return TaskOut(
        id=t.id,
        project_id=t.project_id,
        tenant_id=t.tenant_id,
        title=t.title,
        description=t.description,
        status=t.status,
        priority=t.priority,
        assigned_to=assignee,
        due_date=t.due_date,
        created_at=t.created_at,
        updated_at=t.updated_at,
        project_name=row.project_name,
        tenant_subdomain=row.tenant_subdomain,
    ).to_wire()


def task_filters(
    status: Optional[TaskStatus] = Query(default=None),
    priority: Optional[TaskPriority] = Query(default=None),
    assigned_to: Optional[uuid.UUID] = Query(default=None, alias="assignedTo"),
    search: Optional[str] = Query(default=None),
) -> TaskFilters:
    return TaskFilters(status=status, priority=priority, assigned_to=assigned_to, search=search)


# ---------------------------------------------------------
# Project tasks
# ---------------------------------------------------------
@router.post("/projects/{project_id}/tasks")
async def create_task(
    project_id: uuid.UUID,
    payload: TaskCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    task = await task_store.create_task(
        db,
        principal,
        project_id,
        title=payload.title,
        description=payload.description,
        assigned_to=payload.assigned_to,
        priority=payload.priority,
        due_date=payload.due_date,
    )
    await log_action(
        db,
        action="CREATE_TASK",
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip=client_ip(request),
    )
    row = await task_store.read_task_row(db, task.id)
    return created(_task_out(row), "Task created successfully")


@router.get("/projects/{project_id}/tasks")
async def list_project_tasks(
    project_id: uuid.UUID,
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    filters: TaskFilters = Depends(task_filters),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_TASK_PAGE_SIZE)
    rows, total = await task_store.list_project_tasks(db, principal, project_id, page=p, filters=filters)
    return ok(paginated("tasks", [_task_out(r) for r in rows], total, p))


# ---------------------------------------------------------
# Cross-project listings
# ---------------------------------------------------------
@router.get("/tasks")
async def list_tasks(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    project_id: Optional[uuid.UUID] = Query(default=None, alias="projectId"),
    filters: TaskFilters = Depends(task_filters),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_TASK_PAGE_SIZE)
    rows, total = await task_store.list_tasks(db, principal, page=p, project_id=project_id, filters=filters)
    return ok(paginated("tasks", [_task_out(r) for r in rows], total, p))


@router.get("/tasks/all")
async def list_all_tasks(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    project_id: Optional[uuid.UUID] = Query(default=None, alias="projectId"),
    tenant_subdomain: Optional[str] = Query(default=None, alias="tenantSubdomain"),
    filters: TaskFilters = Depends(task_filters),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_TASK_PAGE_SIZE)
    rows, total = await task_store.list_all_tasks(
        db,
        principal,
        page=p,
        project_id=project_id,
        tenant_subdomain=tenant_subdomain,
        filters=filters,
    )
    return ok(paginated("tasks", [_task_out(r) for r in rows], total, p))


# ---------------------------------------------------------
# Single task
# ---------------------------------------------------------
@router.patch("/tasks/{task_id}/status")
async def update_task_status(
    task_id: uuid.UUID,
    payload: TaskStatusUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    task = await task_store.update_task_status(db, principal, task_id, payload.status)
    await log_action(
        db,
        action="UPDATE_TASK_STATUS",
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip=client_ip(request),
    )
    return ok(_task_out(await task_store.read_task_row(db, task.id)), "Task status updated")


@router.put("/tasks/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    # exclude_unset keeps "field omitted" apart from "field sent as null"
    task = await task_store.update_task(db, principal, task_id, payload.model_dump(exclude_unset=True))
    await log_action(
        db,
        action="UPDATE_TASK",
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip=client_ip(request),
    )
    return ok(_task_out(await task_store.read_task_row(db, task.id)), "Task updated successfully")


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    task = await task_store.delete_task(db, principal, task_id)
    await log_action(
        db,
        action="DELETE_TASK",
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task_id,
        ip=client_ip(request),
    )
    return ok(message="Task deleted")
