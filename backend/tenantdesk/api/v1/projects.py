# backend/tenantdesk/api/v1/projects.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.api.deps.auth import client_ip, get_current_principal
from tenantdesk.api.responses import created, ok, paginated
from tenantdesk.auth.principal import Principal
from tenantdesk.core.pagination import clamp_page
from tenantdesk.core.statuses import ProjectStatus
from tenantdesk.crud import projects as project_store
from tenantdesk.crud.audit import log_action
from tenantdesk.crud.projects import ProjectRow
from tenantdesk.db.session import get_db
from tenantdesk.schemas.project import (
    ProjectCreate,
    ProjectCreator,
    ProjectListItem,
    ProjectOut,
    ProjectUpdate,
)

router = APIRouter(prefix="/projects", tags=["projects"])

DEFAULT_PROJECT_PAGE_SIZE = 20


def _list_item(row: ProjectRow, *, with_tenant: bool = False) -> dict:
    p = row.project
    item = ProjectListItem(
        id=p.id,
        tenant_id=p.tenant_id,
        name=p.name,
        description=p.description,
        status=p.status,
        created_by=ProjectCreator(id=p.created_by, full_name=row.creator_name) if p.created_by else None,
        task_count=row.task_count,
        completed_task_count=row.completed_task_count,
        created_at=p.created_at,
        tenant_name=row.tenant_name,
        tenant_subdomain=row.tenant_subdomain,
    )
    exclude = None if with_tenant else {"tenant_name", "tenant_subdomain"}
    return item.model_dump(by_alias=True, mode="json", exclude=exclude)


@router.post("")
async def create_project(
    payload: ProjectCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    project = await project_store.create_project(
        db,
        principal,
        name=payload.name,
        description=payload.description,
        status=payload.status,
    )
    await log_action(
        db,
        action="CREATE_PROJECT",
        tenant_id=project.tenant_id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project.id,
        ip=client_ip(request),
    )
    return created(ProjectOut.model_validate(project).to_wire(), "Project created successfully")


@router.get("")
async def list_projects(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    status: Optional[ProjectStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_PROJECT_PAGE_SIZE)
    rows, total = await project_store.list_projects(db, principal, page=p, status=status, search=search)
    return ok(paginated("projects", [_list_item(r) for r in rows], total, p))


# must stay above /{project_id}
@router.get("/all")
async def list_all_projects(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    status: Optional[ProjectStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    tenant_subdomain: Optional[str] = Query(default=None, alias="tenantSubdomain"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    p = clamp_page(page, limit, default_limit=DEFAULT_PROJECT_PAGE_SIZE)
    rows, total = await project_store.list_all_projects(
        db, principal, page=p, status=status, search=search, tenant_subdomain=tenant_subdomain
    )
    return ok(paginated("projects", [_list_item(r, with_tenant=True) for r in rows], total, p))


@router.get("/{project_id}")
async def get_project(
    project_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    row = await project_store.read_project(db, principal, project_id)
    return ok(_list_item(row, with_tenant=True))


@router.put("/{project_id}")
async def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    project = await project_store.update_project(db, principal, project_id, payload.model_dump(exclude_unset=True))
    await log_action(
        db,
        action="UPDATE_PROJECT",
        tenant_id=project.tenant_id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project.id,
        ip=client_ip(request),
    )
    return ok(ProjectOut.model_validate(project).to_wire(), "Project updated successfully")


@router.delete("/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    project = await project_store.delete_project(db, principal, project_id)
    await log_action(
        db,
        action="DELETE_PROJECT",
        tenant_id=project.tenant_id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project_id,
        ip=client_ip(request),
    )
    return ok(message="Project deleted successfully")
