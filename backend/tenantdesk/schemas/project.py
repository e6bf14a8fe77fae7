from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from tenantdesk.core.statuses import ProjectStatus
from tenantdesk.schemas.base import CamelModel


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name is required")
    return v


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class ProjectUpdate(CamelModel):
    """Only fields present in the request body are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class ProjectCreator(CamelModel):
    id: UUID
    full_name: Optional[str] = None


class ProjectOut(CamelModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ProjectListItem(CamelModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_by: Optional[ProjectCreator] = None
    task_count: int = 0
    completed_task_count: int = 0
    created_at: datetime
    tenant_name: Optional[str] = None
    tenant_subdomain: Optional[str] = None
