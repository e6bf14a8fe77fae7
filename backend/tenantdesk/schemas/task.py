from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from tenantdesk.core.statuses import TaskPriority, TaskStatus
from tenantdesk.schemas.base import CamelModel


def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title is required")
    return v


class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    assigned_to: Optional[UUID] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class TaskUpdate(CamelModel):
    """
    Presence matters: a field left out of the body keeps its value, while
    an explicit null clears assignedTo / dueDate. Read the patch with
    model_dump(exclude_unset=True).
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[UUID] = None
    due_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_title(v)


class TaskStatusUpdate(CamelModel):
    status: TaskStatus


class TaskAssignee(CamelModel):
    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None


class TaskOut(CamelModel):
    id: UUID
    project_id: UUID
    tenant_id: UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[TaskAssignee] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
    project_name: Optional[str] = None
    tenant_subdomain: Optional[str] = None
