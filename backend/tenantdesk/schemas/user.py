from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from tenantdesk.core.roles import Role
from tenantdesk.schemas.auth import check_password_strength
from tenantdesk.schemas.base import CamelModel
from tenantdesk.schemas.tenant import TenantSummary


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(max_length=128)
    full_name: str = Field(min_length=2, max_length=255)
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        v = " ".join(v.strip().split())
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return v


class UserUpdate(CamelModel):
    """Only fields present in the request body are applied."""

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserOut(CamelModel):
    id: UUID
    tenant_id: Optional[UUID] = None
    email: str
    full_name: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserWithTenantOut(UserOut):
    tenant_name: Optional[str] = None
    tenant_subdomain: Optional[str] = None


class MeResponse(CamelModel):
    id: UUID
    email: str
    full_name: str
    role: Role
    is_active: bool
    tenant: Optional[TenantSummary] = None
