from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from tenantdesk.core.plans import SubscriptionPlan, TenantStatus
from tenantdesk.schemas.auth import normalize_subdomain
from tenantdesk.schemas.base import CamelModel


class TenantCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    subdomain: str
    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE
    status: TenantStatus = TenantStatus.ACTIVE

    # explicit caps override the plan table
    max_users: Optional[int] = Field(default=None, ge=1)
    max_projects: Optional[int] = Field(default=None, ge=1)

    @field_validator("subdomain")
    @classmethod
    def validate_subdomain(cls, v: str) -> str:
        return normalize_subdomain(v)


class TenantUpdate(CamelModel):
    """Only fields present in the request body are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[TenantStatus] = None
    subscription_plan: Optional[SubscriptionPlan] = None
    max_users: Optional[int] = Field(default=None, ge=1)
    max_projects: Optional[int] = Field(default=None, ge=1)


class TenantStats(CamelModel):
    total_users: int
    total_projects: int
    total_tasks: int


class TenantOut(CamelModel):
    id: UUID
    name: str
    subdomain: str
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    max_users: int
    max_projects: int
    created_at: datetime
    updated_at: datetime


class TenantDetailOut(TenantOut):
    stats: TenantStats


class TenantListItem(CamelModel):
    id: UUID
    name: str
    subdomain: str
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    max_users: int
    max_projects: int
    total_users: int
    total_projects: int
    created_at: datetime


class TenantSummary(CamelModel):
    """Tenant block embedded in /auth/me."""

    id: UUID
    name: str
    subdomain: str
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    max_users: int
    max_projects: int
