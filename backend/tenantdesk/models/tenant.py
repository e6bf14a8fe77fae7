# backend/tenantdesk/models/tenant.py

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tenantdesk.core.plans import SubscriptionPlan, TenantStatus
from tenantdesk.db.base import Base, db_enum, utcnow


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # stored lowercase; uniqueness is therefore case-insensitive
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, index=True, nullable=False)

    status: Mapped[TenantStatus] = mapped_column(
        db_enum(TenantStatus, "tenant_status"), nullable=False, default=TenantStatus.ACTIVE
    )
    subscription_plan: Mapped[SubscriptionPlan] = mapped_column(
        db_enum(SubscriptionPlan, "subscription_plan"), nullable=False, default=SubscriptionPlan.FREE
    )

    max_users: Mapped[int] = mapped_column(Integer, nullable=False)
    max_projects: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
