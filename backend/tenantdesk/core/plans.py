# ============================
# FILE: tenantdesk/core/plans.py
# Subscription plans and the caps they grant
# ============================
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping, Optional


class SubscriptionPlan(str, enum.Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class TenantStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"


@dataclass(frozen=True)
class PlanLimits:
    max_users: int
    max_projects: int


DEFAULT_PLAN_LIMITS: Mapping[SubscriptionPlan, PlanLimits] = {
    SubscriptionPlan.FREE: PlanLimits(max_users=5, max_projects=3),
    SubscriptionPlan.PRO: PlanLimits(max_users=25, max_projects=15),
    SubscriptionPlan.ENTERPRISE: PlanLimits(max_users=100, max_projects=50),
}


def normalize_plan(value: str | SubscriptionPlan | None) -> SubscriptionPlan:
    """
    Accepts enum members or plain strings ("Pro", " free ").
    Raises ValueError for unknown plans; None means the default (free) plan.
    """
    if value is None:
        return SubscriptionPlan.FREE
    if isinstance(value, SubscriptionPlan):
        return value
    return SubscriptionPlan(str(value).strip().lower())


def resolve_limits(
    plan_limits: Mapping[SubscriptionPlan, PlanLimits],
    plan: SubscriptionPlan,
    *,
    max_users: Optional[int] = None,
    max_projects: Optional[int] = None,
) -> PlanLimits:
    """
    Caps for a plan, with explicit overrides taking precedence field by field.
    """
    base = plan_limits.get(plan) or plan_limits[SubscriptionPlan.FREE]
    return PlanLimits(
        max_users=base.max_users if max_users is None else max_users,
        max_projects=base.max_projects if max_projects is None else max_projects,
    )
