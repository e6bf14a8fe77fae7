from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional

from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import Forbidden
from tenantdesk.core.roles import Role


class Action(str, enum.Enum):
    # tenant.*
    TENANT_READ = "tenant.read"
    TENANT_UPDATE = "tenant.update"
    TENANT_LIST = "tenant.list"
    TENANT_CREATE = "tenant.create"

    # user.*
    USER_CREATE = "user.create"
    USER_LIST = "user.list"
    USER_LIST_ALL = "user.list_all"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"

    # project.*
    PROJECT_CREATE = "project.create"
    PROJECT_READ = "project.read"
    PROJECT_LIST_ALL = "project.list_all"
    PROJECT_UPDATE = "project.update"
    PROJECT_DELETE = "project.delete"

    # task.*
    TASK_CREATE = "task.create"
    TASK_READ = "task.read"
    TASK_LIST_ALL = "task.list_all"
    TASK_UPDATE = "task.update"
    TASK_DELETE = "task.delete"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Resource:
    """
    What an action targets: the owning tenant (None for platform-wide
    collections) and, where ownership matters, the owning user.
    """

    tenant_id: Optional[uuid.UUID]
    owner_user_id: Optional[uuid.UUID] = None


PLATFORM = Resource(tenant_id=None)

# Anything a member of the owning tenant may do
MEMBER_ACTIONS: FrozenSet[Action] = frozenset(
    {
        Action.TENANT_READ,
        Action.USER_LIST,
        Action.PROJECT_CREATE,
        Action.PROJECT_READ,
        Action.TASK_CREATE,
        Action.TASK_READ,
        Action.TASK_UPDATE,
        Action.TASK_DELETE,
    }
)

# Allowed for a plain user only on resources they own
OWNER_ACTIONS: FrozenSet[Action] = frozenset(
    {
        Action.USER_UPDATE,
        Action.PROJECT_UPDATE,
        Action.PROJECT_DELETE,
    }
)

# Nobody may apply these to themselves
SELF_DENIED_ACTIONS: FrozenSet[Action] = frozenset({Action.USER_DELETE})

ROLE_TENANT_ACTIONS: Mapping[Role, FrozenSet[Action]] = {
    Role.TENANT_ADMIN: MEMBER_ACTIONS
    | frozenset(
        {
            Action.TENANT_UPDATE,
            Action.USER_CREATE,
            Action.USER_UPDATE,
            Action.USER_DELETE,
            Action.PROJECT_UPDATE,
            Action.PROJECT_DELETE,
        }
    ),
    Role.USER: MEMBER_ACTIONS,
}


def decide(principal: Principal, action: Action, resource: Resource) -> Decision:
    """
    Single decision point for tenant isolation and role checks.

    - deleting yourself is denied for every role
    - super_admin: everything else
    - everyone else: only inside their own tenant, then per-role grants,
      then owner-only grants for resources they own
    """
    if action in SELF_DENIED_ACTIONS and resource.owner_user_id == principal.user_id:
        return Decision.DENY

    if principal.role is Role.SUPER_ADMIN:
        return Decision.ALLOW

    if principal.tenant_id is None or resource.tenant_id != principal.tenant_id:
        return Decision.DENY

    if action in ROLE_TENANT_ACTIONS.get(principal.role, frozenset()):
        return Decision.ALLOW

    if (
        action in OWNER_ACTIONS
        and resource.owner_user_id is not None
        and resource.owner_user_id == principal.user_id
    ):
        return Decision.ALLOW

    return Decision.DENY


def is_permitted(principal: Principal, action: Action, resource: Resource) -> bool:
    return decide(principal, action, resource) is Decision.ALLOW


def authorize(
    principal: Principal,
    action: Action,
    resource: Resource,
    message: str = "Not authorized",
) -> None:
    """Raise Forbidden unless the guard allows the action."""
    if decide(principal, action, resource) is Decision.DENY:
        raise Forbidden(message)
