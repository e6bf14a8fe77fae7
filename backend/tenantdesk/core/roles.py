# tenantdesk/core/roles.py

import enum


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"    # system level, no tenant
    TENANT_ADMIN = "tenant_admin"  # can do everything inside its tenant
    USER = "user"                  # regular tenant member


# Roles a tenant_admin may hand out when adding or updating users
TENANT_ASSIGNABLE_ROLES = frozenset({Role.TENANT_ADMIN, Role.USER})
