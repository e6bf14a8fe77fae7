from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from tenantdesk.core.roles import Role


@dataclass(frozen=True)
class Principal:
    """Authenticated identity carried by a verified access token."""

    user_id: uuid.UUID
    tenant_id: Optional[uuid.UUID]
    role: Role

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.role is Role.TENANT_ADMIN
