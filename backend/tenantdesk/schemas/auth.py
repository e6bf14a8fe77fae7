# backend/tenantdesk/schemas/auth.py
from __future__ import annotations

import re
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from tenantdesk.core.roles import Role
from tenantdesk.schemas.base import CamelModel

SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
RESERVED_SUBDOMAINS = frozenset({"www", "api", "admin", "app", "mail", "ftp", "localhost"})


def normalize_subdomain(value: str) -> str:
    """
    Lowercase + validate: 3-63 chars, alphanumeric and hyphens,
    no leading/trailing hyphen, not a reserved name.
    """
    v = (value or "").strip().lower()
    if not 3 <= len(v) <= 63:
        raise ValueError("Subdomain must be 3-63 characters long")
    if not SUBDOMAIN_RE.match(v):
        raise ValueError("Subdomain may only contain lowercase letters, digits and inner hyphens")
    if v in RESERVED_SUBDOMAINS:
        raise ValueError("Subdomain is reserved")
    return v


def check_password_strength(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not (re.search(r"[A-Z]", value) and re.search(r"[a-z]", value) and re.search(r"\d", value)):
        raise ValueError("Password must include uppercase, lowercase and a number")
    return value


def _normalize_full_name(value: str) -> str:
    v = " ".join(value.strip().split())
    if len(v) < 2:
        raise ValueError("Full name must be at least 2 characters")
    return v


class RegisterTenantRequest(CamelModel):
    tenant_name: str = Field(min_length=1, max_length=255)
    subdomain: str
    admin_email: EmailStr
    admin_password: str = Field(max_length=128)
    admin_full_name: str = Field(max_length=255)

    @field_validator("tenant_name")
    @classmethod
    def validate_tenant_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tenant name is required")
        return v

    @field_validator("subdomain")
    @classmethod
    def validate_subdomain(cls, v: str) -> str:
        return normalize_subdomain(v)

    @field_validator("admin_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("admin_full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return _normalize_full_name(v)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)
    tenant_subdomain: Optional[str] = None
    tenant_id: Optional[UUID] = None

    @field_validator("tenant_subdomain")
    @classmethod
    def validate_tenant_subdomain(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.strip().lower()


class AdminUserOut(CamelModel):
    id: UUID
    email: str
    full_name: str
    role: Role


class RegisterTenantOut(CamelModel):
    tenant_id: UUID
    subdomain: str
    admin_user: AdminUserOut


class LoginUser(CamelModel):
    id: UUID
    email: str
    full_name: str
    role: Role
    tenant_id: Optional[UUID] = None


class LoginResponse(CamelModel):
    user: LoginUser
    token: str
    expires_in: int
