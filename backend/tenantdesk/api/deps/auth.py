from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from tenantdesk.auth.principal import Principal
from tenantdesk.core.exceptions import InvalidToken
from tenantdesk.core.logging import bind_principal
from tenantdesk.core.security import bearer_scheme, decode_access_token


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """
    Dependency for protected endpoints.
    Stateless: the token alone identifies the caller; nothing is looked up.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise InvalidToken("Token missing")
    principal = decode_access_token(credentials.credentials)
    bind_principal(user_id=principal.user_id, tenant_id=principal.tenant_id, role=principal.role)
    return principal


def client_ip(request: Request) -> Optional[str]:
    # first hop when running behind a proxy
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
