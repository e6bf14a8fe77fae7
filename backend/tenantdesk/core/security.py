from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from tenantdesk.auth.principal import Principal
from tenantdesk.core.config import settings
from tenantdesk.core.exceptions import InvalidToken
from tenantdesk.core.roles import Role

# auto_error=False: a missing header must surface as our 401 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unrecognized / corrupt hash in the database
        return False


def _normalize_token(token: str) -> str:
    """
    Make token decoding resilient to common Swagger / copy-paste issues:
    - Leading/trailing whitespace/newlines
    - Surrounding quotes
    - Accidentally including the 'Bearer ' prefix in the token field
    """
    if token is None:
        return ""

    t = token.strip()

    if (t.startswith('"') and t.endswith('"')) or (t.startswith("'") and t.endswith("'")):
        t = t[1:-1].strip()

    if t.lower().startswith("bearer "):
        t = t[7:].strip()

    return t


def create_access_token(principal: Principal, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    expire_dt = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode: dict[str, Any] = {
        "sub": str(principal.user_id),
        "tenant_id": str(principal.tenant_id) if principal.tenant_id else None,
        "role": principal.role.value,
        "exp": int(expire_dt.timestamp()),
        "iat": int(now.timestamp()),
    }

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: Optional[str]) -> Principal:
    token = _normalize_token(token)
    if not token:
        raise InvalidToken("Token missing")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        # Includes expired signature, bad format, bad signature, wrong algorithm, etc.
        raise InvalidToken()

    try:
        user_id = uuid.UUID(str(payload["sub"]))
        raw_tenant = payload.get("tenant_id")
        tenant_id = uuid.UUID(str(raw_tenant)) if raw_tenant else None
        role = Role(payload.get("role"))
    except (KeyError, ValueError):
        raise InvalidToken()

    if role is not Role.SUPER_ADMIN and tenant_id is None:
        raise InvalidToken()

    return Principal(user_id=user_id, tenant_id=tenant_id, role=role)
