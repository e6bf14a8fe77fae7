# backend/tenantdesk/core/config.py

from __future__ import annotations

import json
from typing import Annotated, Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-change-me"

# Query params libpq understands but asyncpg.connect() does not
_ASYNCPG_UNSUPPORTED = frozenset({"sslmode", "channel_binding"})


def strip_asyncpg_params(url: str) -> str:
    """
    Hosted Postgres URLs often carry ?sslmode=require; passed through to
    asyncpg that fails with "connect() got an unexpected keyword argument".
    """
    parts = urlsplit(url)
    if not parts.query:
        return url
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in _ASYNCPG_UNSUPPORTED]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(kept, doseq=True), parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # -----------------------------
    # Database
    # -----------------------------
    DATABASE_URL_ASYNC: str
    # Alembic only; derived from DATABASE_URL_ASYNC (psycopg driver) when unset
    DATABASE_URL_SYNC: str | None = None
    SQL_ECHO: bool = False

    # migrations, then the one-time seed of the super admin and demo tenant
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    SEED_ON_STARTUP: bool = True

    # -----------------------------
    # Tokens and passwords
    # -----------------------------
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    BCRYPT_ROUNDS: int = 10

    # -----------------------------
    # HTTP
    # -----------------------------
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, v: Any) -> Any:
        # accept "https://a.example,https://b.example" as well as a JSON list
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [o.strip() for o in v.split(",") if o.strip()]

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return strip_asyncpg_params(self.DATABASE_URL_ASYNC)

    @property
    def ACCESS_TOKEN_EXPIRE_SECONDS(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"staging", "production"}

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        if self.is_production_like:
            secret = (self.JWT_SECRET or "").strip()
            if not secret or secret == DEV_JWT_SECRET:
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(secret) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM != "HS256":
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")
        if not 4 <= self.BCRYPT_ROUNDS <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.ACCESS_TOKEN_EXPIRE_MINUTES < 1:
            raise ValueError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive.")


settings = Settings()
