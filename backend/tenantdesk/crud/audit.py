# tenantdesk/crud/audit.py
from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.models.audit_log import AuditLog

logger = structlog.get_logger(__name__)


async def log_action(
    db: AsyncSession,
    *,
    action: str,
    tenant_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID | str] = None,
    ip: Optional[str] = None,
) -> None:
    """
    Best-effort audit append. Call it AFTER the business change is committed.

    The entry is written through a separate session on the same engine, so a
    failed insert rolls back only itself: the request session and the rows
    the handler is about to serialize are left untouched. Never raises.
    """
    try:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as audit_db:
            audit_db.add(
                AuditLog(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    ip_address=ip,
                )
            )
            await audit_db.commit()
    except Exception:
        logger.warning("audit_log_failed", action=action, entity_type=entity_type, exc_info=True)
