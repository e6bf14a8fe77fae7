# backend/tenantdesk/api/v1/health.py
from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantdesk.db.bootstrap import is_ready
from tenantdesk.db.session import get_db

router = APIRouter(tags=["health"])

logger = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """
    Readiness: 503 until migrations and the seed have finished,
    503 when the database is unreachable, 200 once ready.
    """
    try:
        await db.execute(text("SELECT 1"))
        ready = await is_ready(db)
    except SQLAlchemyError:
        logger.warning("health_check_database_unavailable", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "database": "disconnected", "timestamp": _now()},
        )

    if not ready:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "initializing", "database": "connected", "timestamp": _now()},
        )
    return {"status": "ok", "database": "connected", "timestamp": _now()}
