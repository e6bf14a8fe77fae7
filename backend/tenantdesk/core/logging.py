"""
structlog setup for the API.

Every log line emitted while serving a request carries request_id, method
and path; once the bearer token is decoded, tenant_id, user_id and role are
added too, so one tenant's activity can be filtered out of the stream.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Optional
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


def _level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    service_name: str, level: str | int = logging.INFO, *, json_logs: bool = True
) -> structlog.stdlib.BoundLogger:
    """JSON lines on stdout; json_logs=False renders for a terminal instead."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=_level(level))

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger().bind(service=service_name)


def bind_principal(*, user_id, tenant_id, role) -> None:
    """Tag the rest of the current request's log lines with the caller."""
    structlog.contextvars.bind_contextvars(
        user_id=str(user_id),
        tenant_id=str(tenant_id) if tenant_id else None,
        role=getattr(role, "value", role),
    )


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """One request_completed (or request_failed) line per request, with timing."""

    def __init__(self, app, *, logger: Optional[structlog.stdlib.BoundLogger] = None) -> None:
        super().__init__(app)
        self._logger = logger or structlog.get_logger("tenantdesk.http")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            self._logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
