from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tenantdesk.core.pagination import Page


def envelope(success: bool, data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    return envelope(True, data, message)


def created(data: Any = None, message: Optional[str] = None) -> JSONResponse:
    return JSONResponse(status_code=201, content=jsonable_encoder(envelope(True, data, message)))


def error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope(False, None, message, **extra)))


def paginated(key: str, items: list, total: int, page: Page) -> dict:
    """{<key>: [...], total, pagination: {currentPage, totalPages, limit}}"""
    return {key: items, "total": total, "pagination": page.meta(total)}
