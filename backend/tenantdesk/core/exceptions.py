from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base class for business-rule failures rendered into the response envelope."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input"""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class Unauthenticated(AppError):
    """Missing, invalid or expired credentials"""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class InvalidToken(Unauthenticated):
    default_message = "Token invalid or expired"


class Forbidden(AppError):
    """Valid principal, insufficient rights"""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class QuotaExceeded(Forbidden):
    default_message = "Subscription limit reached"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"
