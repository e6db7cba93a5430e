"""
Typed failures raised by the CRUD layer.

Each error is an HTTPException so FastAPI renders it as a JSON error response
without any extra handlers; callers outside HTTP can still catch them by type.
"""

from fastapi import HTTPException, status


class MarketplaceError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(MarketplaceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid input"


class PermissionDenied(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"


class NotFound(MarketplaceError):
    """Also raised when a row exists but the caller may not read it."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidTransition(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid status transition"


class Conflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Concurrent update conflict"
