"""
Typed API errors.

Each error is an HTTPException carrying a machine-readable `kind`, so services
can raise them directly and the handlers in `app.main` render every failure as
{"detail": ..., "kind": ...}.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class BookingAPIError(HTTPException):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: Any, headers: Optional[dict[str, str]] = None):
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)


class NotFoundError(BookingAPIError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class CapacityError(BookingAPIError):
    """Not enough seats left on the flight."""

    kind = "capacity"
    status_code = status.HTTP_409_CONFLICT


class ConflictError(BookingAPIError):
    """Duplicate or already-held seat, or a booking in the wrong state."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(BookingAPIError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
