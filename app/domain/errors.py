"""Booking error kinds.

Every outcome the core can refuse a request with is a ``BookingError``
subclass. They are terminal: the core raises them once and never retries.
Each carries the HTTP status the request layer answers with.
"""

from __future__ import annotations

from typing import Any

from fastapi import status

from app.domain.models import Booking, ConflictDetail


class BookingError(Exception):
    """Base exception for all booking outcomes reported to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Booking request failed"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class BookingValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST


class BookingNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidInterval(BookingValidationError):
    default_message = "End time must be after start time"


class InThePast(BookingValidationError):
    default_message = "Start time must be in the future"


class TooShort(BookingValidationError):
    def __init__(self, min_minutes: int, actual_minutes: float) -> None:
        super().__init__(
            message=f"Minimum booking duration is {min_minutes} minutes",
            details={"min_minutes": min_minutes, "actual_minutes": actual_minutes},
        )


class InvalidRecurrenceEnd(BookingValidationError):
    default_message = "Recurrence end date must be after start date"


class SeriesTooLong(BookingValidationError):
    def __init__(self, max_days: int) -> None:
        super().__init__(
            message=f"Recurring series cannot extend more than {max_days} days",
            details={"max_days": max_days},
        )


class UnsupportedPattern(BookingValidationError):
    def __init__(self, pattern: object) -> None:
        super().__init__(
            message=f"Unsupported recurrence pattern: {pattern!r}",
            details={"pattern": str(pattern)},
        )


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class ResourceNotFound(BookingNotFoundError):
    def __init__(self, resource_id: str) -> None:
        super().__init__(
            message="Room not found", details={"resource_id": resource_id}
        )


class SeriesNotFound(BookingNotFoundError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(
            message="Recurring series not found", details={"booking_id": booking_id}
        )


class BookingNotFound(BookingNotFoundError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(
            message="Booking not found", details={"booking_id": booking_id}
        )


# ---------------------------------------------------------------------------
# Conflict / access
# ---------------------------------------------------------------------------


class ConflictDetected(BookingError):
    """Raised when a requested slot overlaps an existing booking.

    ``conflict`` is the overlapping booking as shown to the user, so they can
    pick another time.
    """

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, conflict: ConflictDetail) -> None:
        self.conflict = conflict
        super().__init__(
            message="Conflicting booking exists",
            details={"conflict": conflict.model_dump(mode="json")},
        )


class Unauthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Cannot modify another user's booking"


class ExclusionViolation(Exception):
    """Raised by the store when a write would break per-room non-overlap.

    Internal to the core: admission translates it into ``ConflictDetected``.
    """

    def __init__(self, existing: Booking) -> None:
        self.existing = existing
        super().__init__(f"Booking overlaps existing booking {existing.id}")
