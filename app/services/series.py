"""Cancelling bookings and cutting recurring series short."""

from __future__ import annotations

import logging
from datetime import datetime

from app.domain.bus import EventBus
from app.domain.errors import (
    BookingNotFound,
    BookingNotFoundError,
    SeriesNotFound,
    Unauthorized,
)
from app.domain.events import BookingCancelled, SeriesTruncated
from app.domain.models import (
    Booking,
    CancelResult,
    Requester,
    TruncateResult,
    as_utc,
)
from app.repos.memory import BookingRepository
from app.services.authorization import MutationPolicy, can_mutate

logger = logging.getLogger(__name__)


class SeriesMutationService:
    """Removes bookings. Nothing here creates rows, so no conflict checks run."""

    def __init__(
        self,
        booking_repo: BookingRepository,
        bus: EventBus | None = None,
        policy: MutationPolicy = can_mutate,
    ) -> None:
        self.booking_repo = booking_repo
        self.bus = bus
        self.policy = policy

    def truncate_from(
        self, booking_id: str, from_date: datetime, requester: Requester
    ) -> TruncateResult:
        """Delete every occurrence of the series starting at or after ``from_date``.

        ``booking_id`` may name the parent or any child. A surviving parent has
        its ``series_end_date`` moved to ``from_date``; when the parent itself
        starts at or after ``from_date`` the whole series goes.
        """
        from_date = as_utc(from_date)
        resource_id = self._resource_of(booking_id, SeriesNotFound)

        with self.booking_repo.transaction(resource_id):
            parent = self._series_parent(booking_id)
            self._authorize(requester, parent)
            deleted = self.booking_repo.delete_where(
                parent.id, lambda b: b.start_time >= from_date
            )
            parent_survived = self.booking_repo.get(parent.id) is not None
            if parent_survived:
                self.booking_repo.update_series_end_date(parent.id, from_date)

        logger.info(
            "Truncated series %s from %s: %d occurrence(s) deleted",
            parent.id,
            from_date.isoformat(),
            deleted,
            extra={"requester_id": requester.id, "parent_survived": parent_survived},
        )
        if self.bus is not None:
            self.bus.publish(
                SeriesTruncated(
                    parent_id=parent.id,
                    from_date=from_date,
                    deleted_count=deleted,
                    parent_survived=parent_survived,
                    requester_id=requester.id,
                )
            )
        return TruncateResult(deleted_count=deleted)

    def cancel(self, booking_id: str, requester: Requester) -> CancelResult:
        """Delete one booking. A parent takes its children; a child goes alone."""
        resource_id = self._resource_of(booking_id, BookingNotFound)

        with self.booking_repo.transaction(resource_id):
            booking = self.booking_repo.get(booking_id)
            if booking is None:
                raise BookingNotFound(booking_id)
            self._authorize(requester, booking)
            deleted = self.booking_repo.delete_booking(booking_id)

        logger.info(
            "Cancelled booking %s (%d row(s))",
            booking_id,
            deleted,
            extra={"requester_id": requester.id},
        )
        if self.bus is not None:
            self.bus.publish(
                BookingCancelled(
                    booking_id=booking_id,
                    deleted_count=deleted,
                    requester_id=requester.id,
                )
            )
        return CancelResult(deleted_count=deleted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resource_of(
        self, booking_id: str, missing: type[BookingNotFoundError]
    ) -> str:
        # A series never spans rooms, so the booking's room is the one to lock
        booking = self.booking_repo.get(booking_id)
        if booking is None:
            raise missing(booking_id)
        return booking.resource_id

    def _series_parent(self, booking_id: str) -> Booking:
        booking = self.booking_repo.get(booking_id)
        parent_id = booking.series_parent_id if booking is not None else None
        parent = self.booking_repo.get(parent_id) if parent_id else None
        if parent is None:
            raise SeriesNotFound(booking_id)
        return parent

    def _authorize(self, requester: Requester, booking: Booking) -> None:
        if not self.policy(requester, booking):
            logger.warning(
                "Requester %s denied mutation of booking %s", requester.id, booking.id
            )
            raise Unauthorized()
