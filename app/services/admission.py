"""Booking admission: validate, conflict-check and atomically persist."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.config import settings
from app.domain.bus import EventBus
from app.domain.errors import (
    ConflictDetected,
    ExclusionViolation,
    InvalidRecurrenceEnd,
    ResourceNotFound,
    SeriesTooLong,
)
from app.domain.events import BookingAdmitted
from app.domain.models import (
    AdmissionResult,
    Booking,
    BookingRequest,
    Interval,
    SeriesRole,
)
from app.repos.memory import BookingRepository, RoomRepository, UserRepository
from app.services.conflicts import describe_conflict, first_conflict
from app.services.intervals import validate_interval
from app.services.recurrence import default_series_end, expand_occurrences

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingAdmissionService:
    """Admits single bookings and whole recurring series, all-or-nothing.

    Everything from the first conflict check to the final insert runs inside
    the store's per-room transaction, so a concurrent admission on the same
    room sees either none or all of this call's rows.
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        room_repo: RoomRepository,
        user_repo: UserRepository,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = _utcnow,
        min_duration: timedelta | None = None,
        series_horizon_days: int | None = None,
    ) -> None:
        self.booking_repo = booking_repo
        self.room_repo = room_repo
        self.user_repo = user_repo
        self.bus = bus
        self.clock = clock
        self.min_duration = min_duration or timedelta(minutes=settings.min_booking_minutes)
        self.series_horizon_days = (
            series_horizon_days or settings.default_series_horizon_days
        )

    def admit(self, request: BookingRequest) -> AdmissionResult:
        first = request.interval
        validate_interval(first, self.clock(), self.min_duration)

        if not self.room_repo.exists(request.resource_id):
            raise ResourceNotFound(request.resource_id)

        if request.recurrence is None:
            rows = [
                Booking(
                    resource_id=request.resource_id,
                    owner_id=request.owner_id,
                    start_time=first.start_time,
                    end_time=first.end_time,
                )
            ]
        else:
            rows = self._build_series(request, first)

        with self.booking_repo.transaction(request.resource_id):
            self._check_all(rows)
            try:
                self.booking_repo.create_series(rows[0], rows[1:])
            except ExclusionViolation as exc:
                raise self._rejected(rows[0], exc.existing) from exc

        parent, children = rows[0], rows[1:]
        logger.info(
            "Admitted booking %s on room %s with %d child occurrence(s)",
            parent.id,
            parent.resource_id,
            len(children),
            extra={"owner_id": parent.owner_id, "series_role": parent.series_role},
        )
        if self.bus is not None:
            self.bus.publish(
                BookingAdmitted(
                    booking_id=parent.id,
                    resource_id=parent.resource_id,
                    owner_id=parent.owner_id,
                    child_ids=[c.id for c in children],
                )
            )
        return AdmissionResult(booking=parent, children=children)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_series(self, request: BookingRequest, first: Interval) -> list[Booking]:
        """Expand a recurring request into one parent row plus linked children."""
        recurrence = request.recurrence
        series_end = recurrence.series_end_date or default_series_end(
            first.start_time, self.series_horizon_days
        )
        if series_end <= first.start_time:
            raise InvalidRecurrenceEnd()
        # Counted in calendar days so a date-only end on the last allowed day passes
        if (series_end.date() - first.start_time.date()).days > self.series_horizon_days:
            raise SeriesTooLong(self.series_horizon_days)

        occurrences = expand_occurrences(first, recurrence.pattern, series_end)
        parent = Booking(
            resource_id=request.resource_id,
            owner_id=request.owner_id,
            start_time=occurrences[0].start_time,
            end_time=occurrences[0].end_time,
            recurrence_pattern=recurrence.pattern,
            series_end_date=series_end,
            series_role=SeriesRole.SERIES_PARENT,
        )
        children = [
            Booking(
                resource_id=request.resource_id,
                owner_id=request.owner_id,
                start_time=occ.start_time,
                end_time=occ.end_time,
                recurrence_pattern=recurrence.pattern,
                series_role=SeriesRole.SERIES_CHILD,
                parent_booking_id=parent.id,
            )
            for occ in occurrences[1:]
        ]
        return [parent, *children]

    def _check_all(self, rows: list[Booking]) -> None:
        """Check each row in order against the store and the rows before it."""
        staged: list[Booking] = []
        for row in rows:
            conflict = first_conflict(
                self.booking_repo, row.resource_id, row.interval, staged=staged
            )
            if conflict is not None:
                raise self._rejected(row, conflict)
            staged.append(row)

    def _rejected(self, row: Booking, conflict: Booking) -> ConflictDetected:
        logger.info(
            "Rejected booking on room %s at %s: overlaps booking %s",
            row.resource_id,
            row.start_time.isoformat(),
            conflict.id,
        )
        return ConflictDetected(describe_conflict(conflict, self.user_repo))
