"""Domain event handlers, wired up at application startup."""

from __future__ import annotations

import logging

from app.domain.bus import EventBus
from app.domain.events import BookingAdmitted, BookingCancelled, SeriesTruncated
from app.domain.models import TimelineEntry, TimelineEntryType
from app.repos.memory import TimelineRepository

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires booking-event handlers to the bus and keeps the audit timeline."""

    def __init__(self, bus: EventBus, timeline_repo: TimelineRepository) -> None:
        self.bus = bus
        self.timeline_repo = timeline_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingAdmitted, self.on_booking_admitted)
        self.bus.subscribe(SeriesTruncated, self.on_series_truncated)
        self.bus.subscribe(BookingCancelled, self.on_booking_cancelled)

    def _record(self, entry: TimelineEntry) -> None:
        self.timeline_repo.add(entry)
        logger.info(
            "Timeline %s for booking %s",
            entry.type,
            entry.booking_id,
            extra={"payload": entry.payload},
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_admitted(self, event: BookingAdmitted) -> None:
        self._record(
            TimelineEntry(
                booking_id=event.booking_id,
                type=TimelineEntryType.ADMITTED,
                payload={
                    "resource_id": event.resource_id,
                    "owner_id": event.owner_id,
                    "child_ids": event.child_ids,
                },
            )
        )

    def on_series_truncated(self, event: SeriesTruncated) -> None:
        # A parent deleted by the truncation still gets its entry: the
        # timeline outlives the row it describes.
        self._record(
            TimelineEntry(
                booking_id=event.parent_id,
                type=TimelineEntryType.SERIES_TRUNCATED,
                payload={
                    "from_date": event.from_date.isoformat(),
                    "deleted_count": event.deleted_count,
                    "parent_survived": event.parent_survived,
                    "requester_id": event.requester_id,
                },
            )
        )

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        self._record(
            TimelineEntry(
                booking_id=event.booking_id,
                type=TimelineEntryType.CANCELLED,
                payload={
                    "deleted_count": event.deleted_count,
                    "requester_id": event.requester_id,
                },
            )
        )
