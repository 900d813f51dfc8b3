"""Domain events emitted when bookings change."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class BookingAdmitted(BaseModel):
    """Fired after a standalone booking or a whole series is persisted."""

    booking_id: str
    resource_id: str
    owner_id: str
    child_ids: list[str] = []


class SeriesTruncated(BaseModel):
    """Fired after a series is cut back from ``from_date`` onwards."""

    parent_id: str
    from_date: datetime
    deleted_count: int
    parent_survived: bool
    requester_id: str


class BookingCancelled(BaseModel):
    """Fired after a booking (and any children it owned) is deleted."""

    booking_id: str
    deleted_count: int
    requester_id: str
