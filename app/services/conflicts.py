"""Service for detecting booking conflicts on a room."""

from __future__ import annotations

from typing import Iterable

from app.domain.models import Booking, ConflictDetail, Interval
from app.repos.memory import BookingRepository, UserRepository
from app.services.intervals import overlaps


def find_conflicts(interval: Interval, existing_bookings: Iterable[Booking]) -> list[Booking]:
    """Return existing bookings that overlap with the given time range.

    Overlap rule: conflict if new.start < existing.end AND existing.start < new.end.
    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return [b for b in existing_bookings if overlaps(interval, b.interval)]


def first_conflict(
    repo: BookingRepository,
    resource_id: str,
    interval: Interval,
    staged: Iterable[Booking] = (),
    exclude_id: str | None = None,
) -> Booking | None:
    """Return the earliest-starting booking that blocks ``interval``, or None.

    Looks at rows already committed for the room and at ``staged``: the
    occurrences accepted earlier in the same admission call, which are not
    in the store yet.
    """
    candidates = repo.find_overlapping(resource_id, interval, exclude_id=exclude_id)
    candidates += [
        b
        for b in find_conflicts(interval, staged)
        if b.resource_id == resource_id and b.id != exclude_id
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda b: (b.start_time, b.end_time))


def describe_conflict(booking: Booking, users: UserRepository) -> ConflictDetail:
    """Build the user-facing summary of a conflicting booking."""
    owner = users.get(booking.owner_id)
    return ConflictDetail(
        id=booking.id,
        start_time=booking.start_time,
        end_time=booking.end_time,
        booked_by=owner.display_name if owner else booking.owner_id,
    )
