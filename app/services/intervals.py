"""Half-open interval predicates and admission-time validation."""

from __future__ import annotations

from datetime import datetime, timedelta

from app.domain.errors import InThePast, InvalidInterval, TooShort
from app.domain.models import Interval

MIN_BOOKING_DURATION = timedelta(minutes=15)


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True if the two ranges share any instant.

    Ranges are half-open, so ``a.end_time == b.start_time`` is not an overlap.
    """
    return a.start_time < b.end_time and b.start_time < a.end_time


def validate_interval(
    interval: Interval,
    now: datetime,
    min_duration: timedelta = MIN_BOOKING_DURATION,
) -> None:
    """Raise the first rule the requested interval breaks, if any."""
    if interval.end_time <= interval.start_time:
        raise InvalidInterval()
    if interval.start_time <= now:
        raise InThePast()
    if interval.duration < min_duration:
        raise TooShort(
            min_minutes=int(min_duration.total_seconds() // 60),
            actual_minutes=interval.duration.total_seconds() / 60,
        )
