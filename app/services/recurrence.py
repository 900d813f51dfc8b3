"""Service for expanding a recurring booking into its concrete occurrences."""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from app.domain.errors import UnsupportedPattern
from app.domain.models import Interval, RecurrencePattern

DEFAULT_SERIES_HORIZON_DAYS = 365

_STEPS = {
    RecurrencePattern.DAILY: relativedelta(days=1),
    RecurrencePattern.WEEKLY: relativedelta(weeks=1),
    RecurrencePattern.MONTHLY: relativedelta(months=1),
}


def step_for(pattern: RecurrencePattern | str, n: int) -> relativedelta:
    """Return the offset of the n-th occurrence from the first one.

    Offsets are always taken from the first occurrence, so a monthly series
    starting on the 31st lands on the last day of shorter months and returns
    to the 31st afterwards instead of drifting.
    """
    try:
        step = _STEPS[RecurrencePattern(pattern)]
    except ValueError:
        raise UnsupportedPattern(pattern) from None
    return step * n


def default_series_end(
    first_start: datetime, horizon_days: int = DEFAULT_SERIES_HORIZON_DAYS
) -> datetime:
    return first_start + timedelta(days=horizon_days)


def expand_occurrences(
    first: Interval,
    pattern: RecurrencePattern | str,
    series_end_date: datetime,
) -> list[Interval]:
    """Expand a series into the ordered list of its occurrence intervals.

    The first occurrence is always included. Later ones are emitted while
    their start is at or before ``series_end_date``. Every occurrence keeps
    the first occurrence's duration. Callers must have rejected
    ``series_end_date <= first.start_time`` already.
    """
    duration = first.duration
    occurrences = [first]
    n = 1
    while True:
        start = first.start_time + step_for(pattern, n)
        if start > series_end_date:
            break
        occurrences.append(Interval(start_time=start, end_time=start + duration))
        n += 1
    return occurrences
