"""Tests for the conflict-detection service."""

from datetime import datetime, timedelta, timezone

from app.domain.models import Booking, Interval, User
from app.repos.memory import BookingRepository, UserRepository
from app.services.conflicts import describe_conflict, find_conflicts, first_conflict

_DAY = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _at(hour: int, minute: int = 0) -> datetime:
    return _DAY + timedelta(hours=hour, minutes=minute)


def _make_booking(
    start: datetime, end: datetime, resource_id: str = "room-1", owner_id: str = "user-1"
) -> Booking:
    return Booking(resource_id=resource_id, owner_id=owner_id, start_time=start, end_time=end)


def _iv(start: datetime, end: datetime) -> Interval:
    return Interval(start_time=start, end_time=end)


def test_no_overlap():
    """Bookings that don't overlap should not be returned as conflicts."""
    existing = [_make_booking(_at(8), _at(9))]
    assert find_conflicts(_iv(_at(10), _at(11)), existing) == []


def test_partial_overlap():
    """A booking that partially overlaps should be returned as a conflict."""
    existing = [_make_booking(_at(9), _at(10, 30))]
    conflicts = find_conflicts(_iv(_at(10), _at(11)), existing)
    assert len(conflicts) == 1
    assert conflicts[0].start_time == _at(9)


def test_exact_boundary_no_conflict():
    """When existing.end_time == new_start, there is no conflict (boundary touch)."""
    existing = [_make_booking(_at(9), _at(10))]
    assert find_conflicts(_iv(_at(10), _at(11)), existing) == []


# ---------------------------------------------------------------------------
# first_conflict
# ---------------------------------------------------------------------------


def test_first_conflict_returns_earliest_starting_booking():
    repo = BookingRepository()
    later = repo.add(_make_booking(_at(10), _at(11)))
    earlier = repo.add(_make_booking(_at(9), _at(10)))

    conflict = first_conflict(repo, "room-1", _iv(_at(9, 30), _at(10, 30)))

    assert conflict.id == earlier.id
    assert conflict.id != later.id


def test_first_conflict_ignores_other_rooms():
    repo = BookingRepository()
    repo.add(_make_booking(_at(9), _at(10), resource_id="room-2"))

    assert first_conflict(repo, "room-1", _iv(_at(9), _at(10))) is None


def test_first_conflict_honours_exclude_id():
    """Rescheduling a booking must not collide with its own current slot."""
    repo = BookingRepository()
    booking = repo.add(_make_booking(_at(9), _at(10)))

    assert first_conflict(repo, "room-1", _iv(_at(9, 30), _at(10, 30)), exclude_id=booking.id) is None
    assert first_conflict(repo, "room-1", _iv(_at(9, 30), _at(10, 30))).id == booking.id


def test_first_conflict_sees_staged_occurrences():
    repo = BookingRepository()
    staged = [_make_booking(_at(9), _at(11))]

    conflict = first_conflict(repo, "room-1", _iv(_at(10), _at(12)), staged=staged)

    assert conflict is staged[0]
    assert repo.list_all() == []


def test_first_conflict_prefers_earlier_staged_over_committed():
    repo = BookingRepository()
    committed = repo.add(_make_booking(_at(10), _at(11)))
    staged = [_make_booking(_at(8), _at(9, 30))]

    conflict = first_conflict(repo, "room-1", _iv(_at(9), _at(12)), staged=staged)

    assert conflict is staged[0]
    assert conflict.id != committed.id


# ---------------------------------------------------------------------------
# describe_conflict
# ---------------------------------------------------------------------------


def test_describe_conflict_uses_owner_display_name():
    users = UserRepository()
    users.add(User(id="user-1", first_name="Ada", last_name="Lovelace"))
    booking = _make_booking(_at(9), _at(10))

    detail = describe_conflict(booking, users)

    assert detail.id == booking.id
    assert detail.start_time == _at(9)
    assert detail.end_time == _at(10)
    assert detail.booked_by == "Ada Lovelace"


def test_describe_conflict_falls_back_to_owner_id():
    booking = _make_booking(_at(9), _at(10), owner_id="user-unknown")
    assert describe_conflict(booking, UserRepository()).booked_by == "user-unknown"
