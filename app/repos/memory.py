"""In-memory repositories for bookings, rooms, users and the audit timeline."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Iterator

from app.domain.errors import ExclusionViolation
from app.domain.models import Booking, Interval, Role, Room, TimelineEntry, User
from app.services.intervals import overlaps

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingRepository:
    """Dict-backed booking store with per-room transactions.

    ``transaction(resource_id)`` serializes every writer of one room, which
    gives check-then-insert callers serializable-per-room isolation. Writes
    additionally refuse any row that would overlap another row on the same
    room, playing the part of a database exclusion constraint.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store: dict[str, Booking] = {}
        self._clock = clock
        self._locks: dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    def _rows(self) -> list[Booking]:
        # Snapshot so writers on other rooms cannot resize the dict mid-scan
        return list(self._store.values())

    @staticmethod
    def _copies(rows: Iterable[Booking]) -> list[Booking]:
        # Callers get detached rows; only the repository writes to stored ones
        return [b.model_copy() for b in rows]

    def _lock_for(self, resource_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks[resource_id]

    @contextmanager
    def transaction(self, resource_id: str) -> Iterator[None]:
        with self._lock_for(resource_id):
            yield

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, booking_id: str) -> Booking | None:
        row = self._store.get(booking_id)
        return row.model_copy() if row is not None else None

    def list_all(self) -> list[Booking]:
        return self._copies(self._rows())

    def list_children(self, parent_id: str) -> list[Booking]:
        """Return all child bookings belonging to a recurring series."""
        return self._copies(
            sorted(
                (b for b in self._rows() if b.parent_booking_id == parent_id),
                key=lambda b: b.start_time,
            )
        )

    def find_overlapping(
        self,
        resource_id: str,
        interval: Interval,
        exclude_id: str | None = None,
    ) -> list[Booking]:
        return self._copies(
            b for b in self._scan(resource_id, interval) if b.id != exclude_id
        )

    def _scan(self, resource_id: str, interval: Interval) -> list[Booking]:
        return sorted(
            (
                b
                for b in self._rows()
                if b.resource_id == resource_id and overlaps(interval, b.interval)
            ),
            key=lambda b: b.start_time,
        )

    def list_for_owner(
        self,
        owner_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Booking]:
        """Bookings held by ``owner_id``, fully inside ``[start, end]`` when both are given."""
        bookings = [b for b in self._rows() if b.owner_id == owner_id]
        if start is not None and end is not None:
            bookings = [b for b in bookings if b.start_time >= start and b.end_time <= end]
        return self._copies(sorted(bookings, key=lambda b: b.start_time))

    def list_for_resources(
        self, resource_ids: Iterable[str], start: datetime, end: datetime
    ) -> list[Booking]:
        """Bookings on any of the rooms that overlap ``[start, end)``."""
        ids = set(resource_ids)
        window = Interval(start_time=start, end_time=end)
        return self._copies(
            sorted(
                (
                    b
                    for b in self._rows()
                    if b.resource_id in ids and overlaps(window, b.interval)
                ),
                key=lambda b: b.start_time,
            )
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, booking: Booking) -> Booking:
        return self.create_series(booking, [])

    def create_series(self, parent: Booking, children: list[Booking]) -> Booking:
        """Insert copies of ``parent`` and ``children`` as one unit, or nothing at all.

        Raises ``ExclusionViolation`` naming the first existing row that any
        new row would overlap.
        """
        rows = [parent, *children]
        for child in children:
            if child.parent_booking_id != parent.id:
                raise ValueError(f"child {child.id} does not reference parent {parent.id}")
            if child.resource_id != parent.resource_id:
                raise ValueError(f"child {child.id} is on a different room than its parent")

        with self.transaction(parent.resource_id):
            for i, row in enumerate(rows):
                clashes = self._scan(row.resource_id, row.interval)
                clashes += [r for r in rows[:i] if overlaps(row.interval, r.interval)]
                if clashes:
                    logger.warning(
                        "exclusion_violation",
                        extra={"resource_id": row.resource_id, "existing_id": clashes[0].id},
                    )
                    raise ExclusionViolation(clashes[0].model_copy())

            now = self._clock()
            for row in rows:
                row.created_at = now
                row.updated_at = now
                self._store[row.id] = row.model_copy()
        return parent

    def delete_where(
        self, series_parent_id: str, predicate: Callable[[Booking], bool]
    ) -> int:
        """Delete rows of one series (parent and children) matching ``predicate``."""
        parent = self._store.get(series_parent_id)
        if parent is None:
            return 0
        with self.transaction(parent.resource_id):
            doomed = [
                b.id
                for b in self._rows()
                if (b.id == series_parent_id or b.parent_booking_id == series_parent_id)
                and predicate(b)
            ]
            for booking_id in doomed:
                del self._store[booking_id]
        return len(doomed)

    def delete_booking(self, booking_id: str) -> int:
        """Delete a booking; a series parent takes its children with it."""
        booking = self._store.get(booking_id)
        if booking is None:
            return 0
        with self.transaction(booking.resource_id):
            doomed = [
                b.id
                for b in self._rows()
                if b.id == booking_id or b.parent_booking_id == booking_id
            ]
            for doomed_id in doomed:
                del self._store[doomed_id]
        return len(doomed)

    def update_series_end_date(self, parent_id: str, date: datetime) -> None:
        parent = self._store.get(parent_id)
        if parent is None:
            return
        with self.transaction(parent.resource_id):
            parent.series_end_date = date
            parent.updated_at = self._clock()


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def exists(self, room_id: str) -> bool:
        return room_id in self._store

    def list_for_location(self, location_id: str) -> list[Room]:
        return sorted(
            (r for r in self._store.values() if r.location_id == location_id),
            key=lambda r: r.name,
        )


class UserRepository:
    """Dict-backed store for User instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, User] = {}

    def add(self, user: User) -> None:
        self._store[user.id] = user

    def get(self, user_id: str) -> User | None:
        return self._store.get(user_id)


class TimelineRepository:
    """List-backed store for TimelineEntry instances."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []

    def add(self, entry: TimelineEntry) -> None:
        self._entries.append(entry)

    def list_for_booking(self, booking_id: str) -> list[TimelineEntry]:
        return sorted(
            [e for e in self._entries if e.booking_id == booking_id],
            key=lambda e: e.timestamp,
        )


# ---------------------------------------------------------------------------
# Seed data – one location with two rooms and a few people
# ---------------------------------------------------------------------------


def seed_demo_data(
    booking_repo: BookingRepository,
    room_repo: RoomRepository,
    user_repo: UserRepository,
) -> None:
    now = datetime.now(timezone.utc)

    boardroom = Room(id="room-boardroom", name="Boardroom", location_id="loc-hq")
    huddle = Room(id="room-huddle", name="Huddle", location_id="loc-hq")
    room_repo.add(boardroom)
    room_repo.add(huddle)

    ada = User(id="user-ada", first_name="Ada", last_name="Lovelace")
    grace = User(id="user-grace", first_name="Grace", last_name="Hopper", role=Role.ADMIN)
    user_repo.add(ada)
    user_repo.add(grace)

    start = (now + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)
    booking_repo.add(
        Booking(
            resource_id=boardroom.id,
            owner_id=ada.id,
            start_time=start,
            end_time=start + timedelta(hours=1),
        )
    )
