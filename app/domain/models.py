"""Domain models for the room booking core."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SeriesRole(StrEnum):
    STANDALONE = "standalone"
    SERIES_PARENT = "series_parent"
    SERIES_CHILD = "series_child"


class Role(StrEnum):
    USER = "user"
    SUPER_USER = "super_user"
    ADMIN = "admin"


class TimelineEntryType(StrEnum):
    ADMITTED = "admitted"
    SERIES_TRUNCATED = "series_truncated"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; aware ones pass through untouched."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive datetimes are taken to be UTC; no conversion happens anywhere.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def end_of_day(value: object) -> object:
    """A bare date as an end bound covers that whole day."""
    if isinstance(value, str) and len(value) == 10 and value[4] == "-":
        value = date.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max, tzinfo=timezone.utc)
    return value


SeriesEndDate = Annotated[UtcDatetime, BeforeValidator(end_of_day)]


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """Half-open time range ``[start_time, end_time)``."""

    model_config = ConfigDict(frozen=True)

    start_time: UtcDatetime
    end_time: UtcDatetime

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    resource_id: str
    owner_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    recurrence_pattern: RecurrencePattern | None = None
    series_end_date: UtcDatetime | None = None
    series_role: SeriesRole = SeriesRole.STANDALONE
    parent_booking_id: str | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> Booking:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if (self.series_role == SeriesRole.SERIES_CHILD) != (
            self.parent_booking_id is not None
        ):
            raise ValueError("parent_booking_id is set exactly on series children")
        return self

    @property
    def interval(self) -> Interval:
        return Interval(start_time=self.start_time, end_time=self.end_time)

    @property
    def series_parent_id(self) -> str | None:
        if self.series_role == SeriesRole.SERIES_PARENT:
            return self.id
        return self.parent_booking_id


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    location_id: str


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    first_name: str
    last_name: str
    role: Role = Role.USER

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Requester(BaseModel):
    """Identity of whoever is calling, as established by the auth layer."""

    id: str
    role: Role = Role.USER


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    booking_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class RecurrenceSpec(BaseModel):
    pattern: RecurrencePattern = RecurrencePattern.WEEKLY
    series_end_date: SeriesEndDate | None = None


class BookingRequest(BaseModel):
    resource_id: str
    owner_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    recurrence: RecurrenceSpec | None = None

    @property
    def interval(self) -> Interval:
        return Interval(start_time=self.start_time, end_time=self.end_time)


class CreateBookingBody(BaseModel):
    """HTTP body for ``POST /bookings``; the owner defaults to the requester."""

    resource_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    recurrence: RecurrenceSpec | None = None
    owner_id: str | None = None


class ConflictDetail(BaseModel):
    id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    booked_by: str


class AdmissionResult(BaseModel):
    """An admitted booking plus, for a series, every child occurrence."""

    booking: Booking
    children: list[Booking] = Field(default_factory=list)


class TruncateResult(BaseModel):
    deleted_count: int


class CancelResult(BaseModel):
    deleted_count: int
