"""FastAPI application: entry point for the room booking service."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Awaitable, Callable

from fastapi import FastAPI, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.domain.bus import EventBus
from app.domain.errors import BookingError
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    AdmissionResult,
    Booking,
    BookingRequest,
    CancelResult,
    CreateBookingBody,
    Requester,
    Role,
    TimelineEntry,
    TruncateResult,
    as_utc,
)
from app.repos.memory import (
    BookingRepository,
    RoomRepository,
    TimelineRepository,
    UserRepository,
    seed_demo_data,
)
from app.services.admission import BookingAdmissionService
from app.services.authorization import effective_owner
from app.services.series import SeriesMutationService

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Room Booking Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
booking_repo = BookingRepository()
room_repo = RoomRepository()
user_repo = UserRepository()
timeline_repo = TimelineRepository()

handler_registry = HandlerRegistry(bus=event_bus, timeline_repo=timeline_repo)
admission_service = BookingAdmissionService(
    booking_repo=booking_repo,
    room_repo=room_repo,
    user_repo=user_repo,
    bus=event_bus,
)
series_service = SeriesMutationService(booking_repo=booking_repo, bus=event_bus)

if settings.seed_demo_data:
    seed_demo_data(booking_repo, room_repo, user_repo)


# ── Middleware & error handling ───────────────────────────────────────


@app.middleware("http")
async def log_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s %s %.0fms",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Internal server error: %s", exc.message, exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "code": exc.code,
            "details": exc.details,
            "statusCode": exc.status_code,
        },
    )


def _requester(user_id: str | None, role: str | None) -> Requester:
    """Identity is established upstream and handed in via headers."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return Requester(id=user_id, role=Role(role or Role.USER))
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role: {role}") from None


# ── Routes ────────────────────────────────────────────────────────────


@app.post(
    "/bookings",
    response_model=AdmissionResult,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    body: CreateBookingBody,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> AdmissionResult:
    """Book a room once, or as a recurring series."""
    requester = _requester(x_user_id, x_user_role)
    request = BookingRequest(
        resource_id=body.resource_id,
        owner_id=effective_owner(requester, body.owner_id),
        start_time=body.start_time,
        end_time=body.end_time,
        recurrence=body.recurrence,
    )
    return admission_service.admit(request)


@app.get("/bookings", response_model=list[Booking])
def list_my_bookings(
    start: datetime | None = None,
    end: datetime | None = None,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> list[Booking]:
    """Return the requester's bookings, optionally within ``[start, end]``."""
    requester = _requester(x_user_id, x_user_role)
    return booking_repo.list_for_owner(requester.id, as_utc(start), as_utc(end))


@app.delete("/bookings/{booking_id}", response_model=CancelResult)
def cancel_booking(
    booking_id: str,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CancelResult:
    """Cancel a booking; cancelling a series parent removes the whole series."""
    requester = _requester(x_user_id, x_user_role)
    return series_service.cancel(booking_id, requester)


@app.delete("/bookings/{booking_id}/recurring", response_model=TruncateResult)
def truncate_series(
    booking_id: str,
    from_date: datetime,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> TruncateResult:
    """Delete every occurrence of a series from ``from_date`` forward."""
    requester = _requester(x_user_id, x_user_role)
    return series_service.truncate_from(booking_id, as_utc(from_date), requester)


@app.get("/bookings/{booking_id}/timeline", response_model=list[TimelineEntry])
def get_booking_timeline(booking_id: str) -> list[TimelineEntry]:
    """Return the audit timeline for a booking."""
    return timeline_repo.list_for_booking(booking_id)


@app.get("/rooms/{room_id}/bookings", response_model=list[Booking])
def list_room_bookings(room_id: str, start: datetime, end: datetime) -> list[Booking]:
    """Return bookings on a room that overlap ``[start, end)``."""
    if not room_repo.exists(room_id):
        raise HTTPException(status_code=404, detail="Room not found")
    return booking_repo.list_for_resources([room_id], as_utc(start), as_utc(end))


@app.get("/locations/{location_id}/bookings", response_model=list[Booking])
def list_location_bookings(
    location_id: str, start: datetime, end: datetime
) -> list[Booking]:
    """Return bookings on every room at a location that overlap ``[start, end)``."""
    room_ids = [r.id for r in room_repo.list_for_location(location_id)]
    return booking_repo.list_for_resources(room_ids, as_utc(start), as_utc(end))
