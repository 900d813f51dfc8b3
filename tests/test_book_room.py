"""End-to-end tests for the booking HTTP endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.domain.models import Booking, Room, User
from app.main import app, booking_repo, room_repo, timeline_repo, user_repo


def _clear() -> None:
    booking_repo._store.clear()
    room_repo._store.clear()
    user_repo._store.clear()
    timeline_repo._entries.clear()


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test and seed two rooms."""
    _clear()
    room_repo.add(Room(id="room-1", name="Boardroom", location_id="loc-1"))
    room_repo.add(Room(id="room-2", name="Huddle", location_id="loc-1"))
    room_repo.add(Room(id="room-3", name="Annex", location_id="loc-2"))
    user_repo.add(User(id="ada", first_name="Ada", last_name="Lovelace"))
    yield
    _clear()


@pytest.fixture()
def client():
    return TestClient(app)


_ADA = {"X-User-Id": "ada"}
_BOB = {"X-User-Id": "bob"}
_ADMIN = {"X-User-Id": "grace", "X-User-Role": "admin"}

# Tomorrow-ish at 09:00 UTC; the service compares against the real clock
_START = (datetime.now(timezone.utc) + timedelta(days=2)).replace(
    hour=9, minute=0, second=0, microsecond=0
)


def _body(start: datetime = _START, minutes: int = 60, **extra) -> dict:
    return {
        "resource_id": "room-1",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(minutes=minutes)).isoformat(),
        **extra,
    }


def _weekly(weeks: int) -> dict:
    return {
        "pattern": "weekly",
        "series_end_date": (_START + timedelta(weeks=weeks)).isoformat(),
    }


# ---------------------------------------------------------------------------
# POST /bookings
# ---------------------------------------------------------------------------


def test_create_standalone_booking(client: TestClient):
    resp = client.post("/bookings", json=_body(), headers=_ADA)

    assert resp.status_code == 201
    data = resp.json()
    assert data["booking"]["owner_id"] == "ada"
    assert data["booking"]["series_role"] == "standalone"
    assert data["children"] == []
    assert booking_repo.get(data["booking"]["id"]) is not None


def test_create_weekly_series_returns_children(client: TestClient):
    resp = client.post("/bookings", json=_body(recurrence=_weekly(3)), headers=_ADA)

    assert resp.status_code == 201
    data = resp.json()
    assert data["booking"]["series_role"] == "series_parent"
    assert len(data["children"]) == 3
    assert {c["parent_booking_id"] for c in data["children"]} == {data["booking"]["id"]}


def test_date_only_series_end_includes_last_occurrence(client: TestClient):
    last_day = (_START + timedelta(weeks=3)).date().isoformat()
    resp = client.post(
        "/bookings",
        json=_body(recurrence={"pattern": "weekly", "series_end_date": last_day}),
        headers=_ADA,
    )

    assert resp.status_code == 201
    children = resp.json()["children"]
    assert len(children) == 3
    last_start = datetime.fromisoformat(children[-1]["start_time"])
    assert last_start == _START + timedelta(weeks=3)


def test_conflict_returns_409_with_booking_details(client: TestClient):
    first = client.post("/bookings", json=_body(), headers=_ADA).json()

    resp = client.post(
        "/bookings", json=_body(start=_START + timedelta(minutes=30)), headers=_BOB
    )

    assert resp.status_code == 409
    data = resp.json()
    assert data["success"] is False
    assert data["code"] == "ConflictDetected"
    conflict = data["details"]["conflict"]
    assert conflict["id"] == first["booking"]["id"]
    assert conflict["booked_by"] == "Ada Lovelace"


def test_series_conflict_persists_nothing(client: TestClient):
    blocker = Booking(
        resource_id="room-1",
        owner_id="bob",
        start_time=_START + timedelta(weeks=2),
        end_time=_START + timedelta(weeks=2, hours=1),
    )
    booking_repo.add(blocker)

    resp = client.post("/bookings", json=_body(recurrence=_weekly(4)), headers=_ADA)

    assert resp.status_code == 409
    assert booking_repo.list_all() == [blocker]


def test_past_start_is_rejected(client: TestClient):
    resp = client.post(
        "/bookings", json=_body(start=_START - timedelta(days=30)), headers=_ADA
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "InThePast"


def test_too_short_is_rejected(client: TestClient):
    resp = client.post("/bookings", json=_body(minutes=5), headers=_ADA)
    assert resp.status_code == 400
    assert resp.json()["code"] == "TooShort"


def test_series_end_beyond_horizon_is_rejected(client: TestClient):
    resp = client.post(
        "/bookings",
        json=_body(recurrence={"pattern": "monthly", "series_end_date": "9999-12-31"}),
        headers=_ADA,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "SeriesTooLong"
    assert booking_repo.list_all() == []


def test_unknown_room_is_404(client: TestClient):
    resp = client.post("/bookings", json=_body(resource_id="room-x"), headers=_ADA)
    assert resp.status_code == 404
    assert resp.json()["code"] == "ResourceNotFound"


def test_unknown_pattern_is_rejected_by_schema(client: TestClient):
    resp = client.post(
        "/bookings", json=_body(recurrence={"pattern": "yearly"}), headers=_ADA
    )
    assert resp.status_code == 422


def test_missing_identity_is_401(client: TestClient):
    assert client.post("/bookings", json=_body()).status_code == 401


def test_admin_may_book_for_someone_else(client: TestClient):
    resp = client.post("/bookings", json=_body(owner_id="ada"), headers=_ADMIN)
    assert resp.status_code == 201
    assert resp.json()["booking"]["owner_id"] == "ada"


def test_plain_user_cannot_book_for_someone_else(client: TestClient):
    resp = client.post("/bookings", json=_body(owner_id="ada"), headers=_BOB)
    assert resp.status_code == 201
    assert resp.json()["booking"]["owner_id"] == "bob"


# ---------------------------------------------------------------------------
# DELETE /bookings/{id} and /bookings/{id}/recurring
# ---------------------------------------------------------------------------


def test_truncate_series_from_date(client: TestClient):
    series = client.post("/bookings", json=_body(recurrence=_weekly(3)), headers=_ADA).json()
    parent_id = series["booking"]["id"]
    from_date = _START + timedelta(days=10)

    resp = client.delete(
        f"/bookings/{parent_id}/recurring",
        params={"from_date": from_date.isoformat()},
        headers=_ADA,
    )

    assert resp.status_code == 200
    assert resp.json() == {"deleted_count": 2}
    assert booking_repo.get(parent_id).series_end_date == from_date


def test_truncate_standalone_is_404(client: TestClient):
    single = client.post("/bookings", json=_body(), headers=_ADA).json()
    resp = client.delete(
        f"/bookings/{single['booking']['id']}/recurring",
        params={"from_date": _START.isoformat()},
        headers=_ADA,
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "SeriesNotFound"


def test_cancel_series_parent_removes_children(client: TestClient):
    series = client.post("/bookings", json=_body(recurrence=_weekly(2)), headers=_ADA).json()

    resp = client.delete(f"/bookings/{series['booking']['id']}", headers=_ADA)

    assert resp.status_code == 200
    assert resp.json() == {"deleted_count": 3}
    assert booking_repo.list_all() == []


def test_cancel_someone_elses_booking_is_403(client: TestClient):
    single = client.post("/bookings", json=_body(), headers=_ADA).json()

    resp = client.delete(f"/bookings/{single['booking']['id']}", headers=_BOB)

    assert resp.status_code == 403
    assert resp.json()["code"] == "Unauthorized"


def test_admin_may_cancel_any_booking(client: TestClient):
    single = client.post("/bookings", json=_body(), headers=_ADA).json()
    resp = client.delete(f"/bookings/{single['booking']['id']}", headers=_ADMIN)
    assert resp.status_code == 200


def test_cancel_unknown_booking_is_404(client: TestClient):
    resp = client.delete("/bookings/nope", headers=_ADA)
    assert resp.status_code == 404
    assert resp.json()["code"] == "BookingNotFound"


# ---------------------------------------------------------------------------
# Listing & timeline
# ---------------------------------------------------------------------------


def test_list_my_bookings(client: TestClient):
    client.post("/bookings", json=_body(recurrence=_weekly(1)), headers=_ADA)
    client.post("/bookings", json=_body(start=_START + timedelta(hours=3)), headers=_BOB)

    resp = client.get("/bookings", headers=_ADA)
    assert resp.status_code == 200
    assert [b["owner_id"] for b in resp.json()] == ["ada", "ada"]

    windowed = client.get(
        "/bookings",
        params={
            "start": (_START - timedelta(hours=1)).isoformat(),
            "end": (_START + timedelta(days=1)).isoformat(),
        },
        headers=_ADA,
    )
    assert len(windowed.json()) == 1


def test_list_room_bookings_in_window(client: TestClient):
    client.post("/bookings", json=_body(), headers=_ADA)
    client.post("/bookings", json=_body(resource_id="room-2"), headers=_ADA)

    resp = client.get(
        "/rooms/room-1/bookings",
        params={
            "start": _START.isoformat(),
            "end": (_START + timedelta(hours=1)).isoformat(),
        },
    )

    assert resp.status_code == 200
    assert [b["resource_id"] for b in resp.json()] == ["room-1"]


def test_list_room_bookings_unknown_room(client: TestClient):
    resp = client.get(
        "/rooms/room-x/bookings",
        params={"start": _START.isoformat(), "end": _START.isoformat()},
    )
    assert resp.status_code == 404


def test_list_location_bookings(client: TestClient):
    for room_id in ("room-1", "room-2", "room-3"):
        client.post("/bookings", json=_body(resource_id=room_id), headers=_ADA)

    resp = client.get(
        "/locations/loc-1/bookings",
        params={
            "start": _START.isoformat(),
            "end": (_START + timedelta(days=1)).isoformat(),
        },
    )

    assert resp.status_code == 200
    assert sorted(b["resource_id"] for b in resp.json()) == ["room-1", "room-2"]


def test_timeline_tracks_admission_and_cancellation(client: TestClient):
    single = client.post("/bookings", json=_body(), headers=_ADA).json()
    booking_id = single["booking"]["id"]
    client.delete(f"/bookings/{booking_id}", headers=_ADA)

    resp = client.get(f"/bookings/{booking_id}/timeline")

    assert resp.status_code == 200
    assert [e["type"] for e in resp.json()] == ["admitted", "cancelled"]
