from __future__ import annotations

from datetime import datetime
from typing import Dict

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlmodel import Session

from docsona.api.deps import get_now
from docsona.db.session import engine, init_db
from docsona.main import app

NOW = datetime(2099, 1, 1, 8, 0)


def _payload(time_of_day: str = "10:00 AM", **overrides: object) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "patient_ref": "patient-1",
        "provider_ref": "provider-1",
        "calendar_date": "2099-01-10",
        "time_of_day": time_of_day,
        "reason": "Follow-up on blood pressure",
        "location": "Room 3",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client() -> TestClient:
    init_db()
    with Session(engine) as session:
        session.exec(text("DELETE FROM appointment_status_history"))
        session.exec(text("DELETE FROM appointment_reminders"))
        session.exec(text("DELETE FROM appointments"))
        session.commit()

    app.dependency_overrides[get_now] = lambda: NOW
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_book_and_fetch_appointment(client: TestClient) -> None:
    response = client.post("/api/v1/appointments/", json=_payload("9:30 AM", appointment_type="follow-up"))
    assert response.status_code == 201
    body = response.json()
    assert body["time_of_day"] == "09:30 AM"
    assert body["end_time_of_day"] == "10:00 AM"
    assert body["appointment_type"] == "follow-up"
    assert body["status"] == "scheduled"
    assert body["can_cancel"] is True

    fetched = client.get(f"/api/v1/appointments/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]


def test_invalid_time_format_is_unprocessable(client: TestClient) -> None:
    response = client.post("/api/v1/appointments/", json=_payload("13:00 PM"))
    assert response.status_code == 422


def test_overlapping_booking_returns_conflict(client: TestClient) -> None:
    first = client.post("/api/v1/appointments/", json=_payload("10:00 AM")).json()

    response = client.post("/api/v1/appointments/", json=_payload("10:15 AM", patient_ref="patient-2"))
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "SLOT_CONFLICT"
    assert detail["message"] == "This time slot is already booked"
    assert detail["conflicting_id"] == first["id"]

    adjacent = client.post("/api/v1/appointments/", json=_payload("10:30 AM", patient_ref="patient-2"))
    assert adjacent.status_code == 201


def test_past_booking_returns_bad_request(client: TestClient) -> None:
    response = client.post("/api/v1/appointments/", json=_payload(calendar_date="2098-12-31"))
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "PAST_APPOINTMENT"


def test_available_slots_endpoint(client: TestClient) -> None:
    client.post("/api/v1/appointments/", json=_payload("09:00 AM"))

    response = client.get(
        "/api/v1/appointments/available-slots",
        params={"provider_ref": "provider-1", "date": "2099-01-10"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["provider_ref"] == "provider-1"
    assert payload["slots"][0] == "09:30 AM"
    assert len(payload["slots"]) == 15


def test_reschedule_and_cancel_flow(client: TestClient) -> None:
    appointment_id = client.post("/api/v1/appointments/", json=_payload()).json()["id"]

    rescheduled = client.put(
        f"/api/v1/appointments/{appointment_id}/reschedule",
        json={"calendar_date": "2099-01-11", "time_of_day": "02:00 PM"},
    )
    assert rescheduled.status_code == 200
    assert rescheduled.json()["calendar_date"] == "2099-01-11"
    assert rescheduled.json()["status_history"][0]["status"] == "rescheduled"

    cancelled = client.put(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"cancelled_by": "patient", "reason": "Travelling"},
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation"]["reason"] == "Travelling"

    again = client.put(f"/api/v1/appointments/{appointment_id}/cancel", json={})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"


def test_cancel_inside_window_reports_hours_remaining(client: TestClient) -> None:
    appointment_id = client.post("/api/v1/appointments/", json=_payload()).json()["id"]

    app.dependency_overrides[get_now] = lambda: datetime(2099, 1, 10, 0, 0)
    response = client.put(f"/api/v1/appointments/{appointment_id}/cancel", json={})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "CANCEL_WINDOW"
    assert detail["hours_remaining"] == 10


def test_status_endpoints(client: TestClient) -> None:
    appointment_id = client.post("/api/v1/appointments/", json=_payload()).json()["id"]

    assert client.post(f"/api/v1/appointments/{appointment_id}/confirm").json()["status"] == "confirmed"
    assert client.post(f"/api/v1/appointments/{appointment_id}/start").json()["status"] == "in-progress"
    assert client.post(f"/api/v1/appointments/{appointment_id}/complete").json()["status"] == "completed"

    response = client.post(f"/api/v1/appointments/{appointment_id}/no-show")
    assert response.status_code == 409
    assert response.json()["detail"]["current"] == "completed"


def test_unknown_appointment_returns_not_found(client: TestClient) -> None:
    assert client.get("/api/v1/appointments/does-not-exist").status_code == 404
    response = client.put("/api/v1/appointments/does-not-exist/cancel", json={})
    assert response.status_code == 404
    assert response.json()["detail"] == "Appointment not found"


def test_listing_endpoints(client: TestClient) -> None:
    client.post("/api/v1/appointments/", json=_payload("09:00 AM"))
    client.post("/api/v1/appointments/", json=_payload("11:00 AM"))
    client.post("/api/v1/appointments/", json=_payload("10:00 AM", patient_ref="patient-2"))

    listing = client.get("/api/v1/appointments/", params={"patient_ref": "patient-1", "page_size": 1})
    assert listing.status_code == 200
    assert listing.json()["total"] == 2
    assert len(listing.json()["items"]) == 1

    upcoming = client.get("/api/v1/appointments/upcoming", params={"patient_ref": "patient-1"})
    assert [item["time_of_day"] for item in upcoming.json()] == ["09:00 AM", "11:00 AM"]

    past = client.get("/api/v1/appointments/past", params={"patient_ref": "patient-1"})
    assert past.json()["total"] == 0


def test_visit_notes_endpoint(client: TestClient) -> None:
    created = client.post("/api/v1/appointments/", json=_payload(room="7", symptoms=["dizziness"])).json()
    assert created["room"] == "7"
    assert created["symptoms"] == ["dizziness"]

    response = client.put(
        f"/api/v1/appointments/{created['id']}/visit-notes",
        json={"doctor_notes": "Blood test ordered", "follow_up_required": True, "follow_up_date": "2099-01-20"},
    )
    assert response.status_code == 200
    assert response.json()["follow_up_date"] == "2099-01-20"
    assert response.json()["doctor_notes"] == "Blood test ordered"

    invalid = client.put(
        f"/api/v1/appointments/{created['id']}/visit-notes",
        json={"follow_up_required": False, "follow_up_date": "2099-01-20"},
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["code"] == "INVALID_APPOINTMENT"


def test_zero_duration_is_unprocessable(client: TestClient) -> None:
    response = client.post("/api/v1/appointments/", json=_payload(duration_minutes=0))
    assert response.status_code == 422
