"""
HTTP API tests: routing, authentication and error mapping.
"""

import pytest
from sqlalchemy.exc import OperationalError

from telecare.core.config import settings
from telecare.core.errors import UpstreamFailure
from telecare.services.booking_coordinator import BookingCoordinator
from telecare.services.slot_store import SlotStore

from tests.conftest import TOMORROW, auth_headers


@pytest.fixture
def doctor_headers(doctor):
    return auth_headers(doctor.user_id, "doctor")


@pytest.fixture
def patient_headers(patient):
    return auth_headers(patient.user_id, "patient")


async def create_slot(client, headers, start="10:00", end="10:30"):
    response = await client.post(
        "/api/v1/schedule/slots",
        json={"date": TOMORROW.isoformat(), "start_time": start, "end_time": end},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_requires_valid_token(client, doctor):
    response = await client.get("/api/v1/doctors", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


async def test_patient_cannot_use_doctor_endpoints(client, patient_headers):
    response = await client.post(
        "/api/v1/schedule/slots",
        json={"date": TOMORROW.isoformat(), "start_time": "10:00", "end_time": "10:30"},
        headers=patient_headers,
    )

    assert response.status_code == 403


async def test_list_and_match_doctors(client, doctor, other_doctor, patient_headers):
    listed = await client.get("/api/v1/doctors", headers=patient_headers)
    matched = await client.post(
        "/api/v1/doctors/match", json={"symptoms": "chest pain for 2 days"}, headers=patient_headers
    )

    assert [d["full_name"] for d in listed.json()] == ["Dr. Michael Chen", "Dr. Sarah Johnson"]
    body = matched.json()
    assert body["category"] == "Cardiology"
    assert body["keywords"] == ["chest pain"]
    # The dermatologist only scores on experience but still ranks
    assert [d["doctor"]["id"] for d in body["doctors"]] == [str(doctor.id), str(other_doctor.id)]
    assert [d["score"] for d in body["doctors"]] == [28, 1]


async def test_booking_flow(client, doctor, patient, doctor_headers, patient_headers):
    slot = await create_slot(client, doctor_headers)

    available = await client.get(
        "/api/v1/slots/available", params={"date": TOMORROW.isoformat()}, headers=patient_headers
    )
    assert [item["slot"]["id"] for item in available.json()] == [slot["id"]]

    booked = await client.post("/api/v1/bookings", json={"slot_id": slot["id"]}, headers=patient_headers)
    assert booked.status_code == 201, booked.text
    booking = booked.json()
    assert booking["slot"]["status"] == "booked"
    assert booking["request"]["status"] == "accepted"
    assert booking["appointment"]["status"] == "confirmed"

    again = await client.post("/api/v1/bookings", json={"slot_id": slot["id"]}, headers=patient_headers)
    assert again.status_code == 409
    assert again.json() == {
        "error": "SlotUnavailable",
        "detail": "Slot is booked and can no longer be booked",
        "code": "SLOT_UNAVAILABLE",
    }

    mine = await client.get("/api/v1/appointments/mine", headers=patient_headers)
    upcoming = await client.get("/api/v1/appointments/upcoming", headers=doctor_headers)
    assert [a["id"] for a in mine.json()] == [booking["appointment"]["id"]]
    assert [a["id"] for a in upcoming.json()] == [booking["appointment"]["id"]]

    blocked = await client.patch(
        f"/api/v1/schedule/slots/{slot['id']}", json={"blocked": True}, headers=doctor_headers
    )
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "InvalidTransition"

    cancelled = await client.post(
        f"/api/v1/appointments/{booking['appointment']['id']}/cancel", headers=patient_headers
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    own_slots = await client.get(
        "/api/v1/schedule/slots", params={"date": TOMORROW.isoformat()}, headers=doctor_headers
    )
    assert own_slots.json()[0]["status"] == "available"


async def test_slot_validation_maps_to_400(client, doctor, doctor_headers):
    response = await client.post(
        "/api/v1/schedule/slots",
        json={"date": TOMORROW.isoformat(), "start_time": "11:00", "end_time": "10:00"},
        headers=doctor_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_delete_slot(client, doctor, doctor_headers):
    slot = await create_slot(client, doctor_headers)

    deleted = await client.delete(f"/api/v1/schedule/slots/{slot['id']}", headers=doctor_headers)
    missing = await client.delete(f"/api/v1/schedule/slots/{slot['id']}", headers=doctor_headers)

    assert deleted.status_code == 204
    assert missing.status_code == 404


async def test_consultation_flow(client, doctor, patient, doctor_headers, patient_headers):
    submitted = await client.post(
        "/api/v1/consultation-requests",
        json={"doctor_id": str(doctor.id), "symptoms": "Palpitations at night", "consultation_type": "chat"},
        headers=patient_headers,
    )
    assert submitted.status_code == 201, submitted.text
    request_id = submitted.json()["id"]

    pending = await client.get(
        "/api/v1/consultation-requests", params={"status": "pending"}, headers=doctor_headers
    )
    assert [r["id"] for r in pending.json()] == [request_id]

    accepted = await client.post(
        f"/api/v1/consultation-requests/{request_id}/respond", json={"accept": True}, headers=doctor_headers
    )
    assert accepted.json()["status"] == "accepted"
    assert "chat consultation" in accepted.json()["doctor_response"]

    repeat = await client.post(
        f"/api/v1/consultation-requests/{request_id}/respond", json={"accept": False}, headers=doctor_headers
    )
    assert repeat.status_code == 409

    slot = await create_slot(client, doctor_headers, "16:00", "16:30")
    scheduled = await client.post(
        f"/api/v1/consultation-requests/{request_id}/schedule", json={"slot_id": slot["id"]}, headers=doctor_headers
    )
    assert scheduled.status_code == 201, scheduled.text
    assert scheduled.json()["slot"]["linked_request_id"] == request_id

    completed = await client.post(
        f"/api/v1/consultation-requests/{request_id}/complete",
        json={"medications": "Magnesium 200mg", "dosage_instructions": "Once daily at night"},
        headers=doctor_headers,
    )
    assert completed.status_code == 201, completed.text

    prescriptions = await client.get("/api/v1/prescriptions", headers=patient_headers)
    assert [p["consultation_request_id"] for p in prescriptions.json()] == [request_id]

    own_requests = await client.get("/api/v1/consultation-requests", headers=patient_headers)
    assert own_requests.json()[0]["status"] == "completed"


async def test_unknown_request_maps_to_404(client, doctor, doctor_headers):
    response = await client.post(
        "/api/v1/consultation-requests/00000000-0000-0000-0000-000000000000/respond",
        json={"accept": True},
        headers=doctor_headers,
    )

    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


async def test_upstream_failure_maps_to_503_after_retries(client, doctor, patient, patient_headers, monkeypatch):
    calls = []

    async def unavailable(self, *args, **kwargs):
        calls.append(args)
        raise UpstreamFailure("Scheduling store is unavailable, try again later")

    monkeypatch.setattr(BookingCoordinator, "book_slot", unavailable)
    monkeypatch.setattr(settings, "upstream_retry_base_delay_seconds", 0)

    response = await client.post(
        "/api/v1/bookings",
        json={"slot_id": "00000000-0000-0000-0000-000000000000"},
        headers=patient_headers,
    )

    assert response.status_code == 503
    assert response.json()["code"] == "UPSTREAM_FAILURE"
    assert len(calls) == settings.upstream_retry_attempts


async def test_booking_succeeds_after_transient_database_error(
    client, doctor, patient, doctor_headers, patient_headers, monkeypatch
):
    slot = await create_slot(client, doctor_headers)
    claim_slot = BookingCoordinator._claim_slot
    attempts = []

    async def flaky_claim(self, *args, **kwargs):
        attempts.append(args)
        if len(attempts) == 1:
            raise OperationalError("UPDATE doctor_schedule", {}, Exception("server closed the connection"))
        return await claim_slot(self, *args, **kwargs)

    monkeypatch.setattr(BookingCoordinator, "_claim_slot", flaky_claim)
    monkeypatch.setattr(settings, "upstream_retry_base_delay_seconds", 0)

    response = await client.post("/api/v1/bookings", json={"slot_id": slot["id"]}, headers=patient_headers)

    assert response.status_code == 201, response.text
    assert len(attempts) == 2
    body = response.json()
    assert body["slot"]["status"] == "booked"
    assert body["request"]["patient_id"] == str(patient.id)

    requests = await client.get("/api/v1/consultation-requests", headers=patient_headers)
    assert [r["id"] for r in requests.json()] == [body["request"]["id"]]


async def test_doctor_action_succeeds_after_transient_database_error(
    client, doctor, doctor_headers, monkeypatch
):
    slot = await create_slot(client, doctor_headers)
    compare_and_set = SlotStore.compare_and_set_status
    attempts = []

    async def flaky_compare_and_set(self, *args, **kwargs):
        attempts.append(args)
        if len(attempts) == 1:
            raise OperationalError("UPDATE doctor_schedule", {}, Exception("server closed the connection"))
        return await compare_and_set(self, *args, **kwargs)

    monkeypatch.setattr(SlotStore, "compare_and_set_status", flaky_compare_and_set)
    monkeypatch.setattr(settings, "upstream_retry_base_delay_seconds", 0)

    response = await client.patch(
        f"/api/v1/schedule/slots/{slot['id']}", json={"blocked": True}, headers=doctor_headers
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "blocked"
    assert len(attempts) == 2
