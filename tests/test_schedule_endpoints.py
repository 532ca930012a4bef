"""Tests for scheduling endpoints."""

from datetime import date

import pytest
from httpx import AsyncClient


async def _book(client: AsyncClient, headers: dict, data: dict, **overrides) -> dict:
    response = await client.post(
        "/api/v1/appointments/",
        json={**data, **overrides},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _slot(availability: dict, time: str) -> dict:
    return next(slot for slot in availability["slots"] if slot["time"] == time)


@pytest.mark.asyncio
async def test_time_grid(client: AsyncClient) -> None:
    """The grid runs 08:00 to 18:00 in half hours, online from 13:00."""
    response = await client.get("/api/v1/schedule/slots")
    assert response.status_code == 200
    data = response.json()

    assert data["interval_minutes"] == 30
    assert len(data["slots"]) == 21
    assert data["slots"][0] == {"time": "08:00", "display": "8:00 AM", "session": "FACE-TO-FACE"}
    assert data["slots"][-1]["time"] == "18:00"

    by_time = {slot["time"]: slot for slot in data["slots"]}
    assert by_time["12:30"]["session"] == "FACE-TO-FACE"
    assert by_time["13:00"]["session"] == "ONLINE"
    assert by_time["13:00"]["display"] == "1:00 PM"


@pytest.mark.asyncio
async def test_availability_for_one_doctor(
    client: AsyncClient,
    staff_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """A 60 minute booking blocks two slots; the slot after it is open."""
    await _book(client, staff_headers, appointment_data, patient_id="P1", duration=60)

    response = await client.get(
        "/api/v1/schedule/availability",
        params={"date": future_date.isoformat(), "doctor": "Dr. Smith"},
    )
    assert response.status_code == 200
    data = response.json()

    assert len(data["slots"]) == 21
    assert _slot(data, "10:00")["is_booked"] is True
    assert _slot(data, "10:30")["is_booked"] is True
    assert _slot(data, "11:00")["is_available"] is True
    assert "11:00" in data["available_slots"]
    assert "10:00" not in data["available_slots"]


@pytest.mark.asyncio
async def test_availability_any_doctor_lists_free_doctors(
    client: AsyncClient,
    staff_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """Without a doctor a slot stays open while anyone is free."""
    await _book(client, staff_headers, appointment_data, patient_id="P1")

    response = await client.get(
        "/api/v1/schedule/availability",
        params={"date": future_date.isoformat()},
    )
    slot = _slot(response.json(), "10:00")
    assert slot["is_available"] is True
    assert slot["available_doctors"] == ["Dr. Jones"]

    await _book(client, staff_headers, appointment_data, patient_id="P2", doctor="Dr. Jones")

    response = await client.get(
        "/api/v1/schedule/availability",
        params={"date": future_date.isoformat()},
    )
    slot = _slot(response.json(), "10:00")
    assert slot["is_booked"] is True
    assert slot["available_doctors"] == []


@pytest.mark.asyncio
async def test_unpaid_request_hidden_from_public_view_only(
    client: AsyncClient,
    patient_headers: dict,
    staff_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """An unpaid pending request still blocks the doctor."""
    await _book(client, patient_headers, appointment_data)
    params = {"date": future_date.isoformat(), "doctor": "Dr. Smith"}

    public = await client.get("/api/v1/schedule/availability", params=params)
    assert _slot(public.json(), "10:00")["is_available"] is True

    doctor_view = await client.get(
        "/api/v1/schedule/availability",
        params={**params, "view": "doctor"},
        headers=staff_headers,
    )
    assert doctor_view.status_code == 200
    assert _slot(doctor_view.json(), "10:00")["is_booked"] is True


@pytest.mark.asyncio
async def test_doctor_view_requires_staff(
    client: AsyncClient,
    patient_headers: dict,
    future_date: date,
) -> None:
    """Patients and anonymous callers only get the public view."""
    params = {"date": future_date.isoformat(), "view": "doctor"}

    anonymous = await client.get("/api/v1/schedule/availability", params=params)
    assert anonymous.status_code == 403

    patient = await client.get(
        "/api/v1/schedule/availability",
        params=params,
        headers=patient_headers,
    )
    assert patient.status_code == 403


@pytest.mark.asyncio
async def test_availability_unknown_doctor(client: AsyncClient, future_date: date) -> None:
    """Unknown doctors are rejected rather than shown as wide open."""
    response = await client.get(
        "/api/v1/schedule/availability",
        params={"date": future_date.isoformat(), "doctor": "Dr. Nobody"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_past_date_slots_all_past(client: AsyncClient) -> None:
    """Every slot of a past date is past and none is available."""
    response = await client.get(
        "/api/v1/schedule/availability",
        params={"date": "2000-01-03", "doctor": "Dr. Smith"},
    )
    data = response.json()
    assert all(slot["is_past"] for slot in data["slots"])
    assert data["available_slots"] == []


@pytest.mark.asyncio
async def test_check_booking(
    client: AsyncClient,
    staff_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """Dry-run checks report the first failing rule without writing."""
    created = await _book(client, staff_headers, appointment_data, patient_id="P1")
    proposal = {
        "patient_id": "P2",
        "doctor": "Dr. Smith",
        "date": future_date.isoformat(),
        "time": "10:00",
        "duration": 30,
    }

    clash = await client.post("/api/v1/schedule/check", json=proposal, headers=staff_headers)
    assert clash.status_code == 200
    assert clash.json() == {
        "ok": False,
        "reason": "doctor_conflict",
        "message": "The selected time slot is already booked for this provider.",
        "conflicting_id": created["id"],
    }

    adjacent = await client.post(
        "/api/v1/schedule/check",
        json={**proposal, "time": "10:30"},
        headers=staff_headers,
    )
    assert adjacent.json()["ok"] is True

    # Re-checking an appointment against itself is not a conflict
    itself = await client.post(
        "/api/v1/schedule/check",
        json={**proposal, "patient_id": "P1", "appointment_id": created["id"]},
        headers=staff_headers,
    )
    assert itself.json()["ok"] is True

    listing = await client.get("/api/v1/appointments/", headers=staff_headers)
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_check_booking_hides_clashing_id_from_non_staff(
    client: AsyncClient,
    staff_headers: dict,
    patient_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """Anonymous and patient callers learn the reason, not the other appointment."""
    await _book(client, staff_headers, appointment_data, patient_id="P1")
    proposal = {
        "doctor": "Dr. Smith",
        "date": future_date.isoformat(),
        "time": "10:00",
    }

    anonymous = await client.post("/api/v1/schedule/check", json=proposal)
    assert anonymous.json()["reason"] == "doctor_conflict"
    assert anonymous.json()["conflicting_id"] is None

    patient = await client.post("/api/v1/schedule/check", json=proposal, headers=patient_headers)
    assert patient.json()["reason"] == "doctor_conflict"
    assert patient.json()["conflicting_id"] is None


@pytest.mark.asyncio
async def test_check_booking_patient_checked_as_self(
    client: AsyncClient,
    patient_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """A patient's dry run uses their own id whatever the body says."""
    await _book(client, patient_headers, appointment_data, time="09:00", duration=60)

    response = await client.post(
        "/api/v1/schedule/check",
        json={
            "patient_id": "someone-else",
            "doctor": "Dr. Jones",
            "date": future_date.isoformat(),
            "time": "09:30",
        },
        headers=patient_headers,
    )
    assert response.json()["reason"] == "patient_conflict"


@pytest.mark.asyncio
async def test_check_booking_past(client: AsyncClient) -> None:
    """Past proposals fail before any occupancy check."""
    response = await client.post(
        "/api/v1/schedule/check",
        json={"doctor": "Dr. Smith", "date": "2000-01-03", "time": "10:00"},
    )
    data = response.json()
    assert data["ok"] is False
    assert data["reason"] == "past_date"


@pytest.mark.asyncio
async def test_day_layout(
    client: AsyncClient,
    staff_headers: dict,
    appointment_data: dict,
    future_date: date,
) -> None:
    """Overlapping appointments share the width; cancelled ones are left out."""
    long = await _book(client, staff_headers, appointment_data, patient_id="P1", duration=60)
    overlap = await _book(
        client, staff_headers, appointment_data, patient_id="P2", doctor="Dr. Jones", time="10:30"
    )
    alone = await _book(client, staff_headers, appointment_data, patient_id="P3", time="14:00")
    cancelled = await _book(client, staff_headers, appointment_data, patient_id="P4", time="16:00")
    await client.patch(
        f"/api/v1/appointments/{cancelled['id']}/status",
        json={"status": "cancelled"},
        headers=staff_headers,
    )

    response = await client.get(
        "/api/v1/schedule/layout",
        params={"date": future_date.isoformat()},
        headers=staff_headers,
    )
    assert response.status_code == 200
    items = {item["appointment_id"]: item for item in response.json()["items"]}

    assert set(items) == {long["id"], overlap["id"], alone["id"]}
    assert items[long["id"]]["column"] == 0
    assert items[overlap["id"]]["column"] == 1
    assert items[long["id"]]["sibling_count"] == 2
    assert items[overlap["id"]]["left_percent"] == 50.0
    assert items[alone["id"]]["sibling_count"] == 1
    assert items[alone["id"]]["width_percent"] == 100.0


@pytest.mark.asyncio
async def test_layout_requires_staff(
    client: AsyncClient,
    patient_headers: dict,
    future_date: date,
) -> None:
    """The calendar layout shows patient names and is staff-only."""
    response = await client.get(
        "/api/v1/schedule/layout",
        params={"date": future_date.isoformat()},
        headers=patient_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_request_inbox(
    client: AsyncClient,
    patient_headers: dict,
    other_patient_headers: dict,
    staff_headers: dict,
    appointment_data: dict,
) -> None:
    """The inbox lists requests with payment labels and cancellation requests."""
    unpaid = await _book(client, patient_headers, appointment_data, time="09:00")
    partial = await _book(client, patient_headers, appointment_data, time="11:00")
    clinic = await _book(client, other_patient_headers, appointment_data, time="14:00")
    approved = await _book(client, other_patient_headers, appointment_data, time="16:00")

    await client.patch(
        f"/api/v1/appointments/{partial['id']}/payment",
        json={"payment_status": "half-paid"},
        headers=patient_headers,
    )
    await client.patch(
        f"/api/v1/appointments/{clinic['id']}/payment",
        json={"payment_status": "unpaid", "pay_at_clinic": True},
        headers=other_patient_headers,
    )
    await client.post(f"/api/v1/appointments/{approved['id']}/approve", headers=staff_headers)
    await client.post(
        f"/api/v1/appointments/{approved['id']}/cancellation-request",
        headers=other_patient_headers,
    )

    response = await client.get("/api/v1/schedule/requests", headers=staff_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4

    labels = {item["id"]: item["payment_label"] for item in data["items"]}
    assert labels[unpaid["id"]] == "Unpaid"
    assert labels[partial["id"]] == "Partial"
    assert labels[clinic["id"]] == "Clinic"

    flagged = next(item for item in data["items"] if item["id"] == approved["id"])
    assert flagged["status"] == "scheduled"
    assert flagged["cancellation_requested"] is True


@pytest.mark.asyncio
async def test_request_inbox_requires_staff(
    client: AsyncClient,
    patient_headers: dict,
) -> None:
    """Patients cannot see the inbox."""
    response = await client.get("/api/v1/schedule/requests", headers=patient_headers)
    assert response.status_code == 403
