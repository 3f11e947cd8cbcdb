"""Tests for weekly availability and slot lookup endpoints."""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.services.availability_service import NOT_AVAILABLE_MESSAGE

WEEKLY = {
    "availability": [
        {
            "day_of_week": 1,
            "start_time": "09:00",
            "end_time": "17:00",
            "break_start": "12:00",
            "break_end": "13:00",
        },
        {"day_of_week": 3, "start_time": "9:00", "end_time": "12:00"},
    ]
}


@pytest.mark.asyncio
async def test_doctor_replaces_own_schedule(client: AsyncClient, doctor, doctor_headers) -> None:
    response = await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability", json=WEEKLY, headers=doctor_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert [entry["day_of_week"] for entry in data["availability"]] == [1, 3]
    # Times are stored zero-padded
    assert data["availability"][1]["start_time"] == "09:00"

    response = await client.get(f"/api/v1/doctors/{doctor['id']}/availability")
    assert response.status_code == 200
    assert len(response.json()["availability"]) == 2


@pytest.mark.asyncio
async def test_replacing_schedule_drops_old_entries(
    client: AsyncClient, doctor, doctor_headers, monday_availability
) -> None:
    response = await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability",
        json={"availability": [{"day_of_week": 5, "start_time": "10:00", "end_time": "11:00"}]},
        headers=doctor_headers,
    )
    assert response.status_code == 200

    response = await client.get(f"/api/v1/doctors/{doctor['id']}/availability")
    days = [entry["day_of_week"] for entry in response.json()["availability"]]
    assert days == [5]


@pytest.mark.asyncio
async def test_admin_may_replace_any_schedule(client: AsyncClient, doctor, admin_headers) -> None:
    response = await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability", json=WEEKLY, headers=admin_headers
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_others_cannot_replace_schedule(client: AsyncClient, doctor, patient_headers) -> None:
    response = await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability", json=WEEKLY, headers=patient_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_doctor_schedule_not_found(client: AsyncClient, admin_headers) -> None:
    response = await client.put(
        f"/api/v1/doctors/{uuid4()}/availability", json=WEEKLY, headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entry",
    [
        {"day_of_week": 1, "start_time": "12:00", "end_time": "09:00"},
        {"day_of_week": 7, "start_time": "09:00", "end_time": "12:00"},
        {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "break_start": "10:00"},
        {
            "day_of_week": 1,
            "start_time": "09:00",
            "end_time": "12:00",
            "break_start": "11:30",
            "break_end": "12:30",
        },
        {"day_of_week": 1, "start_time": "9am", "end_time": "12:00"},
    ],
)
async def test_invalid_schedule_is_rejected(
    client: AsyncClient, doctor, doctor_headers, entry: dict
) -> None:
    response = await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability",
        json={"availability": [entry]},
        headers=doctor_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_slots_exclude_booked_times(
    client: AsyncClient, patient, doctor, monday_availability, next_monday, make_appointment
) -> None:
    """Mon 09:00-12:00 with a 10:00 booking."""
    await make_appointment(patient["id"], doctor["id"], next_monday, "10:00")

    response = await client.get(
        "/api/v1/availability/slots",
        params={"doctor_id": str(doctor["id"]), "date": next_monday.isoformat()},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["slots"] == ["09:00", "09:30", "10:30", "11:00", "11:30"]
    assert data["working_hours"] == {"start": "09:00", "end": "12:00"}
    assert data["message"] is None


@pytest.mark.asyncio
async def test_cancelled_booking_frees_slot(
    client: AsyncClient, patient, doctor, monday_availability, next_monday, make_appointment
) -> None:
    await make_appointment(patient["id"], doctor["id"], next_monday, "10:00", status="CANCELLED")

    response = await client.get(
        "/api/v1/availability/slots",
        params={"doctor_id": str(doctor["id"]), "date": next_monday.isoformat()},
    )
    assert "10:00" in response.json()["slots"]


@pytest.mark.asyncio
async def test_day_without_hours_returns_message(
    client: AsyncClient, doctor, monday_availability, next_monday
) -> None:
    tuesday = next_monday + timedelta(days=1)

    response = await client.get(
        "/api/v1/availability/slots",
        params={"doctor_id": str(doctor["id"]), "date": tuesday.isoformat()},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["slots"] == []
    assert data["working_hours"] is None
    assert data["message"] == NOT_AVAILABLE_MESSAGE


@pytest.mark.asyncio
async def test_inactive_period_is_ignored(
    client: AsyncClient, doctor, doctor_headers, next_monday
) -> None:
    await client.put(
        f"/api/v1/doctors/{doctor['id']}/availability",
        json={
            "availability": [
                {"day_of_week": 1, "start_time": "09:00", "end_time": "10:00", "is_active": False}
            ]
        },
        headers=doctor_headers,
    )

    response = await client.get(
        "/api/v1/availability/slots",
        params={"doctor_id": str(doctor["id"]), "date": next_monday.isoformat()},
    )
    assert response.json()["slots"] == []


@pytest.mark.asyncio
async def test_slots_require_doctor_and_date(client: AsyncClient) -> None:
    response = await client.get("/api/v1/availability/slots", params={"date": "2026-01-05"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_offered_slot_can_be_booked(
    client: AsyncClient, doctor, monday_availability, next_monday, patient_headers
) -> None:
    """Every offered slot is free to book; it disappears once taken."""
    params = {"doctor_id": str(doctor["id"]), "date": next_monday.isoformat()}
    slots = (await client.get("/api/v1/availability/slots", params=params)).json()["slots"]

    response = await client.post(
        "/api/v1/appointments/",
        json={
            "doctor_id": str(doctor["id"]),
            "appointment_date": next_monday.isoformat(),
            "time_slot": slots[0],
        },
        headers=patient_headers,
    )
    assert response.status_code == 201

    remaining = (await client.get("/api/v1/availability/slots", params=params)).json()["slots"]
    assert remaining == slots[1:]


@pytest.mark.asyncio
async def test_check_slot(
    client: AsyncClient, patient, doctor, next_monday, make_appointment, patient_headers
) -> None:
    await make_appointment(patient["id"], doctor["id"], next_monday, "10:00")
    params = {"doctor_id": str(doctor["id"]), "date": next_monday.isoformat()}

    response = await client.get(
        "/api/v1/availability/check",
        params={**params, "time_slot": "10:00"},
        headers=patient_headers,
    )
    assert response.status_code == 200
    assert response.json()["available"] is False

    response = await client.get(
        "/api/v1/availability/check",
        params={**params, "time_slot": "9:30"},
        headers=patient_headers,
    )
    data = response.json()
    assert data["available"] is True
    assert data["time_slot"] == "09:30"


@pytest.mark.asyncio
async def test_check_slot_requires_authentication(
    client: AsyncClient, doctor, next_monday
) -> None:
    response = await client.get(
        "/api/v1/availability/check",
        params={
            "doctor_id": str(doctor["id"]),
            "date": next_monday.isoformat(),
            "time_slot": "10:00",
        },
    )
    assert response.status_code in (401, 403)
