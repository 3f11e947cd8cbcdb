"""Tests for reminder sweeps, their endpoints and the in-process scheduler."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.config import settings
from app.core.exceptions import DependencyException
from app.core.scheduler import REMINDER_JOB_ID, ReminderScheduler
from app.models.appointments import appointments
from app.models.notifications import notifications
from app.schemas.notifications import NotificationPreferencesUpdate
from app.schemas.reminders import ReminderKind
from app.services.notification_service import NotificationService
from app.services.reminder_service import ReminderService

NOW = datetime(2030, 3, 4, 9, 0)


def fixed_clock() -> datetime:
    return NOW


async def _flags(db_session, appointment_id) -> dict:
    result = await db_session.execute(
        select(
            appointments.c.reminder_24h_sent,
            appointments.c.reminder_1h_sent,
            appointments.c.follow_up_sent,
        ).where(appointments.c.id == appointment_id)
    )
    return dict(result.mappings().first())


@pytest.mark.asyncio
async def test_day_before_window(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    """+23h30m is reminded, +22h is not yet due."""
    due = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    early = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=22)
    )

    result = await ReminderService(db_session, now=fixed_clock).send_24h_reminders()

    assert result.sent == 1
    assert result.failed == 0
    assert (await _flags(db_session, due["id"]))["reminder_24h_sent"] is True
    assert (await _flags(db_session, early["id"]))["reminder_24h_sent"] is False

    email_mock.assert_awaited_once()
    assert email_mock.await_args.kwargs["to"] == patient["email"]
    assert email_mock.await_args.kwargs["subject"] == "Appointment Reminder - Tomorrow"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("offset", "expected"),
    [
        (timedelta(hours=23), 1),
        (timedelta(hours=24), 1),
        (timedelta(hours=24, minutes=1), 0),
        (timedelta(hours=22, minutes=59), 0),
    ],
)
async def test_day_before_window_bounds_are_inclusive(
    db_session, patient, doctor, make_appointment, offset, expected
) -> None:
    await make_appointment(patient["id"], doctor["id"], scheduled_at=NOW + offset)

    result = await ReminderService(db_session, now=fixed_clock).send_24h_reminders()
    assert result.sent == expected


@pytest.mark.asyncio
async def test_reminder_is_sent_once(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    service = ReminderService(db_session, now=fixed_clock)

    first = await service.send_24h_reminders()
    second = await service.send_24h_reminders()

    assert first.sent == 1
    assert second.sent == 0
    assert email_mock.await_count == 1


@pytest.mark.asyncio
async def test_hour_before_window(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    soon = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(minutes=45)
    )
    await make_appointment(patient["id"], doctor["id"], scheduled_at=NOW + timedelta(minutes=15))

    result = await ReminderService(db_session, now=fixed_clock).send_1h_reminders()

    assert result.sent == 1
    flags = await _flags(db_session, soon["id"])
    assert flags["reminder_1h_sent"] is True
    assert flags["reminder_24h_sent"] is False
    assert email_mock.await_args.kwargs["subject"] == "Appointment in 1 Hour"


@pytest.mark.asyncio
async def test_only_upcoming_statuses_are_reminded(
    db_session, patient, doctor, make_appointment
) -> None:
    at = NOW + timedelta(hours=23, minutes=30)
    await make_appointment(patient["id"], doctor["id"], scheduled_at=at, status="CANCELLED")
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=at + timedelta(minutes=15), status="CONFIRMED"
    )
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=at + timedelta(minutes=20), status="RESCHEDULED"
    )

    result = await ReminderService(db_session, now=fixed_clock).send_24h_reminders()
    assert result.sent == 1


@pytest.mark.asyncio
async def test_failed_send_is_isolated_and_retried(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    first = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=15)
    )
    second = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=45)
    )
    email_mock.side_effect = [
        DependencyException("Failed to send email: boom"),
        {"id": "email_test"},
    ]
    service = ReminderService(db_session, now=fixed_clock)

    result = await service.send_24h_reminders()

    assert result.sent == 1
    assert result.failed == 1
    assert str(first["id"]) in result.errors[0]
    assert (await _flags(db_session, first["id"]))["reminder_24h_sent"] is False
    assert (await _flags(db_session, second["id"]))["reminder_24h_sent"] is True

    email_mock.side_effect = None
    retry = await service.send_24h_reminders()
    assert retry.sent == 1
    assert (await _flags(db_session, first["id"]))["reminder_24h_sent"] is True


@pytest.mark.asyncio
async def test_reminder_records_in_app_notification(
    db_session, patient, doctor, make_appointment
) -> None:
    appointment = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )

    await ReminderService(db_session, now=fixed_clock).send_24h_reminders()

    result = await db_session.execute(
        select(notifications).where(notifications.c.appointment_id == appointment["id"])
    )
    rows = result.mappings().all()
    assert len(rows) == 1
    assert rows[0]["notification_type"] == "APPOINTMENT_REMINDER"
    assert rows[0]["user_id"] == patient["id"]
    assert rows[0]["email_sent"] is True


@pytest.mark.asyncio
async def test_appointment_email_overrides_account_address(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    await make_appointment(
        patient["id"],
        doctor["id"],
        scheduled_at=NOW + timedelta(hours=23, minutes=30),
        patient_email="family@example.com",
    )

    await ReminderService(db_session, now=fixed_clock).send_24h_reminders()
    assert email_mock.await_args.kwargs["to"] == "family@example.com"


@pytest.mark.asyncio
async def test_opted_out_patient_is_skipped(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    appointment = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    await NotificationService.update_preferences(
        db_session, patient["id"], NotificationPreferencesUpdate(appointment_reminders=False)
    )

    result = await ReminderService(db_session, now=fixed_clock).send_24h_reminders()

    assert result.sent == 0
    assert result.skipped == 1
    email_mock.assert_not_awaited()
    # Not retried on the next sweep
    assert (await _flags(db_session, appointment["id"]))["reminder_24h_sent"] is True


@pytest.mark.asyncio
async def test_follow_up_for_completed_visits(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    done = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW - timedelta(hours=30), status="COMPLETED"
    )
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW - timedelta(hours=31), status="PENDING"
    )
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW - timedelta(hours=3), status="COMPLETED"
    )

    result = await ReminderService(db_session, now=fixed_clock).send_follow_ups()

    assert result.sent == 1
    assert (await _flags(db_session, done["id"]))["follow_up_sent"] is True
    assert email_mock.await_args.kwargs["subject"] == "Thank You for Your Visit"


@pytest.mark.asyncio
async def test_run_all_reports_each_kind(db_session, patient, doctor, make_appointment) -> None:
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    await make_appointment(patient["id"], doctor["id"], scheduled_at=NOW + timedelta(minutes=40))

    results = await ReminderService(db_session, now=fixed_clock).run_all()

    assert set(results) == set(ReminderKind)
    assert results[ReminderKind.DAY_BEFORE].sent == 1
    assert results[ReminderKind.HOUR_BEFORE].sent == 1
    assert results[ReminderKind.FOLLOW_UP].sent == 0


@pytest.mark.asyncio
async def test_pending_counts(db_session, patient, doctor, make_appointment) -> None:
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    await make_appointment(patient["id"], doctor["id"], scheduled_at=NOW + timedelta(minutes=40))
    await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW - timedelta(hours=30), status="COMPLETED"
    )
    service = ReminderService(db_session, now=fixed_clock)

    pending = await service.get_pending_counts()
    assert pending.pending_24h_reminders == 1
    assert pending.pending_1h_reminders == 1
    assert pending.pending_follow_ups == 1
    assert pending.total_pending == 3

    await service.run_all()
    assert (await service.get_pending_counts()).total_pending == 0


@pytest.mark.asyncio
async def test_cron_key_runs_sweep(
    client: AsyncClient, patient, doctor, make_appointment, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "cron_secret", "cron-test-secret")
    await make_appointment(
        patient["id"],
        doctor["id"],
        scheduled_at=datetime.now() + timedelta(hours=23, minutes=30),
    )

    response = await client.post(
        "/api/v1/reminders/send",
        params={"kind": "24h"},
        headers={"X-Cron-Api-Key": "cron-test-secret"},
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert list(results) == ["24h"]
    assert results["24h"]["sent"] == 1


@pytest.mark.asyncio
async def test_admin_runs_all_sweeps(client: AsyncClient, admin_headers) -> None:
    response = await client.post("/api/v1/reminders/send", headers=admin_headers)
    assert response.status_code == 200
    assert set(response.json()["results"]) == {"24h", "1h", "followup"}


@pytest.mark.asyncio
async def test_reminder_endpoint_rejects_bad_credentials(
    client: AsyncClient, patient_headers, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "cron_secret", "cron-test-secret")

    response = await client.post("/api/v1/reminders/send")
    assert response.status_code == 401

    response = await client.post("/api/v1/reminders/send", headers={"X-Cron-Api-Key": "wrong"})
    assert response.status_code == 401

    response = await client.post("/api/v1/reminders/send", headers=patient_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unset_cron_secret_disables_key(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(settings, "cron_secret", "")

    response = await client.post("/api/v1/reminders/send", headers={"X-Cron-Api-Key": ""})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_kind_is_rejected(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/reminders/send", params={"kind": "weekly"}, headers=admin_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_pending_endpoint_is_admin_only(
    client: AsyncClient, admin_headers, patient_headers
) -> None:
    response = await client.get("/api/v1/reminders/pending", headers=patient_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/reminders/pending", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total_pending"] == 0


@pytest.mark.asyncio
async def test_scheduler_registers_single_job() -> None:
    scheduler = ReminderScheduler(interval_minutes=5)
    scheduler.start()
    try:
        assert scheduler.running
        job = scheduler.scheduler.get_job(REMINDER_JOB_ID)
        assert job is not None
        assert job.max_instances == 1

        # Starting twice is a no-op
        scheduler.start()
        assert len(scheduler.scheduler.get_jobs()) == 1
    finally:
        scheduler.shutdown()
    # Shutdown is applied on the next event loop iteration
    await asyncio.sleep(0.01)
    assert not scheduler.running


@pytest.mark.asyncio
async def test_sent_reminder_is_not_resent_when_record_fails(
    db_session, patient, doctor, make_appointment, email_mock
) -> None:
    appointment = await make_appointment(
        patient["id"], doctor["id"], scheduled_at=NOW + timedelta(hours=23, minutes=30)
    )
    service = ReminderService(db_session, now=fixed_clock)

    with patch.object(
        NotificationService,
        "create_notification",
        new=AsyncMock(side_effect=RuntimeError("notifications table unavailable")),
    ):
        first = await service.send_24h_reminders()
        second = await service.send_24h_reminders()

    assert first.sent == 1
    assert first.failed == 0
    assert second.sent == 0
    assert email_mock.await_count == 1
    assert (await _flags(db_session, appointment["id"]))["reminder_24h_sent"] is True
