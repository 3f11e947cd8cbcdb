"""
Reminder sweeps.

Each sweep selects appointments whose ``scheduled_at`` falls inside a window
relative to ``now`` and whose idempotency flag is still false. Every row is
claimed with a conditional UPDATE before anything is sent, so overlapping
sweeps (scheduler tick plus a cron call) never email the same patient twice.
A failed send releases the claim so the next sweep retries it.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Column, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus
from app.schemas.notifications import NotificationType
from app.schemas.reminders import PendingRemindersResponse, ReminderKind, ReminderResult
from app.services.email_service import EmailService
from app.services.email_templates import (
    appointment_1h_reminder_template,
    appointment_24h_reminder_template,
    appointment_follow_up_template,
)
from app.services.notification_service import NotificationService
from app.services.user_service import AppointmentParties, UserService

logger = structlog.get_logger(__name__)

UPCOMING_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


@dataclass(frozen=True)
class SweepWindow:
    """Selection rule for one reminder kind."""

    flag: Column
    statuses: tuple[str, ...]
    # Offsets from now, inclusive on both ends
    start: timedelta
    end: timedelta

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        return now + self.start, now + self.end


WINDOWS: dict[ReminderKind, SweepWindow] = {
    ReminderKind.DAY_BEFORE: SweepWindow(
        flag=appointments.c.reminder_24h_sent,
        statuses=UPCOMING_STATUSES,
        start=timedelta(hours=23),
        end=timedelta(hours=24),
    ),
    ReminderKind.HOUR_BEFORE: SweepWindow(
        flag=appointments.c.reminder_1h_sent,
        statuses=UPCOMING_STATUSES,
        start=timedelta(minutes=30),
        end=timedelta(hours=1),
    ),
    ReminderKind.FOLLOW_UP: SweepWindow(
        flag=appointments.c.follow_up_sent,
        statuses=(AppointmentStatus.COMPLETED.value,),
        start=timedelta(hours=-48),
        end=timedelta(hours=-24),
    ),
}


class ReminderService:
    """Service for the 24h, 1h and follow-up email sweeps."""

    def __init__(
        self,
        db: AsyncSession,
        now: Callable[[], datetime] | None = None,
    ):
        """
        Initialize service.

        Args:
            db: Database session
            now: Clock returning naive clinic-local time
        """
        self.db = db
        self.now = now or datetime.now

    def _window_conditions(self, kind: ReminderKind, now: datetime) -> list:
        window = WINDOWS[kind]
        start, end = window.bounds(now)
        return [
            window.flag.is_(False),
            appointments.c.status.in_(window.statuses),
            appointments.c.scheduled_at >= start,
            appointments.c.scheduled_at <= end,
        ]

    async def _due(self, kind: ReminderKind, now: datetime) -> list[dict[str, Any]]:
        result = await self.db.execute(
            select(appointments)
            .where(*self._window_conditions(kind, now))
            .order_by(appointments.c.scheduled_at)
        )
        return [dict(row) for row in result.mappings().all()]

    async def _claim(self, kind: ReminderKind, appointment_id: UUID) -> bool:
        """Set the sent flag if nobody else has; True when this sweep owns the row."""
        flag = WINDOWS[kind].flag
        result = await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id, flag.is_(False))
            .values({flag.name: True})
        )
        await self.db.commit()
        return result.rowcount == 1

    async def _release(self, kind: ReminderKind, appointment_id: UUID) -> None:
        flag = WINDOWS[kind].flag
        try:
            await self.db.rollback()
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values({flag.name: False})
            )
            await self.db.commit()
        except Exception as e:
            logger.error(
                "reminder_claim_release_failed",
                kind=kind.value,
                appointment_id=str(appointment_id),
                error=str(e),
            )

    def _render(
        self,
        kind: ReminderKind,
        appointment: dict[str, Any],
        parties: AppointmentParties,
    ) -> tuple[NotificationType, str, str, str]:
        """Return notification type, title, in-app message and email HTML."""
        when = f"{appointment['appointment_date']:%m/%d/%Y} at {appointment['time_slot']}"
        if kind == ReminderKind.DAY_BEFORE:
            return (
                NotificationType.APPOINTMENT_REMINDER,
                "Appointment Reminder - Tomorrow",
                f"Reminder: you have an appointment with {parties.doctor_name} on {when}",
                appointment_24h_reminder_template(
                    patient_name=parties.patient_name,
                    doctor_name=parties.doctor_name,
                    appointment_date=appointment["appointment_date"],
                    time_slot=appointment["time_slot"],
                    appointment_type=appointment.get("appointment_type"),
                ),
            )
        if kind == ReminderKind.HOUR_BEFORE:
            return (
                NotificationType.APPOINTMENT_REMINDER,
                "Appointment in 1 Hour",
                f"Your appointment with {parties.doctor_name} starts at {appointment['time_slot']}",
                appointment_1h_reminder_template(
                    patient_name=parties.patient_name,
                    doctor_name=parties.doctor_name,
                    time_slot=appointment["time_slot"],
                ),
            )
        return (
            NotificationType.FOLLOW_UP,
            "Thank You for Your Visit",
            f"Thank you for visiting {parties.doctor_name}. How was your appointment?",
            appointment_follow_up_template(
                patient_name=parties.patient_name,
                doctor_name=parties.doctor_name,
                appointment_date=appointment["appointment_date"],
            ),
        )

    async def _deliver(self, kind: ReminderKind, appointment: dict[str, Any]) -> bool:
        """
        Send one reminder for a claimed appointment.

        Returns:
            False when the patient opted out of reminder emails

        Raises:
            Exception: A failure before the email is sent; releases the claim
        """
        parties = await UserService.get_appointment_parties(
            self.db, appointment["patient_id"], appointment["doctor_id"]
        )
        if parties is None:
            raise LookupError("patient or doctor no longer exists")

        notification_type, title, message, html = self._render(kind, appointment, parties)

        if not await NotificationService.email_enabled(
            self.db, appointment["patient_id"], notification_type
        ):
            return False

        recipient = appointment.get("patient_email") or parties.patient_email
        if not recipient:
            raise ValueError("no email address for patient")

        await EmailService.send_email(to=recipient, subject=title, html=html)

        # The email is out; from here on the claim stays spent
        try:
            await NotificationService.create_notification(
                db=self.db,
                user_id=appointment["patient_id"],
                appointment_id=appointment["id"],
                notification_type=notification_type,
                title=title,
                message=message,
                email_sent=True,
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "reminder_notification_record_failed",
                kind=kind.value,
                appointment_id=str(appointment["id"]),
                error=str(e),
            )
        return True

    async def run_sweep(self, kind: ReminderKind) -> ReminderResult:
        """
        Run one sweep.

        Per-appointment failures are counted and reported, never raised.

        Raises:
            SQLAlchemyError: If the due appointments cannot be queried
        """
        now = self.now()
        due = await self._due(kind, now)
        outcome = ReminderResult()

        for appointment in due:
            appointment_id = appointment["id"]
            if not await self._claim(kind, appointment_id):
                logger.debug(
                    "reminder_already_claimed",
                    kind=kind.value,
                    appointment_id=str(appointment_id),
                )
                continue

            try:
                delivered = await self._deliver(kind, appointment)
            except Exception as e:
                await self._release(kind, appointment_id)
                outcome.failed += 1
                outcome.errors.append(f"Appointment {appointment_id}: {e}")
                logger.warning(
                    "reminder_send_failed",
                    kind=kind.value,
                    appointment_id=str(appointment_id),
                    error=str(e),
                )
                continue

            if delivered:
                outcome.sent += 1
            else:
                outcome.skipped += 1

        logger.info(
            "reminder_sweep_completed",
            kind=kind.value,
            due=len(due),
            sent=outcome.sent,
            failed=outcome.failed,
            skipped=outcome.skipped,
        )
        return outcome

    async def send_24h_reminders(self) -> ReminderResult:
        """Remind patients of appointments roughly a day out."""
        return await self.run_sweep(ReminderKind.DAY_BEFORE)

    async def send_1h_reminders(self) -> ReminderResult:
        """Remind patients of appointments starting within the hour."""
        return await self.run_sweep(ReminderKind.HOUR_BEFORE)

    async def send_follow_ups(self) -> ReminderResult:
        """Thank patients one to two days after a completed visit."""
        return await self.run_sweep(ReminderKind.FOLLOW_UP)

    async def run_all(self) -> dict[ReminderKind, ReminderResult]:
        """Run all three sweeps in order."""
        return {kind: await self.run_sweep(kind) for kind in ReminderKind}

    async def get_pending_counts(self) -> PendingRemindersResponse:
        """Count appointments currently inside each sweep's window."""
        now = self.now()
        counts: dict[ReminderKind, int] = {}
        for kind in ReminderKind:
            result = await self.db.execute(
                select(func.count())
                .select_from(appointments)
                .where(*self._window_conditions(kind, now))
            )
            counts[kind] = result.scalar() or 0

        return PendingRemindersResponse(
            pending_24h_reminders=counts[ReminderKind.DAY_BEFORE],
            pending_1h_reminders=counts[ReminderKind.HOUR_BEFORE],
            pending_follow_ups=counts[ReminderKind.FOLLOW_UP],
            total_pending=sum(counts.values()),
        )
