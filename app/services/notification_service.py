"""Notification service: in-app records plus optional email delivery."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DependencyException
from app.models.notifications import notification_preferences, notifications
from app.models.users import users
from app.schemas.notifications import (
    NotificationPreferences,
    NotificationPreferencesUpdate,
    NotificationType,
)
from app.services.email_service import EmailService
from app.services.email_templates import (
    appointment_cancellation_template,
    appointment_confirmation_template,
    appointment_reschedule_template,
)
from app.services.user_service import AppointmentParties

logger = structlog.get_logger(__name__)

# Preference flag that gates email for each notification type
PREFERENCE_BY_TYPE: dict[NotificationType, str] = {
    NotificationType.APPOINTMENT_REMINDER: "appointment_reminders",
    NotificationType.FOLLOW_UP: "appointment_reminders",
    NotificationType.BOOKING_CONFIRMATION: "booking_confirmations",
    NotificationType.NEW_BOOKING: "booking_confirmations",
    NotificationType.CANCELLATION: "cancellation_alerts",
    NotificationType.RESCHEDULE: "reschedule_alerts",
}


@dataclass(frozen=True)
class EmailPayload:
    """Rendered email attached to a notification."""

    subject: str
    html: str
    # Overrides the user's account address (e.g. appointment.patient_email)
    to: str | None = None


class NotificationService:
    """Service for recording and delivering notifications."""

    @staticmethod
    async def get_preferences(db: AsyncSession, user_id: UUID) -> NotificationPreferences:
        """Return stored preferences, or the all-enabled defaults."""
        result = await db.execute(
            select(notification_preferences).where(notification_preferences.c.user_id == user_id)
        )
        row = result.mappings().first()
        if row is None:
            return NotificationPreferences()
        return NotificationPreferences.model_validate(dict(row))

    @staticmethod
    async def update_preferences(
        db: AsyncSession,
        user_id: UUID,
        data: NotificationPreferencesUpdate,
    ) -> NotificationPreferences:
        """Upsert a user's preferences with the supplied fields."""
        current = await NotificationService.get_preferences(db, user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        merged = current.model_copy(update=changes)

        exists = await db.execute(
            select(notification_preferences.c.user_id).where(
                notification_preferences.c.user_id == user_id
            )
        )
        values = {**merged.model_dump(), "updated_at": datetime.now(UTC)}
        if exists.first() is None:
            await db.execute(insert(notification_preferences).values(user_id=user_id, **values))
        else:
            await db.execute(
                update(notification_preferences)
                .where(notification_preferences.c.user_id == user_id)
                .values(**values)
            )
        await db.commit()
        return merged

    @staticmethod
    async def email_enabled(
        db: AsyncSession,
        user_id: UUID,
        notification_type: NotificationType,
    ) -> bool:
        """Whether the user accepts email for this notification type."""
        preferences = await NotificationService.get_preferences(db, user_id)
        return getattr(preferences, PREFERENCE_BY_TYPE[notification_type])

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        appointment_id: UUID | None = None,
        email: EmailPayload | None = None,
        email_sent: bool = False,
    ) -> dict[str, Any]:
        """
        Record an in-app notification and optionally email it.

        Email is best effort: a disabled preference, a missing address or a
        transport failure leaves ``email_sent`` false and is only logged.

        Args:
            db: Database session
            user_id: Recipient user ID
            notification_type: Notification type
            title: Short title
            message: In-app message text
            appointment_id: Related appointment, if any
            email: Rendered email to send alongside
            email_sent: Caller already delivered the email itself

        Returns:
            Stored notification row
        """
        result = await db.execute(
            insert(notifications)
            .values(
                user_id=user_id,
                appointment_id=appointment_id,
                notification_type=notification_type.value,
                title=title,
                message=message,
                email_sent=email_sent,
            )
            .returning(notifications)
        )
        notification = dict(result.mappings().first())
        await db.commit()

        if email is None:
            return notification

        if not await NotificationService.email_enabled(db, user_id, notification_type):
            logger.info(
                "notification_email_skipped_by_preference",
                user_id=str(user_id),
                notification_type=notification_type.value,
            )
            return notification

        recipient = email.to
        if not recipient:
            user_result = await db.execute(select(users.c.email).where(users.c.id == user_id))
            recipient = user_result.scalar_one_or_none()

        if not recipient:
            logger.warning("notification_email_no_recipient", user_id=str(user_id))
            return notification

        try:
            await EmailService.send_email(to=recipient, subject=email.subject, html=email.html)
        except DependencyException as e:
            logger.warning(
                "notification_email_failed",
                notification_id=str(notification["id"]),
                error=e.message,
            )
            return notification

        await db.execute(
            update(notifications)
            .where(notifications.c.id == notification["id"])
            .values(email_sent=True)
        )
        await db.commit()
        notification["email_sent"] = True
        return notification

    @staticmethod
    async def send_booking_confirmation(
        db: AsyncSession,
        appointment: dict[str, Any],
        parties: AppointmentParties,
        confirmed: bool = False,
    ) -> None:
        """
        Tell the patient their appointment was booked (or confirmed).

        Args:
            db: Database session
            appointment: Appointment row
            parties: Patient and doctor details
            confirmed: True when the doctor confirmed an existing booking
        """
        when = f"{appointment['appointment_date']:%m/%d/%Y} at {appointment['time_slot']}"
        if confirmed:
            title = "Appointment Confirmed"
            message = f"Your appointment has been confirmed for {when}"
        else:
            title = "Appointment Booked"
            message = f"Your appointment has been booked for {when}"

        await NotificationService.create_notification(
            db=db,
            user_id=appointment["patient_id"],
            appointment_id=appointment["id"],
            notification_type=NotificationType.BOOKING_CONFIRMATION,
            title=title,
            message=message,
            email=EmailPayload(
                subject=title,
                to=appointment.get("patient_email"),
                html=appointment_confirmation_template(
                    patient_name=parties.patient_name,
                    doctor_name=parties.doctor_name,
                    appointment_date=appointment["appointment_date"],
                    time_slot=appointment["time_slot"],
                    reason=appointment.get("reason"),
                ),
            ),
        )

    @staticmethod
    async def send_new_booking_to_doctor(
        db: AsyncSession,
        appointment: dict[str, Any],
        parties: AppointmentParties,
    ) -> None:
        """In-app heads-up to the doctor about a new request."""
        await NotificationService.create_notification(
            db=db,
            user_id=parties.doctor_user_id,
            appointment_id=appointment["id"],
            notification_type=NotificationType.NEW_BOOKING,
            title="New Appointment Request",
            message=(
                f"{parties.patient_name} requested "
                f"{appointment['appointment_date']:%m/%d/%Y} at {appointment['time_slot']}"
            ),
        )

    @staticmethod
    async def send_cancellation(
        db: AsyncSession,
        appointment: dict[str, Any],
        parties: AppointmentParties,
    ) -> None:
        """Tell the patient their appointment was cancelled."""
        cancel_reason = appointment.get("cancel_reason")
        await NotificationService.create_notification(
            db=db,
            user_id=appointment["patient_id"],
            appointment_id=appointment["id"],
            notification_type=NotificationType.CANCELLATION,
            title="Appointment Cancelled",
            message=f"Your appointment has been cancelled. Reason: {cancel_reason or 'N/A'}",
            email=EmailPayload(
                subject="Appointment Cancelled",
                to=appointment.get("patient_email"),
                html=appointment_cancellation_template(
                    patient_name=parties.patient_name,
                    doctor_name=parties.doctor_name,
                    appointment_date=appointment["appointment_date"],
                    time_slot=appointment["time_slot"],
                    cancel_reason=cancel_reason,
                ),
            ),
        )

    @staticmethod
    async def send_reschedule(
        db: AsyncSession,
        appointment: dict[str, Any],
        parties: AppointmentParties,
        old_date: Any,
        old_time_slot: str,
    ) -> None:
        """Tell the patient their appointment moved, with old and new times."""
        await NotificationService.create_notification(
            db=db,
            user_id=appointment["patient_id"],
            appointment_id=appointment["id"],
            notification_type=NotificationType.RESCHEDULE,
            title="Appointment Rescheduled",
            message=(
                "Your appointment has been rescheduled from "
                f"{old_date:%m/%d/%Y} at {old_time_slot} to "
                f"{appointment['appointment_date']:%m/%d/%Y} at {appointment['time_slot']}"
            ),
            email=EmailPayload(
                subject="Appointment Rescheduled",
                to=appointment.get("patient_email"),
                html=appointment_reschedule_template(
                    patient_name=parties.patient_name,
                    doctor_name=parties.doctor_name,
                    old_date=old_date,
                    old_time_slot=old_time_slot,
                    new_date=appointment["appointment_date"],
                    new_time_slot=appointment["time_slot"],
                ),
            ),
        )

    @staticmethod
    async def send_deletion_notice(
        db: AsyncSession,
        appointment: dict[str, Any],
        parties: AppointmentParties,
        recipient_id: UUID,
    ) -> None:
        """Tell the non-initiating party that an appointment was deleted."""
        to_doctor = recipient_id == parties.doctor_user_id
        await NotificationService.create_notification(
            db=db,
            user_id=recipient_id,
            notification_type=NotificationType.CANCELLATION,
            title="Appointment Deleted",
            message=(
                "An appointment scheduled for "
                f"{appointment['appointment_date']:%m/%d/%Y} at {appointment['time_slot']} "
                "has been deleted."
            ),
            email=EmailPayload(
                subject="Appointment Deleted",
                to=None if to_doctor else appointment.get("patient_email"),
                html=appointment_cancellation_template(
                    patient_name=parties.doctor_name if to_doctor else parties.patient_name,
                    doctor_name=parties.doctor_name,
                    appointment_date=appointment["appointment_date"],
                    time_slot=appointment["time_slot"],
                ),
            ),
        )

    @staticmethod
    async def get_user_notifications(
        db: AsyncSession,
        user_id: UUID,
        page: int = 1,
        page_size: int = 50,
        unread_only: bool = False,
    ) -> dict[str, Any]:
        """
        Get notification history for a user.

        Returns:
            Dictionary with items, total, unread count and paging info
        """
        conditions = [notifications.c.user_id == user_id]
        if unread_only:
            conditions.append(notifications.c.is_read.is_(False))

        total_result = await db.execute(
            select(func.count()).select_from(notifications).where(and_(*conditions))
        )
        unread_result = await db.execute(
            select(func.count())
            .select_from(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.is_read.is_(False))
        )

        result = await db.execute(
            select(notifications)
            .where(and_(*conditions))
            .order_by(notifications.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )

        return {
            "items": [dict(row) for row in result.mappings().all()],
            "total": total_result.scalar() or 0,
            "unread": unread_result.scalar() or 0,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    async def mark_as_read(
        db: AsyncSession,
        user_id: UUID,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        """
        Mark the given notifications (or all of them) as read.

        Returns:
            Number of rows updated
        """
        stmt = update(notifications).where(notifications.c.user_id == user_id)
        if notification_ids:
            stmt = stmt.where(notifications.c.id.in_(notification_ids))
        result = await db.execute(stmt.values(is_read=True))
        await db.commit()
        return result.rowcount
