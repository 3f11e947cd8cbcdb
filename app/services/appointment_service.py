"""Appointment service for booking, status changes and deletion."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    RateLimitException,
)
from app.core.redis_client import RateLimiter
from app.core.time_utils import combine_slot
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    UserRole,
)
from app.schemas.notifications import NotificationType
from app.services.appointment_state import (
    Actor,
    ScheduleChange,
    delete_notice_recipient,
    ensure_can_book,
    ensure_can_manage,
    resolve_next_status,
    update_events,
    validate_transition,
)
from app.services.conflict_guard import BookingConflictGuard
from app.services.notification_service import NotificationService
from app.services.user_service import AppointmentParties, UserService

logger = structlog.get_logger(__name__)

SLOT_TAKEN_MESSAGE = "Time slot is not available"


class AppointmentService:
    """Service for managing appointments."""

    def __init__(
        self,
        db: AsyncSession,
        rate_limiter: RateLimiter | None = None,
        conflict_guard: BookingConflictGuard | None = None,
        strict_transitions: bool | None = None,
    ):
        """Initialize service with database session."""
        self.db = db
        self.rate_limiter = rate_limiter
        self.conflict_guard = conflict_guard or BookingConflictGuard(db)
        self.strict_transitions = (
            settings.strict_status_transitions
            if strict_transitions is None
            else strict_transitions
        )

    async def create_appointment(
        self,
        actor: Actor,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a new appointment in PENDING status.

        Args:
            actor: Authenticated caller
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            BadRequestException: If no patient can be determined
            ForbiddenException: If the caller may not book for this patient/doctor
            NotFoundException: If the doctor does not exist
            ConflictException: If the slot is already taken
            RateLimitException: If the caller books too often
        """
        patient_id = data.patient_id
        if patient_id is None:
            if actor.role != UserRole.PATIENT:
                raise BadRequestException("patient_id is required")
            patient_id = actor.user_id

        ensure_can_book(actor, patient_id, data.doctor_id)

        if self.rate_limiter is not None and not self.rate_limiter.hit(
            str(actor.user_id), settings.booking_rate_limit_per_minute
        ):
            logger.warning("booking_rate_limited", user_id=str(actor.user_id))
            raise RateLimitException("Too many booking attempts. Please try again later.")

        if await UserService.get_doctor_by_id(self.db, data.doctor_id) is None:
            raise NotFoundException("Doctor not found")

        duration = data.duration or settings.default_appointment_duration

        if await self.conflict_guard.has_conflict(
            data.doctor_id, data.appointment_date, data.time_slot, duration
        ):
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        stmt = (
            insert(appointments)
            .values(
                patient_id=patient_id,
                doctor_id=data.doctor_id,
                appointment_date=data.appointment_date,
                time_slot=data.time_slot,
                duration=duration,
                scheduled_at=combine_slot(data.appointment_date, data.time_slot),
                status=AppointmentStatus.PENDING.value,
                reason=data.reason,
                symptoms=data.symptoms,
                appointment_type=data.appointment_type,
                patient_email=data.patient_email,
                notes=data.notes,
            )
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            row = dict(result.mappings().first())
            await self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent booking of the same slot
            await self.db.rollback()
            logger.info(
                "booking_conflict_on_insert",
                doctor_id=str(data.doctor_id),
                date=data.appointment_date.isoformat(),
                time_slot=data.time_slot,
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from None

        logger.info(
            "appointment_created",
            appointment_id=str(row["id"]),
            doctor_id=str(row["doctor_id"]),
            date=row["appointment_date"].isoformat(),
            time_slot=row["time_slot"],
        )

        parties = await self._parties(row)
        if parties is not None:
            await self._notify(
                row,
                NotificationType.BOOKING_CONFIRMATION,
                NotificationService.send_booking_confirmation(self.db, row, parties),
            )
            await self._notify(
                row,
                NotificationType.NEW_BOOKING,
                NotificationService.send_new_booking_to_doctor(self.db, row, parties),
            )

        return AppointmentResponse.model_validate(row)

    async def _get_row(self, appointment_id: UUID) -> dict[str, Any]:
        """Fetch an appointment row or raise NotFound."""
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if row is None:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def get_appointment(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self._get_row(appointment_id)
        ensure_can_manage(actor, row)
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the caller.

        Admins see everything, doctors their own calendar, patients their own
        bookings. A doctor account without a profile sees nothing.
        """
        conditions = []
        if actor.role == UserRole.PATIENT:
            conditions.append(appointments.c.patient_id == actor.user_id)
        elif actor.role == UserRole.DOCTOR:
            if actor.doctor_id is None:
                return AppointmentListResponse(
                    total=0, page=filters.page, page_size=filters.page_size, items=[]
                )
            conditions.append(appointments.c.doctor_id == actor.doctor_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)
        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)
        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)
        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        where = and_(True, *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.scheduled_at.asc())
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )
        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def update_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Change status and/or reschedule an appointment.

        A date/time change without an explicit status sets RESCHEDULED and
        re-arms the pre-visit reminders. Notifications go out after the write
        and never undo it.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
            ConflictException: If the new slot is taken
            ValidationException: If strict transitions reject the status change
        """
        current = await self._get_row(appointment_id)
        ensure_can_manage(actor, current)

        current_status = AppointmentStatus(current["status"])
        change_date = data.appointment_date or current["appointment_date"]
        change_slot = data.time_slot or current["time_slot"]
        rescheduled = (
            change_date != current["appointment_date"] or change_slot != current["time_slot"]
        )

        next_status = resolve_next_status(current_status, data.status, rescheduled)
        validate_transition(current_status, next_status, self.strict_transitions)

        reactivated = (
            current_status == AppointmentStatus.CANCELLED
            and next_status != AppointmentStatus.CANCELLED
        )
        # Reviving a cancelled booking claims its slot again
        if (rescheduled or reactivated) and await self.conflict_guard.has_conflict(
            current["doctor_id"],
            change_date,
            change_slot,
            current["duration"],
            exclude_appointment_id=appointment_id,
        ):
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        values: dict[str, Any] = {
            "status": next_status.value,
            "updated_at": datetime.now(UTC),
        }
        if data.cancel_reason:
            values["cancel_reason"] = data.cancel_reason
        if rescheduled:
            values.update(
                appointment_date=change_date,
                time_slot=change_slot,
                scheduled_at=combine_slot(change_date, change_slot),
                reminder_24h_sent=False,
                reminder_1h_sent=False,
            )

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        try:
            result = await self.db.execute(stmt)
            row = dict(result.mappings().first())
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(SLOT_TAKEN_MESSAGE) from None

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            old_status=current_status.value,
            new_status=next_status.value,
            rescheduled=rescheduled,
            actor_role=actor.role.value,
        )

        change = ScheduleChange(
            old_status=current_status,
            new_status=next_status,
            requested_status=data.status,
            old_date=current["appointment_date"],
            old_time_slot=current["time_slot"],
            new_date=row["appointment_date"],
            new_time_slot=row["time_slot"],
        )
        events = update_events(change)
        if events:
            parties = await self._parties(row)
            if parties is not None:
                for event in events:
                    await self._notify(row, event, self._event_sender(event, row, parties, change))

        return AppointmentResponse.model_validate(row)

    async def delete_appointment(self, actor: Actor, appointment_id: UUID) -> None:
        """
        Permanently remove an appointment and notify the other party.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self._get_row(appointment_id)
        ensure_can_manage(actor, row)

        parties = await self._parties(row)

        await self.db.execute(delete(appointments).where(appointments.c.id == appointment_id))
        await self.db.commit()

        logger.info(
            "appointment_deleted",
            appointment_id=str(appointment_id),
            actor_role=actor.role.value,
        )

        if parties is not None:
            recipient = delete_notice_recipient(actor, row["patient_id"], parties.doctor_user_id)
            await self._notify(
                row,
                NotificationType.CANCELLATION,
                NotificationService.send_deletion_notice(self.db, row, parties, recipient),
            )

    async def _parties(self, row: dict[str, Any]) -> AppointmentParties | None:
        parties = await UserService.get_appointment_parties(
            self.db, row["patient_id"], row["doctor_id"]
        )
        if parties is None:
            logger.warning("appointment_parties_missing", appointment_id=str(row["id"]))
        return parties

    def _event_sender(
        self,
        event: NotificationType,
        row: dict[str, Any],
        parties: AppointmentParties,
        change: ScheduleChange,
    ):
        if event == NotificationType.CANCELLATION:
            return NotificationService.send_cancellation(self.db, row, parties)
        if event == NotificationType.BOOKING_CONFIRMATION:
            return NotificationService.send_booking_confirmation(
                self.db, row, parties, confirmed=True
            )
        return NotificationService.send_reschedule(
            self.db, row, parties, change.old_date, change.old_time_slot
        )

    async def _notify(self, row: dict[str, Any], event: NotificationType, send) -> None:
        """Await a notification coroutine; failures are logged, never raised."""
        try:
            await send
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "failed_to_send_appointment_notification",
                appointment_id=str(row["id"]),
                notification_type=event.value,
                error=str(e),
            )
