"""Weekly availability storage and bookable-slot resolution."""

from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, NotFoundException
from app.core.time_utils import day_of_week
from app.models.appointments import appointments
from app.models.availability import doctor_availability
from app.schemas.appointments import AppointmentStatus
from app.schemas.availability import (
    AvailableSlotsResponse,
    WeeklyAvailabilityReplace,
    WorkingHours,
)
from app.services.appointment_state import Actor
from app.services.slot_generator import generate_slots
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

NOT_AVAILABLE_MESSAGE = (
    "Doctor has not set availability for this day. "
    "Please contact the doctor or check back later."
)


class AvailabilityService:
    """Service for doctor schedules and free slots."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_weekly_availability(
        self,
        doctor_id: UUID,
        active_only: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Get a doctor's weekly schedule ordered by weekday and start time.

        An unknown doctor yields an empty schedule.
        """
        conditions = [doctor_availability.c.doctor_id == doctor_id]
        if active_only:
            conditions.append(doctor_availability.c.is_active.is_(True))

        result = await self.db.execute(
            select(doctor_availability)
            .where(and_(*conditions))
            .order_by(doctor_availability.c.day_of_week, doctor_availability.c.start_time)
        )
        return [dict(row) for row in result.mappings().all()]

    async def replace_weekly_availability(
        self,
        actor: Actor,
        doctor_id: UUID,
        data: WeeklyAvailabilityReplace,
    ) -> list[dict[str, Any]]:
        """
        Replace a doctor's whole weekly schedule.

        Existing rows are deleted and the new ones inserted in one
        transaction; a failure leaves the previous schedule intact.

        Args:
            actor: Caller (the doctor themselves or an admin)
            doctor_id: Doctor whose schedule is replaced
            data: New schedule

        Returns:
            Stored schedule

        Raises:
            NotFoundException: If the doctor does not exist
            ForbiddenException: If the caller may not edit this schedule
        """
        doctor = await UserService.get_doctor_by_id(self.db, doctor_id)
        if doctor is None:
            raise NotFoundException("Doctor not found")

        if not actor.is_admin and doctor["user_id"] != actor.user_id:
            raise ForbiddenException("Forbidden. You can only update your own availability.")

        try:
            await self.db.execute(
                delete(doctor_availability).where(doctor_availability.c.doctor_id == doctor_id)
            )
            if data.availability:
                await self.db.execute(
                    insert(doctor_availability),
                    [{"doctor_id": doctor_id, **entry.model_dump()} for entry in data.availability],
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "weekly_availability_replaced",
            doctor_id=str(doctor_id),
            entries=len(data.availability),
        )
        return await self.get_weekly_availability(doctor_id, active_only=False)

    async def get_day_availability(self, doctor_id: UUID, target_date: date) -> list[dict]:
        """Active availability rows for the weekday of ``target_date``."""
        result = await self.db.execute(
            select(doctor_availability)
            .where(
                doctor_availability.c.doctor_id == doctor_id,
                doctor_availability.c.day_of_week == day_of_week(target_date),
                doctor_availability.c.is_active.is_(True),
            )
            .order_by(doctor_availability.c.start_time)
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_day_appointments(self, doctor_id: UUID, target_date: date) -> list[dict]:
        """Non-cancelled appointments occupying the doctor's day."""
        result = await self.db.execute(
            select(appointments.c.time_slot, appointments.c.duration).where(
                appointments.c.doctor_id == doctor_id,
                appointments.c.appointment_date == target_date,
                appointments.c.status != AppointmentStatus.CANCELLED.value,
            )
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_available_slots(
        self,
        doctor_id: UUID,
        target_date: date,
    ) -> AvailableSlotsResponse:
        """
        Compute bookable slot start times for a doctor on a date.

        Past dates are not rejected here. A day without working hours is an
        empty result with an explanatory message, never an error.
        """
        day_availability = await self.get_day_availability(doctor_id, target_date)
        if not day_availability:
            return AvailableSlotsResponse(
                doctor_id=doctor_id,
                date=target_date.isoformat(),
                slots=[],
                message=NOT_AVAILABLE_MESSAGE,
            )

        booked = await self.get_day_appointments(doctor_id, target_date)
        computation = generate_slots(
            day_availability,
            booked,
            slot_minutes=settings.slot_duration_minutes,
        )
        bounds = computation.working_hours

        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            date=target_date.isoformat(),
            slots=computation.slots,
            working_hours=WorkingHours(start=bounds[0], end=bounds[1]) if bounds else None,
            working_periods=[
                WorkingHours(start=start, end=end) for start, end in computation.working_periods
            ],
        )
