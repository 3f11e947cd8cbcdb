"""Last-line collision check for bookings and reschedules."""

from datetime import date
from typing import Literal
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus
from app.services.slot_generator import Interval, overlaps

logger = structlog.get_logger(__name__)

ConflictMode = Literal["exact", "overlap"]


class BookingConflictGuard:
    """
    Decide whether a proposed booking collides with a live appointment.

    In ``exact`` mode only an identical ``time_slot`` on the same day counts.
    A 60 minute 09:00 booking does not block a 09:15 request here; clients are
    expected to offer only slots produced by the slot generator. ``overlap``
    mode compares full ``[time_slot, time_slot + duration)`` ranges instead.
    """

    def __init__(self, db: AsyncSession, mode: ConflictMode | None = None):
        """Initialize guard with database session and comparison mode."""
        self.db = db
        self.mode: ConflictMode = mode or settings.booking_conflict_mode

    async def has_conflict(
        self,
        doctor_id: UUID,
        appointment_date: date,
        time_slot: str,
        duration: int | None = None,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """
        Check a proposed slot against the doctor's live appointments.

        Args:
            doctor_id: Doctor being booked
            appointment_date: Proposed date
            time_slot: Proposed ``HH:MM`` start
            duration: Proposed length in minutes (overlap mode only)
            exclude_appointment_id: Appointment being rescheduled, ignored

        Returns:
            True if the slot is taken
        """
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        if self.mode == "exact":
            conditions.append(appointments.c.time_slot == time_slot)
            stmt = select(appointments.c.id).where(and_(*conditions)).limit(1)
            result = await self.db.execute(stmt)
            taken = result.first() is not None
        else:
            stmt = select(appointments.c.time_slot, appointments.c.duration).where(
                and_(*conditions)
            )
            result = await self.db.execute(stmt)
            proposed = Interval.from_slot(
                time_slot, duration or settings.default_appointment_duration
            )
            taken = any(
                overlaps(proposed, Interval.from_slot(row.time_slot, row.duration))
                for row in result.fetchall()
            )

        if taken:
            logger.info(
                "booking_conflict_detected",
                doctor_id=str(doctor_id),
                date=appointment_date.isoformat(),
                time_slot=time_slot,
                mode=self.mode,
            )
        return taken
