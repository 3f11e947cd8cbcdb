"""Read access to users and doctor profiles owned by the account service."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.doctors import doctors
from app.models.users import users


@dataclass(frozen=True)
class AppointmentParties:
    """Names and addresses of the two people on an appointment."""

    patient_id: UUID
    patient_name: str
    patient_email: str | None
    doctor_user_id: UUID
    doctor_name: str
    doctor_email: str | None


class UserService:
    """Service for user and doctor lookups."""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by ID."""
        result = await db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_doctor_by_id(db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get doctor profile by ID."""
        result = await db.execute(select(doctors).where(doctors.c.id == doctor_id))
        doctor = result.mappings().first()
        return dict(doctor) if doctor else None

    @staticmethod
    async def get_doctor_by_user_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get the doctor profile attached to a user account."""
        result = await db.execute(select(doctors).where(doctors.c.user_id == user_id))
        doctor = result.mappings().first()
        return dict(doctor) if doctor else None

    @staticmethod
    async def get_appointment_parties(
        db: AsyncSession,
        patient_id: UUID,
        doctor_id: UUID,
    ) -> AppointmentParties | None:
        """
        Resolve patient and doctor display data for notifications.

        Returns:
            Parties, or None if either side no longer exists
        """
        patient_result = await db.execute(
            select(users.c.id, users.c.full_name, users.c.email).where(users.c.id == patient_id)
        )
        patient = patient_result.first()

        doctor_user = users.alias("doctor_user")
        doctor_result = await db.execute(
            select(doctor_user.c.id, doctor_user.c.full_name, doctor_user.c.email)
            .select_from(doctors.join(doctor_user, doctors.c.user_id == doctor_user.c.id))
            .where(doctors.c.id == doctor_id)
        )
        doctor = doctor_result.first()

        if patient is None or doctor is None:
            return None

        return AppointmentParties(
            patient_id=patient.id,
            patient_name=patient.full_name or "Patient",
            patient_email=patient.email,
            doctor_user_id=doctor.id,
            doctor_name=doctor.full_name or "Doctor",
            doctor_email=doctor.email,
        )
