"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.time_utils import TIME_SLOT_PATTERN, normalize_time_slot


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"


class UserRole(str, Enum):
    """Caller role resolved from the session."""

    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    # Defaults to the caller when a patient books for themselves
    patient_id: UUID | None = None
    doctor_id: UUID
    appointment_date: date
    time_slot: str = Field(..., pattern=TIME_SLOT_PATTERN, description="HH:MM, doctor-local")
    duration: int | None = Field(None, ge=15, le=120, description="Minutes; defaults to 30")
    reason: str | None = Field(None, max_length=500)
    symptoms: str | None = Field(None, max_length=1000)
    appointment_type: str | None = Field(None, max_length=100)
    patient_email: str | None = Field(None, max_length=320)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("time_slot")
    @classmethod
    def normalize_slot(cls, v: str) -> str:
        """Zero-pad the hour so exact slot comparison is stable."""
        return normalize_time_slot(v)

    @field_validator("appointment_date")
    @classmethod
    def reject_past_date(cls, v: date) -> date:
        """Bookings cannot be made for a day that has already passed."""
        if v < date.today():
            raise ValueError("Appointment date cannot be in the past")
        return v


class AppointmentUpdate(BaseModel):
    """Schema for status changes and reschedules."""

    status: AppointmentStatus | None = None
    appointment_date: date | None = None
    time_slot: str | None = Field(None, pattern=TIME_SLOT_PATTERN)
    cancel_reason: str | None = Field(None, max_length=500)

    @field_validator("time_slot")
    @classmethod
    def normalize_slot(cls, v: str | None) -> str | None:
        """Zero-pad the hour so exact slot comparison is stable."""
        return normalize_time_slot(v) if v is not None else v

    @field_validator("appointment_date")
    @classmethod
    def reject_past_date(cls, v: date | None) -> date | None:
        """Appointments cannot be moved to a day that has already passed."""
        if v is not None and v < date.today():
            raise ValueError("Appointment date cannot be in the past")
        return v

    @model_validator(mode="after")
    def require_change(self) -> "AppointmentUpdate":
        """At least one of status, date or time slot must be supplied."""
        if self.status is None and self.appointment_date is None and self.time_slot is None:
            raise ValueError("Provide a status, appointment_date or time_slot to update")
        return self


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_date: date
    time_slot: str
    duration: int
    status: AppointmentStatus
    reason: str | None = None
    symptoms: str | None = None
    cancel_reason: str | None = None
    appointment_type: str | None = None
    patient_email: str | None = None
    notes: str | None = None
    reminder_24h_sent: bool = False
    reminder_1h_sent: bool = False
    follow_up_sent: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
