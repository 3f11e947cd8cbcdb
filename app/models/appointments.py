"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

ACTIVE_SLOT_PREDICATE = "status <> 'CANCELLED'"

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column(
        "patient_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Scheduling (naive doctor-local time)
    Column("appointment_date", Date, nullable=False),
    Column("time_slot", String(5), nullable=False),
    Column("duration", Integer, nullable=False, server_default=text("30")),
    # appointment_date + time_slot, kept in sync for the reminder windows
    Column("scheduled_at", DateTime, nullable=False),
    # Status management
    Column("status", Text, nullable=False, server_default=text("'PENDING'")),
    Column("cancel_reason", Text, nullable=True),
    # Details
    Column("reason", Text, nullable=True),
    Column("symptoms", Text, nullable=True),
    Column("appointment_type", Text, nullable=True),
    Column("patient_email", Text, nullable=True),
    # Opaque payment / insurance details
    Column("notes", Text, nullable=True),
    # Reminder idempotency flags
    Column("reminder_24h_sent", Boolean, nullable=False, server_default=text("false")),
    Column("reminder_1h_sent", Boolean, nullable=False, server_default=text("false")),
    Column("follow_up_sent", Boolean, nullable=False, server_default=text("false")),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'RESCHEDULED', 'COMPLETED', 'MISSED')",
        name="appointments_status_check",
    ),
    CheckConstraint("duration > 0", name="appointments_duration_check"),
    Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
    Index("idx_appointments_scheduled_at", "scheduled_at"),
    # One live booking per doctor/date/slot; closes the check-then-insert race
    Index(
        "uq_appointments_active_slot",
        "doctor_id",
        "appointment_date",
        "time_slot",
        unique=True,
        postgresql_where=text(ACTIVE_SLOT_PREDICATE),
        sqlite_where=text(ACTIVE_SLOT_PREDICATE),
    ),
)
