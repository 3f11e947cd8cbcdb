"""Doctor weekly availability table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

# One row per (doctor, weekday, working period). The whole set for a doctor
# is replaced on every edit.
doctor_availability = Table(
    "doctor_availability",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # 0 = Sunday .. 6 = Saturday
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", String(5), nullable=False),
    Column("end_time", String(5), nullable=False),
    Column("break_start", String(5), nullable=True),
    Column("break_end", String(5), nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("day_of_week BETWEEN 0 AND 6", name="doctor_availability_day_check"),
    Index("idx_doctor_availability_doctor_day", "doctor_id", "day_of_week"),
)
