"""Notification models for in-app history and per-user email preferences."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("notification_type", String(50), nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("is_read", Boolean, nullable=False, server_default=text("false")),
    Column("email_sent", Boolean, nullable=False, server_default=text("false")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "notification_type IN ('BOOKING_CONFIRMATION', 'NEW_BOOKING', 'CANCELLATION', "
        "'RESCHEDULE', 'APPOINTMENT_REMINDER', 'FOLLOW_UP')",
        name="notifications_type_check",
    ),
    Index("idx_notifications_user_id", "user_id"),
    Index("idx_notifications_user_read", "user_id", "is_read"),
)

notification_preferences = Table(
    "notification_preferences",
    metadata,
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("appointment_reminders", Boolean, nullable=False, server_default=text("true")),
    Column("booking_confirmations", Boolean, nullable=False, server_default=text("true")),
    Column("cancellation_alerts", Boolean, nullable=False, server_default=text("true")),
    Column("reschedule_alerts", Boolean, nullable=False, server_default=text("true")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
