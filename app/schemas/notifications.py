"""Notification and preference schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Kinds of notifications raised by scheduling events."""

    BOOKING_CONFIRMATION = "BOOKING_CONFIRMATION"
    NEW_BOOKING = "NEW_BOOKING"
    CANCELLATION = "CANCELLATION"
    RESCHEDULE = "RESCHEDULE"
    APPOINTMENT_REMINDER = "APPOINTMENT_REMINDER"
    FOLLOW_UP = "FOLLOW_UP"


class NotificationResponse(BaseModel):
    """Stored in-app notification."""

    id: UUID
    user_id: UUID
    appointment_id: UUID | None = None
    notification_type: NotificationType
    title: str
    message: str
    is_read: bool
    email_sent: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Paginated notification history."""

    total: int
    unread: int
    page: int
    page_size: int
    items: list[NotificationResponse]


class MarkReadRequest(BaseModel):
    """Mark specific notifications, or all of them, as read."""

    notification_ids: list[UUID] | None = Field(
        default=None, description="Omit to mark every notification as read"
    )


class MarkReadResponse(BaseModel):
    """Number of notifications updated."""

    updated: int


class NotificationPreferences(BaseModel):
    """Per-type email opt-ins."""

    appointment_reminders: bool = True
    booking_confirmations: bool = True
    cancellation_alerts: bool = True
    reschedule_alerts: bool = True

    model_config = {"from_attributes": True}


class NotificationPreferencesUpdate(BaseModel):
    """Partial preference update."""

    appointment_reminders: bool | None = None
    booking_confirmations: bool | None = None
    cancellation_alerts: bool | None = None
    reschedule_alerts: bool | None = None
