"""Reminder sweep schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class ReminderKind(str, Enum):
    """Reminder sweep kinds."""

    DAY_BEFORE = "24h"
    HOUR_BEFORE = "1h"
    FOLLOW_UP = "followup"


class ReminderResult(BaseModel):
    """Outcome of one sweep."""

    sent: int = 0
    failed: int = 0
    # Claimed but not emailed because the patient opted out
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class ReminderRunResponse(BaseModel):
    """Outcome of one or more sweeps, keyed by kind."""

    results: dict[ReminderKind, ReminderResult]


class PendingRemindersResponse(BaseModel):
    """Appointments currently inside each sweep's window."""

    pending_24h_reminders: int
    pending_1h_reminders: int
    pending_follow_ups: int
    total_pending: int
