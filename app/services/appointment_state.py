"""Appointment status transitions, ownership rules and notification events."""

from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from app.core.exceptions import ForbiddenException, ValidationException
from app.schemas.appointments import AppointmentStatus, UserRole
from app.schemas.notifications import NotificationType

S = AppointmentStatus

# Transitions enforced in strict mode. Same-status updates are always allowed.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED, S.RESCHEDULED, S.MISSED}),
    S.CONFIRMED: frozenset({S.CANCELLED, S.RESCHEDULED, S.COMPLETED, S.MISSED}),
    S.RESCHEDULED: frozenset({S.PENDING, S.CONFIRMED, S.CANCELLED, S.COMPLETED, S.MISSED}),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
    S.MISSED: frozenset({S.RESCHEDULED}),
}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the scheduler."""

    user_id: UUID
    role: UserRole
    # Set when the caller has a doctor profile
    doctor_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        """Admins bypass ownership checks."""
        return self.role == UserRole.ADMIN


def is_transition_allowed(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check ``current -> target`` against the transition table."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def validate_transition(
    current: AppointmentStatus,
    target: AppointmentStatus,
    strict: bool,
) -> None:
    """
    Consult the transition table before a status change.

    Lenient mode accepts anything; strict mode rejects moves outside
    :data:`ALLOWED_TRANSITIONS`.

    Raises:
        ValidationException: If strict and the transition is not allowed
    """
    if strict and not is_transition_allowed(current, target):
        raise ValidationException(
            f"Cannot change appointment status from {current.value} to {target.value}"
        )


def resolve_next_status(
    current: AppointmentStatus,
    requested: AppointmentStatus | None,
    rescheduled: bool,
) -> AppointmentStatus:
    """An explicit status wins; a bare date/time change means RESCHEDULED."""
    if requested is not None:
        return requested
    if rescheduled:
        return S.RESCHEDULED
    return current


def ensure_can_book(actor: Actor, patient_id: UUID, doctor_id: UUID) -> None:
    """Patients book only for themselves, doctors only into their own calendar."""
    if actor.role == UserRole.PATIENT and patient_id != actor.user_id:
        raise ForbiddenException("Patients can only book appointments for themselves")
    if actor.role == UserRole.DOCTOR and actor.doctor_id != doctor_id:
        raise ForbiddenException("Doctors can only create appointments for themselves")


def ensure_can_manage(actor: Actor, appointment: dict[str, Any]) -> None:
    """
    Ownership check for reading, updating or deleting an appointment.

    Raises:
        ForbiddenException: If the appointment belongs to someone else
    """
    if actor.is_admin:
        return
    if actor.role == UserRole.PATIENT and appointment["patient_id"] != actor.user_id:
        raise ForbiddenException("Forbidden. You can only manage your own appointments.")
    if actor.role == UserRole.DOCTOR and appointment["doctor_id"] != actor.doctor_id:
        raise ForbiddenException(
            "Forbidden. You can only manage appointments where you are the assigned doctor."
        )


@dataclass(frozen=True)
class ScheduleChange:
    """Before/after view of a status update."""

    old_status: AppointmentStatus
    new_status: AppointmentStatus
    requested_status: AppointmentStatus | None
    old_date: date
    old_time_slot: str
    new_date: date
    new_time_slot: str

    @property
    def rescheduled(self) -> bool:
        """Date or time actually moved."""
        return self.old_date != self.new_date or self.old_time_slot != self.new_time_slot


def update_events(change: ScheduleChange) -> list[NotificationType]:
    """
    Notifications owed to the patient after an update.

    Explicit CANCELLED / CONFIRMED requests notify every time they are sent,
    even when the status did not change. A date/time move always adds a
    RESCHEDULE notice.
    """
    events: list[NotificationType] = []
    if change.requested_status == S.CANCELLED:
        events.append(NotificationType.CANCELLATION)
    elif change.requested_status == S.CONFIRMED:
        events.append(NotificationType.BOOKING_CONFIRMATION)
    if change.rescheduled:
        events.append(NotificationType.RESCHEDULE)
    return events


def delete_notice_recipient(actor: Actor, patient_id: UUID, doctor_user_id: UUID) -> UUID:
    """The party that did not initiate a delete is the one told about it."""
    if actor.role == UserRole.PATIENT:
        return doctor_user_id
    return patient_id
