"""Database models."""

from app.models.appointments import appointments
from app.models.availability import doctor_availability
from app.models.base import metadata
from app.models.doctors import doctors
from app.models.notifications import notification_preferences, notifications
from app.models.users import users

__all__ = [
    "appointments",
    "doctor_availability",
    "doctors",
    "metadata",
    "notification_preferences",
    "notifications",
    "users",
]
