"""Naive local time helpers for ``HH:MM`` slot strings.

All scheduling arithmetic is done in minutes since midnight, doctor-local,
with no timezone attached.
"""

import re
from datetime import date, datetime, time, timedelta

TIME_SLOT_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
_TIME_SLOT_RE = re.compile(TIME_SLOT_PATTERN)

MINUTES_PER_DAY = 24 * 60


def is_valid_time_slot(value: str) -> bool:
    """Return True if value is an ``H:MM`` / ``HH:MM`` 24-hour time."""
    return bool(_TIME_SLOT_RE.match(value))


def parse_time_to_minutes(value: str) -> int:
    """
    Convert ``HH:MM`` to minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time
    """
    if not is_valid_time_slot(value):
        raise ValueError(f"Invalid time format (HH:MM): {value!r}")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total_minutes: int) -> str:
    """Convert minutes since midnight back to zero-padded ``HH:MM``."""
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def normalize_time_slot(value: str) -> str:
    """Zero-pad a valid time string, e.g. ``9:00`` -> ``09:00``."""
    return format_minutes(parse_time_to_minutes(value))


def format_time_12_hour(time_24: str) -> str:
    """``14:30`` -> ``2:30 PM``; invalid input is returned unchanged."""
    if not is_valid_time_slot(time_24):
        return time_24
    hours, minutes = divmod(parse_time_to_minutes(time_24), 60)
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def day_of_week(value: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return value.isoweekday() % 7


def combine_slot(appointment_date: date, time_slot: str) -> datetime:
    """Naive local datetime at which an appointment starts."""
    minutes = parse_time_to_minutes(time_slot)
    return datetime.combine(appointment_date, time.min) + timedelta(minutes=minutes)
