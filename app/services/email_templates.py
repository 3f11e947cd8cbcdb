"""
HTML email templates for appointment notifications.

Every template shares one layout; callers pass already-known values and get
back a complete HTML document. User-supplied text is escaped.
"""

from datetime import date
from html import escape

from app.core.time_utils import format_time_12_hour

THEME = {
    "primary": "#2563eb",
    "text": "#333333",
    "muted": "#6b7280",
    "info_bg": "#f3f4f6",
    "warning_bg": "#fef3c7",
    "warning_border": "#f59e0b",
    "danger_bg": "#fee2e2",
    "danger_border": "#ef4444",
}

SIGNATURE = "Best regards,<br>Healthcare Appointment System"


def format_long_date(value: date) -> str:
    """``Monday, January 5, 2026``."""
    return f"{value:%A, %B} {value.day}, {value.year}"


def _details_box(rows: list[tuple[str, str]], background: str, border: str | None = None) -> str:
    border_css = f" border-left: 4px solid {border};" if border else ""
    lines = "".join(f"<p><strong>{label}:</strong> {value}</p>" for label, value in rows)
    return (
        f'<div style="background-color: {background}; padding: 15px; border-radius: 8px; '
        f'margin: 20px 0;{border_css}">{lines}</div>'
    )


def get_base_template(title: str, greeting_name: str, body: str) -> str:
    """Shared layout for all notification emails."""
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
  </head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: {THEME['text']};">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h2 style="color: {THEME['primary']};">{escape(title)}</h2>
      <p>Dear {escape(greeting_name)},</p>
      {body}
      <p>{SIGNATURE}</p>
    </div>
  </body>
</html>
"""


def appointment_confirmation_template(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    time_slot: str,
    reason: str | None = None,
) -> str:
    """Booking created or confirmed."""
    rows = [
        ("Doctor", escape(doctor_name)),
        ("Date", format_long_date(appointment_date)),
        ("Time", format_time_12_hour(time_slot)),
    ]
    if reason:
        rows.append(("Reason", escape(reason)))
    body = (
        "<p>Your appointment has been successfully booked.</p>"
        + _details_box(rows, THEME["info_bg"])
        + "<p>Please arrive 10 minutes before your scheduled appointment time.</p>"
        "<p>If you need to reschedule or cancel, please do so at least 24 hours in advance.</p>"
    )
    return get_base_template("Appointment Confirmed", patient_name, body)


def appointment_cancellation_template(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    time_slot: str,
    cancel_reason: str | None = None,
) -> str:
    """Booking cancelled or deleted."""
    rows = [
        ("Doctor", escape(doctor_name)),
        ("Date", format_long_date(appointment_date)),
        ("Time", format_time_12_hour(time_slot)),
    ]
    if cancel_reason:
        rows.append(("Reason", escape(cancel_reason)))
    body = (
        "<p>Your appointment has been cancelled.</p>"
        + _details_box(rows, THEME["danger_bg"], THEME["danger_border"])
        + "<p>You can book a new appointment at any time.</p>"
    )
    return get_base_template("Appointment Cancelled", patient_name, body)


def appointment_reschedule_template(
    patient_name: str,
    doctor_name: str,
    old_date: date,
    old_time_slot: str,
    new_date: date,
    new_time_slot: str,
) -> str:
    """Booking moved to a new date or time."""
    previous = _details_box(
        [
            ("Previous date", format_long_date(old_date)),
            ("Previous time", format_time_12_hour(old_time_slot)),
        ],
        THEME["info_bg"],
    )
    current = _details_box(
        [
            ("Doctor", escape(doctor_name)),
            ("New date", format_long_date(new_date)),
            ("New time", format_time_12_hour(new_time_slot)),
        ],
        THEME["warning_bg"],
        THEME["warning_border"],
    )
    body = f"<p>Your appointment has been rescheduled.</p>{previous}{current}"
    return get_base_template("Appointment Rescheduled", patient_name, body)


def appointment_24h_reminder_template(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    time_slot: str,
    appointment_type: str | None = None,
) -> str:
    """Reminder sent roughly a day ahead."""
    rows = [
        ("Doctor", escape(doctor_name)),
        ("Date", format_long_date(appointment_date)),
        ("Time", format_time_12_hour(time_slot)),
    ]
    if appointment_type:
        rows.append(("Type", escape(appointment_type)))
    body = (
        "<p>This is a reminder that you have an appointment tomorrow.</p>"
        + _details_box(rows, THEME["warning_bg"], THEME["warning_border"])
        + "<p>Please arrive 10 minutes early. If you can no longer attend, "
        "please cancel so the slot can be offered to another patient.</p>"
    )
    return get_base_template("Appointment Reminder", patient_name, body)


def appointment_1h_reminder_template(
    patient_name: str,
    doctor_name: str,
    time_slot: str,
) -> str:
    """Reminder sent shortly before the visit."""
    body = (
        "<p>Your appointment starts in about an hour.</p>"
        + _details_box(
            [("Doctor", escape(doctor_name)), ("Time", format_time_12_hour(time_slot))],
            THEME["warning_bg"],
            THEME["warning_border"],
        )
    )
    return get_base_template("Appointment in 1 Hour", patient_name, body)


def appointment_follow_up_template(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
) -> str:
    """Thank-you and feedback request after a completed visit."""
    body = (
        f"<p>Thank you for visiting Dr. {escape(doctor_name)} on "
        f"{format_long_date(appointment_date)}.</p>"
        f'<p style="color: {THEME["muted"]};">We would love to hear how it went. '
        "If you have any follow-up questions or need another appointment, "
        "you can book one from your dashboard.</p>"
    )
    return get_base_template("Thank You for Your Visit", patient_name, body)
