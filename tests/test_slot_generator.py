"""Tests for free-slot computation and time helpers."""

from datetime import date

import pytest

from app.core.time_utils import (
    combine_slot,
    day_of_week,
    format_time_12_hour,
    normalize_time_slot,
    parse_time_to_minutes,
)
from app.services.slot_generator import Interval, generate_slots, overlaps


def _availability(
    start: str, end: str, break_start: str | None = None, break_end: str | None = None
) -> dict:
    return {
        "start_time": start,
        "end_time": end,
        "break_start": break_start,
        "break_end": break_end,
    }


def test_booked_slot_is_excluded() -> None:
    """Mon 09:00-12:00 with a 10:00 booking leaves every other half hour free."""
    result = generate_slots(
        [_availability("09:00", "12:00")],
        [{"time_slot": "10:00", "duration": 30}],
    )
    assert result.slots == ["09:00", "09:30", "10:30", "11:00", "11:30"]
    assert result.working_hours == ("09:00", "12:00")


def test_break_is_excluded() -> None:
    result = generate_slots([_availability("09:00", "17:00", "12:00", "13:00")], [])
    assert "12:00" not in result.slots
    assert "12:30" not in result.slots
    assert "11:30" in result.slots
    assert "13:00" in result.slots
    assert len(result.slots) == 14


@pytest.mark.parametrize(
    ("slot", "excluded"),
    [
        ("11:30", False),  # ends exactly when the break starts
        ("11:45", True),  # straddles the break start
        ("12:00", True),
        ("12:45", True),  # straddles the break end
        ("13:00", False),  # starts exactly when the break ends
    ],
)
def test_break_boundaries_are_half_open(slot: str, excluded: bool) -> None:
    candidate = Interval.from_slot(slot, 30)
    assert overlaps(candidate, Interval.from_slot("12:00", 60)) is excluded


def test_longer_booking_blocks_every_slot_it_covers() -> None:
    result = generate_slots(
        [_availability("09:00", "11:00")],
        [{"time_slot": "09:00", "duration": 60}],
    )
    assert result.slots == ["10:00", "10:30"]


def test_candidate_containing_a_short_booking_is_excluded() -> None:
    result = generate_slots(
        [_availability("09:00", "10:00")],
        [{"time_slot": "09:10", "duration": 15}],
        slot_minutes=60,
    )
    assert result.slots == []


def test_last_slot_must_fit_before_end() -> None:
    result = generate_slots([_availability("09:00", "10:15")], [])
    assert result.slots == ["09:00", "09:30"]


def test_multiple_periods_are_merged_and_sorted() -> None:
    result = generate_slots(
        [_availability("14:00", "15:00"), _availability("09:00", "10:00")],
        [],
    )
    assert result.slots == ["09:00", "09:30", "14:00", "14:30"]
    assert result.working_hours == ("09:00", "15:00")
    assert result.working_periods == [("14:00", "15:00"), ("09:00", "10:00")]


def test_overlapping_periods_do_not_duplicate_slots() -> None:
    result = generate_slots(
        [_availability("09:00", "10:00"), _availability("09:30", "10:30")],
        [],
    )
    assert result.slots == ["09:00", "09:30", "10:00"]


def test_custom_slot_granularity() -> None:
    result = generate_slots([_availability("09:00", "10:00")], [], slot_minutes=15)
    assert result.slots == ["09:00", "09:15", "09:30", "09:45"]


def test_no_availability_yields_nothing() -> None:
    result = generate_slots([], [{"time_slot": "10:00", "duration": 30}])
    assert result.slots == []
    assert result.working_hours is None


def test_same_input_same_output() -> None:
    availability = [_availability("09:00", "17:00", "12:00", "13:00")]
    booked = [{"time_slot": "10:00", "duration": 30}, {"time_slot": "15:30", "duration": 45}]
    assert generate_slots(availability, booked) == generate_slots(availability, booked)


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(date(2026, 1, 4)) == 0  # Sunday
    assert day_of_week(date(2026, 1, 5)) == 1  # Monday
    assert day_of_week(date(2026, 1, 10)) == 6  # Saturday


def test_time_helpers() -> None:
    assert parse_time_to_minutes("9:05") == 545
    assert normalize_time_slot("9:00") == "09:00"
    assert format_time_12_hour("00:15") == "12:15 AM"
    assert format_time_12_hour("14:30") == "2:30 PM"
    assert combine_slot(date(2026, 1, 5), "13:45").isoformat() == "2026-01-05T13:45:00"

    with pytest.raises(ValueError):
        parse_time_to_minutes("24:00")
