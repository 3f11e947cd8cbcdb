"""Free-slot computation for a doctor's working day.

Everything here is pure: the caller loads the weekday's availability rows and
the day's non-cancelled appointments, and gets back the bookable start times.
Times are minutes since midnight internally and ``HH:MM`` at the edges.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from app.core.time_utils import format_minutes, parse_time_to_minutes

DEFAULT_SLOT_MINUTES = 30


@dataclass(frozen=True)
class Interval:
    """Half-open minute range ``[start, end)``."""

    start: int
    end: int

    @classmethod
    def from_slot(cls, time_slot: str, duration: int) -> "Interval":
        """Interval covered by an appointment starting at ``time_slot``."""
        start = parse_time_to_minutes(time_slot)
        return cls(start, start + duration)


@dataclass
class SlotComputation:
    """Result of :func:`generate_slots`."""

    slots: list[str] = field(default_factory=list)
    working_periods: list[tuple[str, str]] = field(default_factory=list)

    @property
    def working_hours(self) -> tuple[str, str] | None:
        """Earliest start and latest end across the day's periods."""
        if not self.working_periods:
            return None
        starts = [start for start, _ in self.working_periods]
        ends = [end for _, end in self.working_periods]
        return min(starts, key=parse_time_to_minutes), max(ends, key=parse_time_to_minutes)


def overlaps(candidate: Interval, blocked: Interval) -> bool:
    """
    Check whether a candidate slot collides with a blocked range.

    The candidate collides when its start lies inside the blocked range, its
    end lies inside it, or it swallows the range whole. Touching edges do not
    collide: a slot ending exactly when a break starts stays bookable.
    """
    start_inside = blocked.start <= candidate.start < blocked.end
    end_inside = blocked.start < candidate.end <= blocked.end
    contains = candidate.start <= blocked.start and candidate.end >= blocked.end
    return start_inside or end_inside or contains


def break_interval(availability: Mapping[str, Any]) -> Interval | None:
    """The configured break for an availability row, if both ends are set."""
    break_start = availability.get("break_start")
    break_end = availability.get("break_end")
    if not break_start or not break_end:
        return None
    return Interval(parse_time_to_minutes(break_start), parse_time_to_minutes(break_end))


def iterate_candidates(start: int, end: int, step: int) -> Iterable[Interval]:
    """Fixed-step candidates that fit entirely inside ``[start, end)``."""
    current = start
    while current + step <= end:
        yield Interval(current, current + step)
        current += step


def generate_slots(
    availabilities: Iterable[Mapping[str, Any]],
    appointments: Iterable[Mapping[str, Any]],
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> SlotComputation:
    """
    Compute free slot start times for one day.

    Args:
        availabilities: Active availability rows for the weekday
            (``start_time``, ``end_time``, optional ``break_start``/``break_end``)
        appointments: The day's non-cancelled appointments
            (``time_slot``, ``duration``)
        slot_minutes: Slot granularity, independent of appointment durations

    Returns:
        Sorted unique slot starts and the raw working periods
    """
    booked = [Interval.from_slot(apt["time_slot"], int(apt["duration"])) for apt in appointments]
    result = SlotComputation()
    free: set[int] = set()

    for availability in availabilities:
        start = parse_time_to_minutes(availability["start_time"])
        end = parse_time_to_minutes(availability["end_time"])
        result.working_periods.append((availability["start_time"], availability["end_time"]))
        pause = break_interval(availability)

        for candidate in iterate_candidates(start, end, slot_minutes):
            if pause is not None and overlaps(candidate, pause):
                continue
            if any(overlaps(candidate, taken) for taken in booked):
                continue
            free.add(candidate.start)

    result.slots = [format_minutes(minute) for minute in sorted(free)]
    return result
