"""Weekly availability and slot schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.time_utils import TIME_SLOT_PATTERN, normalize_time_slot, parse_time_to_minutes


class AvailabilityEntry(BaseModel):
    """One working period for a weekday."""

    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday .. 6 = Saturday")
    start_time: str = Field(..., pattern=TIME_SLOT_PATTERN)
    end_time: str = Field(..., pattern=TIME_SLOT_PATTERN)
    break_start: str | None = Field(None, pattern=TIME_SLOT_PATTERN)
    break_end: str | None = Field(None, pattern=TIME_SLOT_PATTERN)
    is_active: bool = True

    @field_validator("start_time", "end_time", "break_start", "break_end")
    @classmethod
    def normalize_times(cls, v: str | None) -> str | None:
        """Store times zero-padded."""
        return normalize_time_slot(v) if v else None

    @model_validator(mode="after")
    def validate_bounds(self) -> "AvailabilityEntry":
        """Working hours must be ordered and contain the break."""
        start = parse_time_to_minutes(self.start_time)
        end = parse_time_to_minutes(self.end_time)
        if start >= end:
            raise ValueError("start_time must be before end_time")

        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be given together")

        if self.break_start is not None and self.break_end is not None:
            break_start = parse_time_to_minutes(self.break_start)
            break_end = parse_time_to_minutes(self.break_end)
            if not start <= break_start < break_end <= end:
                raise ValueError("Break must fall within working hours and end after it starts")
        return self


class WeeklyAvailabilityReplace(BaseModel):
    """Full replacement of a doctor's weekly schedule."""

    availability: list[AvailabilityEntry] = Field(default_factory=list, max_length=50)


class AvailabilityResponse(AvailabilityEntry):
    """Stored availability row."""

    id: UUID
    doctor_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class WeeklyAvailabilityResponse(BaseModel):
    """A doctor's weekly schedule."""

    doctor_id: UUID
    availability: list[AvailabilityResponse]


class WorkingHours(BaseModel):
    """Raw working-hours bounds for display."""

    start: str
    end: str


class AvailableSlotsResponse(BaseModel):
    """Free slot start times for one doctor and date."""

    doctor_id: UUID
    date: str
    slots: list[str]
    working_hours: WorkingHours | None = None
    working_periods: list[WorkingHours] = Field(default_factory=list)
    message: str | None = None


class SlotCheckResponse(BaseModel):
    """Whether a proposed slot collides with an existing booking."""

    doctor_id: UUID
    date: str
    time_slot: str
    available: bool
