"""Slot lookup endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.time_utils import TIME_SLOT_PATTERN, normalize_time_slot
from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.availability import AvailableSlotsResponse, SlotCheckResponse
from app.services.availability_service import AvailabilityService
from app.services.conflict_guard import BookingConflictGuard

router = APIRouter()


@router.get(
    "/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="Get available slots",
)
async def get_available_slots(
    db: DatabaseSession,
    doctor_id: UUID = Query(...),
    target_date: date = Query(..., alias="date"),
) -> AvailableSlotsResponse:
    """
    List bookable start times for a doctor on a date.

    A doctor without working hours that day yields an empty list and a
    message rather than an error.
    """
    service = AvailabilityService(db)
    return await service.get_available_slots(doctor_id, target_date)


@router.get(
    "/check",
    response_model=SlotCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Check a specific slot",
)
async def check_slot(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID = Query(...),
    target_date: date = Query(..., alias="date"),
    time_slot: str = Query(..., pattern=TIME_SLOT_PATTERN),
    duration: int | None = Query(None, ge=15, le=120),
) -> SlotCheckResponse:
    """
    Ask whether a proposed slot is still free.

    Used before suggesting an alternate time to a patient.
    """
    slot = normalize_time_slot(time_slot)
    guard = BookingConflictGuard(db)
    taken = await guard.has_conflict(doctor_id, target_date, slot, duration)
    return SlotCheckResponse(
        doctor_id=doctor_id,
        date=target_date.isoformat(),
        time_slot=slot,
        available=not taken,
    )
