"""Doctor schedule endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentActor, DatabaseSession
from app.schemas.availability import (
    AvailabilityResponse,
    WeeklyAvailabilityReplace,
    WeeklyAvailabilityResponse,
)
from app.services.availability_service import AvailabilityService

router = APIRouter()


@router.get(
    "/{doctor_id}/availability",
    response_model=WeeklyAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a doctor's weekly schedule",
)
async def get_weekly_availability(
    doctor_id: UUID,
    db: DatabaseSession,
) -> WeeklyAvailabilityResponse:
    """
    Get active working periods, ordered by weekday then start time.

    - **day_of_week**: 0 = Sunday .. 6 = Saturday
    - **start_time** / **end_time**: ``HH:MM`` working hours
    - **break_start** / **break_end**: optional break inside the hours
    """
    service = AvailabilityService(db)
    rows = await service.get_weekly_availability(doctor_id)
    return WeeklyAvailabilityResponse(
        doctor_id=doctor_id,
        availability=[AvailabilityResponse.model_validate(row) for row in rows],
    )


@router.put(
    "/{doctor_id}/availability",
    response_model=WeeklyAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Replace a doctor's weekly schedule",
)
async def replace_weekly_availability(
    doctor_id: UUID,
    data: WeeklyAvailabilityReplace,
    actor: CurrentActor,
    db: DatabaseSession,
) -> WeeklyAvailabilityResponse:
    """
    Replace the whole weekly schedule in one step.

    Only the doctor themselves or an admin may do this. Sending an empty
    list clears the schedule. Existing bookings are not touched.
    """
    service = AvailabilityService(db)
    rows = await service.replace_weekly_availability(actor, doctor_id, data)
    return WeeklyAvailabilityResponse(
        doctor_id=doctor_id,
        availability=[AvailabilityResponse.model_validate(row) for row in rows],
    )
