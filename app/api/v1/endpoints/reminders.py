"""Reminder sweep endpoints for cron jobs and admins."""

from typing import Literal

import structlog
from fastapi import APIRouter, Query, status

from app.dependencies import AdminActor, CronOrAdmin, DatabaseSession
from app.schemas.reminders import PendingRemindersResponse, ReminderKind, ReminderRunResponse
from app.services.reminder_service import ReminderService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/send",
    response_model=ReminderRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Run reminder sweeps",
)
async def send_reminders(
    caller: CronOrAdmin,
    db: DatabaseSession,
    kind: Literal["24h", "1h", "followup", "all"] = Query("all"),
) -> ReminderRunResponse:
    """
    Run one reminder sweep, or all three.

    Authenticate with an admin bearer token or the ``X-Cron-Api-Key`` header.
    Individual send failures are reported in ``errors``; the call itself only
    fails when appointments cannot be queried.
    """
    logger.info("reminder_sweep_requested", kind=kind, caller=caller)
    service = ReminderService(db)

    if kind == "all":
        results = await service.run_all()
    else:
        reminder_kind = ReminderKind(kind)
        results = {reminder_kind: await service.run_sweep(reminder_kind)}

    return ReminderRunResponse(results=results)


@router.get(
    "/pending",
    response_model=PendingRemindersResponse,
    status_code=status.HTTP_200_OK,
    summary="Count pending reminders",
)
async def get_pending_reminders(
    admin: AdminActor,
    db: DatabaseSession,
) -> PendingRemindersResponse:
    """Appointments currently inside each sweep's window and not yet sent."""
    return await ReminderService(db).get_pending_counts()
