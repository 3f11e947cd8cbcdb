"""In-app notification endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.notifications import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get(
    "/notifications",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user's notifications",
)
async def get_my_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    unread_only: bool = Query(False, description="Only unread notifications"),
) -> NotificationListResponse:
    """
    Get notification history for the authenticated user, newest first.

    Args:
        current_user: Authenticated user
        db: Database session
        page: Page number (starts at 1)
        page_size: Number of items per page (max 100)
        unread_only: Skip notifications already read

    Returns:
        Paginated notifications with unread count
    """
    result = await NotificationService.get_user_notifications(
        db=db,
        user_id=current_user["id"],
        page=page,
        page_size=page_size,
        unread_only=unread_only,
    )

    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in result["items"]],
        total=result["total"],
        unread=result["unread"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.patch(
    "/notifications/read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark notifications as read",
)
async def mark_notifications_read(
    data: MarkReadRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> MarkReadResponse:
    """Mark the listed notifications as read, or all of them when none are listed."""
    updated = await NotificationService.mark_as_read(
        db=db,
        user_id=current_user["id"],
        notification_ids=data.notification_ids,
    )
    return MarkReadResponse(updated=updated)
