"""Current-user settings endpoints."""

from fastapi import APIRouter

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.notifications import NotificationPreferences, NotificationPreferencesUpdate
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/users")


@router.get("/me/notification-preferences", response_model=NotificationPreferences)
async def get_notification_preferences(
    current_user: CurrentUser,
    db: DatabaseSession,
) -> NotificationPreferences:
    """Email preferences; every kind is enabled until the user changes it."""
    return await NotificationService.get_preferences(db, current_user["id"])


@router.patch("/me/notification-preferences", response_model=NotificationPreferences)
async def update_notification_preferences(
    data: NotificationPreferencesUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> NotificationPreferences:
    """
    Turn email categories on or off.

    Only the supplied fields change. In-app notifications are always kept.
    """
    return await NotificationService.update_preferences(db, current_user["id"], data)
