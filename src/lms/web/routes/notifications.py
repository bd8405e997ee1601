"""In-app notification endpoints."""

from fastapi import APIRouter, Depends, Query, status

from lms.config import load_app_config
from lms.core import notifications
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user
from lms.web.schemas import CountResponse, NotificationListResponse, NotificationResponse

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int | None = Query(default=None, ge=1, le=500),
    unread_only: bool = False,
    user: ProfileRecord = Depends(get_current_user),
) -> NotificationListResponse:
    """Newest notifications first, with the unread total."""
    limit = limit or load_app_config().notifications.default_page_size
    items = notifications.list_for_user(user.id, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        unread_count=notifications.unread_count(user.id),
    )


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(user: ProfileRecord = Depends(get_current_user)) -> CountResponse:
    return CountResponse(count=notifications.unread_count(user.id))


@router.post("/read-all", response_model=CountResponse)
async def mark_all_read(user: ProfileRecord = Depends(get_current_user)) -> CountResponse:
    return CountResponse(count=notifications.mark_all_read(user.id))


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(notification_id: str, user: ProfileRecord = Depends(get_current_user)) -> None:
    notifications.mark_read(user.id, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: str, user: ProfileRecord = Depends(get_current_user)) -> None:
    notifications.delete(user.id, notification_id)
