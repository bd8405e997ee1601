"""Announcement endpoints."""

from fastapi import APIRouter, Depends, status

from lms.core import announcements
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, require_instructor
from lms.web.schemas import AnnouncementCreate, AnnouncementResponse, AnnouncementUpdate

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


@router.get("", response_model=list[AnnouncementResponse])
async def list_announcements(
    course_id: str | None = None,
    user: ProfileRecord = Depends(get_current_user),
) -> list[AnnouncementResponse]:
    """Published, unexpired announcements addressed to the caller."""
    return [AnnouncementResponse.model_validate(a) for a in announcements.list_visible(user, course_id=course_id)]


@router.get("/manage", response_model=list[AnnouncementResponse])
async def list_authored(user: ProfileRecord = Depends(require_instructor)) -> list[AnnouncementResponse]:
    return [AnnouncementResponse.model_validate(a) for a in announcements.list_authored(user)]


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    body: AnnouncementCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> AnnouncementResponse:
    return AnnouncementResponse.model_validate(announcements.create_announcement(user, **body.model_dump()))


@router.get("/{announcement_id}", response_model=AnnouncementResponse)
async def get_announcement(
    announcement_id: str,
    user: ProfileRecord = Depends(get_current_user),
) -> AnnouncementResponse:
    return AnnouncementResponse.model_validate(announcements.get_announcement(user, announcement_id))


@router.patch("/{announcement_id}", response_model=AnnouncementResponse)
async def update_announcement(
    announcement_id: str,
    body: AnnouncementUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> AnnouncementResponse:
    changes = body.model_dump(exclude_unset=True)
    return AnnouncementResponse.model_validate(announcements.update_announcement(user, announcement_id, changes))


@router.post("/{announcement_id}/publish", response_model=AnnouncementResponse)
async def publish_announcement(
    announcement_id: str,
    user: ProfileRecord = Depends(require_instructor),
) -> AnnouncementResponse:
    return AnnouncementResponse.model_validate(announcements.publish_announcement(user, announcement_id))


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(announcement_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    announcements.delete_announcement(user, announcement_id)
