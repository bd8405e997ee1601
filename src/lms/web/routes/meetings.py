"""Live meeting endpoints."""

from fastapi import APIRouter, Depends, status

from lms.core import meetings
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, require_feature, require_instructor
from lms.web.schemas import JoinResponse, MeetingCreate, MeetingResponse, MeetingStatusUpdate, RecordingCreate

router = APIRouter(prefix="/api/meetings", tags=["meetings"], dependencies=[Depends(require_feature("meetings"))])


@router.get("", response_model=list[MeetingResponse])
async def list_meetings(user: ProfileRecord = Depends(get_current_user)) -> list[MeetingResponse]:
    return [MeetingResponse.model_validate(m) for m in meetings.list_meetings(user)]


@router.post("", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting(body: MeetingCreate, user: ProfileRecord = Depends(require_instructor)) -> MeetingResponse:
    return MeetingResponse.model_validate(meetings.create_meeting(user, **body.model_dump()))


@router.get("/room/{room_name}", response_model=MeetingResponse)
async def get_by_room(room_name: str, user: ProfileRecord = Depends(get_current_user)) -> MeetingResponse:
    return MeetingResponse.model_validate(meetings.get_by_room(user, room_name))


@router.post("/{meeting_id}/join", response_model=JoinResponse)
async def join_meeting(meeting_id: str, user: ProfileRecord = Depends(get_current_user)) -> JoinResponse:
    """Admit the caller; the join token is only handed out here."""
    result = meetings.join_meeting(user, meeting_id)
    return JoinResponse(
        meeting=MeetingResponse.model_validate(result.meeting),
        is_host=result.is_host,
        meeting_token=result.meeting.meeting_token,
    )


@router.patch("/{meeting_id}/status", response_model=MeetingResponse)
async def update_status(
    meeting_id: str,
    body: MeetingStatusUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> MeetingResponse:
    return MeetingResponse.model_validate(meetings.update_status(user, meeting_id, body.status))


@router.post("/{meeting_id}/recording", response_model=MeetingResponse)
async def add_recording(
    meeting_id: str,
    body: RecordingCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> MeetingResponse:
    """Attach the recording URL; the meeting is marked ended."""
    return MeetingResponse.model_validate(meetings.add_recording(user, meeting_id, body.recording_url))


@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(meeting_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    meetings.delete_meeting(user, meeting_id)
