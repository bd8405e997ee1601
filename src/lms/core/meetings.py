"""Live meetings hosted by instructors.

Rooms are not provisioned on a video provider; a meeting carries its own
room name, URL and join token.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass

import structlog

from lms.core.catalog import can_manage, get_course
from lms.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import enrollments_repository, meetings_repository, profiles_repository
from lms.db.meetings_repository import MeetingRecord
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import parse_iso

logger = structlog.get_logger(__name__)

PARTICIPANT_TYPES = ("all", "selected")
MEETING_STATUSES = ("scheduled", "live", "ended", "cancelled")
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class JoinResult:
    meeting: MeetingRecord
    is_host: bool


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def create_meeting(
    instructor: ProfileRecord,
    title: str,
    start_time: str,
    course_id: str | None = None,
    description: str | None = None,
    end_time: str | None = None,
    participant_type: str = "all",
    selected_participants: list[str] | None = None,
    max_participants: int = 50,
    recording_enabled: bool = False,
) -> MeetingRecord:
    """Schedule a meeting and notify its participants."""
    if instructor.role not in ("instructor", "admin"):
        raise PermissionDeniedError("Only instructors can create meetings")
    if not title or not title.strip():
        raise ValidationError("Title and start time are required")
    start = _parse_time(start_time, "start_time")
    if end_time is not None and _parse_time(end_time, "end_time") <= start:
        raise ValidationError("end_time must be after start_time")
    if participant_type not in PARTICIPANT_TYPES:
        raise ValidationError(f"participant_type must be one of {', '.join(PARTICIPANT_TYPES)}")
    if max_participants < 1:
        raise ValidationError("max_participants must be positive")
    if course_id is not None and not can_manage(instructor, get_course(course_id)):
        raise PermissionDeniedError("You can only schedule meetings for your own courses")

    invited: list[str] = []
    if participant_type == "selected":
        invited = list(dict.fromkeys(selected_participants or []))
        if not invited:
            raise ValidationError("Select at least one participant")
        unknown = [sid for sid in invited if profiles_repository.get_profile(sid) is None]
        if unknown:
            raise ValidationError(f"Unknown participants: {', '.join(unknown)}")

    stamp = int(time.time() * 1000)
    room_name = f"room-{stamp}-{_random_suffix()}"
    meeting = meetings_repository.insert_meeting(
        instructor_id=instructor.id,
        title=title.strip(),
        room_name=room_name,
        meeting_url=f"/meetings/{room_name}",
        meeting_token=f"token-{stamp}-{secrets.token_hex(8)}",
        start_time=start_time,
        course_id=course_id,
        description=description,
        end_time=end_time,
        participant_type=participant_type,
        max_participants=max_participants,
        recording_enabled=recording_enabled,
        invited_student_ids=invited,
    )
    logger.info(
        "meetings.created",
        meeting_id=meeting.id,
        room_name=room_name,
        participant_type=participant_type,
    )

    notify_best_effort(
        _audience(meeting),
        "meeting_scheduled",
        "New Meeting Scheduled",
        f'A new meeting "{meeting.title}" has been scheduled.',
        link="/student/meetings",
        related_id=meeting.id,
        related_type="meeting",
    )
    return meeting


def list_meetings(user: ProfileRecord) -> list[MeetingRecord]:
    """Hosted meetings for instructors, reachable meetings for students."""
    if user.role in ("instructor", "admin"):
        return meetings_repository.list_instructor_meetings(user.id)
    return meetings_repository.list_student_meetings(user.id)


def get_meeting(meeting_id: str) -> MeetingRecord:
    meeting = meetings_repository.get_meeting(meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting", meeting_id)
    return meeting


def get_by_room(user: ProfileRecord, room_name: str) -> MeetingRecord:
    meeting = meetings_repository.get_meeting_by_room(room_name)
    if meeting is None or not _may_attend(user, meeting):
        raise NotFoundError("Meeting", room_name)
    return meeting


def join_meeting(user: ProfileRecord, meeting_id: str) -> JoinResult:
    """Admit a user to a meeting.

    Raises:
        PermissionDeniedError: Not enrolled in the course, or not invited
        ValidationError: Meeting ended or cancelled
        ConflictError: Meeting is full
    """
    meeting = get_meeting(meeting_id)
    if meeting.instructor_id == user.id:
        return JoinResult(meeting=meeting, is_host=True)

    if meeting.status in ("ended", "cancelled"):
        raise ValidationError(f"Meeting is {meeting.status}")

    if meeting.course_id and enrollments_repository.get_enrollment(user.id, meeting.course_id) is None:
        raise PermissionDeniedError("You must be enrolled in the course to join this meeting")

    participant = meetings_repository.get_participant(meeting.id, user.id)
    if meeting.participant_type == "selected" and participant is None:
        raise PermissionDeniedError("You are not invited to this meeting")

    already_joined = participant is not None and participant.status == "joined"
    if not already_joined and meetings_repository.count_joined(meeting.id) >= meeting.max_participants:
        raise ConflictError("Meeting is full")

    meetings_repository.mark_joined(meeting.id, user.id)
    logger.info("meetings.joined", meeting_id=meeting.id, user_id=user.id)
    return JoinResult(meeting=meeting, is_host=False)


def update_status(user: ProfileRecord, meeting_id: str, status: str) -> MeetingRecord:
    meeting = _get_owned(user, meeting_id)
    if status not in MEETING_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(MEETING_STATUSES)}")
    updated = meetings_repository.update_meeting_status(meeting.id, status)
    logger.info("meetings.status_changed", meeting_id=meeting.id, status=status)
    return updated


def add_recording(user: ProfileRecord, meeting_id: str, recording_url: str) -> MeetingRecord:
    """Publish the recording of a meeting, ending it, and tell its audience."""
    meeting = _get_owned(user, meeting_id)
    if not recording_url or not recording_url.strip():
        raise ValidationError("Recording URL is required")

    updated = meetings_repository.set_recording(meeting.id, recording_url.strip())
    logger.info("meetings.recording_added", meeting_id=meeting.id)

    notify_best_effort(
        _audience(meeting),
        "meeting_recording",
        "Meeting Recording Available",
        f'The recording for "{meeting.title}" is now available.',
        link=updated.recording_url,
        related_id=meeting.id,
        related_type="meeting",
    )
    return updated


def delete_meeting(user: ProfileRecord, meeting_id: str) -> None:
    meeting = _get_owned(user, meeting_id)
    meetings_repository.delete_meeting(meeting.id)
    logger.info("meetings.deleted", meeting_id=meeting.id)


def _audience(meeting: MeetingRecord) -> list[str]:
    """Invited students, or everyone enrolled in the meeting's course."""
    if meeting.participant_type == "selected":
        return [p.student_id for p in meetings_repository.list_participants(meeting.id)]
    if meeting.course_id:
        return enrollments_repository.list_enrolled_student_ids(meeting.course_id)
    return []


def _may_attend(user: ProfileRecord, meeting: MeetingRecord) -> bool:
    if meeting.instructor_id == user.id or user.role == "admin":
        return True
    if meeting.course_id and enrollments_repository.get_enrollment(user.id, meeting.course_id) is None:
        return False
    if meeting.participant_type == "selected":
        return meetings_repository.get_participant(meeting.id, user.id) is not None
    return True


def _get_owned(user: ProfileRecord, meeting_id: str) -> MeetingRecord:
    meeting = get_meeting(meeting_id)
    if meeting.instructor_id != user.id and user.role != "admin":
        raise PermissionDeniedError("Only the host can change this meeting")
    return meeting


def _parse_time(value: str, name: str):
    try:
        return parse_iso(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value!r}") from None
