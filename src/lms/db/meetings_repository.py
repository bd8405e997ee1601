"""Repository functions for meetings and meeting_participants tables."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class MeetingRecord:
    """Meeting record from database."""

    id: str
    instructor_id: str
    course_id: str | None
    title: str
    description: str | None
    room_name: str
    meeting_url: str
    meeting_token: str
    start_time: str
    end_time: str | None
    participant_type: str
    max_participants: int
    recording_enabled: bool
    status: str
    created_at: str
    recording_url: str | None = None


@dataclass
class ParticipantRecord:
    meeting_id: str
    student_id: str
    status: str
    joined_at: str | None


def insert_meeting(
    instructor_id: str,
    title: str,
    room_name: str,
    meeting_url: str,
    meeting_token: str,
    start_time: str,
    course_id: str | None = None,
    description: str | None = None,
    end_time: str | None = None,
    participant_type: str = "all",
    max_participants: int = 50,
    recording_enabled: bool = False,
    invited_student_ids: list[str] | None = None,
) -> MeetingRecord:
    """Insert a meeting and its invited participants in one transaction."""
    meeting_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO meetings (
                id, instructor_id, course_id, title, description, room_name,
                meeting_url, meeting_token, start_time, end_time,
                participant_type, max_participants, recording_enabled,
                status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'scheduled', ?)
            """,
            (
                meeting_id,
                instructor_id,
                course_id,
                title,
                description,
                room_name,
                meeting_url,
                meeting_token,
                start_time,
                end_time,
                participant_type,
                max_participants,
                int(recording_enabled),
                utc_now_iso(),
            ),
        )
        conn.executemany(
            """
            INSERT INTO meeting_participants (meeting_id, student_id, status)
            VALUES (?, ?, 'invited')
            """,
            [(meeting_id, student_id) for student_id in dict.fromkeys(invited_student_ids or [])],
        )

    logger.debug("meetings.inserted", meeting_id=meeting_id, room_name=room_name)
    return get_meeting(meeting_id)


def get_meeting(meeting_id: str) -> MeetingRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM meetings WHERE id = ?", (meeting_id,)).fetchone()

    return _row_to_meeting(row) if row else None


def get_meeting_by_room(room_name: str) -> MeetingRecord | None:
    """Meeting by its unique room name."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM meetings WHERE room_name = ?", (room_name,)
        ).fetchone()

    return _row_to_meeting(row) if row else None


def list_instructor_meetings(instructor_id: str) -> list[MeetingRecord]:
    """Meetings hosted by an instructor, newest start first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM meetings WHERE instructor_id = ? ORDER BY start_time DESC",
            (instructor_id,),
        ).fetchall()

    return [_row_to_meeting(row) for row in rows]


def list_student_meetings(student_id: str) -> list[MeetingRecord]:
    """Meetings visible to a student, newest start first.

    Includes 'all' meetings of enrolled courses, course-less 'all' meetings,
    and any meeting the student is a participant of.
    """
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT DISTINCT m.* FROM meetings m
            LEFT JOIN meeting_participants p
                ON p.meeting_id = m.id AND p.student_id = ?
            WHERE p.student_id IS NOT NULL
               OR (m.participant_type = 'all' AND m.course_id IS NULL)
               OR (m.participant_type = 'all' AND m.course_id IN (
                    SELECT course_id FROM enrollments WHERE student_id = ?
               ))
            ORDER BY m.start_time DESC
            """,
            (student_id, student_id),
        ).fetchall()

    return [_row_to_meeting(row) for row in rows]


def update_meeting_status(meeting_id: str, status: str) -> MeetingRecord | None:
    with get_db() as conn:
        conn.execute(
            "UPDATE meetings SET status = ? WHERE id = ?", (status, meeting_id)
        )

    return get_meeting(meeting_id)


def set_recording(meeting_id: str, recording_url: str) -> MeetingRecord | None:
    """Attach a recording; a recorded meeting is over."""
    with get_db() as conn:
        conn.execute(
            "UPDATE meetings SET recording_url = ?, status = 'ended' WHERE id = ?",
            (recording_url, meeting_id),
        )

    return get_meeting(meeting_id)


def delete_meeting(meeting_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM meetings WHERE id = ?", (meeting_id,))

    return cursor.rowcount > 0


def get_participant(meeting_id: str, student_id: str) -> ParticipantRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM meeting_participants WHERE meeting_id = ? AND student_id = ?",
            (meeting_id, student_id),
        ).fetchone()

    return _row_to_participant(row) if row else None


def list_participants(meeting_id: str) -> list[ParticipantRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM meeting_participants WHERE meeting_id = ?", (meeting_id,)
        ).fetchall()

    return [_row_to_participant(row) for row in rows]


def count_joined(meeting_id: str) -> int:
    """Participants that have joined the meeting."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM meeting_participants WHERE meeting_id = ? AND status = 'joined'",
            (meeting_id,),
        ).fetchone()

    return row["n"]


def mark_joined(meeting_id: str, student_id: str) -> None:
    """Upsert the participant as joined now."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO meeting_participants (meeting_id, student_id, status, joined_at)
            VALUES (?, ?, 'joined', ?)
            ON CONFLICT(meeting_id, student_id) DO UPDATE SET
                status = 'joined',
                joined_at = excluded.joined_at
            """,
            (meeting_id, student_id, utc_now_iso()),
        )


def _row_to_meeting(row) -> MeetingRecord:
    """Convert database row to MeetingRecord."""
    return MeetingRecord(
        id=row["id"],
        instructor_id=row["instructor_id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        room_name=row["room_name"],
        meeting_url=row["meeting_url"],
        meeting_token=row["meeting_token"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        participant_type=row["participant_type"],
        max_participants=row["max_participants"],
        recording_enabled=bool(row["recording_enabled"]),
        status=row["status"],
        created_at=row["created_at"],
        recording_url=row["recording_url"],
    )


def _row_to_participant(row) -> ParticipantRecord:
    return ParticipantRecord(
        meeting_id=row["meeting_id"],
        student_id=row["student_id"],
        status=row["status"],
        joined_at=row["joined_at"],
    )
