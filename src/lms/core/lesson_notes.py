"""Private lesson notes and questions.

A student keeps notes on the lessons of courses they are enrolled in. A
note flagged as a question is also visible to whoever manages the course,
who can answer it in a reply thread.
"""

from __future__ import annotations

import structlog

from lms.core.catalog import can_manage, get_course, require_course_manager
from lms.core.enrollment import require_enrollment
from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import courses_repository, notes_repository
from lms.db.notes_repository import NoteRecord, ReplyRecord
from lms.db.profiles_repository import ProfileRecord

logger = structlog.get_logger(__name__)


def create_note(student: ProfileRecord, lesson_id: str, content: str, is_question: bool = False) -> NoteRecord:
    """Save a note on a lesson of a course the student is enrolled in."""
    course_id = _lesson_course_id(lesson_id)
    require_enrollment(student.id, course_id)
    if not content or not content.strip():
        raise ValidationError("Note content is required")

    note = notes_repository.insert_note(student.id, lesson_id, content.strip(), is_question=is_question)
    logger.info("lesson_notes.created", note_id=note.id, lesson_id=lesson_id, is_question=is_question)
    return note


def list_my_notes(student: ProfileRecord, lesson_id: str) -> list[NoteRecord]:
    _lesson_course_id(lesson_id)
    return notes_repository.list_student_notes(student.id, lesson_id)


def list_course_questions(user: ProfileRecord, course_id: str, unanswered_only: bool = False) -> list[NoteRecord]:
    require_course_manager(user, course_id)
    return notes_repository.list_course_questions(course_id, unanswered_only=unanswered_only)


def reply_to_note(user: ProfileRecord, note_id: str, content: str) -> ReplyRecord:
    """Answer a question, or follow up on one's own note.

    Raises:
        NotFoundError: Unknown note, or one the user may not see
        ValidationError: Empty reply
    """
    note, course_id = _get_visible(user, note_id)
    if not content or not content.strip():
        raise ValidationError("Reply content is required")

    reply = notes_repository.insert_reply(note.id, user.id, content.strip())
    logger.info("lesson_notes.replied", note_id=note.id, author_id=user.id)

    if user.id != note.student_id:
        notify_best_effort(
            [note.student_id],
            "note_reply",
            "Your Question Was Answered",
            f"{user.full_name or 'Your instructor'} replied to your question.",
            link=f"/student/courses/{course_id}/lessons/{note.lesson_id}",
            related_id=note.id,
            related_type="lesson_note",
        )
    return reply


def delete_note(user: ProfileRecord, note_id: str) -> None:
    note = notes_repository.get_note(note_id)
    if note is None:
        raise NotFoundError("Note", note_id)
    if note.student_id != user.id:
        raise PermissionDeniedError("Only the author can delete a note")
    notes_repository.delete_note(note.id)
    logger.info("lesson_notes.deleted", note_id=note.id)


def _lesson_course_id(lesson_id: str) -> str:
    course_id = courses_repository.get_lesson_course_id(lesson_id)
    if course_id is None:
        raise NotFoundError("Lesson", lesson_id)
    return course_id


def _get_visible(user: ProfileRecord, note_id: str) -> tuple[NoteRecord, str]:
    # Plain notes stay private to their author
    note = notes_repository.get_note(note_id)
    if note is None:
        raise NotFoundError("Note", note_id)
    course_id = _lesson_course_id(note.lesson_id)
    if note.student_id == user.id:
        return note, course_id
    if note.is_question and can_manage(user, get_course(course_id)):
        return note, course_id
    raise NotFoundError("Note", note_id)
