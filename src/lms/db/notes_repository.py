"""Repository functions for lesson_notes and note_replies tables."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class ReplyRecord:
    id: str
    note_id: str
    author_id: str
    content: str
    created_at: str


@dataclass
class NoteRecord:
    """Lesson note (or question) with its replies, oldest reply first."""

    id: str
    student_id: str
    lesson_id: str
    content: str
    is_question: bool
    created_at: str
    replies: list[ReplyRecord] = field(default_factory=list)


def insert_note(student_id: str, lesson_id: str, content: str, is_question: bool = False) -> NoteRecord:
    note_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO lesson_notes (id, student_id, lesson_id, content, is_question, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (note_id, student_id, lesson_id, content, int(is_question), utc_now_iso()),
        )

    logger.debug("lesson_notes.inserted", note_id=note_id, lesson_id=lesson_id)
    return get_note(note_id)


def get_note(note_id: str) -> NoteRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM lesson_notes WHERE id = ?", (note_id,)).fetchone()
        if row is None:
            return None
        replies = conn.execute(
            "SELECT * FROM note_replies WHERE note_id = ? ORDER BY created_at, rowid",
            (note_id,),
        ).fetchall()

    note = _row_to_note(row)
    note.replies = [_row_to_reply(r) for r in replies]
    return note


def list_student_notes(student_id: str, lesson_id: str) -> list[NoteRecord]:
    """A student's notes on a lesson, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM lesson_notes
            WHERE student_id = ? AND lesson_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (student_id, lesson_id),
        ).fetchall()

    return _with_replies([_row_to_note(row) for row in rows])


def list_course_questions(course_id: str, unanswered_only: bool = False) -> list[NoteRecord]:
    """Questions asked on any lesson of a course, newest first."""
    query = """
        SELECT n.* FROM lesson_notes n
        JOIN lessons l ON l.id = n.lesson_id
        JOIN modules m ON m.id = l.module_id
        WHERE m.course_id = ? AND n.is_question = 1
    """
    if unanswered_only:
        query += " AND NOT EXISTS (SELECT 1 FROM note_replies r WHERE r.note_id = n.id)"
    query += " ORDER BY n.created_at DESC, n.rowid DESC"

    with get_db() as conn:
        rows = conn.execute(query, (course_id,)).fetchall()

    return _with_replies([_row_to_note(row) for row in rows])


def delete_note(note_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM lesson_notes WHERE id = ?", (note_id,))

    return cursor.rowcount > 0


def insert_reply(note_id: str, author_id: str, content: str) -> ReplyRecord:
    reply_id = new_id()

    with get_db() as conn:
        conn.execute(
            "INSERT INTO note_replies (id, note_id, author_id, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (reply_id, note_id, author_id, content, utc_now_iso()),
        )
        row = conn.execute("SELECT * FROM note_replies WHERE id = ?", (reply_id,)).fetchone()

    logger.debug("note_replies.inserted", reply_id=reply_id, note_id=note_id)
    return _row_to_reply(row)


def _with_replies(notes: list[NoteRecord]) -> list[NoteRecord]:
    """Attach replies to notes with one query."""
    if not notes:
        return notes

    by_id = {note.id: note for note in notes}
    placeholders = ", ".join("?" for _ in by_id)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM note_replies WHERE note_id IN ({placeholders}) ORDER BY created_at, rowid",
            list(by_id),
        ).fetchall()

    for row in rows:
        by_id[row["note_id"]].replies.append(_row_to_reply(row))
    return notes


def _row_to_note(row) -> NoteRecord:
    return NoteRecord(
        id=row["id"],
        student_id=row["student_id"],
        lesson_id=row["lesson_id"],
        content=row["content"],
        is_question=bool(row["is_question"]),
        created_at=row["created_at"],
    )


def _row_to_reply(row) -> ReplyRecord:
    return ReplyRecord(
        id=row["id"],
        note_id=row["note_id"],
        author_id=row["author_id"],
        content=row["content"],
        created_at=row["created_at"],
    )
