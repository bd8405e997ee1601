"""Repository functions for assignments and submissions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

ASSIGNMENT_FIELDS = ("title", "description", "due_date", "max_points", "is_published", "module_id")


@dataclass
class AssignmentRecord:
    """Assignment record from database."""

    id: str
    course_id: str
    module_id: str | None
    title: str
    description: str
    due_date: str | None
    max_points: int
    is_published: bool
    created_at: str
    updated_at: str


@dataclass
class SubmissionRecord:
    """Assignment submission record from database."""

    id: str
    assignment_id: str
    student_id: str
    submission_text: str | None
    file_url: str | None
    status: str
    score: float | None
    feedback: str | None
    submitted_at: str
    graded_at: str | None
    graded_by: str | None

    @property
    def is_graded(self) -> bool:
        return self.status == "graded"


def insert_assignment(
    course_id: str,
    title: str,
    description: str = "",
    due_date: str | None = None,
    max_points: int = 100,
    is_published: bool = False,
    module_id: str | None = None,
) -> AssignmentRecord:
    """Insert a new assignment."""
    now = utc_now_iso()
    assignment_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO assignments (
                id, course_id, module_id, title, description, due_date,
                max_points, is_published, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                assignment_id,
                course_id,
                module_id,
                title,
                description,
                due_date,
                max_points,
                int(is_published),
                now,
                now,
            ),
        )

    logger.debug("assignments.inserted", assignment_id=assignment_id, course_id=course_id)
    return get_assignment(assignment_id)


def get_assignment(assignment_id: str) -> AssignmentRecord | None:
    """Get assignment by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assignments WHERE id = ?", (assignment_id,)
        ).fetchone()

    return _row_to_assignment(row) if row else None


def list_assignments(
    course_ids: list[str],
    published_only: bool = False,
) -> list[AssignmentRecord]:
    """Assignments of the given courses, by due date (undated last)."""
    if not course_ids:
        return []

    placeholders = ",".join("?" for _ in course_ids)
    query = f"SELECT * FROM assignments WHERE course_id IN ({placeholders})"
    if published_only:
        query += " AND is_published = 1"
    query += " ORDER BY due_date IS NULL, due_date, created_at"

    with get_db() as conn:
        rows = conn.execute(query, course_ids).fetchall()

    return [_row_to_assignment(row) for row in rows]


def update_assignment(assignment_id: str, changes: dict[str, Any]) -> AssignmentRecord | None:
    """Apply a partial update to an assignment."""
    unknown = set(changes) - set(ASSIGNMENT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown assignment fields: {sorted(unknown)}")

    if changes:
        values = dict(changes)
        if "is_published" in values:
            values["is_published"] = int(bool(values["is_published"]))
        assignments = ", ".join(f"{column} = ?" for column in values)
        with get_db() as conn:
            conn.execute(
                f"UPDATE assignments SET {assignments}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now_iso(), assignment_id),
            )

    return get_assignment(assignment_id)


def delete_assignment(assignment_id: str) -> bool:
    """Delete assignment and its submissions."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM assignments WHERE id = ?", (assignment_id,))

    return cursor.rowcount > 0


def upsert_submission(
    assignment_id: str,
    student_id: str,
    submission_text: str | None,
    file_url: str | None,
) -> SubmissionRecord:
    """Create or replace a submission, resetting it to 'submitted'."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO assignment_submissions (
                id, assignment_id, student_id, submission_text, file_url,
                status, submitted_at
            ) VALUES (?, ?, ?, ?, ?, 'submitted', ?)
            ON CONFLICT(assignment_id, student_id) DO UPDATE SET
                submission_text = excluded.submission_text,
                file_url = excluded.file_url,
                status = 'submitted',
                submitted_at = excluded.submitted_at
            """,
            (new_id(), assignment_id, student_id, submission_text, file_url, utc_now_iso()),
        )

    logger.debug("submissions.saved", assignment_id=assignment_id, student_id=student_id)
    return get_submission(assignment_id, student_id)


def get_submission(assignment_id: str, student_id: str) -> SubmissionRecord | None:
    """Submission of a student for an assignment."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM assignment_submissions
            WHERE assignment_id = ? AND student_id = ?
            """,
            (assignment_id, student_id),
        ).fetchone()

    return _row_to_submission(row) if row else None


def get_submission_by_id(submission_id: str) -> SubmissionRecord | None:
    """Get submission by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assignment_submissions WHERE id = ?", (submission_id,)
        ).fetchone()

    return _row_to_submission(row) if row else None


def list_submissions(assignment_id: str) -> list[SubmissionRecord]:
    """All submissions of an assignment, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assignment_submissions WHERE assignment_id = ? ORDER BY submitted_at",
            (assignment_id,),
        ).fetchall()

    return [_row_to_submission(row) for row in rows]


def count_submissions(assignment_id: str) -> int:
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM assignment_submissions WHERE assignment_id = ?",
            (assignment_id,),
        ).fetchone()

    return row["n"]


def grade_submission(
    submission_id: str, score: float, feedback: str | None, graded_by: str
) -> SubmissionRecord | None:
    """Mark a submission graded."""
    with get_db() as conn:
        conn.execute(
            """
            UPDATE assignment_submissions
            SET status = 'graded', score = ?, feedback = ?, graded_at = ?, graded_by = ?
            WHERE id = ?
            """,
            (score, feedback, utc_now_iso(), graded_by, submission_id),
        )

    logger.debug("submissions.graded", submission_id=submission_id, score=score)
    return get_submission_by_id(submission_id)


def _row_to_assignment(row) -> AssignmentRecord:
    """Convert database row to AssignmentRecord."""
    return AssignmentRecord(
        id=row["id"],
        course_id=row["course_id"],
        module_id=row["module_id"],
        title=row["title"],
        description=row["description"],
        due_date=row["due_date"],
        max_points=row["max_points"],
        is_published=bool(row["is_published"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_submission(row) -> SubmissionRecord:
    """Convert database row to SubmissionRecord."""
    return SubmissionRecord(
        id=row["id"],
        assignment_id=row["assignment_id"],
        student_id=row["student_id"],
        submission_text=row["submission_text"],
        file_url=row["file_url"],
        status=row["status"],
        score=row["score"],
        feedback=row["feedback"],
        submitted_at=row["submitted_at"],
        graded_at=row["graded_at"],
        graded_by=row["graded_by"],
    )
