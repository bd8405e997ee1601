"""Repository functions for enrollments, lesson progress, certificates and ratings."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class EnrollmentRecord:
    """Enrollment record from database."""

    id: str
    student_id: str
    course_id: str
    progress_percentage: int
    enrolled_at: str


@dataclass
class CertificateRecord:
    """Certificate record from database."""

    id: str
    student_id: str
    course_id: str
    certificate_number: str
    issued_at: str


@dataclass
class RatingRecord:
    """Course rating record from database."""

    student_id: str
    course_id: str
    rating: int
    review: str | None
    created_at: str
    updated_at: str


# =============================================================================
# ENROLLMENTS
# =============================================================================


def insert_enrollment(student_id: str, course_id: str) -> EnrollmentRecord:
    """Insert an enrollment.

    Raises:
        sqlite3.IntegrityError: If the student is already enrolled
    """
    record = EnrollmentRecord(
        id=new_id(),
        student_id=student_id,
        course_id=course_id,
        progress_percentage=0,
        enrolled_at=utc_now_iso(),
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO enrollments (id, student_id, course_id, progress_percentage, enrolled_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.student_id,
                record.course_id,
                record.progress_percentage,
                record.enrolled_at,
            ),
        )

    logger.debug("enrollments.inserted", student_id=student_id, course_id=course_id)
    return record


def ensure_enrollment(student_id: str, course_id: str) -> bool:
    """Enroll the student unless an enrollment already exists.

    Returns:
        True if a new enrollment was created
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO enrollments (id, student_id, course_id, progress_percentage, enrolled_at)
            VALUES (?, ?, ?, 0, ?)
            ON CONFLICT(student_id, course_id) DO NOTHING
            """,
            (new_id(), student_id, course_id, utc_now_iso()),
        )

    return cursor.rowcount > 0


def get_enrollment(student_id: str, course_id: str) -> EnrollmentRecord | None:
    """Get the enrollment of a student in a course."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM enrollments WHERE student_id = ? AND course_id = ?",
            (student_id, course_id),
        ).fetchone()

    return _row_to_enrollment(row) if row else None


def list_student_enrollments(student_id: str) -> list[EnrollmentRecord]:
    """Enrollments of a student, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM enrollments WHERE student_id = ? ORDER BY enrolled_at DESC",
            (student_id,),
        ).fetchall()

    return [_row_to_enrollment(row) for row in rows]


def list_course_enrollments(course_id: str) -> list[EnrollmentRecord]:
    """Enrollments of a course, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM enrollments WHERE course_id = ? ORDER BY enrolled_at",
            (course_id,),
        ).fetchall()

    return [_row_to_enrollment(row) for row in rows]


def list_enrollments(since: str | None = None) -> list[EnrollmentRecord]:
    """All enrollments, newest first, optionally only those at or after `since`."""
    query = "SELECT * FROM enrollments"
    params: list[str] = []
    if since:
        query += " WHERE enrolled_at >= ?"
        params.append(since)
    query += " ORDER BY enrolled_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_enrollment(row) for row in rows]


def list_enrolled_student_ids(course_id: str) -> list[str]:
    """Ids of students enrolled in a course."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT student_id FROM enrollments WHERE course_id = ?", (course_id,)
        ).fetchall()

    return [row["student_id"] for row in rows]


def count_enrollments(course_id: str) -> int:
    """Number of enrollments in a course."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM enrollments WHERE course_id = ?", (course_id,)
        ).fetchone()

    return row["n"]


def update_progress_percentage(student_id: str, course_id: str, progress: int) -> None:
    """Store the recomputed progress of an enrollment."""
    with get_db() as conn:
        conn.execute(
            """
            UPDATE enrollments SET progress_percentage = ?
            WHERE student_id = ? AND course_id = ?
            """,
            (progress, student_id, course_id),
        )


# =============================================================================
# LESSON PROGRESS
# =============================================================================


def upsert_lesson_progress(student_id: str, lesson_id: str, completed: bool) -> None:
    """Record completion state of a lesson; completed_at is cleared when undone."""
    now = utc_now_iso()
    completed_at = now if completed else None

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO lesson_progress (student_id, lesson_id, completed, completed_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(student_id, lesson_id) DO UPDATE SET
                completed = excluded.completed,
                completed_at = excluded.completed_at,
                updated_at = excluded.updated_at
            """,
            (student_id, lesson_id, int(completed), completed_at, now),
        )


def count_completed_lessons(student_id: str, lesson_ids: list[str]) -> int:
    """How many of the given lessons the student has completed."""
    if not lesson_ids:
        return 0

    placeholders = ",".join("?" for _ in lesson_ids)
    with get_db() as conn:
        row = conn.execute(
            f"""
            SELECT COUNT(*) AS n FROM lesson_progress
            WHERE student_id = ? AND completed = 1 AND lesson_id IN ({placeholders})
            """,
            (student_id, *lesson_ids),
        ).fetchone()

    return row["n"]


def list_completed_lesson_ids(student_id: str, lesson_ids: list[str]) -> set[str]:
    """Subset of lesson_ids the student has completed."""
    if not lesson_ids:
        return set()

    placeholders = ",".join("?" for _ in lesson_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT lesson_id FROM lesson_progress
            WHERE student_id = ? AND completed = 1 AND lesson_id IN ({placeholders})
            """,
            (student_id, *lesson_ids),
        ).fetchall()

    return {row["lesson_id"] for row in rows}


# =============================================================================
# CERTIFICATES
# =============================================================================


def insert_certificate(
    student_id: str, course_id: str, certificate_number: str
) -> CertificateRecord:
    """Insert a certificate.

    Raises:
        sqlite3.IntegrityError: If one already exists for (student, course)
    """
    record = CertificateRecord(
        id=new_id(),
        student_id=student_id,
        course_id=course_id,
        certificate_number=certificate_number,
        issued_at=utc_now_iso(),
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO certificates (id, student_id, course_id, certificate_number, issued_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.student_id,
                record.course_id,
                record.certificate_number,
                record.issued_at,
            ),
        )

    logger.info(
        "certificates.issued",
        student_id=student_id,
        course_id=course_id,
        number=certificate_number,
    )
    return record


def get_certificate(student_id: str, course_id: str) -> CertificateRecord | None:
    """Certificate of a student for a course."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM certificates WHERE student_id = ? AND course_id = ?",
            (student_id, course_id),
        ).fetchone()

    return _row_to_certificate(row) if row else None


def get_certificate_by_number(certificate_number: str) -> CertificateRecord | None:
    """Certificate by its public number."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM certificates WHERE certificate_number = ?",
            (certificate_number,),
        ).fetchone()

    return _row_to_certificate(row) if row else None


def list_student_certificates(student_id: str) -> list[CertificateRecord]:
    """Certificates of a student, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM certificates WHERE student_id = ? ORDER BY issued_at DESC",
            (student_id,),
        ).fetchall()

    return [_row_to_certificate(row) for row in rows]


# =============================================================================
# RATINGS
# =============================================================================


def upsert_rating(
    student_id: str, course_id: str, rating: int, review: str | None
) -> RatingRecord:
    """Insert or replace the rating of a student for a course."""
    now = utc_now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO course_ratings (student_id, course_id, rating, review, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(student_id, course_id) DO UPDATE SET
                rating = excluded.rating,
                review = excluded.review,
                updated_at = excluded.updated_at
            """,
            (student_id, course_id, rating, review, now, now),
        )

    return get_rating(student_id, course_id)


def get_rating(student_id: str, course_id: str) -> RatingRecord | None:
    """Rating of a student for a course."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM course_ratings WHERE student_id = ? AND course_id = ?",
            (student_id, course_id),
        ).fetchone()

    return _row_to_rating(row) if row else None


def rating_stats(course_id: str) -> tuple[float | None, int]:
    """Average rating and number of ratings of a course."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT AVG(rating) AS avg, COUNT(*) AS n FROM course_ratings WHERE course_id = ?",
            (course_id,),
        ).fetchone()

    return row["avg"], row["n"]


def _row_to_enrollment(row) -> EnrollmentRecord:
    """Convert database row to EnrollmentRecord."""
    return EnrollmentRecord(
        id=row["id"],
        student_id=row["student_id"],
        course_id=row["course_id"],
        progress_percentage=row["progress_percentage"],
        enrolled_at=row["enrolled_at"],
    )


def _row_to_certificate(row) -> CertificateRecord:
    return CertificateRecord(
        id=row["id"],
        student_id=row["student_id"],
        course_id=row["course_id"],
        certificate_number=row["certificate_number"],
        issued_at=row["issued_at"],
    )


def _row_to_rating(row) -> RatingRecord:
    return RatingRecord(
        student_id=row["student_id"],
        course_id=row["course_id"],
        rating=row["rating"],
        review=row["review"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
