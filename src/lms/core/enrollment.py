"""Enrollment, lesson progress, certificates and course ratings."""

from __future__ import annotations

import secrets
import sqlite3
import string
import time
from dataclasses import dataclass

import structlog

from lms.core.catalog import get_course, require_course_manager
from lms.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import courses_repository, enrollments_repository, profiles_repository
from lms.db.courses_repository import CourseRecord
from lms.db.enrollments_repository import (
    CertificateRecord,
    EnrollmentRecord,
    RatingRecord,
)
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import round_half_up

logger = structlog.get_logger(__name__)

CERTIFICATE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class ProgressResult:
    """Outcome of a lesson progress update."""

    progress_percentage: int
    certificate_generated: bool
    total_lessons: int
    completed_lessons: int
    modules: int


@dataclass
class StudentProgress:
    """One student's standing in one course, for instructor dashboards."""

    student_id: str
    student_name: str
    student_email: str
    course_id: str
    course_title: str
    progress_percentage: int
    enrolled_at: str


def generate_certificate_number() -> str:
    """CERT-<epoch-ms>-<9 uppercase alphanumerics>."""
    suffix = "".join(secrets.choice(CERTIFICATE_ALPHABET) for _ in range(9))
    return f"CERT-{int(time.time() * 1000)}-{suffix}"


# =============================================================================
# ENROLLMENT
# =============================================================================


def enroll_student(student: ProfileRecord, course_id: str) -> EnrollmentRecord:
    """Enroll a student in a published course (free path, no payment).

    Raises:
        NotFoundError: Course missing or not published
        ConflictError: Already enrolled
    """
    course = get_course(course_id)
    if not course.is_published:
        raise NotFoundError("Course", course_id)

    try:
        enrollment = enrollments_repository.insert_enrollment(student.id, course_id)
    except sqlite3.IntegrityError:
        raise ConflictError("Already enrolled") from None

    logger.info("enrollments.created", student_id=student.id, course_id=course_id)
    notify_enrolled(student.id, course)
    return enrollment


def notify_enrolled(student_id: str, course: CourseRecord) -> None:
    notify_best_effort(
        [student_id],
        "course_added",
        "Enrollment Successful",
        f'You are now enrolled in "{course.title}".',
        link=f"/student/courses/{course.id}",
        related_id=course.id,
        related_type="course",
    )


def enrollment_status(student: ProfileRecord, course_id: str) -> dict:
    """Whether the student is enrolled, and how far along."""
    get_course(course_id)
    enrollment = enrollments_repository.get_enrollment(student.id, course_id)
    return {
        "enrolled": enrollment is not None,
        "progress_percentage": enrollment.progress_percentage if enrollment else 0,
    }


def require_enrollment(student_id: str, course_id: str) -> EnrollmentRecord:
    enrollment = enrollments_repository.get_enrollment(student_id, course_id)
    if enrollment is None:
        raise PermissionDeniedError("Not enrolled in this course")
    return enrollment


def list_my_enrollments(student: ProfileRecord) -> list[tuple[EnrollmentRecord, CourseRecord]]:
    result = []
    for enrollment in enrollments_repository.list_student_enrollments(student.id):
        course = courses_repository.get_course(enrollment.course_id)
        if course is not None:
            result.append((enrollment, course))
    return result


# =============================================================================
# PROGRESS
# =============================================================================


def update_lesson_progress(
    student: ProfileRecord,
    course_id: str,
    lesson_id: str,
    completed: bool = True,
) -> ProgressResult:
    """Record a lesson as (un)completed and recompute course progress.

    Progress counts every lesson of every module of the course. Reaching 100
    issues the certificate once.
    """
    course = get_course(course_id)
    require_enrollment(student.id, course_id)

    if courses_repository.get_lesson_course_id(lesson_id) != course_id:
        raise NotFoundError("Lesson", lesson_id)

    enrollments_repository.upsert_lesson_progress(student.id, lesson_id, completed)

    modules = courses_repository.list_modules(course_id)
    lesson_ids = courses_repository.list_course_lesson_ids(course_id)
    completed_count = enrollments_repository.count_completed_lessons(student.id, lesson_ids)
    if not modules or not lesson_ids:
        progress = 0
    else:
        progress = round_half_up(completed_count / len(lesson_ids) * 100)

    enrollments_repository.update_progress_percentage(student.id, course_id, progress)
    logger.info(
        "progress.updated",
        student_id=student.id,
        course_id=course_id,
        progress=progress,
        completed=completed_count,
        total=len(lesson_ids),
    )

    certificate_generated = False
    if progress == 100 and enrollments_repository.get_certificate(student.id, course_id) is None:
        certificate = _issue(student.id, course)
        certificate_generated = certificate is not None

    return ProgressResult(
        progress_percentage=progress,
        certificate_generated=certificate_generated,
        total_lessons=len(lesson_ids),
        completed_lessons=completed_count,
        modules=len(modules),
    )


def completed_lessons(student: ProfileRecord, course_id: str) -> list[str]:
    """Ids of lessons the student completed in a course."""
    require_enrollment(student.id, course_id)
    lesson_ids = courses_repository.list_course_lesson_ids(course_id)
    done = enrollments_repository.list_completed_lesson_ids(student.id, lesson_ids)
    return [lesson_id for lesson_id in lesson_ids if lesson_id in done]


# =============================================================================
# CERTIFICATES
# =============================================================================


def issue_certificate(student: ProfileRecord, course_id: str) -> CertificateRecord:
    """Certificate for a completed course; returns the existing one if any."""
    course = get_course(course_id)
    enrollment = require_enrollment(student.id, course_id)

    existing = enrollments_repository.get_certificate(student.id, course_id)
    if existing is not None:
        return existing
    if enrollment.progress_percentage < 100:
        raise ValidationError("Course not completed")

    certificate = _issue(student.id, course)
    if certificate is None:
        # Lost a race with a concurrent issue
        certificate = enrollments_repository.get_certificate(student.id, course_id)
    return certificate


def verify_certificate(certificate_number: str) -> dict:
    """Public lookup of a certificate by number."""
    certificate = enrollments_repository.get_certificate_by_number(certificate_number)
    if certificate is None:
        raise NotFoundError("Certificate", certificate_number)

    student = profiles_repository.get_profile(certificate.student_id)
    course = courses_repository.get_course(certificate.course_id)
    return {
        "certificate_number": certificate.certificate_number,
        "issued_at": certificate.issued_at,
        "student_name": student.full_name if student else None,
        "course_title": course.title if course else None,
        "course_id": certificate.course_id,
    }


def list_my_certificates(student: ProfileRecord) -> list[CertificateRecord]:
    return enrollments_repository.list_student_certificates(student.id)


def _issue(student_id: str, course: CourseRecord) -> CertificateRecord | None:
    try:
        certificate = enrollments_repository.insert_certificate(
            student_id, course.id, generate_certificate_number()
        )
    except sqlite3.IntegrityError:
        return None

    notify_best_effort(
        [student_id],
        "course_completed",
        "Course Completed",
        f'Congratulations! You completed "{course.title}".',
        link=f"/student/courses/{course.id}",
        related_id=course.id,
        related_type="course",
    )
    notify_best_effort(
        [student_id],
        "certificate_earned",
        "Certificate Earned",
        f'Your certificate for "{course.title}" is ready: {certificate.certificate_number}.',
        link=f"/certificates/{certificate.certificate_number}",
        related_id=certificate.id,
        related_type="certificate",
    )
    return certificate


# =============================================================================
# RATINGS
# =============================================================================


def rate_course(
    student: ProfileRecord,
    course_id: str,
    rating: int,
    review: str | None = None,
) -> RatingRecord:
    """Rate a completed course (one rating per student, updatable)."""
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")

    get_course(course_id)
    enrollment = enrollments_repository.get_enrollment(student.id, course_id)
    if enrollment is None:
        raise PermissionDeniedError("You must be enrolled to rate this course")
    if enrollment.progress_percentage < 100:
        raise PermissionDeniedError("You must complete the course before rating it")

    cleaned = review.strip() if review else None
    record = enrollments_repository.upsert_rating(student.id, course_id, rating, cleaned or None)
    logger.info("ratings.saved", student_id=student.id, course_id=course_id, rating=rating)
    return record


def get_my_rating(student: ProfileRecord, course_id: str) -> RatingRecord | None:
    return enrollments_repository.get_rating(student.id, course_id)


def rating_summary(course_id: str) -> dict:
    get_course(course_id)
    average, count = enrollments_repository.rating_stats(course_id)
    return {
        "average_rating": round(average, 1) if average is not None else None,
        "rating_count": count,
    }


# =============================================================================
# INSTRUCTOR VIEW
# =============================================================================


def instructor_student_progress(instructor: ProfileRecord) -> list[StudentProgress]:
    """Students across the instructor's courses (all courses for admins)."""
    if instructor.role == "admin":
        courses = courses_repository.list_courses()
    else:
        courses = courses_repository.list_courses(instructor_id=instructor.id)

    rows: list[StudentProgress] = []
    for course in courses:
        rows.extend(_progress_rows(course))
    return rows


def course_students(user: ProfileRecord, course_id: str) -> list[StudentProgress]:
    """Enrolled students of one course, for its manager."""
    course = require_course_manager(user, course_id)
    return _progress_rows(course)


def _progress_rows(course: CourseRecord) -> list[StudentProgress]:
    rows = []
    for enrollment in enrollments_repository.list_course_enrollments(course.id):
        profile = profiles_repository.get_profile(enrollment.student_id)
        if profile is None:
            continue
        rows.append(
            StudentProgress(
                student_id=profile.id,
                student_name=profile.full_name,
                student_email=profile.email,
                course_id=course.id,
                course_title=course.title,
                progress_percentage=enrollment.progress_percentage,
                enrolled_at=enrollment.enrolled_at,
            )
        )
    return rows
