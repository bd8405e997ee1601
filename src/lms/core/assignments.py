"""Assignments, submissions and grading."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.core.catalog import can_manage, get_course, require_course_manager
from lms.core.enrollment import require_enrollment
from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import assignments_repository, courses_repository, enrollments_repository
from lms.db.assignments_repository import AssignmentRecord, SubmissionRecord
from lms.db.profiles_repository import ProfileRecord

logger = structlog.get_logger(__name__)


@dataclass
class AssignmentView:
    """Assignment as listed for one viewer."""

    assignment: AssignmentRecord
    course_title: str
    submission_count: int | None = None
    my_submission: SubmissionRecord | None = None


def create_assignment(
    user: ProfileRecord,
    course_id: str,
    title: str,
    description: str = "",
    due_date: str | None = None,
    max_points: int = 100,
    is_published: bool = False,
    module_id: str | None = None,
) -> AssignmentRecord:
    require_course_manager(user, course_id)
    if not title or not title.strip():
        raise ValidationError("Assignment title is required")
    if max_points <= 0:
        raise ValidationError("max_points must be positive")
    if module_id is not None:
        module = courses_repository.get_module(module_id)
        if module is None or module.course_id != course_id:
            raise ValidationError("Module does not belong to this course")

    assignment = assignments_repository.insert_assignment(
        course_id=course_id,
        title=title.strip(),
        description=description,
        due_date=due_date,
        max_points=max_points,
        is_published=is_published,
        module_id=module_id,
    )
    logger.info("assignments.created", assignment_id=assignment.id, course_id=course_id)
    return assignment


def update_assignment(user: ProfileRecord, assignment_id: str, changes: dict[str, Any]) -> AssignmentRecord:
    assignment = get_assignment(assignment_id)
    require_course_manager(user, assignment.course_id)
    if "max_points" in changes and changes["max_points"] <= 0:
        raise ValidationError("max_points must be positive")
    if "title" in changes and not str(changes["title"] or "").strip():
        raise ValidationError("Assignment title is required")
    return assignments_repository.update_assignment(assignment_id, changes)


def delete_assignment(user: ProfileRecord, assignment_id: str) -> None:
    assignment = get_assignment(assignment_id)
    require_course_manager(user, assignment.course_id)
    assignments_repository.delete_assignment(assignment_id)
    logger.info("assignments.deleted", assignment_id=assignment_id)


def get_assignment(assignment_id: str) -> AssignmentRecord:
    assignment = assignments_repository.get_assignment(assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


def get_visible_assignment(user: ProfileRecord, assignment_id: str) -> AssignmentRecord:
    """Assignment for course managers, or a published one for enrolled students."""
    assignment = get_assignment(assignment_id)
    if can_manage(user, get_course(assignment.course_id)):
        return assignment
    if not assignment.is_published:
        raise NotFoundError("Assignment", assignment_id)
    require_enrollment(user.id, assignment.course_id)
    return assignment


def list_for_user(user: ProfileRecord, course_id: str | None = None) -> list[AssignmentView]:
    """Assignments visible to the user.

    Instructors see every assignment of their courses with submission counts
    (admins see all courses); students see published assignments of
    enrolled courses with their own submission.
    """
    if user.role in ("instructor", "admin"):
        if user.role == "admin":
            courses = courses_repository.list_courses()
        else:
            courses = courses_repository.list_courses(instructor_id=user.id)
        titles = {c.id: c.title for c in courses}
        course_ids = [course_id] if course_id in titles else ([] if course_id else list(titles))
        return [
            AssignmentView(
                assignment=a,
                course_title=titles[a.course_id],
                submission_count=assignments_repository.count_submissions(a.id),
            )
            for a in assignments_repository.list_assignments(course_ids)
        ]

    enrolled = [e.course_id for e in enrollments_repository.list_student_enrollments(user.id)]
    if course_id:
        enrolled = [cid for cid in enrolled if cid == course_id]
    titles = {}
    for cid in enrolled:
        course = courses_repository.get_course(cid)
        if course is not None:
            titles[cid] = course.title

    return [
        AssignmentView(
            assignment=a,
            course_title=titles.get(a.course_id, ""),
            my_submission=assignments_repository.get_submission(a.id, user.id),
        )
        for a in assignments_repository.list_assignments(list(titles), published_only=True)
    ]


def submit_assignment(
    student: ProfileRecord,
    assignment_id: str,
    submission_text: str | None = None,
    file_url: str | None = None,
) -> SubmissionRecord:
    """Create or replace the student's submission until it is graded."""
    assignment = get_assignment(assignment_id)
    if not assignment.is_published:
        raise NotFoundError("Assignment", assignment_id)
    require_enrollment(student.id, assignment.course_id)

    text = submission_text.strip() if submission_text else None
    if not text and not file_url:
        raise ValidationError("Submission text or file is required")

    existing = assignments_repository.get_submission(assignment_id, student.id)
    if existing is not None and existing.is_graded:
        raise ValidationError("Cannot resubmit a graded assignment")

    submission = assignments_repository.upsert_submission(assignment_id, student.id, text, file_url)
    logger.info(
        "assignments.submitted",
        assignment_id=assignment_id,
        student_id=student.id,
        resubmission=existing is not None,
    )
    return submission


def list_submissions(user: ProfileRecord, assignment_id: str) -> list[SubmissionRecord]:
    assignment = get_assignment(assignment_id)
    require_course_manager(user, assignment.course_id)
    return assignments_repository.list_submissions(assignment_id)


def get_my_submission(student: ProfileRecord, assignment_id: str) -> SubmissionRecord | None:
    get_assignment(assignment_id)
    return assignments_repository.get_submission(assignment_id, student.id)


def grade_submission(
    user: ProfileRecord,
    submission_id: str,
    score: float,
    feedback: str | None = None,
) -> SubmissionRecord:
    """Grade a submission; the score is clamped to [0, max_points]."""
    submission = assignments_repository.get_submission_by_id(submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)
    assignment = get_assignment(submission.assignment_id)
    try:
        require_course_manager(user, assignment.course_id)
    except PermissionDeniedError:
        raise PermissionDeniedError("Only the course instructor can grade submissions") from None

    clamped = min(max(float(score), 0.0), float(assignment.max_points))
    graded = assignments_repository.grade_submission(
        submission_id, clamped, feedback.strip() if feedback else None, user.id
    )
    logger.info("assignments.graded", submission_id=submission_id, score=clamped)

    notify_best_effort(
        [submission.student_id],
        "assignment_feedback",
        "Assignment Graded",
        f'Your submission for "{assignment.title}" was graded: '
        f"{clamped:g}/{assignment.max_points}.",
        link=f"/student/assignments/{assignment.id}",
        related_id=assignment.id,
        related_type="assignment",
    )
    return graded
