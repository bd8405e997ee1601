"""Course catalog: courses, modules and lessons.

Instructors manage their own courses; admins may manage any. Draft and
archived courses are only visible to their owner and to admins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import courses_repository, enrollments_repository
from lms.db.courses_repository import CourseRecord, LessonRecord, ModuleRecord
from lms.db.profiles_repository import ProfileRecord

logger = structlog.get_logger(__name__)

COURSE_STATUSES = ("draft", "published", "archived")


@dataclass
class CourseListing:
    """Course with aggregate figures for catalog pages."""

    course: CourseRecord
    enrollment_count: int
    average_rating: float | None
    rating_count: int


@dataclass
class ModuleWithLessons:
    module: ModuleRecord
    lessons: list[LessonRecord] = field(default_factory=list)


@dataclass
class CourseDetail:
    course: CourseRecord
    modules: list[ModuleWithLessons]
    enrollment_count: int
    average_rating: float | None
    rating_count: int

    @property
    def total_lessons(self) -> int:
        return sum(len(m.lessons) for m in self.modules)


# =============================================================================
# ACCESS
# =============================================================================


def get_course(course_id: str) -> CourseRecord:
    course = courses_repository.get_course(course_id)
    if course is None:
        raise NotFoundError("Course", course_id)
    return course


def can_manage(user: ProfileRecord, course: CourseRecord) -> bool:
    """Owner instructor or any admin."""
    if user.role == "admin":
        return True
    return user.role == "instructor" and course.instructor_id == user.id


def require_course_manager(user: ProfileRecord, course_id: str) -> CourseRecord:
    """Load a course the user may manage.

    Raises:
        NotFoundError: Unknown course
        PermissionDeniedError: Not the owner nor an admin
    """
    course = get_course(course_id)
    if not can_manage(user, course):
        raise PermissionDeniedError("Only the course instructor or an admin can do this")
    return course


def get_visible_course(course_id: str, viewer: ProfileRecord | None) -> CourseRecord:
    """Course if published, or if the viewer manages it; unpublished courses look missing."""
    course = get_course(course_id)
    if course.is_published:
        return course
    if viewer is not None and can_manage(viewer, course):
        return course
    raise NotFoundError("Course", course_id)


# =============================================================================
# COURSES
# =============================================================================


def create_course(instructor: ProfileRecord, **fields: Any) -> CourseRecord:
    """Create a draft course owned by the instructor."""
    if instructor.role not in ("instructor", "admin"):
        raise PermissionDeniedError("Only instructors can create courses")

    _validate_course_fields(fields, creating=True)
    fields.setdefault("status", "draft")

    course = courses_repository.insert_course(instructor_id=instructor.id, **fields)
    logger.info("courses.created", course_id=course.id, instructor_id=instructor.id)
    return course


def update_course(user: ProfileRecord, course_id: str, changes: dict[str, Any]) -> CourseRecord:
    require_course_manager(user, course_id)
    _validate_course_fields(changes, creating=False)

    course = courses_repository.update_course(course_id, changes)
    logger.info("courses.updated", course_id=course_id, fields=sorted(changes))
    return course


def delete_course(user: ProfileRecord, course_id: str) -> None:
    require_course_manager(user, course_id)
    courses_repository.delete_course(course_id)
    logger.info("courses.deleted", course_id=course_id, by=user.id)


def publish_course(user: ProfileRecord, course_id: str) -> CourseRecord:
    """Publish a course and tell enrolled students."""
    require_course_manager(user, course_id)

    course = courses_repository.update_course(course_id, {"status": "published"})
    logger.info("courses.published", course_id=course_id)

    notify_best_effort(
        enrollments_repository.list_enrolled_student_ids(course_id),
        "course_published",
        "Course Published",
        f'"{course.title}" is now published.',
        link=f"/courses/{course_id}",
        related_id=course_id,
        related_type="course",
    )
    return course


def list_public_courses(search: str | None = None, category: str | None = None) -> list[CourseListing]:
    """Published courses with enrollment counts and rating summaries."""
    courses = courses_repository.list_courses(status="published", category=category, search=search)
    return [_listing(course) for course in courses]


def list_instructor_courses(instructor: ProfileRecord) -> list[CourseListing]:
    """Every course of an instructor, whatever its status."""
    courses = courses_repository.list_courses(instructor_id=instructor.id)
    return [_listing(course) for course in courses]


def get_course_detail(course_id: str, viewer: ProfileRecord | None = None) -> CourseDetail:
    """Course with its curriculum."""
    course = get_visible_course(course_id, viewer)
    modules = [
        ModuleWithLessons(module=module, lessons=courses_repository.list_lessons(module.id))
        for module in courses_repository.list_modules(course_id)
    ]
    average, count = enrollments_repository.rating_stats(course_id)
    return CourseDetail(
        course=course,
        modules=modules,
        enrollment_count=enrollments_repository.count_enrollments(course_id),
        average_rating=_round_rating(average),
        rating_count=count,
    )


def enrollment_count(course_id: str) -> int:
    get_course(course_id)
    return enrollments_repository.count_enrollments(course_id)


# =============================================================================
# MODULES AND LESSONS
# =============================================================================


def create_module(
    user: ProfileRecord,
    course_id: str,
    title: str,
    description: str = "",
    order_index: int | None = None,
) -> ModuleRecord:
    require_course_manager(user, course_id)
    if not title or not title.strip():
        raise ValidationError("Module title is required")

    module = courses_repository.insert_module(course_id, title.strip(), description, order_index)
    logger.info("modules.created", module_id=module.id, course_id=course_id)
    return module


def update_module(user: ProfileRecord, module_id: str, **changes: Any) -> ModuleRecord:
    module = _get_module(module_id)
    require_course_manager(user, module.course_id)
    return courses_repository.update_module(module_id, **changes)


def delete_module(user: ProfileRecord, module_id: str) -> None:
    module = _get_module(module_id)
    require_course_manager(user, module.course_id)
    courses_repository.delete_module(module_id)


def create_lesson(
    user: ProfileRecord,
    module_id: str,
    title: str,
    content: str = "",
    video_url: str | None = None,
    duration_minutes: int = 0,
    order_index: int | None = None,
) -> LessonRecord:
    """Add a lesson; enrolled students hear about it when the course is live."""
    module = _get_module(module_id)
    course = require_course_manager(user, module.course_id)
    if not title or not title.strip():
        raise ValidationError("Lesson title is required")
    if duration_minutes < 0:
        raise ValidationError("duration_minutes cannot be negative")

    lesson = courses_repository.insert_lesson(
        module_id,
        title.strip(),
        content=content,
        video_url=video_url,
        duration_minutes=duration_minutes,
        order_index=order_index,
    )
    logger.info("lessons.created", lesson_id=lesson.id, course_id=course.id)

    if course.is_published:
        notify_best_effort(
            enrollments_repository.list_enrolled_student_ids(course.id),
            "lesson_added",
            "New Lesson Available",
            f'A new lesson "{lesson.title}" was added to "{course.title}".',
            link=f"/courses/{course.id}/lessons/{lesson.id}",
            related_id=lesson.id,
            related_type="lesson",
        )
    return lesson


def update_lesson(user: ProfileRecord, lesson_id: str, changes: dict[str, Any]) -> LessonRecord:
    lesson = _get_lesson(lesson_id)
    require_course_manager(user, courses_repository.get_lesson_course_id(lesson.id))
    return courses_repository.update_lesson(lesson_id, changes)


def delete_lesson(user: ProfileRecord, lesson_id: str) -> None:
    lesson = _get_lesson(lesson_id)
    require_course_manager(user, courses_repository.get_lesson_course_id(lesson.id))
    courses_repository.delete_lesson(lesson_id)


def _get_module(module_id: str) -> ModuleRecord:
    module = courses_repository.get_module(module_id)
    if module is None:
        raise NotFoundError("Module", module_id)
    return module


def _get_lesson(lesson_id: str) -> LessonRecord:
    lesson = courses_repository.get_lesson(lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson", lesson_id)
    return lesson


def _listing(course: CourseRecord) -> CourseListing:
    average, count = enrollments_repository.rating_stats(course.id)
    return CourseListing(
        course=course,
        enrollment_count=enrollments_repository.count_enrollments(course.id),
        average_rating=_round_rating(average),
        rating_count=count,
    )


def _round_rating(average: float | None) -> float | None:
    return round(average, 1) if average is not None else None


def _validate_course_fields(fields: dict[str, Any], creating: bool) -> None:
    if creating or "title" in fields:
        title = fields.get("title")
        if not title or not str(title).strip():
            raise ValidationError("Course title is required")
    for price_field in ("price", "monthly_price", "yearly_price"):
        value = fields.get(price_field)
        if value is not None and value < 0:
            raise ValidationError(f"{price_field} cannot be negative")
    status = fields.get("status")
    if status is not None and status not in COURSE_STATUSES:
        raise ValidationError(f"Unknown course status: {status}")
