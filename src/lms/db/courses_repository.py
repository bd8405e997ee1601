"""Repository functions for courses, modules and lessons tables.

Provides CRUD operations for the course catalog and curriculum.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import contains_pattern, get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

COURSE_FIELDS = (
    "title",
    "description",
    "category",
    "price",
    "monthly_price",
    "yearly_price",
    "subscription_enabled",
    "status",
    "thumbnail_url",
)


@dataclass
class CourseRecord:
    """Course record from database."""

    id: str
    instructor_id: str
    title: str
    description: str
    category: str | None
    price: float
    monthly_price: float | None
    yearly_price: float | None
    subscription_enabled: bool
    status: str
    thumbnail_url: str | None
    created_at: str
    updated_at: str

    @property
    def is_published(self) -> bool:
        return self.status == "published"


@dataclass
class ModuleRecord:
    """Course module record from database."""

    id: str
    course_id: str
    title: str
    description: str
    order_index: int
    created_at: str


@dataclass
class LessonRecord:
    """Lesson record from database."""

    id: str
    module_id: str
    title: str
    content: str
    video_url: str | None
    duration_minutes: int
    order_index: int
    created_at: str


# =============================================================================
# COURSES
# =============================================================================


def insert_course(
    instructor_id: str,
    title: str,
    description: str = "",
    category: str | None = None,
    price: float = 0.0,
    monthly_price: float | None = None,
    yearly_price: float | None = None,
    subscription_enabled: bool = False,
    status: str = "draft",
    thumbnail_url: str | None = None,
) -> CourseRecord:
    """Insert a new course.

    Args:
        instructor_id: Owning instructor profile id
        title: Course title
        description: Long description
        category: Free-form category label
        price: One-time price in major currency units
        monthly_price: Recurring monthly price (subscriptions)
        yearly_price: Recurring yearly price (subscriptions)
        subscription_enabled: Whether recurring prices may be used
        status: 'draft', 'published' or 'archived'
        thumbnail_url: Optional image URL

    Returns:
        The stored CourseRecord
    """
    now = utc_now_iso()
    course_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO courses (
                id, instructor_id, title, description, category, price,
                monthly_price, yearly_price, subscription_enabled, status,
                thumbnail_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                course_id,
                instructor_id,
                title,
                description,
                category,
                price,
                monthly_price,
                yearly_price,
                int(subscription_enabled),
                status,
                thumbnail_url,
                now,
                now,
            ),
        )

    logger.debug("courses.inserted", course_id=course_id, instructor_id=instructor_id)
    return get_course(course_id)


def get_course(course_id: str) -> CourseRecord | None:
    """Get course by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM courses WHERE id = ?", (course_id,)
        ).fetchone()

    return _row_to_course(row) if row else None


def list_courses(
    status: str | None = None,
    instructor_id: str | None = None,
    category: str | None = None,
    search: str | None = None,
) -> list[CourseRecord]:
    """List courses, newest first.

    Args:
        status: Only courses with this status
        instructor_id: Only courses owned by this instructor
        category: Only courses in this category
        search: Case-insensitive literal substring of title or description

    Returns:
        Matching CourseRecord list
    """
    query = "SELECT * FROM courses WHERE 1 = 1"
    params: list[Any] = []
    if status:
        query += " AND status = ?"
        params.append(status)
    if instructor_id:
        query += " AND instructor_id = ?"
        params.append(instructor_id)
    if category:
        query += " AND category = ?"
        params.append(category)
    if search:
        query += " AND (fold(title) LIKE ? ESCAPE '\\' OR fold(description) LIKE ? ESCAPE '\\')"
        pattern = contains_pattern(search)
        params.extend([pattern, pattern])
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_course(row) for row in rows]


def update_course(course_id: str, changes: dict[str, Any]) -> CourseRecord | None:
    """Apply a partial update to a course.

    Args:
        course_id: Course id
        changes: Column -> value; keys outside COURSE_FIELDS are rejected

    Returns:
        Updated CourseRecord, or None if the course does not exist

    Raises:
        ValueError: If changes contains an unknown column
    """
    unknown = set(changes) - set(COURSE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown course fields: {sorted(unknown)}")

    if changes:
        values = dict(changes)
        if "subscription_enabled" in values:
            values["subscription_enabled"] = int(bool(values["subscription_enabled"]))
        assignments = ", ".join(f"{column} = ?" for column in values)
        with get_db() as conn:
            conn.execute(
                f"UPDATE courses SET {assignments}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now_iso(), course_id),
            )
        logger.debug("courses.updated", course_id=course_id, fields=sorted(values))

    return get_course(course_id)


def delete_course(course_id: str) -> bool:
    """Delete course by id.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM courses WHERE id = ?", (course_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("courses.deleted", course_id=course_id)

    return deleted


# =============================================================================
# MODULES
# =============================================================================


def insert_module(
    course_id: str,
    title: str,
    description: str = "",
    order_index: int | None = None,
) -> ModuleRecord:
    """Insert a module; appended after the last one when order_index is None."""
    module_id = new_id()

    with get_db() as conn:
        if order_index is None:
            row = conn.execute(
                "SELECT COALESCE(MAX(order_index), -1) + 1 AS next FROM modules WHERE course_id = ?",
                (course_id,),
            ).fetchone()
            order_index = row["next"]
        conn.execute(
            """
            INSERT INTO modules (id, course_id, title, description, order_index, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (module_id, course_id, title, description, order_index, utc_now_iso()),
        )

    logger.debug("modules.inserted", module_id=module_id, course_id=course_id)
    return get_module(module_id)


def get_module(module_id: str) -> ModuleRecord | None:
    """Get module by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM modules WHERE id = ?", (module_id,)
        ).fetchone()

    return _row_to_module(row) if row else None


def list_modules(course_id: str) -> list[ModuleRecord]:
    """Modules of a course in curriculum order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM modules WHERE course_id = ? ORDER BY order_index, created_at",
            (course_id,),
        ).fetchall()

    return [_row_to_module(row) for row in rows]


def update_module(
    module_id: str,
    title: str | None = None,
    description: str | None = None,
    order_index: int | None = None,
) -> ModuleRecord | None:
    """Update the provided module fields."""
    changes = {
        key: value
        for key, value in (
            ("title", title),
            ("description", description),
            ("order_index", order_index),
        )
        if value is not None
    }
    if changes:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        with get_db() as conn:
            conn.execute(
                f"UPDATE modules SET {assignments} WHERE id = ?",
                (*changes.values(), module_id),
            )

    return get_module(module_id)


def delete_module(module_id: str) -> bool:
    """Delete module (and its lessons)."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM modules WHERE id = ?", (module_id,))

    return cursor.rowcount > 0


# =============================================================================
# LESSONS
# =============================================================================


def insert_lesson(
    module_id: str,
    title: str,
    content: str = "",
    video_url: str | None = None,
    duration_minutes: int = 0,
    order_index: int | None = None,
) -> LessonRecord:
    """Insert a lesson; appended after the last one when order_index is None."""
    lesson_id = new_id()

    with get_db() as conn:
        if order_index is None:
            row = conn.execute(
                "SELECT COALESCE(MAX(order_index), -1) + 1 AS next FROM lessons WHERE module_id = ?",
                (module_id,),
            ).fetchone()
            order_index = row["next"]
        conn.execute(
            """
            INSERT INTO lessons (
                id, module_id, title, content, video_url,
                duration_minutes, order_index, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                lesson_id,
                module_id,
                title,
                content,
                video_url,
                duration_minutes,
                order_index,
                utc_now_iso(),
            ),
        )

    logger.debug("lessons.inserted", lesson_id=lesson_id, module_id=module_id)
    return get_lesson(lesson_id)


def get_lesson(lesson_id: str) -> LessonRecord | None:
    """Get lesson by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM lessons WHERE id = ?", (lesson_id,)
        ).fetchone()

    return _row_to_lesson(row) if row else None


def get_lesson_course_id(lesson_id: str) -> str | None:
    """Course id owning a lesson (through its module)."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT m.course_id FROM lessons l
            JOIN modules m ON m.id = l.module_id
            WHERE l.id = ?
            """,
            (lesson_id,),
        ).fetchone()

    return row["course_id"] if row else None


def list_lessons(module_id: str) -> list[LessonRecord]:
    """Lessons of a module in curriculum order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM lessons WHERE module_id = ? ORDER BY order_index, created_at",
            (module_id,),
        ).fetchall()

    return [_row_to_lesson(row) for row in rows]


def list_course_lesson_ids(course_id: str) -> list[str]:
    """Ids of every lesson in every module of a course."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT l.id FROM lessons l
            JOIN modules m ON m.id = l.module_id
            WHERE m.course_id = ?
            ORDER BY m.order_index, l.order_index
            """,
            (course_id,),
        ).fetchall()

    return [row["id"] for row in rows]


def update_lesson(lesson_id: str, changes: dict[str, Any]) -> LessonRecord | None:
    """Apply a partial update to a lesson."""
    allowed = {"title", "content", "video_url", "duration_minutes", "order_index"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown lesson fields: {sorted(unknown)}")

    if changes:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        with get_db() as conn:
            conn.execute(
                f"UPDATE lessons SET {assignments} WHERE id = ?",
                (*changes.values(), lesson_id),
            )

    return get_lesson(lesson_id)


def delete_lesson(lesson_id: str) -> bool:
    """Delete lesson by id."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))

    return cursor.rowcount > 0


def _row_to_course(row) -> CourseRecord:
    """Convert database row to CourseRecord."""
    return CourseRecord(
        id=row["id"],
        instructor_id=row["instructor_id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        price=row["price"],
        monthly_price=row["monthly_price"],
        yearly_price=row["yearly_price"],
        subscription_enabled=bool(row["subscription_enabled"]),
        status=row["status"],
        thumbnail_url=row["thumbnail_url"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_module(row) -> ModuleRecord:
    return ModuleRecord(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        order_index=row["order_index"],
        created_at=row["created_at"],
    )


def _row_to_lesson(row) -> LessonRecord:
    return LessonRecord(
        id=row["id"],
        module_id=row["module_id"],
        title=row["title"],
        content=row["content"],
        video_url=row["video_url"],
        duration_minutes=row["duration_minutes"],
        order_index=row["order_index"],
        created_at=row["created_at"],
    )
