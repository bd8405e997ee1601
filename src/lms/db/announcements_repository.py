"""Repository functions for the announcements table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

ANNOUNCEMENT_FIELDS = ("title", "content", "priority", "target_audience", "expires_at")


@dataclass
class AnnouncementRecord:
    """Announcement record from database."""

    id: str
    author_id: str
    course_id: str | None
    title: str
    content: str
    priority: str
    target_audience: str
    is_published: bool
    published_at: str | None
    expires_at: str | None
    created_at: str
    updated_at: str


def insert_announcement(
    author_id: str,
    title: str,
    content: str,
    priority: str = "normal",
    target_audience: str = "all",
    course_id: str | None = None,
    is_published: bool = False,
    expires_at: str | None = None,
) -> AnnouncementRecord:
    """Insert an announcement; published_at is set when created published."""
    now = utc_now_iso()
    announcement_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO announcements (
                id, author_id, course_id, title, content, priority,
                target_audience, is_published, published_at, expires_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                announcement_id,
                author_id,
                course_id,
                title,
                content,
                priority,
                target_audience,
                int(is_published),
                now if is_published else None,
                expires_at,
                now,
                now,
            ),
        )

    logger.debug("announcements.inserted", announcement_id=announcement_id)
    return get_announcement(announcement_id)


def get_announcement(announcement_id: str) -> AnnouncementRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM announcements WHERE id = ?", (announcement_id,)
        ).fetchone()

    return _row_to_record(row) if row else None


def list_announcements(
    published_only: bool = False,
    course_id: str | None = None,
    author_id: str | None = None,
) -> list[AnnouncementRecord]:
    """Announcements, most recently published (or created) first."""
    query = "SELECT * FROM announcements WHERE 1 = 1"
    params: list[Any] = []
    if published_only:
        query += " AND is_published = 1"
    if course_id:
        query += " AND course_id = ?"
        params.append(course_id)
    if author_id:
        query += " AND author_id = ?"
        params.append(author_id)
    query += " ORDER BY COALESCE(published_at, created_at) DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_record(row) for row in rows]


def update_announcement(announcement_id: str, changes: dict[str, Any]) -> AnnouncementRecord | None:
    """Apply a partial update to an announcement."""
    unknown = set(changes) - set(ANNOUNCEMENT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown announcement fields: {sorted(unknown)}")

    if changes:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        with get_db() as conn:
            conn.execute(
                f"UPDATE announcements SET {assignments}, updated_at = ? WHERE id = ?",
                (*changes.values(), utc_now_iso(), announcement_id),
            )

    return get_announcement(announcement_id)


def mark_published(announcement_id: str) -> AnnouncementRecord | None:
    """Publish an announcement now."""
    now = utc_now_iso()
    with get_db() as conn:
        conn.execute(
            """
            UPDATE announcements SET is_published = 1, published_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (now, now, announcement_id),
        )

    return get_announcement(announcement_id)


def delete_announcement(announcement_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM announcements WHERE id = ?", (announcement_id,)
        )

    return cursor.rowcount > 0


def _row_to_record(row) -> AnnouncementRecord:
    """Convert database row to AnnouncementRecord."""
    return AnnouncementRecord(
        id=row["id"],
        author_id=row["author_id"],
        course_id=row["course_id"],
        title=row["title"],
        content=row["content"],
        priority=row["priority"],
        target_audience=row["target_audience"],
        is_published=bool(row["is_published"]),
        published_at=row["published_at"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
