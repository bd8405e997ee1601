"""Repository functions for the notifications table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class NotificationRecord:
    """Notification record from database."""

    id: str
    user_id: str
    type: str
    title: str
    message: str
    link: str | None
    related_id: str | None
    related_type: str | None
    read: bool
    created_at: str


def insert_notifications(
    user_ids: list[str],
    type: str,
    title: str,
    message: str,
    link: str | None = None,
    related_id: str | None = None,
    related_type: str | None = None,
) -> int:
    """Insert one notification per user in a single transaction.

    Returns:
        Number of rows inserted
    """
    if not user_ids:
        return 0

    now = utc_now_iso()
    rows = [
        (new_id(), user_id, type, title, message, link, related_id, related_type, now)
        for user_id in user_ids
    ]
    with get_db() as conn:
        conn.executemany(
            """
            INSERT INTO notifications (
                id, user_id, type, title, message, link,
                related_id, related_type, read, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
            """,
            rows,
        )

    logger.debug("notifications.inserted", type=type, count=len(rows))
    return len(rows)


def get_notification(notification_id: str) -> NotificationRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM notifications WHERE id = ?", (notification_id,)
        ).fetchone()

    return _row_to_record(row) if row else None


def list_notifications(
    user_id: str,
    limit: int = 50,
    unread_only: bool = False,
) -> list[NotificationRecord]:
    """Notifications of a user, newest first."""
    query = "SELECT * FROM notifications WHERE user_id = ?"
    if unread_only:
        query += " AND read = 0"
    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"

    with get_db() as conn:
        rows = conn.execute(query, (user_id, limit)).fetchall()

    return [_row_to_record(row) for row in rows]


def count_unread(user_id: str) -> int:
    """Number of unread notifications of a user."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM notifications WHERE user_id = ? AND read = 0",
            (user_id,),
        ).fetchone()

    return row["n"]


def mark_read(notification_id: str, user_id: str) -> bool:
    """Mark one notification of the user as read."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )

    return cursor.rowcount > 0


def mark_all_read(user_id: str) -> int:
    """Mark every notification of the user as read.

    Returns:
        Number of notifications changed
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0",
            (user_id,),
        )

    return cursor.rowcount


def delete_notification(notification_id: str, user_id: str) -> bool:
    """Delete a notification owned by the user."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM notifications WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )

    return cursor.rowcount > 0


def _row_to_record(row) -> NotificationRecord:
    """Convert database row to NotificationRecord."""
    return NotificationRecord(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        title=row["title"],
        message=row["message"],
        link=row["link"],
        related_id=row["related_id"],
        related_type=row["related_type"],
        read=bool(row["read"]),
        created_at=row["created_at"],
    )
