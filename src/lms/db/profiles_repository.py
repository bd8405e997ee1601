"""Repository functions for profiles and user_settings tables."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class ProfileRecord:
    """Profile record from database."""

    id: str
    email: str
    full_name: str
    role: str
    status: str
    created_at: str
    updated_at: str

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"


def insert_profile(
    email: str,
    full_name: str,
    role: str,
    status: str = "approved",
    profile_id: str | None = None,
) -> ProfileRecord:
    """Insert a new profile.

    Args:
        email: Unique email address
        full_name: Display name
        role: 'student', 'instructor' or 'admin'
        status: 'pending', 'approved' or 'inactive'
        profile_id: Explicit id (identity provider subject); generated if None

    Returns:
        The stored ProfileRecord

    Raises:
        sqlite3.IntegrityError: If the email is already registered
    """
    now = utc_now_iso()
    record = ProfileRecord(
        id=profile_id or new_id(),
        email=email.strip().lower(),
        full_name=full_name,
        role=role,
        status=status,
        created_at=now,
        updated_at=now,
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO profiles (id, email, full_name, role, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.email,
                record.full_name,
                record.role,
                record.status,
                record.created_at,
                record.updated_at,
            ),
        )

    logger.debug("profiles.inserted", profile_id=record.id, role=role)
    return record


def get_profile(profile_id: str) -> ProfileRecord | None:
    """Get profile by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM profiles WHERE id = ?", (profile_id,)
        ).fetchone()

    return _row_to_record(row) if row else None


def get_profile_by_email(email: str) -> ProfileRecord | None:
    """Get profile by email (case-insensitive)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM profiles WHERE email = ?", (email.strip().lower(),)
        ).fetchone()

    return _row_to_record(row) if row else None


def list_profiles(
    role: str | None = None,
    status: str | None = None,
) -> list[ProfileRecord]:
    """List profiles, newest first, optionally filtered by role and status."""
    query = "SELECT * FROM profiles WHERE 1 = 1"
    params: list[Any] = []
    if role:
        query += " AND role = ?"
        params.append(role)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_record(row) for row in rows]


def list_profile_ids(role: str | None = None) -> list[str]:
    """Ids of all profiles, or of one role."""
    with get_db() as conn:
        if role:
            rows = conn.execute(
                "SELECT id FROM profiles WHERE role = ?", (role,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT id FROM profiles").fetchall()

    return [row["id"] for row in rows]


def update_profile_status(profile_id: str, status: str) -> bool:
    """Update profile status.

    Returns:
        True if a row was updated
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE profiles SET status = ?, updated_at = ? WHERE id = ?",
            (status, utc_now_iso(), profile_id),
        )

    logger.debug("profiles.status_updated", profile_id=profile_id, status=status)
    return cursor.rowcount > 0


def update_profile_name(profile_id: str, full_name: str) -> bool:
    """Update the display name of a profile."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE profiles SET full_name = ?, updated_at = ? WHERE id = ?",
            (full_name, utc_now_iso(), profile_id),
        )

    return cursor.rowcount > 0


def delete_profile(profile_id: str) -> bool:
    """Delete profile by id (cascades to owned rows).

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("profiles.deleted", profile_id=profile_id)

    return deleted


def get_user_settings(user_id: str) -> dict[str, Any] | None:
    """Stored settings overrides for a user, or None if never saved."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT settings FROM user_settings WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None
    return json.loads(row["settings"])


def get_settings_for_users(user_ids: list[str]) -> dict[str, dict[str, Any]]:
    """Stored settings keyed by user id; users without settings are absent."""
    if not user_ids:
        return {}

    placeholders = ",".join("?" for _ in user_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT user_id, settings FROM user_settings WHERE user_id IN ({placeholders})",
            user_ids,
        ).fetchall()

    return {row["user_id"]: json.loads(row["settings"]) for row in rows}


def save_user_settings(user_id: str, settings: dict[str, Any]) -> None:
    """Insert or replace the settings document of a user."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_settings (user_id, settings, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                settings = excluded.settings,
                updated_at = excluded.updated_at
            """,
            (user_id, json.dumps(settings), utc_now_iso()),
        )

    logger.debug("user_settings.saved", user_id=user_id)


def _row_to_record(row) -> ProfileRecord:
    """Convert database row to ProfileRecord."""
    return ProfileRecord(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        role=row["role"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
