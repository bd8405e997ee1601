"""Repository functions for the website_settings table.

Values are stored as text; ``setting_type`` says how to read them back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class SettingRecord:
    """Website setting row from database."""

    setting_key: str
    setting_value: str
    setting_type: str
    category: str
    is_public: bool
    updated_at: str | None


def list_settings(category: str | None = None, public_only: bool = False) -> list[SettingRecord]:
    """Settings ordered by category, then key."""
    query = "SELECT * FROM website_settings WHERE 1 = 1"
    params: list[Any] = []
    if category:
        query += " AND category = ?"
        params.append(category)
    if public_only:
        query += " AND is_public = 1"
    query += " ORDER BY category, setting_key"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_setting(row) for row in rows]


def get_setting(setting_key: str) -> SettingRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM website_settings WHERE setting_key = ?", (setting_key,)
        ).fetchone()

    return _row_to_setting(row) if row else None


def update_values(values: dict[str, str]) -> None:
    """Store new text values for existing keys in one transaction."""
    now = utc_now_iso()
    with get_db() as conn:
        conn.executemany(
            "UPDATE website_settings SET setting_value = ?, updated_at = ? WHERE setting_key = ?",
            [(value, now, key) for key, value in values.items()],
        )

    logger.debug("website_settings.updated", keys=sorted(values))


def _row_to_setting(row) -> SettingRecord:
    return SettingRecord(
        setting_key=row["setting_key"],
        setting_value=row["setting_value"],
        setting_type=row["setting_type"],
        category=row["category"],
        is_public=bool(row["is_public"]),
        updated_at=row["updated_at"],
    )
