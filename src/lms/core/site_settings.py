"""Website-wide settings managed by admins.

Covers branding and contact details, maintenance mode and the switches that
turn whole platform features (books, meetings, ...) on and off.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from lms.core.errors import PermissionDeniedError, ValidationError
from lms.db import website_settings_repository
from lms.db.profiles_repository import ProfileRecord
from lms.db.website_settings_repository import SettingRecord

logger = structlog.get_logger(__name__)

FEATURES = ("courses", "books", "meetings", "subscriptions", "certificates", "ratings")
DEFAULT_MAINTENANCE_MESSAGE = "We are currently performing maintenance. Please check back soon."


def parse_value(setting: SettingRecord) -> Any:
    """Typed value of a stored setting."""
    raw = setting.setting_value
    if setting.setting_type == "boolean":
        return raw == "true"
    if setting.setting_type == "number":
        number = float(raw)
        return int(number) if number.is_integer() else number
    if setting.setting_type == "json":
        try:
            return json.loads(raw or "{}")
        except json.JSONDecodeError:
            logger.warning("site_settings.bad_json", key=setting.setting_key)
            return {}
    return raw


def serialize_value(setting_type: str, key: str, value: Any) -> str:
    """Text form of a value for storage.

    Raises:
        ValidationError: Value does not fit the setting's type
    """
    if setting_type == "boolean":
        if not isinstance(value, bool):
            raise ValidationError(f"Setting '{key}' must be a boolean")
        return "true" if value else "false"
    if setting_type == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Setting '{key}' must be a number")
        return str(value)
    if setting_type == "json":
        return json.dumps(value)
    if not isinstance(value, str):
        raise ValidationError(f"Setting '{key}' must be a string")
    return value


def get_settings(
    viewer: ProfileRecord | None,
    category: str | None = None,
) -> tuple[dict[str, Any], list[SettingRecord]]:
    """Settings as a key/value mapping plus the raw rows.

    Only admins see settings that are not public.
    """
    is_admin = viewer is not None and viewer.role == "admin"
    rows = website_settings_repository.list_settings(category=category, public_only=not is_admin)
    return {row.setting_key: parse_value(row) for row in rows}, rows


def update_settings(user: ProfileRecord, changes: dict[str, Any]) -> dict[str, Any]:
    """Change existing settings; either all values are stored or none.

    Raises:
        PermissionDeniedError: Not an admin
        ValidationError: Empty payload, unknown key or wrongly typed value
    """
    if user.role != "admin":
        raise PermissionDeniedError("Admin only")
    if not changes:
        raise ValidationError("Invalid settings format")

    stored = {row.setting_key: row for row in website_settings_repository.list_settings()}
    unknown = sorted(set(changes) - set(stored))
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(unknown)}")

    values = {key: serialize_value(stored[key].setting_type, key, value) for key, value in changes.items()}
    website_settings_repository.update_values(values)
    logger.info("site_settings.updated", user_id=user.id, keys=sorted(values))

    settings, _ = get_settings(user)
    return settings


def _value(key: str, default: Any) -> Any:
    row = website_settings_repository.get_setting(key)
    return parse_value(row) if row is not None else default


def is_feature_enabled(feature: str) -> bool:
    """Features without a switch are on."""
    return bool(_value(f"enable_{feature}", True))


def is_maintenance_mode() -> bool:
    return bool(_value("maintenance_mode", False))


def maintenance_message() -> str:
    return _value("maintenance_message", "") or DEFAULT_MAINTENANCE_MESSAGE
