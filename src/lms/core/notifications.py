"""In-app notifications with per-user preferences.

Every notification type maps to the settings key that can silence it;
``email_notifications = False`` silences everything. Users who never saved
settings receive all notifications.
"""

from __future__ import annotations

from typing import Any

import structlog

from lms.core.errors import NotFoundError, ValidationError
from lms.db import notifications_repository, profiles_repository
from lms.db.notifications_repository import NotificationRecord

logger = structlog.get_logger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    # Notifications
    "email_notifications": True,
    "push_notifications": True,
    "course_updates": True,
    "new_messages": True,
    "marketing_emails": False,
    "weekly_digest": True,
    "achievement_alerts": True,
    "reminder_emails": True,
    "meeting_reminders": True,
    "forum_notifications": True,
    # Privacy
    "profile_visibility": "public",
    "show_email": False,
    "show_phone": False,
    "show_location": True,
    "allow_messages": True,
    "show_progress": True,
    "show_certificates": True,
    "data_sharing": False,
    # Preferences
    "language": "en",
    "timezone": "UTC",
    "theme": "system",
}

PREFERENCE_BY_TYPE = {
    "course_published": "course_updates",
    "lesson_added": "course_updates",
    "course_added": "course_updates",
    "message_received": "new_messages",
    "note_reply": "new_messages",
    "meeting_scheduled": "meeting_reminders",
    "meeting_recording": "meeting_reminders",
    "forum_reply": "forum_notifications",
    "announcement": "forum_notifications",
    "assignment_feedback": "achievement_alerts",
    "quiz_graded": "achievement_alerts",
    "subscription_expiring": "reminder_emails",
    "subscription_renewal": "reminder_emails",
}

PROFILE_VISIBILITY = ("public", "students", "private")
THEMES = ("light", "dark", "system")


def should_notify(settings: dict[str, Any] | None, notification_type: str) -> bool:
    """Whether a user with these stored settings wants this notification type."""
    if settings is None:
        return True

    merged = {**DEFAULT_SETTINGS, **settings}
    key = PREFERENCE_BY_TYPE.get(notification_type)
    if key is not None and not merged.get(key, True):
        return False

    return bool(merged.get("email_notifications", True))


def notify(
    user_ids: list[str],
    type: str,
    title: str,
    message: str,
    link: str | None = None,
    related_id: str | None = None,
    related_type: str | None = None,
) -> int:
    """Create a notification for each user whose preferences allow it.

    Returns:
        Number of notifications created
    """
    unique_ids = list(dict.fromkeys(uid for uid in user_ids if uid))
    if not unique_ids:
        return 0

    stored = profiles_repository.get_settings_for_users(unique_ids)
    recipients = [uid for uid in unique_ids if should_notify(stored.get(uid), type)]

    created = notifications_repository.insert_notifications(
        recipients,
        type=type,
        title=title,
        message=message,
        link=link,
        related_id=related_id,
        related_type=related_type,
    )
    logger.info(
        "notifications.sent",
        type=type,
        requested=len(unique_ids),
        created=created,
    )
    return created


def notify_best_effort(user_ids: list[str], type: str, title: str, message: str, **kwargs) -> int:
    """notify() for side effects of a completed write; failures are only logged."""
    try:
        return notify(user_ids, type, title, message, **kwargs)
    except Exception:
        logger.exception("notifications.failed", type=type, recipients=len(user_ids))
        return 0


def list_for_user(user_id: str, limit: int = 50, unread_only: bool = False) -> list[NotificationRecord]:
    if limit < 1:
        raise ValidationError("limit must be positive")
    return notifications_repository.list_notifications(user_id, limit=limit, unread_only=unread_only)


def unread_count(user_id: str) -> int:
    return notifications_repository.count_unread(user_id)


def mark_read(user_id: str, notification_id: str) -> None:
    if not notifications_repository.mark_read(notification_id, user_id):
        raise NotFoundError("Notification", notification_id)


def mark_all_read(user_id: str) -> int:
    return notifications_repository.mark_all_read(user_id)


def delete(user_id: str, notification_id: str) -> None:
    if not notifications_repository.delete_notification(notification_id, user_id):
        raise NotFoundError("Notification", notification_id)


# =============================================================================
# SETTINGS
# =============================================================================


def get_settings(user_id: str) -> dict[str, Any]:
    """Stored settings merged over the defaults."""
    stored = profiles_repository.get_user_settings(user_id) or {}
    return {**DEFAULT_SETTINGS, **stored}


def update_settings(user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    """Validate and persist settings changes.

    Raises:
        ValidationError: Unknown key or value of the wrong type
    """
    unknown = sorted(set(changes) - set(DEFAULT_SETTINGS))
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(unknown)}")

    for key, value in changes.items():
        default = DEFAULT_SETTINGS[key]
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ValidationError(f"Setting '{key}' must be a boolean")
        elif not isinstance(value, str) or not value:
            raise ValidationError(f"Setting '{key}' must be a non-empty string")

    if "profile_visibility" in changes and changes["profile_visibility"] not in PROFILE_VISIBILITY:
        raise ValidationError(f"profile_visibility must be one of {', '.join(PROFILE_VISIBILITY)}")
    if "theme" in changes and changes["theme"] not in THEMES:
        raise ValidationError(f"theme must be one of {', '.join(THEMES)}")

    stored = profiles_repository.get_user_settings(user_id) or {}
    stored.update(changes)
    profiles_repository.save_user_settings(user_id, stored)

    logger.info("settings.updated", user_id=user_id, keys=sorted(changes))
    return {**DEFAULT_SETTINGS, **stored}
