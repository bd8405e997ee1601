"""Platform and course announcements.

Course announcements are written by the course instructor (or an admin);
global announcements by admins only. Publishing notifies the audience.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from lms.core.catalog import can_manage, get_course
from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import announcements_repository, enrollments_repository, profiles_repository
from lms.db.announcements_repository import AnnouncementRecord
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import parse_iso, utc_now

logger = structlog.get_logger(__name__)

PRIORITIES = ("low", "normal", "high", "urgent")
AUDIENCES = ("all", "students", "instructors", "admins", "course_students")
AUDIENCE_ROLES = {"students": "student", "instructors": "instructor", "admins": "admin"}
MESSAGE_PREVIEW_CHARS = 200


def create_announcement(
    author: ProfileRecord,
    title: str,
    content: str,
    priority: str = "normal",
    target_audience: str | None = None,
    course_id: str | None = None,
    is_published: bool = False,
    expires_at: str | None = None,
) -> AnnouncementRecord:
    """Create an announcement, notifying the audience when published now."""
    if course_id:
        course = get_course(course_id)
        if not can_manage(author, course):
            raise PermissionDeniedError("Only the course instructor or an admin can announce to this course")
    elif author.role != "admin":
        raise PermissionDeniedError("Only admins can create global announcements")

    audience = target_audience or ("course_students" if course_id else "all")
    _validate(title, content, priority, audience, course_id, expires_at)

    announcement = announcements_repository.insert_announcement(
        author_id=author.id,
        title=title.strip(),
        content=content.strip(),
        priority=priority,
        target_audience=audience,
        course_id=course_id,
        is_published=is_published,
        expires_at=expires_at,
    )
    logger.info(
        "announcements.created",
        announcement_id=announcement.id,
        course_id=course_id,
        published=is_published,
    )

    if announcement.is_published:
        _notify_audience(announcement)
    return announcement


def publish_announcement(user: ProfileRecord, announcement_id: str) -> AnnouncementRecord:
    announcement = _get_managed(user, announcement_id)
    if announcement.is_published:
        return announcement

    announcement = announcements_repository.mark_published(announcement_id)
    logger.info("announcements.published", announcement_id=announcement_id)
    _notify_audience(announcement)
    return announcement


def update_announcement(user: ProfileRecord, announcement_id: str, changes: dict[str, Any]) -> AnnouncementRecord:
    announcement = _get_managed(user, announcement_id)
    merged = {
        "title": announcement.title,
        "content": announcement.content,
        "priority": announcement.priority,
        "target_audience": announcement.target_audience,
        "expires_at": announcement.expires_at,
        **changes,
    }
    _validate(
        merged["title"],
        merged["content"],
        merged["priority"],
        merged["target_audience"],
        announcement.course_id,
        merged["expires_at"],
    )
    return announcements_repository.update_announcement(announcement_id, changes)


def delete_announcement(user: ProfileRecord, announcement_id: str) -> None:
    _get_managed(user, announcement_id)
    announcements_repository.delete_announcement(announcement_id)
    logger.info("announcements.deleted", announcement_id=announcement_id)


def list_visible(viewer: ProfileRecord, course_id: str | None = None, now: datetime | None = None) -> list[AnnouncementRecord]:
    """Published, unexpired announcements addressed to the viewer."""
    now = now or utc_now()
    announcements = announcements_repository.list_announcements(published_only=True, course_id=course_id)
    return [a for a in announcements if not _is_expired(a, now) and _is_addressed_to(a, viewer)]


def list_authored(user: ProfileRecord) -> list[AnnouncementRecord]:
    """Announcements an author manages (every announcement for admins)."""
    if user.role == "admin":
        return announcements_repository.list_announcements()
    return announcements_repository.list_announcements(author_id=user.id)


def get_announcement(viewer: ProfileRecord, announcement_id: str) -> AnnouncementRecord:
    announcement = announcements_repository.get_announcement(announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement", announcement_id)
    if _can_manage(viewer, announcement):
        return announcement
    if announcement.is_published and not _is_expired(announcement, utc_now()) and _is_addressed_to(announcement, viewer):
        return announcement
    raise NotFoundError("Announcement", announcement_id)


def audience_user_ids(announcement: AnnouncementRecord) -> list[str]:
    """Recipients of an announcement's notifications."""
    audience = announcement.target_audience
    if audience == "all":
        return profiles_repository.list_profile_ids()
    if audience in AUDIENCE_ROLES:
        return profiles_repository.list_profile_ids(role=AUDIENCE_ROLES[audience])
    if audience == "course_students" and announcement.course_id:
        return enrollments_repository.list_enrolled_student_ids(announcement.course_id)
    return []


def preview(content: str) -> str:
    if len(content) > MESSAGE_PREVIEW_CHARS:
        return content[:MESSAGE_PREVIEW_CHARS] + "..."
    return content


def _notify_audience(announcement: AnnouncementRecord) -> None:
    recipients = [uid for uid in audience_user_ids(announcement) if uid != announcement.author_id]
    notify_best_effort(
        recipients,
        "announcement",
        f"Announcement: {announcement.title}",
        preview(announcement.content),
        link=f"/student/courses/{announcement.course_id}" if announcement.course_id else "/announcements",
        related_id=announcement.id,
        related_type="announcement",
    )


def _is_expired(announcement: AnnouncementRecord, now: datetime) -> bool:
    return announcement.expires_at is not None and parse_iso(announcement.expires_at) <= now


def _is_addressed_to(announcement: AnnouncementRecord, viewer: ProfileRecord) -> bool:
    audience = announcement.target_audience
    if audience == "all":
        return True
    if audience in AUDIENCE_ROLES:
        return viewer.role == AUDIENCE_ROLES[audience]
    if audience == "course_students" and announcement.course_id:
        if viewer.role == "admin":
            return True
        if enrollments_repository.get_enrollment(viewer.id, announcement.course_id) is not None:
            return True
        course = get_course(announcement.course_id)
        return course.instructor_id == viewer.id
    return False


def _can_manage(user: ProfileRecord, announcement: AnnouncementRecord) -> bool:
    return user.role == "admin" or announcement.author_id == user.id


def _get_managed(user: ProfileRecord, announcement_id: str) -> AnnouncementRecord:
    announcement = announcements_repository.get_announcement(announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement", announcement_id)
    if not _can_manage(user, announcement):
        raise PermissionDeniedError("Only the author or an admin can change this announcement")
    return announcement


def _validate(
    title: str,
    content: str,
    priority: str,
    audience: str,
    course_id: str | None,
    expires_at: str | None,
) -> None:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if not content or not content.strip():
        raise ValidationError("Content is required")
    if priority not in PRIORITIES:
        raise ValidationError(f"priority must be one of {', '.join(PRIORITIES)}")
    if audience not in AUDIENCES:
        raise ValidationError(f"target_audience must be one of {', '.join(AUDIENCES)}")
    if audience == "course_students" and not course_id:
        raise ValidationError("course_students announcements need a course")
    if expires_at is not None:
        try:
            parse_iso(expires_at)
        except ValueError:
            raise ValidationError(f"Invalid expires_at: {expires_at!r}") from None
