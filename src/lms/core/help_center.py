"""Help center: categories, articles and reader feedback.

Two sections share the tables: 'website' content is maintained by admins,
'courses' content by instructors (admins may edit both).
"""

from __future__ import annotations

import sqlite3
from typing import Any

import structlog

from lms.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from lms.db import help_repository
from lms.db.help_repository import ArticleRecord, CategoryRecord
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import slugify

logger = structlog.get_logger(__name__)

SECTIONS = ("website", "courses")
ARTICLE_STATUSES = ("draft", "published")


def can_edit_section(user: ProfileRecord | None, section: str) -> bool:
    if user is None:
        return False
    if user.role == "admin":
        return True
    return user.role == "instructor" and section == "courses"


def is_staff(user: ProfileRecord | None) -> bool:
    return user is not None and user.role in ("admin", "instructor")


# =============================================================================
# CATEGORIES
# =============================================================================


def create_category(
    user: ProfileRecord,
    name: str,
    section: str,
    slug: str | None = None,
    description: str = "",
    icon: str | None = None,
    order_index: int = 0,
) -> CategoryRecord:
    _require_section(user, section)
    if not name or not name.strip():
        raise ValidationError("Category name is required")

    slug = slugify(slug or name)
    if not slug:
        raise ValidationError("Category slug is empty")

    try:
        category = help_repository.insert_category(
            name=name.strip(),
            slug=slug,
            section=section,
            description=description,
            icon=icon,
            order_index=order_index,
        )
    except sqlite3.IntegrityError:
        raise ConflictError(f"Category '{slug}' already exists in {section}") from None

    logger.info("help.category_created", category_id=category.id, section=section)
    return category


def list_categories(section: str | None = None) -> list[CategoryRecord]:
    if section is not None and section not in SECTIONS:
        raise ValidationError(f"section must be one of {', '.join(SECTIONS)}")
    return help_repository.list_categories(section)


def delete_category(user: ProfileRecord, category_id: str) -> None:
    category = help_repository.get_category(category_id)
    if category is None:
        raise NotFoundError("Help category", category_id)
    _require_section(user, category.section)
    help_repository.delete_category(category_id)


# =============================================================================
# ARTICLES
# =============================================================================


def create_article(
    user: ProfileRecord,
    title: str,
    content: str,
    section: str,
    slug: str | None = None,
    category_id: str | None = None,
    excerpt: str = "",
    status: str = "draft",
    order_index: int = 0,
    tags: list[str] | None = None,
) -> ArticleRecord:
    _require_section(user, section)
    if not title or not title.strip():
        raise ValidationError("Article title is required")
    if not content or not content.strip():
        raise ValidationError("Article content is required")
    if status not in ARTICLE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ARTICLE_STATUSES)}")
    _check_category(category_id, section)

    slug = slugify(slug or title)
    try:
        article = help_repository.insert_article(
            title=title.strip(),
            slug=slug,
            content=content,
            section=section,
            author_id=user.id,
            category_id=category_id,
            excerpt=excerpt,
            status=status,
            order_index=order_index,
            tags=tags,
        )
    except sqlite3.IntegrityError:
        raise ConflictError(f"An article with slug '{slug}' already exists") from None

    logger.info("help.article_created", article_id=article.id, section=section, status=status)
    return article


def list_articles(
    viewer: ProfileRecord | None,
    section: str | None = None,
    category_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[ArticleRecord]:
    """Articles for a viewer; non-staff only ever see published ones."""
    if section is not None and section not in SECTIONS:
        raise ValidationError(f"section must be one of {', '.join(SECTIONS)}")
    if not is_staff(viewer):
        status = "published"
    elif status is not None and status not in ARTICLE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ARTICLE_STATUSES)}")

    return help_repository.list_articles(
        section=section,
        category_id=category_id,
        status=status,
        search=search.strip() if search else None,
    )


def view_article(viewer: ProfileRecord | None, id_or_slug: str) -> ArticleRecord:
    """Article by id or slug; published views are counted."""
    article = help_repository.get_article(id_or_slug) or help_repository.get_article_by_slug(id_or_slug)
    if article is None:
        raise NotFoundError("Help article", id_or_slug)

    if article.status != "published":
        if not can_edit_section(viewer, article.section):
            raise NotFoundError("Help article", id_or_slug)
        return article

    help_repository.increment_view_count(article.id)
    article.view_count += 1
    return article


def update_article(
    user: ProfileRecord,
    article_id: str,
    changes: dict[str, Any],
    tags: list[str] | None = None,
) -> ArticleRecord:
    article = _get_article(article_id)
    _require_section(user, article.section)

    changes = dict(changes)
    if "status" in changes and changes["status"] not in ARTICLE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ARTICLE_STATUSES)}")
    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
    if "category_id" in changes:
        _check_category(changes["category_id"], article.section)

    try:
        return help_repository.update_article(article_id, changes, tags=tags)
    except sqlite3.IntegrityError:
        raise ConflictError(f"An article with slug '{changes.get('slug')}' already exists") from None


def delete_article(user: ProfileRecord, article_id: str) -> None:
    article = _get_article(article_id)
    _require_section(user, article.section)
    help_repository.delete_article(article_id)
    logger.info("help.article_deleted", article_id=article_id)


def submit_feedback(
    user: ProfileRecord | None,
    article_id: str,
    is_helpful: bool,
    feedback_text: str | None = None,
) -> ArticleRecord:
    """Record a helpful / not helpful vote.

    Signed-in users keep one vote per article; changing it moves one count
    between the counters. Anonymous votes always add a row.
    """
    article = _get_article(article_id)
    if article.status != "published":
        raise NotFoundError("Help article", article_id)

    text = feedback_text.strip() if feedback_text else None
    existing = help_repository.get_user_feedback(article_id, user.id) if user else None

    if existing is None:
        help_repository.insert_feedback(article_id, user.id if user else None, is_helpful, text)
    elif existing.is_helpful != is_helpful:
        help_repository.change_feedback(existing.id, article_id, is_helpful, text)
    else:
        help_repository.update_feedback_text(existing.id, text)

    logger.info("help.feedback", article_id=article_id, helpful=is_helpful, anonymous=user is None)
    return _get_article(article_id)


def _get_article(article_id: str) -> ArticleRecord:
    article = help_repository.get_article(article_id)
    if article is None:
        raise NotFoundError("Help article", article_id)
    return article


def _check_category(category_id: str | None, section: str) -> None:
    if category_id is None:
        return
    category = help_repository.get_category(category_id)
    if category is None:
        raise NotFoundError("Help category", category_id)
    if category.section != section:
        raise ValidationError("Category belongs to another section")


def _require_section(user: ProfileRecord, section: str) -> None:
    if section not in SECTIONS:
        raise ValidationError(f"section must be one of {', '.join(SECTIONS)}")
    if not can_edit_section(user, section):
        raise PermissionDeniedError(f"You cannot manage {section} help content")
