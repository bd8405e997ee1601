"""Repository functions for the help center tables.

Tables: help_categories, help_articles, help_article_tags,
help_article_feedback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from lms.db.database import contains_pattern, get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

ARTICLE_FIELDS = ("title", "slug", "content", "excerpt", "category_id", "status", "order_index")


@dataclass
class CategoryRecord:
    id: str
    name: str
    slug: str
    description: str
    icon: str | None
    section: str
    order_index: int
    created_at: str


@dataclass
class ArticleRecord:
    """Help article record from database, with its tags."""

    id: str
    category_id: str | None
    author_id: str | None
    title: str
    slug: str
    content: str
    excerpt: str
    section: str
    status: str
    order_index: int
    view_count: int
    helpful_count: int
    not_helpful_count: int
    created_at: str
    updated_at: str
    tags: list[str] = field(default_factory=list)


@dataclass
class FeedbackRecord:
    id: str
    article_id: str
    user_id: str | None
    is_helpful: bool
    feedback_text: str | None
    created_at: str


# =============================================================================
# CATEGORIES
# =============================================================================


def insert_category(
    name: str,
    slug: str,
    section: str,
    description: str = "",
    icon: str | None = None,
    order_index: int = 0,
) -> CategoryRecord:
    """Insert a help category.

    Raises:
        sqlite3.IntegrityError: If the slug is taken within the section
    """
    record = CategoryRecord(
        id=new_id(),
        name=name,
        slug=slug,
        description=description,
        icon=icon,
        section=section,
        order_index=order_index,
        created_at=utc_now_iso(),
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO help_categories (id, name, slug, description, icon, section, order_index, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.name,
                record.slug,
                record.description,
                record.icon,
                record.section,
                record.order_index,
                record.created_at,
            ),
        )

    logger.debug("help_categories.inserted", category_id=record.id, section=section)
    return record


def get_category(category_id: str) -> CategoryRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM help_categories WHERE id = ?", (category_id,)
        ).fetchone()

    return _row_to_category(row) if row else None


def list_categories(section: str | None = None) -> list[CategoryRecord]:
    """Categories in display order."""
    with get_db() as conn:
        if section:
            rows = conn.execute(
                "SELECT * FROM help_categories WHERE section = ? ORDER BY order_index, name",
                (section,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM help_categories ORDER BY section, order_index, name"
            ).fetchall()

    return [_row_to_category(row) for row in rows]


def delete_category(category_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM help_categories WHERE id = ?", (category_id,)
        )

    return cursor.rowcount > 0


# =============================================================================
# ARTICLES
# =============================================================================


def insert_article(
    title: str,
    slug: str,
    content: str,
    section: str,
    author_id: str | None = None,
    category_id: str | None = None,
    excerpt: str = "",
    status: str = "draft",
    order_index: int = 0,
    tags: list[str] | None = None,
) -> ArticleRecord:
    """Insert an article with its tags.

    Raises:
        sqlite3.IntegrityError: If the slug is already used
    """
    now = utc_now_iso()
    article_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO help_articles (
                id, category_id, author_id, title, slug, content, excerpt,
                section, status, order_index, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                article_id,
                category_id,
                author_id,
                title,
                slug,
                content,
                excerpt,
                section,
                status,
                order_index,
                now,
                now,
            ),
        )
        _replace_tags(conn, article_id, tags or [])

    logger.debug("help_articles.inserted", article_id=article_id, slug=slug)
    return get_article(article_id)


def get_article(article_id: str) -> ArticleRecord | None:
    """Get article by id, with tags."""
    return _get_article_where("id = ?", article_id)


def get_article_by_slug(slug: str) -> ArticleRecord | None:
    """Get article by slug, with tags."""
    return _get_article_where("slug = ?", slug)


def list_articles(
    section: str | None = None,
    category_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[ArticleRecord]:
    """Articles by order_index, then newest first."""
    query = "SELECT * FROM help_articles WHERE 1 = 1"
    params: list[Any] = []
    if section:
        query += " AND section = ?"
        params.append(section)
    if category_id:
        query += " AND category_id = ?"
        params.append(category_id)
    if status:
        query += " AND status = ?"
        params.append(status)
    if search:
        query += (
            " AND (fold(title) LIKE ? ESCAPE '\\'"
            " OR fold(content) LIKE ? ESCAPE '\\'"
            " OR fold(excerpt) LIKE ? ESCAPE '\\')"
        )
        pattern = contains_pattern(search)
        params.extend([pattern, pattern, pattern])
    query += " ORDER BY order_index, created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        articles = [_row_to_article(row) for row in rows]
        tags = _load_tags(conn, [a.id for a in articles])

    for article in articles:
        article.tags = tags.get(article.id, [])
    return articles


def update_article(
    article_id: str,
    changes: dict[str, Any],
    tags: list[str] | None = None,
) -> ArticleRecord | None:
    """Apply a partial update; tags are replaced when given."""
    unknown = set(changes) - set(ARTICLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown article fields: {sorted(unknown)}")

    with get_db() as conn:
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            conn.execute(
                f"UPDATE help_articles SET {assignments}, updated_at = ? WHERE id = ?",
                (*changes.values(), utc_now_iso(), article_id),
            )
        if tags is not None:
            _replace_tags(conn, article_id, tags)

    return get_article(article_id)


def increment_view_count(article_id: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE help_articles SET view_count = view_count + 1 WHERE id = ?",
            (article_id,),
        )


def delete_article(article_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM help_articles WHERE id = ?", (article_id,))

    return cursor.rowcount > 0


# =============================================================================
# FEEDBACK
# =============================================================================


def get_user_feedback(article_id: str, user_id: str) -> FeedbackRecord | None:
    """Existing feedback of a signed-in user on an article."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM help_article_feedback WHERE article_id = ? AND user_id = ?",
            (article_id, user_id),
        ).fetchone()

    return _row_to_feedback(row) if row else None


def insert_feedback(
    article_id: str,
    user_id: str | None,
    is_helpful: bool,
    feedback_text: str | None,
) -> None:
    """Add a feedback row and bump the matching counter."""
    counter = "helpful_count" if is_helpful else "not_helpful_count"
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO help_article_feedback (id, article_id, user_id, is_helpful, feedback_text, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (new_id(), article_id, user_id, int(is_helpful), feedback_text, utc_now_iso()),
        )
        conn.execute(
            f"UPDATE help_articles SET {counter} = {counter} + 1 WHERE id = ?",
            (article_id,),
        )


def change_feedback(feedback_id: str, article_id: str, is_helpful: bool, feedback_text: str | None) -> None:
    """Flip an existing vote, moving one count between the counters (floored at 0)."""
    gained = "helpful_count" if is_helpful else "not_helpful_count"
    lost = "not_helpful_count" if is_helpful else "helpful_count"
    with get_db() as conn:
        conn.execute(
            "UPDATE help_article_feedback SET is_helpful = ?, feedback_text = ? WHERE id = ?",
            (int(is_helpful), feedback_text, feedback_id),
        )
        conn.execute(
            f"""
            UPDATE help_articles
            SET {gained} = {gained} + 1, {lost} = MAX({lost} - 1, 0)
            WHERE id = ?
            """,
            (article_id,),
        )


def update_feedback_text(feedback_id: str, feedback_text: str | None) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE help_article_feedback SET feedback_text = ? WHERE id = ?",
            (feedback_text, feedback_id),
        )


def _get_article_where(clause: str, value: str) -> ArticleRecord | None:
    with get_db() as conn:
        row = conn.execute(
            f"SELECT * FROM help_articles WHERE {clause}", (value,)
        ).fetchone()
        if row is None:
            return None
        article = _row_to_article(row)
        article.tags = _load_tags(conn, [article.id]).get(article.id, [])

    return article


def _replace_tags(conn, article_id: str, tags: list[str]) -> None:
    conn.execute("DELETE FROM help_article_tags WHERE article_id = ?", (article_id,))
    cleaned = sorted({t.strip().lower() for t in tags if t and t.strip()})
    conn.executemany(
        "INSERT INTO help_article_tags (article_id, tag) VALUES (?, ?)",
        [(article_id, tag) for tag in cleaned],
    )


def _load_tags(conn, article_ids: list[str]) -> dict[str, list[str]]:
    if not article_ids:
        return {}

    placeholders = ",".join("?" for _ in article_ids)
    rows = conn.execute(
        f"SELECT article_id, tag FROM help_article_tags WHERE article_id IN ({placeholders}) ORDER BY tag",
        article_ids,
    ).fetchall()

    tags: dict[str, list[str]] = {}
    for row in rows:
        tags.setdefault(row["article_id"], []).append(row["tag"])
    return tags


def _row_to_category(row) -> CategoryRecord:
    return CategoryRecord(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        icon=row["icon"],
        section=row["section"],
        order_index=row["order_index"],
        created_at=row["created_at"],
    )


def _row_to_article(row) -> ArticleRecord:
    """Convert database row to ArticleRecord (tags loaded separately)."""
    return ArticleRecord(
        id=row["id"],
        category_id=row["category_id"],
        author_id=row["author_id"],
        title=row["title"],
        slug=row["slug"],
        content=row["content"],
        excerpt=row["excerpt"],
        section=row["section"],
        status=row["status"],
        order_index=row["order_index"],
        view_count=row["view_count"],
        helpful_count=row["helpful_count"],
        not_helpful_count=row["not_helpful_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_feedback(row) -> FeedbackRecord:
    return FeedbackRecord(
        id=row["id"],
        article_id=row["article_id"],
        user_id=row["user_id"],
        is_helpful=bool(row["is_helpful"]),
        feedback_text=row["feedback_text"],
        created_at=row["created_at"],
    )
