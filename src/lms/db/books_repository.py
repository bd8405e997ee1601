"""Repository functions for books and book_purchases tables.

Provides CRUD operations for the book store and delivery tracking of
physical copies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

BOOK_FIELDS = (
    "title",
    "description",
    "price",
    "monthly_price",
    "yearly_price",
    "subscription_enabled",
    "status",
    "cover_url",
)

DELIVERY_FIELDS = (
    "delivery_status",
    "tracking_number",
    "carrier_name",
    "shipping_address",
    "shipped_at",
    "delivered_at",
)


@dataclass
class BookRecord:
    """Book record from database."""

    id: str
    author_id: str
    title: str
    description: str
    price: float
    monthly_price: float | None
    yearly_price: float | None
    subscription_enabled: bool
    status: str
    cover_url: str | None
    created_at: str

    @property
    def is_published(self) -> bool:
        return self.status == "published"


@dataclass
class PurchaseRecord:
    """Book purchase record from database."""

    id: str
    student_id: str
    book_id: str
    purchase_type: str
    price_paid: float
    purchased_at: str
    delivery_status: str | None = None
    tracking_number: str | None = None
    carrier_name: str | None = None
    shipping_address: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None


def insert_book(
    author_id: str,
    title: str,
    description: str = "",
    price: float = 0.0,
    monthly_price: float | None = None,
    yearly_price: float | None = None,
    subscription_enabled: bool = False,
    status: str = "draft",
    cover_url: str | None = None,
) -> BookRecord:
    """Insert a new book.

    Args:
        author_id: Profile id of the author (an instructor)
        title: Book title
        description: Long description
        price: One-time price
        monthly_price: Recurring monthly price
        yearly_price: Recurring yearly price
        subscription_enabled: Whether recurring prices may be used
        status: 'draft', 'published' or 'archived'
        cover_url: Optional cover image URL

    Returns:
        The stored BookRecord
    """
    book_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO books (
                id, author_id, title, description, price, monthly_price,
                yearly_price, subscription_enabled, status, cover_url, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                book_id,
                author_id,
                title,
                description,
                price,
                monthly_price,
                yearly_price,
                int(subscription_enabled),
                status,
                cover_url,
                utc_now_iso(),
            ),
        )

    logger.debug("books.inserted", book_id=book_id, author_id=author_id)
    return get_book(book_id)


def get_book(book_id: str) -> BookRecord | None:
    """Get book by id.

    Returns:
        BookRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()

    return _row_to_book(row) if row else None


def list_books(
    status: str | None = None,
    author_id: str | None = None,
) -> list[BookRecord]:
    """List books, newest first, optionally filtered by status and author."""
    query = "SELECT * FROM books WHERE 1 = 1"
    params: list[Any] = []
    if status:
        query += " AND status = ?"
        params.append(status)
    if author_id:
        query += " AND author_id = ?"
        params.append(author_id)
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_book(row) for row in rows]


def update_book(book_id: str, changes: dict[str, Any]) -> BookRecord | None:
    """Apply a partial update to a book."""
    unknown = set(changes) - set(BOOK_FIELDS)
    if unknown:
        raise ValueError(f"Unknown book fields: {sorted(unknown)}")

    if changes:
        values = dict(changes)
        if "subscription_enabled" in values:
            values["subscription_enabled"] = int(bool(values["subscription_enabled"]))
        assignments = ", ".join(f"{column} = ?" for column in values)
        with get_db() as conn:
            conn.execute(
                f"UPDATE books SET {assignments} WHERE id = ?",
                (*values.values(), book_id),
            )
        logger.debug("books.updated", book_id=book_id, fields=sorted(values))

    return get_book(book_id)


def delete_book(book_id: str) -> bool:
    """Delete book by id.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("books.deleted", book_id=book_id)

    return deleted


def ensure_purchase(
    student_id: str,
    book_id: str,
    purchase_type: str = "digital",
    price_paid: float = 0.0,
) -> bool:
    """Record a purchase unless the student already owns the book.

    Physical copies start with delivery_status 'pending'.

    Returns:
        True if a new purchase row was created
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO book_purchases (
                id, student_id, book_id, purchase_type, price_paid, delivery_status, purchased_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(student_id, book_id) DO NOTHING
            """,
            (
                new_id(),
                student_id,
                book_id,
                purchase_type,
                price_paid,
                "pending" if purchase_type == "physical" else None,
                utc_now_iso(),
            ),
        )

    created = cursor.rowcount > 0
    if created:
        logger.debug("book_purchases.inserted", student_id=student_id, book_id=book_id)
    return created


def get_purchase(student_id: str, book_id: str) -> PurchaseRecord | None:
    """Purchase of a book by a student."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM book_purchases WHERE student_id = ? AND book_id = ?",
            (student_id, book_id),
        ).fetchone()

    return _row_to_purchase(row) if row else None


def get_purchase_by_id(purchase_id: str) -> PurchaseRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM book_purchases WHERE id = ?", (purchase_id,)).fetchone()

    return _row_to_purchase(row) if row else None


def list_student_purchases(student_id: str) -> list[PurchaseRecord]:
    """Purchases of a student, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM book_purchases WHERE student_id = ? ORDER BY purchased_at DESC",
            (student_id,),
        ).fetchall()

    return [_row_to_purchase(row) for row in rows]


def list_purchases(since: str | None = None) -> list[PurchaseRecord]:
    """All book purchases, newest first."""
    query = "SELECT * FROM book_purchases"
    params: list[Any] = []
    if since:
        query += " WHERE purchased_at >= ?"
        params.append(since)
    query += " ORDER BY purchased_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_purchase(row) for row in rows]


def list_shipments(book_id: str) -> list[PurchaseRecord]:
    """Physical purchases of a book, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM book_purchases
            WHERE book_id = ? AND purchase_type = 'physical'
            ORDER BY purchased_at DESC
            """,
            (book_id,),
        ).fetchall()

    return [_row_to_purchase(row) for row in rows]


def update_delivery(purchase_id: str, changes: dict[str, Any]) -> PurchaseRecord | None:
    """Apply a partial update to the delivery columns of a purchase."""
    unknown = set(changes) - set(DELIVERY_FIELDS)
    if unknown:
        raise ValueError(f"Unknown delivery fields: {sorted(unknown)}")

    if changes:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        with get_db() as conn:
            conn.execute(
                f"UPDATE book_purchases SET {assignments} WHERE id = ?",
                (*changes.values(), purchase_id),
            )
        logger.debug("book_purchases.delivery_updated", purchase_id=purchase_id, fields=sorted(changes))

    return get_purchase_by_id(purchase_id)


def _row_to_book(row) -> BookRecord:
    """Convert database row to BookRecord."""
    return BookRecord(
        id=row["id"],
        author_id=row["author_id"],
        title=row["title"],
        description=row["description"],
        price=row["price"],
        monthly_price=row["monthly_price"],
        yearly_price=row["yearly_price"],
        subscription_enabled=bool(row["subscription_enabled"]),
        status=row["status"],
        cover_url=row["cover_url"],
        created_at=row["created_at"],
    )


def _row_to_purchase(row) -> PurchaseRecord:
    return PurchaseRecord(
        id=row["id"],
        student_id=row["student_id"],
        book_id=row["book_id"],
        purchase_type=row["purchase_type"],
        price_paid=row["price_paid"],
        purchased_at=row["purchased_at"],
        delivery_status=row["delivery_status"],
        tracking_number=row["tracking_number"],
        carrier_name=row["carrier_name"],
        shipping_address=row["shipping_address"],
        shipped_at=row["shipped_at"],
        delivered_at=row["delivered_at"],
    )
