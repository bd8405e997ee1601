"""Book store: authoring, listing, ownership and shipping of physical copies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import books_repository, profiles_repository
from lms.db.books_repository import BookRecord, PurchaseRecord
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)

BOOK_STATUSES = ("draft", "published", "archived")
PURCHASE_TYPES = ("digital", "physical")
DELIVERY_STATUSES = ("pending", "processing", "shipped", "in_transit", "delivered", "cancelled")
SHIPPING_DETAILS = ("tracking_number", "carrier_name", "shipping_address")


def create_book(author: ProfileRecord, **fields: Any) -> BookRecord:
    if author.role not in ("instructor", "admin"):
        raise PermissionDeniedError("Only instructors can publish books")
    _validate(fields, creating=True)

    book = books_repository.insert_book(author_id=author.id, **fields)
    logger.info("books.created", book_id=book.id, author_id=author.id)
    return book


def get_book(book_id: str) -> BookRecord:
    book = books_repository.get_book(book_id)
    if book is None:
        raise NotFoundError("Book", book_id)
    return book


def get_visible_book(book_id: str, viewer: ProfileRecord | None) -> BookRecord:
    book = get_book(book_id)
    if book.is_published or (viewer is not None and _can_manage(viewer, book)):
        return book
    raise NotFoundError("Book", book_id)


def list_published_books() -> list[BookRecord]:
    return books_repository.list_books(status="published")


def list_author_books(author: ProfileRecord) -> list[BookRecord]:
    return books_repository.list_books(author_id=author.id)


def update_book(user: ProfileRecord, book_id: str, changes: dict[str, Any]) -> BookRecord:
    book = get_book(book_id)
    if not _can_manage(user, book):
        raise PermissionDeniedError("Only the author or an admin can edit this book")
    _validate(changes, creating=False)
    return books_repository.update_book(book_id, changes)


def delete_book(user: ProfileRecord, book_id: str) -> None:
    book = get_book(book_id)
    if not _can_manage(user, book):
        raise PermissionDeniedError("Only the author or an admin can delete this book")
    books_repository.delete_book(book_id)
    logger.info("books.deleted", book_id=book_id)


def list_my_purchases(student: ProfileRecord) -> list[tuple[PurchaseRecord, BookRecord]]:
    result = []
    for purchase in books_repository.list_student_purchases(student.id):
        book = books_repository.get_book(purchase.book_id)
        if book is not None:
            result.append((purchase, book))
    return result


def owns_book(user_id: str, book_id: str) -> bool:
    return books_repository.get_purchase(user_id, book_id) is not None


# =============================================================================
# SHIPMENTS
# =============================================================================


@dataclass
class Shipment:
    purchase: PurchaseRecord
    student: ProfileRecord | None


SHIPMENT_MESSAGES = {
    "shipped": 'Your order for "{title}" has been shipped!',
    "in_transit": 'Your order for "{title}" is in transit.',
    "delivered": 'Your order for "{title}" has been delivered!',
}


def list_shipments(user: ProfileRecord, book_id: str) -> list[Shipment]:
    """Physical purchases of a book with their buyers, newest first."""
    book = _get_managed(user, book_id)
    purchases = books_repository.list_shipments(book.id)
    return [Shipment(purchase=p, student=profiles_repository.get_profile(p.student_id)) for p in purchases]


def update_shipment(
    user: ProfileRecord,
    book_id: str,
    purchase_id: str,
    delivery_status: str,
    details: dict[str, Any] | None = None,
) -> PurchaseRecord:
    """Move a physical purchase along the delivery workflow.

    ``details`` may carry tracking_number, carrier_name and shipping_address;
    blank values clear the column. shipped_at is stamped the first time the
    order leaves (shipped, in_transit or delivered), delivered_at on delivery.
    The buyer is notified when the parcel ships, travels or arrives.

    Raises:
        NotFoundError: Unknown book or purchase
        PermissionDeniedError: Not the author nor an admin
        ValidationError: Unknown status, or the purchase is not a physical copy of this book
    """
    if delivery_status not in DELIVERY_STATUSES:
        raise ValidationError(f"delivery_status must be one of {', '.join(DELIVERY_STATUSES)}")
    book = _get_managed(user, book_id)

    purchase = books_repository.get_purchase_by_id(purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase", purchase_id)
    if purchase.book_id != book.id:
        raise ValidationError("Purchase does not belong to this book")
    if purchase.purchase_type != "physical":
        raise ValidationError("Only physical purchases are shipped")

    details = details or {}
    unknown = sorted(set(details) - set(SHIPPING_DETAILS))
    if unknown:
        raise ValidationError(f"Unknown shipment fields: {', '.join(unknown)}")

    changes: dict[str, Any] = {key: (value or None) for key, value in details.items()}
    changes["delivery_status"] = delivery_status
    now = utc_now_iso()
    if delivery_status in ("shipped", "in_transit", "delivered") and not purchase.shipped_at:
        changes["shipped_at"] = now
    if delivery_status == "delivered":
        changes["delivered_at"] = now

    updated = books_repository.update_delivery(purchase.id, changes)
    logger.info(
        "books.shipment_updated",
        book_id=book.id,
        purchase_id=purchase.id,
        delivery_status=delivery_status,
    )

    template = SHIPMENT_MESSAGES.get(delivery_status)
    if template is not None:
        message = template.format(title=book.title)
        if delivery_status == "shipped" and updated.tracking_number:
            message += f" Tracking: {updated.tracking_number}"
        notify_best_effort(
            [purchase.student_id],
            "shipment_update",
            "Shipment Update",
            message,
            link=f"/student/books/{book.id}",
            related_id=book.id,
            related_type="book",
        )
    return updated


def _can_manage(user: ProfileRecord, book: BookRecord) -> bool:
    return user.role == "admin" or book.author_id == user.id


def _get_managed(user: ProfileRecord, book_id: str) -> BookRecord:
    book = get_book(book_id)
    if not _can_manage(user, book):
        raise PermissionDeniedError("Only the author or an admin can manage shipments")
    return book


def _validate(fields: dict[str, Any], creating: bool) -> None:
    if creating or "title" in fields:
        if not str(fields.get("title") or "").strip():
            raise ValidationError("Book title is required")
    for price_field in ("price", "monthly_price", "yearly_price"):
        value = fields.get(price_field)
        if value is not None and value < 0:
            raise ValidationError(f"{price_field} cannot be negative")
    if fields.get("status") is not None and fields["status"] not in BOOK_STATUSES:
        raise ValidationError(f"Unknown book status: {fields['status']}")
