"""Checkout and revenue split.

Prices are stored in major currency units; Stripe receives integer cents.
When no Stripe key is configured, or the quoted amount is zero, checkout
grants access directly instead of creating a Checkout Session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import stripe
import structlog

from lms.config import load_app_config
from lms.core.enrollment import notify_enrolled
from lms.core.errors import ConflictError, NotFoundError, PaymentError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import books_repository, courses_repository, enrollments_repository
from lms.db.books_repository import BookRecord
from lms.db.courses_repository import CourseRecord
from lms.db.profiles_repository import ProfileRecord

logger = structlog.get_logger(__name__)

PAYMENT_TYPES = ("one_time", "monthly", "yearly")
PURCHASE_TYPES = ("digital", "physical")


@dataclass
class PriceQuote:
    """What a checkout will charge."""

    amount_cents: int
    interval: str | None  # 'month' | 'year' for subscriptions

    @property
    def is_subscription(self) -> bool:
        return self.interval is not None


@dataclass
class CheckoutResult:
    free: bool
    session_id: str | None = None
    url: str | None = None


def quote_price(product: CourseRecord | BookRecord, payment_type: str = "one_time") -> PriceQuote:
    """Price for a product and payment type.

    Recurring prices apply only when the product has subscriptions enabled
    and the matching price set; anything else falls back to the one-time
    price.
    """
    if payment_type == "monthly" and product.subscription_enabled and product.monthly_price:
        return PriceQuote(amount_cents=round(product.monthly_price * 100), interval="month")
    if payment_type == "yearly" and product.subscription_enabled and product.yearly_price:
        return PriceQuote(amount_cents=round(product.yearly_price * 100), interval="year")
    return PriceQuote(amount_cents=round(product.price * 100), interval=None)


def split_commission(amount: float, rate: float | None = None) -> tuple[float, float]:
    """Split an amount into (platform_commission, creator_earnings)."""
    if rate is None:
        rate = load_app_config().payments.platform_commission_rate
    platform = round(amount * rate, 2)
    creator = round(amount * (1 - rate), 2)
    return platform, creator


def configure_stripe() -> bool:
    """Point the stripe module at the configured key.

    Returns:
        False when no key is configured (payments run in free mode)
    """
    settings = load_app_config().payments
    if not settings.stripe_enabled:
        return False
    stripe.api_key = settings.get_secret_key()
    return True


def create_checkout(
    user: ProfileRecord,
    course_id: str | None = None,
    book_id: str | None = None,
    purchase_type: str = "digital",
    payment_type: str = "one_time",
) -> CheckoutResult:
    """Start a purchase of a course or a book.

    Raises:
        ValidationError: Neither or both products given, bad types
        NotFoundError: Product missing or unpublished
        ConflictError: The user already has access
        PaymentError: Stripe rejected the session
    """
    if bool(course_id) == bool(book_id):
        raise ValidationError("Provide exactly one of course_id or book_id")
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of {', '.join(PAYMENT_TYPES)}")
    if purchase_type not in PURCHASE_TYPES:
        raise ValidationError(f"type must be one of {', '.join(PURCHASE_TYPES)}")

    product: CourseRecord | BookRecord
    if course_id:
        product = courses_repository.get_course(course_id)
        if product is None or not product.is_published:
            raise NotFoundError("Course", course_id)
        if enrollments_repository.get_enrollment(user.id, course_id) is not None:
            raise ConflictError("Already enrolled")
        description = f"Course: {product.title}"
    else:
        product = books_repository.get_book(book_id)
        if product is None or not product.is_published:
            raise NotFoundError("Book", book_id)
        if books_repository.get_purchase(user.id, book_id) is not None:
            raise ConflictError("Already purchased")
        description = f"Book: {product.title} ({purchase_type})"

    quote = quote_price(product, payment_type)
    stripe_ready = configure_stripe()

    if not stripe_ready or quote.amount_cents == 0:
        logger.info(
            "checkout.free",
            user_id=user.id,
            course_id=course_id,
            book_id=book_id,
            stripe_configured=stripe_ready,
        )
        _grant_free_access(user.id, product, course_id, book_id, purchase_type)
        return CheckoutResult(free=True)

    session = _create_session(user, course_id, book_id, purchase_type, payment_type, quote, description)
    logger.info(
        "checkout.session_created",
        user_id=user.id,
        session_id=session["id"],
        amount_cents=quote.amount_cents,
        mode="subscription" if quote.is_subscription else "payment",
    )
    return CheckoutResult(free=False, session_id=session["id"], url=session.get("url"))


def _grant_free_access(
    user_id: str,
    product: CourseRecord | BookRecord,
    course_id: str | None,
    book_id: str | None,
    purchase_type: str,
) -> None:
    if course_id:
        enrollments_repository.ensure_enrollment(user_id, course_id)
        notify_enrolled(user_id, product)
        return

    books_repository.ensure_purchase(user_id, book_id, purchase_type=purchase_type, price_paid=0.0)
    notify_best_effort(
        [user_id],
        "payment_received",
        "Book Purchase Successful",
        f'You have successfully purchased "{product.title}".',
        link=f"/books/{book_id}",
        related_id=book_id,
        related_type="book",
    )


def _create_session(
    user: ProfileRecord,
    course_id: str | None,
    book_id: str | None,
    purchase_type: str,
    payment_type: str,
    quote: PriceQuote,
    description: str,
) -> Any:
    config = load_app_config()
    metadata = {
        "userId": user.id,
        "courseId": course_id or "",
        "bookId": book_id or "",
        "type": purchase_type,
        "paymentType": payment_type,
    }
    price_data: dict[str, Any] = {
        "currency": config.payments.currency,
        "product_data": {"name": description},
        "unit_amount": quote.amount_cents,
    }
    params: dict[str, Any] = {
        "payment_method_types": ["card"],
        "success_url": f"{config.app_url}{config.payments.success_path}",
        "cancel_url": f"{config.app_url}{config.payments.cancel_path}",
        "metadata": metadata,
        "line_items": [{"price_data": price_data, "quantity": 1}],
    }

    if quote.is_subscription:
        price_data["recurring"] = {"interval": quote.interval}
        params["mode"] = "subscription"
        params["customer_email"] = user.email
        params["subscription_data"] = {"metadata": dict(metadata)}
    else:
        params["mode"] = "payment"

    try:
        return stripe.checkout.Session.create(**params)
    except stripe.error.StripeError as e:
        logger.error("checkout.stripe_error", error=str(e), user_id=user.id)
        raise PaymentError(f"Payment provider error: {e.user_message or e}") from e
