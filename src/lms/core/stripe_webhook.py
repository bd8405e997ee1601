"""
Stripe webhook handler with signature verification and event deduplication.

Implements:
- Webhook signature verification
- Event deduplication (processed event ids are stored in stripe_events)
- Event type routing to handlers that mirror Stripe state locally

Handler errors propagate so the endpoint answers 5xx/4xx and Stripe retries
the delivery; the event id is only recorded once handling succeeded.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import stripe
import structlog

from lms.config import load_app_config
from lms.core.enrollment import notify_enrolled
from lms.core.errors import NotFoundError, WebhookSignatureError
from lms.core.notifications import notify_best_effort
from lms.core.payments import configure_stripe, split_commission
from lms.core.subscriptions import product_title
from lms.db import (
    books_repository,
    courses_repository,
    enrollments_repository,
    payments_repository,
    profiles_repository,
)
from lms.db.payments_repository import SubscriptionRecord
from lms.utils.validators import from_unix, utc_now_iso

logger = structlog.get_logger(__name__)

Event = dict[str, Any]


class StripeWebhookHandler:
    """
    Handles Stripe webhook events.

    Features:
    - Signature verification using the configured webhook secret
    - Duplicate deliveries acknowledged without reprocessing
    - Event type routing via ``event_handlers``
    """

    def __init__(self, webhook_secret: str | None = None):
        self.webhook_secret = webhook_secret or load_app_config().payments.get_webhook_secret()
        self.event_handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "checkout.session.completed": self.handle_checkout_completed,
            "customer.subscription.created": self.handle_subscription_created,
            "customer.subscription.updated": self.handle_subscription_updated,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "invoice.payment_succeeded": self.handle_invoice_paid,
            "invoice.payment_failed": self.handle_invoice_failed,
        }

    def verify_signature(self, payload: bytes, signature: str | None) -> Event:
        """Verify the Stripe-Signature header and decode the event.

        Raises:
            WebhookSignatureError: Missing or invalid signature
        """
        if not signature:
            raise WebhookSignatureError("No signature")
        if not self.webhook_secret:
            logger.error("stripe_webhook.secret_missing")
            raise WebhookSignatureError("Invalid signature")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.error.SignatureVerificationError) as e:
            logger.warning("stripe_webhook.signature_invalid", error=str(e))
            raise WebhookSignatureError("Invalid signature") from e

        return json.loads(payload)

    def handle(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify, deduplicate and dispatch one delivery."""
        event = self.verify_signature(payload, signature)
        return self.process_event(event)

    def process_event(self, event: Event) -> dict[str, Any]:
        event_id = event.get("id", "")
        event_type = event.get("type", "")

        logger.info("stripe_webhook.received", event_id=event_id, event_type=event_type)

        if event_id and payments_repository.is_event_processed(event_id):
            logger.info("stripe_webhook.duplicate", event_id=event_id, event_type=event_type)
            return {"received": True, "duplicate": True}

        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.debug("stripe_webhook.ignored", event_type=event_type)
        else:
            handler(event["data"]["object"])

        if event_id:
            payments_repository.record_event(event_id, event_type)
        return {"received": True}

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def handle_checkout_completed(self, session: dict[str, Any]) -> None:
        """One-time payments are recorded here; subscriptions only grant access."""
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        course_id = metadata.get("courseId") or None
        book_id = metadata.get("bookId") or None
        purchase_type = metadata.get("type") or "digital"
        amount = (session.get("amount_total") or 0) / 100

        if not user_id or not (course_id or book_id):
            logger.warning("stripe_webhook.checkout_without_metadata", session_id=session.get("id"))
            return
        _require_profile(user_id)

        if session.get("mode") == "subscription":
            _grant_access(user_id, course_id, book_id, purchase_type, amount)
            return

        if payments_repository.get_payment_by_stripe_id(session["id"]) is not None:
            logger.info("stripe_webhook.payment_exists", session_id=session["id"])
            return

        platform, creator = split_commission(amount)
        payments_repository.insert_payment(
            user_id=user_id,
            stripe_payment_id=session["id"],
            amount=amount,
            currency=session.get("currency") or load_app_config().payments.currency,
            status="completed",
            payment_type="course" if course_id else "book",
            course_id=course_id,
            book_id=book_id,
            platform_commission=platform,
            creator_earnings=creator,
        )

        title = "your purchase"
        if course_id:
            course = courses_repository.get_course(course_id)
            enrollments_repository.ensure_enrollment(user_id, course_id)
            if course is not None:
                title = course.title
                notify_enrolled(user_id, course)
        if book_id:
            book = books_repository.get_book(book_id)
            books_repository.ensure_purchase(user_id, book_id, purchase_type, amount)
            if book is not None and not course_id:
                title = book.title
            notify_best_effort(
                [user_id],
                "payment_received",
                "Book Purchase Successful",
                f'You have successfully purchased "{title}".',
                link=f"/books/{book_id}",
                related_id=book_id,
                related_type="book",
            )

        notify_best_effort(
            [user_id],
            "payment_received",
            "Payment Successful",
            f'Your payment of ${amount:.2f} for "{title}" has been received.',
            link=f"/student/courses/{course_id}" if course_id else f"/books/{book_id}",
            related_id=course_id or book_id,
            related_type="course" if course_id else "book",
        )

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def handle_subscription_created(self, subscription: dict[str, Any]) -> None:
        metadata = subscription.get("metadata") or {}
        user_id = self._resolve_user(metadata.get("userId"), subscription.get("customer"))
        course_id = metadata.get("courseId") or None
        book_id = metadata.get("bookId") or None
        purchase_type = metadata.get("type") or "digital"

        fields = _subscription_fields(subscription)
        unit_amount = _unit_amount(subscription)
        platform, creator = split_commission(unit_amount)

        existing = payments_repository.get_subscription_by_stripe_id(subscription["id"])
        if existing is not None:
            payments_repository.update_subscription(existing.id, fields)
        else:
            payments_repository.insert_subscription(
                user_id=user_id,
                course_id=course_id,
                book_id=book_id,
                stripe_subscription_id=subscription["id"],
                stripe_customer_id=subscription.get("customer"),
                platform_commission=platform,
                creator_earnings=creator,
                **fields,
            )

        _grant_access(user_id, course_id, book_id, purchase_type, unit_amount)

    def handle_subscription_updated(self, subscription: dict[str, Any]) -> None:
        local = self._local_subscription(subscription["id"])
        if local is None:
            return

        fields = _subscription_fields(subscription)
        fields["canceled_at"] = from_unix(subscription.get("canceled_at"))
        payments_repository.update_subscription(local.id, fields)

    def handle_subscription_deleted(self, subscription: dict[str, Any]) -> None:
        local = self._local_subscription(subscription["id"])
        if local is None:
            return

        payments_repository.update_subscription(
            local.id, {"status": "canceled", "canceled_at": utc_now_iso()}
        )
        notify_best_effort(
            [local.user_id],
            "system",
            "Subscription Canceled",
            f'Your subscription for "{_product_title(local)}" has been canceled.',
            link="/subscriptions",
            related_id=local.course_id or local.book_id,
            related_type="course" if local.course_id else "book",
        )

    # =========================================================================
    # INVOICES
    # =========================================================================

    def handle_invoice_paid(self, invoice: dict[str, Any]) -> None:
        """Subscription renewal: record the payment and roll the period forward."""
        local = self._local_subscription(_invoice_subscription_id(invoice))
        if local is None:
            return

        amount = (invoice.get("amount_paid") or 0) / 100
        platform, creator = split_commission(amount)

        if amount > 0 and payments_repository.get_payment_by_stripe_id(invoice["id"]) is None:
            payments_repository.insert_payment(
                user_id=local.user_id,
                stripe_payment_id=invoice["id"],
                amount=amount,
                currency=invoice.get("currency") or load_app_config().payments.currency,
                status="completed",
                payment_type="course" if local.course_id else "book",
                course_id=local.course_id,
                book_id=local.book_id,
                platform_commission=platform,
                creator_earnings=creator,
            )

        changes: dict[str, Any] = {
            "status": "active",
            "platform_commission": platform,
            "creator_earnings": creator,
        }
        lines = (invoice.get("lines") or {}).get("data") or []
        period = lines[0].get("period") if lines else None
        if period:
            changes["current_period_start"] = from_unix(period.get("start"))
            changes["current_period_end"] = from_unix(period.get("end"))
        payments_repository.update_subscription(local.id, changes)

        notify_best_effort(
            [local.user_id],
            "subscription_renewal",
            "Subscription Renewed",
            f'Your subscription for "{_product_title(local)}" has been renewed successfully.',
            link=f"/student/courses/{local.course_id}" if local.course_id else f"/books/{local.book_id}",
            related_id=local.course_id or local.book_id,
            related_type="course" if local.course_id else "book",
        )

    def handle_invoice_failed(self, invoice: dict[str, Any]) -> None:
        local = self._local_subscription(_invoice_subscription_id(invoice))
        if local is None:
            return

        payments_repository.update_subscription(local.id, {"status": "past_due"})
        notify_best_effort(
            [local.user_id],
            "system",
            "Payment Failed",
            f'Your subscription payment for "{_product_title(local)}" failed. '
            "Please update your payment method.",
            link="/subscriptions",
            related_id=local.course_id or local.book_id,
            related_type="course" if local.course_id else "book",
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve_user(self, user_id: str | None, customer_id: str | None) -> str:
        """Profile id from metadata, else from the Stripe customer's email."""
        if user_id and profiles_repository.get_profile(user_id) is not None:
            return user_id

        email = None
        if customer_id and configure_stripe():
            customer = stripe.Customer.retrieve(customer_id)
            email = getattr(customer, "email", None)

        profile = profiles_repository.get_profile_by_email(email) if email else None
        if profile is None:
            logger.error("stripe_webhook.user_not_found", user_id=user_id, customer=customer_id)
            raise NotFoundError("User")
        return profile.id

    def _local_subscription(self, stripe_subscription_id: str | None) -> SubscriptionRecord | None:
        if not stripe_subscription_id:
            return None
        local = payments_repository.get_subscription_by_stripe_id(stripe_subscription_id)
        if local is None:
            logger.warning(
                "stripe_webhook.subscription_unknown",
                stripe_subscription_id=stripe_subscription_id,
            )
        return local


def _require_profile(user_id: str) -> None:
    if profiles_repository.get_profile(user_id) is None:
        raise NotFoundError("User", user_id)


def _grant_access(
    user_id: str,
    course_id: str | None,
    book_id: str | None,
    purchase_type: str,
    price_paid: float,
) -> None:
    if course_id:
        enrollments_repository.ensure_enrollment(user_id, course_id)
    if book_id:
        books_repository.ensure_purchase(user_id, book_id, purchase_type, price_paid)


def _first_item(subscription: dict[str, Any]) -> dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _unit_amount(subscription: dict[str, Any]) -> float:
    price = _first_item(subscription).get("price") or {}
    return (price.get("unit_amount") or 0) / 100


def _subscription_fields(subscription: dict[str, Any]) -> dict[str, Any]:
    """Columns mirrored from a Stripe subscription object.

    Newer API versions carry the billing period on the subscription item
    instead of the subscription.
    """
    item = _first_item(subscription)
    price = item.get("price") or {}
    interval = (price.get("recurring") or {}).get("interval")
    start = subscription.get("current_period_start") or item.get("current_period_start")
    end = subscription.get("current_period_end") or item.get("current_period_end")

    return {
        "status": subscription.get("status") or "incomplete",
        "billing_cycle": "yearly" if interval == "year" else "monthly",
        "stripe_price_id": price.get("id"),
        "current_period_start": from_unix(start),
        "current_period_end": from_unix(end),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
    }


def _invoice_subscription_id(invoice: dict[str, Any]) -> str | None:
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def _product_title(subscription: SubscriptionRecord) -> str:
    return product_title(subscription) or "your subscription"
