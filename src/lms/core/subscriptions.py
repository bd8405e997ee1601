"""Subscription management and expiry reminders."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import stripe
import structlog

from lms.config import load_app_config
from lms.core.errors import NotFoundError, PaymentError
from lms.core.notifications import notify
from lms.core.payments import configure_stripe
from lms.db import books_repository, courses_repository, payments_repository
from lms.db.payments_repository import SubscriptionRecord
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import parse_iso, utc_now

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class SubscriptionView:
    subscription: SubscriptionRecord
    product_type: str
    product_title: str | None


@dataclass
class ExpiryCheckResult:
    """Outcome of one expiry reminder run."""

    total: int
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def list_subscriptions(user: ProfileRecord) -> list[SubscriptionView]:
    """Subscriptions of the user, newest first, with product titles."""
    return [
        SubscriptionView(
            subscription=sub,
            product_type="course" if sub.course_id else "book",
            product_title=product_title(sub),
        )
        for sub in payments_repository.list_user_subscriptions(user.id)
    ]


def cancel_subscription(user: ProfileRecord, subscription_id: str) -> SubscriptionRecord:
    """Cancel at the end of the current billing period."""
    return _set_cancel_at_period_end(user, subscription_id, True)


def resume_subscription(user: ProfileRecord, subscription_id: str) -> SubscriptionRecord:
    """Undo a pending cancellation."""
    return _set_cancel_at_period_end(user, subscription_id, False)


def _set_cancel_at_period_end(user: ProfileRecord, subscription_id: str, cancel: bool) -> SubscriptionRecord:
    subscription = payments_repository.get_subscription(subscription_id)
    if subscription is None or subscription.user_id != user.id:
        raise NotFoundError("Subscription", subscription_id)

    if subscription.stripe_subscription_id and configure_stripe():
        try:
            stripe.Subscription.modify(
                subscription.stripe_subscription_id,
                cancel_at_period_end=cancel,
            )
        except stripe.error.StripeError as e:
            logger.error(
                "subscriptions.stripe_error",
                subscription_id=subscription_id,
                error=str(e),
            )
            raise PaymentError(f"Payment provider error: {e.user_message or e}") from e

    updated = payments_repository.update_subscription(
        subscription_id, {"cancel_at_period_end": cancel}
    )
    logger.info(
        "subscriptions.cancel_flag_set",
        subscription_id=subscription_id,
        cancel_at_period_end=cancel,
    )
    return updated


def expiry_message(title: str, days: int, urgent_days: int = 3) -> str:
    if days <= 1:
        return f'Your subscription for "{title}" expires today! Renew now to continue access.'
    if days <= urgent_days:
        return f'Your subscription for "{title}" expires in {days} days. Renew now to continue access.'
    return f'Your subscription for "{title}" expires in {days} days.'


def check_expiring_subscriptions(now: datetime | None = None) -> ExpiryCheckResult:
    """Notify owners of active subscriptions whose period ends within the window.

    Args:
        now: Reference time (aware UTC); defaults to the current time

    Returns:
        ExpiryCheckResult with the ids that were (not) notified
    """
    config = load_app_config().notifications
    now = now or utc_now()
    window_end = now + timedelta(days=config.expiring_window_days)

    expiring = payments_repository.list_subscriptions_ending_between(
        now.isoformat(), window_end.isoformat()
    )
    result = ExpiryCheckResult(total=len(expiring))

    for subscription in expiring:
        remaining = (parse_iso(subscription.current_period_end) - now).total_seconds()
        days = math.ceil(remaining / SECONDS_PER_DAY)
        title = product_title(subscription) or "your subscription"
        try:
            notify(
                [subscription.user_id],
                "subscription_expiring",
                "Subscription Expiring Soon",
                expiry_message(title, days, config.urgent_window_days),
                link="/subscriptions",
                related_id=subscription.id,
                related_type="subscription",
            )
        except Exception:
            logger.exception("subscriptions.reminder_failed", subscription_id=subscription.id)
            result.failed.append(subscription.id)
        else:
            result.sent.append(subscription.id)

    logger.info(
        "subscriptions.expiry_check",
        total=result.total,
        sent=len(result.sent),
        failed=len(result.failed),
    )
    return result


def product_title(subscription: SubscriptionRecord) -> str | None:
    if subscription.course_id:
        course = courses_repository.get_course(subscription.course_id)
        return course.title if course else None
    if subscription.book_id:
        book = books_repository.get_book(subscription.book_id)
        return book.title if book else None
    return None
