"""Repository functions for payments, subscriptions and processed Stripe events."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)

SUBSCRIPTION_FIELDS = (
    "status",
    "billing_cycle",
    "stripe_price_id",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
    "canceled_at",
    "platform_commission",
    "creator_earnings",
)


@dataclass
class PaymentRecord:
    """Payment record from database."""

    id: str
    user_id: str
    stripe_payment_id: str | None
    amount: float
    currency: str
    status: str
    payment_type: str
    course_id: str | None
    book_id: str | None
    platform_commission: float
    creator_earnings: float
    created_at: str


@dataclass
class SubscriptionRecord:
    """Subscription record from database."""

    id: str
    user_id: str
    course_id: str | None
    book_id: str | None
    stripe_subscription_id: str | None
    stripe_customer_id: str | None
    stripe_price_id: str | None
    status: str
    billing_cycle: str
    current_period_start: str | None
    current_period_end: str | None
    cancel_at_period_end: bool
    canceled_at: str | None
    platform_commission: float
    creator_earnings: float
    created_at: str
    updated_at: str


# =============================================================================
# PAYMENTS
# =============================================================================


def insert_payment(
    user_id: str,
    amount: float,
    payment_type: str,
    platform_commission: float,
    creator_earnings: float,
    stripe_payment_id: str | None = None,
    currency: str = "usd",
    status: str = "completed",
    course_id: str | None = None,
    book_id: str | None = None,
) -> PaymentRecord:
    """Insert a payment row.

    Raises:
        sqlite3.IntegrityError: If stripe_payment_id was already recorded
    """
    record = PaymentRecord(
        id=new_id(),
        user_id=user_id,
        stripe_payment_id=stripe_payment_id,
        amount=amount,
        currency=currency,
        status=status,
        payment_type=payment_type,
        course_id=course_id,
        book_id=book_id,
        platform_commission=platform_commission,
        creator_earnings=creator_earnings,
        created_at=utc_now_iso(),
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO payments (
                id, user_id, stripe_payment_id, amount, currency, status,
                payment_type, course_id, book_id, platform_commission,
                creator_earnings, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.user_id,
                record.stripe_payment_id,
                record.amount,
                record.currency,
                record.status,
                record.payment_type,
                record.course_id,
                record.book_id,
                record.platform_commission,
                record.creator_earnings,
                record.created_at,
            ),
        )

    logger.info(
        "payments.inserted",
        payment_id=record.id,
        user_id=user_id,
        amount=amount,
        payment_type=payment_type,
    )
    return record


def get_payment_by_stripe_id(stripe_payment_id: str) -> PaymentRecord | None:
    """Payment by provider id (payment intent or invoice)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM payments WHERE stripe_payment_id = ?", (stripe_payment_id,)
        ).fetchone()

    return _row_to_payment(row) if row else None


def list_payments(
    user_id: str | None = None,
    course_ids: list[str] | None = None,
    status: str | None = "completed",
    since: str | None = None,
) -> list[PaymentRecord]:
    """List payments, newest first.

    Args:
        user_id: Only payments made by this user
        course_ids: Only payments for these courses (empty list matches nothing)
        status: Only payments with this status (None for any)
        since: Only payments created at or after this ISO timestamp
    """
    query = "SELECT * FROM payments WHERE 1 = 1"
    params: list[Any] = []
    if user_id:
        query += " AND user_id = ?"
        params.append(user_id)
    if course_ids is not None:
        if not course_ids:
            return []
        query += f" AND course_id IN ({','.join('?' for _ in course_ids)})"
        params.extend(course_ids)
    if status:
        query += " AND status = ?"
        params.append(status)
    if since:
        query += " AND created_at >= ?"
        params.append(since)
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_payment(row) for row in rows]


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================


def insert_subscription(
    user_id: str,
    status: str,
    billing_cycle: str,
    stripe_subscription_id: str | None = None,
    stripe_customer_id: str | None = None,
    stripe_price_id: str | None = None,
    course_id: str | None = None,
    book_id: str | None = None,
    current_period_start: str | None = None,
    current_period_end: str | None = None,
    cancel_at_period_end: bool = False,
    platform_commission: float = 0.0,
    creator_earnings: float = 0.0,
) -> SubscriptionRecord:
    """Insert a subscription row mirrored from the payment provider."""
    now = utc_now_iso()
    subscription_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO subscriptions (
                id, user_id, course_id, book_id, stripe_subscription_id,
                stripe_customer_id, stripe_price_id, status, billing_cycle,
                current_period_start, current_period_end, cancel_at_period_end,
                platform_commission, creator_earnings, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                subscription_id,
                user_id,
                course_id,
                book_id,
                stripe_subscription_id,
                stripe_customer_id,
                stripe_price_id,
                status,
                billing_cycle,
                current_period_start,
                current_period_end,
                int(cancel_at_period_end),
                platform_commission,
                creator_earnings,
                now,
                now,
            ),
        )

    logger.info(
        "subscriptions.inserted",
        subscription_id=subscription_id,
        user_id=user_id,
        status=status,
    )
    return get_subscription(subscription_id)


def get_subscription(subscription_id: str) -> SubscriptionRecord | None:
    """Get subscription by id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
        ).fetchone()

    return _row_to_subscription(row) if row else None


def get_subscription_by_stripe_id(stripe_subscription_id: str) -> SubscriptionRecord | None:
    """Subscription by provider id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subscriptions WHERE stripe_subscription_id = ?",
            (stripe_subscription_id,),
        ).fetchone()

    return _row_to_subscription(row) if row else None


def list_user_subscriptions(user_id: str) -> list[SubscriptionRecord]:
    """Subscriptions of a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        ).fetchall()

    return [_row_to_subscription(row) for row in rows]


def list_subscriptions_ending_between(start: str, end: str) -> list[SubscriptionRecord]:
    """Active subscriptions whose current period ends in (start, end]."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM subscriptions
            WHERE status = 'active'
              AND current_period_end IS NOT NULL
              AND current_period_end > ?
              AND current_period_end <= ?
            ORDER BY current_period_end
            """,
            (start, end),
        ).fetchall()

    return [_row_to_subscription(row) for row in rows]


def update_subscription(subscription_id: str, changes: dict[str, Any]) -> SubscriptionRecord | None:
    """Apply a partial update to a subscription."""
    unknown = set(changes) - set(SUBSCRIPTION_FIELDS)
    if unknown:
        raise ValueError(f"Unknown subscription fields: {sorted(unknown)}")

    if changes:
        values = dict(changes)
        if "cancel_at_period_end" in values:
            values["cancel_at_period_end"] = int(bool(values["cancel_at_period_end"]))
        assignments = ", ".join(f"{column} = ?" for column in values)
        with get_db() as conn:
            conn.execute(
                f"UPDATE subscriptions SET {assignments}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now_iso(), subscription_id),
            )
        logger.debug(
            "subscriptions.updated",
            subscription_id=subscription_id,
            fields=sorted(values),
        )

    return get_subscription(subscription_id)


# =============================================================================
# STRIPE EVENTS
# =============================================================================


def record_event(event_id: str, event_type: str) -> bool:
    """Remember a processed webhook event.

    Returns:
        False if the event had already been recorded
    """
    try:
        with get_db() as conn:
            conn.execute(
                "INSERT INTO stripe_events (event_id, event_type, processed_at) VALUES (?, ?, ?)",
                (event_id, event_type, utc_now_iso()),
            )
    except sqlite3.IntegrityError:
        return False

    return True


def is_event_processed(event_id: str) -> bool:
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM stripe_events WHERE event_id = ?", (event_id,)
        ).fetchone()

    return row is not None


def _row_to_payment(row) -> PaymentRecord:
    """Convert database row to PaymentRecord."""
    return PaymentRecord(
        id=row["id"],
        user_id=row["user_id"],
        stripe_payment_id=row["stripe_payment_id"],
        amount=row["amount"],
        currency=row["currency"],
        status=row["status"],
        payment_type=row["payment_type"],
        course_id=row["course_id"],
        book_id=row["book_id"],
        platform_commission=row["platform_commission"],
        creator_earnings=row["creator_earnings"],
        created_at=row["created_at"],
    )


def _row_to_subscription(row) -> SubscriptionRecord:
    """Convert database row to SubscriptionRecord."""
    return SubscriptionRecord(
        id=row["id"],
        user_id=row["user_id"],
        course_id=row["course_id"],
        book_id=row["book_id"],
        stripe_subscription_id=row["stripe_subscription_id"],
        stripe_customer_id=row["stripe_customer_id"],
        stripe_price_id=row["stripe_price_id"],
        status=row["status"],
        billing_cycle=row["billing_cycle"],
        current_period_start=row["current_period_start"],
        current_period_end=row["current_period_end"],
        cancel_at_period_end=bool(row["cancel_at_period_end"]),
        canceled_at=row["canceled_at"],
        platform_commission=row["platform_commission"],
        creator_earnings=row["creator_earnings"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
