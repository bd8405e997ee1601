"""Tests for the Stripe webhook handler (F4).

Events are passed as plain dicts, the shape Stripe posts. Signed requests
use the documented scheme: HMAC-SHA256 over "<timestamp>.<payload>".
"""

import hashlib
import hmac
import asyncio
import json
import time
from unittest.mock import MagicMock, patch

import pytest

from lms.core import books
from lms.core.errors import NotFoundError, WebhookSignatureError
from lms.core.notifications import list_for_user
from lms.core.stripe_webhook import StripeWebhookHandler
from lms.db import books_repository, enrollments_repository, payments_repository
from lms.utils.validators import from_unix

SECRET = "whsec_test_secret"
PERIOD_START = 1_735_689_600  # 2025-01-01
PERIOD_END = 1_738_368_000  # 2025-02-01
NEXT_PERIOD_END = 1_740_787_200  # 2025-03-01


def sign(payload: str, secret: str = SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event(event_id: str, event_type: str, obj: dict) -> dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


def checkout_session(user_id: str, course_id: str = "", book_id: str = "", amount: int = 4999, **extra) -> dict:
    session = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "mode": "payment",
        "amount_total": amount,
        "currency": "usd",
        "metadata": {"userId": user_id, "courseId": course_id, "bookId": book_id, "type": "digital"},
    }
    session.update(extra)
    return session


def stripe_subscription(user_id: str, course_id: str, **extra) -> dict:
    subscription = {
        "id": "sub_test_1",
        "object": "subscription",
        "customer": "cus_test_1",
        "status": "active",
        "cancel_at_period_end": False,
        "metadata": {"userId": user_id, "courseId": course_id, "bookId": "", "type": "digital"},
        "items": {
            "data": [
                {
                    "price": {"id": "price_1", "unit_amount": 1250, "recurring": {"interval": "month"}},
                    "current_period_start": PERIOD_START,
                    "current_period_end": PERIOD_END,
                }
            ]
        },
    }
    subscription.update(extra)
    return subscription


@pytest.fixture
def handler(db):
    return StripeWebhookHandler(webhook_secret=SECRET)


@pytest.fixture
def subscribed(handler, student, course):
    handler.process_event(event("evt_sub_created", "customer.subscription.created", stripe_subscription(student.id, course.id)))
    return payments_repository.get_subscription_by_stripe_id("sub_test_1")


class TestSignatureVerification:
    def test_valid_signature(self, handler):
        payload = json.dumps(event("evt_1", "ping", {}))
        decoded = handler.verify_signature(payload.encode(), sign(payload))
        assert decoded["id"] == "evt_1"

    def test_missing_signature(self, handler):
        with pytest.raises(WebhookSignatureError, match="No signature"):
            handler.verify_signature(b"{}", None)

    def test_wrong_secret(self, handler):
        payload = json.dumps(event("evt_1", "ping", {}))
        with pytest.raises(WebhookSignatureError, match="Invalid signature"):
            handler.verify_signature(payload.encode(), sign(payload, secret="whsec_other"))

    def test_no_secret_configured(self, db):
        payload = json.dumps(event("evt_1", "ping", {}))
        with pytest.raises(WebhookSignatureError):
            StripeWebhookHandler().verify_signature(payload.encode(), sign(payload))


class TestEventProcessing:
    def test_unknown_type_is_acknowledged(self, handler):
        assert handler.process_event(event("evt_x", "charge.refunded", {})) == {"received": True}
        assert payments_repository.is_event_processed("evt_x")

    def test_duplicate_delivery(self, handler, student, course):
        delivery = event("evt_pay", "checkout.session.completed", checkout_session(student.id, course.id))
        handler.process_event(delivery)
        assert handler.process_event(delivery) == {"received": True, "duplicate": True}
        assert len(payments_repository.list_payments(user_id=student.id)) == 1

    def test_failed_handler_is_not_recorded(self, handler, course):
        delivery = event("evt_ghost", "checkout.session.completed", checkout_session("ghost", course.id))
        with pytest.raises(NotFoundError):
            handler.process_event(delivery)
        assert not payments_repository.is_event_processed("evt_ghost")


class TestCheckoutCompleted:
    def test_course_payment(self, handler, student, course):
        handler.process_event(
            event("evt_pay", "checkout.session.completed", checkout_session(student.id, course.id))
        )

        assert enrollments_repository.get_enrollment(student.id, course.id) is not None
        [payment] = payments_repository.list_payments(user_id=student.id)
        assert payment.amount == 49.99
        assert payment.payment_type == "course"
        assert payment.platform_commission == 10.0
        assert payment.creator_earnings == 39.99

        titles = [n.title for n in list_for_user(student.id)]
        assert "Payment Successful" in titles
        assert "Enrollment Successful" in titles

    def test_book_payment(self, handler, student, instructor):
        book = books.create_book(instructor, title="Atlas", price=15, status="published")
        handler.process_event(
            event("evt_book", "checkout.session.completed", checkout_session(student.id, book_id=book.id, amount=1500))
        )
        purchase = books_repository.get_purchase(student.id, book.id)
        assert purchase.price_paid == 15.0
        assert "Book Purchase Successful" in [n.title for n in list_for_user(student.id)]

    def test_same_session_new_event_id(self, handler, student, course):
        session = checkout_session(student.id, course.id)
        handler.process_event(event("evt_a", "checkout.session.completed", session))
        handler.process_event(event("evt_b", "checkout.session.completed", session))
        assert len(payments_repository.list_payments(user_id=student.id)) == 1

    def test_missing_metadata_is_ignored(self, handler, student):
        session = checkout_session(student.id)
        assert handler.process_event(event("evt_m", "checkout.session.completed", session)) == {"received": True}
        assert payments_repository.list_payments(user_id=student.id) == []

    def test_subscription_mode_only_grants_access(self, handler, student, course):
        session = checkout_session(student.id, course.id, mode="subscription", subscription="sub_test_1")
        handler.process_event(event("evt_sc", "checkout.session.completed", session))
        assert enrollments_repository.get_enrollment(student.id, course.id) is not None
        assert payments_repository.list_payments(user_id=student.id) == []


class TestSubscriptionLifecycle:
    def test_created_mirrors_stripe(self, subscribed, student, course):
        assert subscribed.user_id == student.id
        assert subscribed.status == "active"
        assert subscribed.billing_cycle == "monthly"
        assert subscribed.current_period_end == from_unix(PERIOD_END)
        assert subscribed.platform_commission == 2.5
        assert subscribed.creator_earnings == 10.0
        assert enrollments_repository.get_enrollment(student.id, course.id) is not None

    def test_created_twice_updates(self, handler, subscribed, student, course):
        again = stripe_subscription(student.id, course.id, status="trialing")
        handler.process_event(event("evt_sub_created_2", "customer.subscription.created", again))
        assert payments_repository.get_subscription(subscribed.id).status == "trialing"
        assert len(payments_repository.list_user_subscriptions(student.id)) == 1

    def test_updated(self, handler, subscribed, student, course):
        changed = stripe_subscription(student.id, course.id, cancel_at_period_end=True, canceled_at=PERIOD_START)
        handler.process_event(event("evt_upd", "customer.subscription.updated", changed))
        local = payments_repository.get_subscription(subscribed.id)
        assert local.cancel_at_period_end
        assert local.canceled_at == from_unix(PERIOD_START)

    def test_deleted(self, handler, subscribed, student, course):
        handler.process_event(
            event("evt_del", "customer.subscription.deleted", stripe_subscription(student.id, course.id))
        )
        local = payments_repository.get_subscription(subscribed.id)
        assert local.status == "canceled"
        assert local.canceled_at is not None
        assert "Subscription Canceled" in [n.title for n in list_for_user(student.id)]

    def test_update_for_unknown_subscription(self, handler, student, course):
        unknown = stripe_subscription(student.id, course.id, id="sub_unknown")
        assert handler.process_event(event("evt_u", "customer.subscription.updated", unknown)) == {"received": True}


    def test_invoice_paid_rolls_period(self, handler, subscribed, student):
        invoice = {
            "id": "in_test_1",
            "object": "invoice",
            "subscription": "sub_test_1",
            "amount_paid": 1250,
            "currency": "usd",
            "lines": {"data": [{"period": {"start": PERIOD_END, "end": NEXT_PERIOD_END}}]},
        }
        handler.process_event(event("evt_inv", "invoice.payment_succeeded", invoice))

        local = payments_repository.get_subscription(subscribed.id)
        assert local.status == "active"
        assert local.current_period_end == from_unix(NEXT_PERIOD_END)
        [payment] = payments_repository.list_payments(user_id=student.id)
        assert payment.stripe_payment_id == "in_test_1"
        assert payment.amount == 12.5
        assert "Subscription Renewed" in [n.title for n in list_for_user(student.id)]

    def test_invoice_subscription_from_parent(self, handler, subscribed, student):
        invoice = {
            "id": "in_test_2",
            "amount_paid": 0,
            "parent": {"subscription_details": {"subscription": "sub_test_1"}},
        }
        handler.process_event(event("evt_inv0", "invoice.payment_succeeded", invoice))
        # Zero-amount invoices roll state but record no payment
        assert payments_repository.list_payments(user_id=student.id) == []
        assert payments_repository.get_subscription(subscribed.id).status == "active"

    def test_invoice_failed(self, handler, subscribed, student):
        invoice = {"id": "in_test_3", "subscription": "sub_test_1", "amount_due": 1250}
        handler.process_event(event("evt_fail", "invoice.payment_failed", invoice))
        assert payments_repository.get_subscription(subscribed.id).status == "past_due"
        assert "Payment Failed" in [n.title for n in list_for_user(student.id)]


class TestSubscriptionCreatedResolution:
    """customer.subscription.created without a usable userId in the metadata."""

    @pytest.fixture
    def stripe_key(self, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")

    def _anonymous(self, course_id: str, **extra) -> dict:
        subscription = stripe_subscription("", course_id, **extra)
        subscription["metadata"]["userId"] = ""
        return subscription

    def test_user_from_customer_email(self, handler, student, course, stripe_key):
        with patch("lms.core.stripe_webhook.stripe.Customer.retrieve") as retrieve:
            retrieve.return_value = MagicMock(email=student.email)
            handler.process_event(event("evt_c1", "customer.subscription.created", self._anonymous(course.id)))

        retrieve.assert_called_once_with("cus_test_1")
        local = payments_repository.get_subscription_by_stripe_id("sub_test_1")
        assert local.user_id == student.id
        assert enrollments_repository.get_enrollment(student.id, course.id) is not None

    def test_stale_user_id_falls_back_to_email(self, handler, student, course, stripe_key):
        subscription = stripe_subscription("deleted-user", course.id)
        with patch("lms.core.stripe_webhook.stripe.Customer.retrieve") as retrieve:
            retrieve.return_value = MagicMock(email=student.email)
            handler.process_event(event("evt_c2", "customer.subscription.created", subscription))
        assert payments_repository.get_subscription_by_stripe_id("sub_test_1").user_id == student.id

    def test_unknown_customer_email(self, handler, course, stripe_key):
        with patch("lms.core.stripe_webhook.stripe.Customer.retrieve") as retrieve:
            retrieve.return_value = MagicMock(email="ghost@example.com")
            with pytest.raises(NotFoundError):
                handler.process_event(event("evt_c3", "customer.subscription.created", self._anonymous(course.id)))
        assert payments_repository.get_subscription_by_stripe_id("sub_test_1") is None
        assert not payments_repository.is_event_processed("evt_c3")

    def test_no_stripe_key_means_unknown_user(self, handler, course):
        with patch("lms.core.stripe_webhook.stripe.Customer.retrieve") as retrieve:
            with pytest.raises(NotFoundError):
                handler.process_event(event("evt_c4", "customer.subscription.created", self._anonymous(course.id)))
        retrieve.assert_not_called()

    def test_unknown_user_returns_404(self, client, course, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
        payload = json.dumps(event("evt_c5", "customer.subscription.created", self._anonymous(course.id)))
        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": sign(payload), "Content-Type": "application/json"},
        )
        assert response.status_code == 404

    def test_yearly_interval(self, handler, student, course):
        yearly = stripe_subscription(student.id, course.id)
        yearly["items"]["data"][0]["price"]["recurring"]["interval"] = "year"
        handler.process_event(event("evt_c6", "customer.subscription.created", yearly))
        assert payments_repository.get_subscription_by_stripe_id("sub_test_1").billing_cycle == "yearly"


class TestWebhookEndpoint:
    def test_signed_delivery(self, client, student, course, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
        payload = json.dumps(event("evt_http", "checkout.session.completed", checkout_session(student.id, course.id)))
        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": sign(payload), "Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert enrollments_repository.get_enrollment(student.id, course.id) is not None

    def test_bad_signature(self, client, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
        payload = json.dumps(event("evt_bad", "ping", {}))
        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": sign(payload, secret="whsec_wrong")},
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid signature"}

    def test_missing_signature(self, client):
        response = client.post("/api/webhooks/stripe", content=b"{}")
        assert response.status_code == 400
        assert response.json() == {"detail": "No signature"}

    def test_handled_off_event_loop(self, client):
        loops = []

        def handle(payload, signature):
            try:
                loops.append(asyncio.get_running_loop())
            except RuntimeError:
                loops.append(None)
            return {"received": True}

        with patch("lms.web.routes.payments.StripeWebhookHandler") as handler_cls:
            handler_cls.return_value.handle.side_effect = handle
            response = client.post("/api/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
        assert response.status_code == 200
        assert loops == [None]
