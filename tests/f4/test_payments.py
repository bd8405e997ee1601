"""Tests for pricing, revenue split and checkout (F4)."""

import asyncio
from unittest.mock import patch

import pytest
import stripe

from lms.core import books, catalog, payments
from lms.core.errors import ConflictError, NotFoundError, PaymentError, ValidationError
from lms.db import books_repository, enrollments_repository


@pytest.fixture
def book(instructor):
    return books.create_book(instructor, title="Field Guide", price=20.0, status="published")


@pytest.fixture
def stripe_key(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")


class TestQuotePrice:
    def test_one_time_in_cents(self, course):
        quote = payments.quote_price(course)
        assert quote.amount_cents == 4999
        assert not quote.is_subscription

    def test_monthly_when_enabled(self, instructor):
        record = catalog.create_course(
            instructor, title="Sub", price=100, monthly_price=9.99, subscription_enabled=True
        )
        quote = payments.quote_price(record, "monthly")
        assert quote.amount_cents == 999
        assert quote.interval == "month"

    def test_recurring_falls_back_to_one_time(self, instructor):
        record = catalog.create_course(instructor, title="No sub", price=30, yearly_price=200)
        quote = payments.quote_price(record, "yearly")
        assert quote.amount_cents == 3000
        assert quote.interval is None


class TestSplitCommission:
    def test_default_rate(self, db):
        assert payments.split_commission(49.99) == (10.0, 39.99)

    def test_explicit_rate(self):
        assert payments.split_commission(100, rate=0.3) == (30.0, 70.0)

    def test_zero(self):
        assert payments.split_commission(0, rate=0.2) == (0.0, 0.0)


class TestConfigureStripe:
    def test_free_mode_without_key(self, db):
        assert not payments.configure_stripe()

    def test_sets_api_key(self, db, stripe_key, monkeypatch):
        monkeypatch.setattr(stripe, "api_key", None)
        assert payments.configure_stripe()
        assert stripe.api_key == "sk_test_dummy"


class TestFreeCheckout:
    """Without a Stripe key checkout grants access directly."""

    def test_course_enrolls(self, student, course):
        result = payments.create_checkout(student, course_id=course.id)
        assert result.free
        assert enrollments_repository.get_enrollment(student.id, course.id) is not None

    def test_book_purchase(self, student, book):
        result = payments.create_checkout(student, book_id=book.id, purchase_type="physical")
        assert result.free
        purchase = books_repository.get_purchase(student.id, book.id)
        assert purchase.purchase_type == "physical"
        assert purchase.price_paid == 0.0

    def test_zero_price_is_free_even_with_stripe(self, student, instructor, stripe_key):
        record = catalog.create_course(instructor, title="Free", price=0)
        catalog.publish_course(instructor, record.id)
        with patch("lms.core.payments.stripe.checkout.Session.create") as create:
            result = payments.create_checkout(student, course_id=record.id)
        assert result.free
        create.assert_not_called()

    def test_exactly_one_product(self, student, course, book):
        with pytest.raises(ValidationError):
            payments.create_checkout(student)
        with pytest.raises(ValidationError):
            payments.create_checkout(student, course_id=course.id, book_id=book.id)

    def test_bad_payment_type(self, student, course):
        with pytest.raises(ValidationError):
            payments.create_checkout(student, course_id=course.id, payment_type="weekly")

    def test_unpublished_course(self, student, instructor):
        draft = catalog.create_course(instructor, title="Draft", price=5)
        with pytest.raises(NotFoundError):
            payments.create_checkout(student, course_id=draft.id)

    def test_already_enrolled(self, student, course):
        payments.create_checkout(student, course_id=course.id)
        with pytest.raises(ConflictError):
            payments.create_checkout(student, course_id=course.id)


class TestStripeCheckout:
    def test_payment_session(self, student, course, stripe_key):
        with patch("lms.core.payments.stripe.checkout.Session.create") as create:
            create.return_value = {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
            result = payments.create_checkout(student, course_id=course.id)

        assert not result.free
        assert result.session_id == "cs_test_1"
        assert result.url.endswith("cs_test_1")

        params = create.call_args.kwargs
        assert params["mode"] == "payment"
        assert params["metadata"]["userId"] == student.id
        assert params["metadata"]["courseId"] == course.id
        assert params["metadata"]["bookId"] == ""
        assert params["line_items"][0]["price_data"]["unit_amount"] == 4999
        # Access is granted by the webhook, not at session creation
        assert enrollments_repository.get_enrollment(student.id, course.id) is None

    def test_subscription_session(self, student, instructor, stripe_key):
        record = catalog.create_course(
            instructor, title="Monthly", price=100, monthly_price=12.5, subscription_enabled=True
        )
        catalog.publish_course(instructor, record.id)
        with patch("lms.core.payments.stripe.checkout.Session.create") as create:
            create.return_value = {"id": "cs_sub", "url": None}
            payments.create_checkout(student, course_id=record.id, payment_type="monthly")

        params = create.call_args.kwargs
        assert params["mode"] == "subscription"
        assert params["customer_email"] == student.email
        assert params["line_items"][0]["price_data"]["recurring"] == {"interval": "month"}
        assert params["subscription_data"]["metadata"]["paymentType"] == "monthly"

    def test_stripe_error_becomes_payment_error(self, student, course, stripe_key):
        with patch("lms.core.payments.stripe.checkout.Session.create") as create:
            create.side_effect = stripe.error.StripeError("card network down")
            with pytest.raises(PaymentError):
                payments.create_checkout(student, course_id=course.id)


class TestCheckoutEndpoint:
    def test_free_checkout(self, client, student, course, as_user):
        response = client.post("/api/checkout", json={"course_id": course.id}, headers=as_user(student))
        assert response.status_code == 200
        assert response.json() == {"free": True, "session_id": None, "url": None}

    def test_requires_identity(self, client, course):
        response = client.post("/api/checkout", json={"course_id": course.id})
        assert response.status_code == 401

    def test_session_returned(self, client, student, course, stripe_key, as_user):
        with patch("lms.core.payments.stripe.checkout.Session.create") as create:
            create.return_value = {"id": "cs_test_2", "url": "https://checkout.stripe.test/2"}
            response = client.post("/api/checkout", json={"course_id": course.id}, headers=as_user(student))
        assert response.json()["session_id"] == "cs_test_2"

    def test_book_checkout_then_listing(self, client, student, book, as_user):
        client.post("/api/checkout", json={"book_id": book.id}, headers=as_user(student))
        purchases = client.get("/api/books/purchases", headers=as_user(student)).json()
        assert purchases[0]["book"]["title"] == "Field Guide"

    def test_stripe_called_off_event_loop(self, client, student, course, stripe_key, as_user):
        loops = []

        def create(**params):
            try:
                loops.append(asyncio.get_running_loop())
            except RuntimeError:
                loops.append(None)
            return {"id": "cs_test_3", "url": "https://checkout.stripe.test/3"}

        with patch("lms.core.payments.stripe.checkout.Session.create", side_effect=create):
            client.post("/api/checkout", json={"course_id": course.id}, headers=as_user(student))
        assert loops == [None]
