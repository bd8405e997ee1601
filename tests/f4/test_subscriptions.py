"""Tests for subscription management and expiry reminders (F4)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from lms.core import subscriptions
from lms.core.errors import NotFoundError
from lms.core.notifications import list_for_user
from lms.db import payments_repository

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_subscription(user, course, ends_in: timedelta | None, status: str = "active", stripe_id=None):
    end = (NOW + ends_in).isoformat() if ends_in is not None else None
    return payments_repository.insert_subscription(
        user_id=user.id,
        course_id=course.id,
        status=status,
        billing_cycle="monthly",
        stripe_subscription_id=stripe_id,
        current_period_start=(NOW - timedelta(days=28)).isoformat(),
        current_period_end=end,
    )


class TestExpiryMessage:
    def test_today(self):
        assert "expires today!" in subscriptions.expiry_message("Python 101", 1)

    def test_urgent(self):
        message = subscriptions.expiry_message("Python 101", 3)
        assert message.endswith("in 3 days. Renew now to continue access.")

    def test_plain(self):
        assert subscriptions.expiry_message("Python 101", 6) == (
            'Your subscription for "Python 101" expires in 6 days.'
        )


class TestCheckExpiring:
    def test_window_selection(self, student, course):
        soon = make_subscription(student, course, timedelta(days=2))
        make_subscription(student, course, timedelta(days=10))
        make_subscription(student, course, timedelta(days=-1))
        make_subscription(student, course, timedelta(days=2), status="canceled")

        result = subscriptions.check_expiring_subscriptions(now=NOW)
        assert result.total == 1
        assert result.sent == [soon.id]
        assert result.failed == []

        [note] = [n for n in list_for_user(student.id) if n.type == "subscription_expiring"]
        assert note.title == "Subscription Expiring Soon"
        assert '"Python 101" expires in 2 days' in note.message

    def test_partial_day_rounds_up(self, student, course):
        make_subscription(student, course, timedelta(hours=30))
        subscriptions.check_expiring_subscriptions(now=NOW)
        [note] = [n for n in list_for_user(student.id) if n.type == "subscription_expiring"]
        assert "expires in 2 days" in note.message

    def test_last_day(self, student, course):
        make_subscription(student, course, timedelta(hours=5))
        subscriptions.check_expiring_subscriptions(now=NOW)
        [note] = [n for n in list_for_user(student.id) if n.type == "subscription_expiring"]
        assert "expires today!" in note.message

    def test_failure_is_reported(self, student, course):
        sub = make_subscription(student, course, timedelta(days=3))
        with patch("lms.core.subscriptions.notify", side_effect=RuntimeError("db locked")):
            result = subscriptions.check_expiring_subscriptions(now=NOW)
        assert result.failed == [sub.id]
        assert result.sent == []

    def test_reminder_preference_respected(self, student, course):
        from lms.core.notifications import update_settings

        update_settings(student.id, {"reminder_emails": False})
        sub = make_subscription(student, course, timedelta(days=3))
        result = subscriptions.check_expiring_subscriptions(now=NOW)
        assert result.sent == [sub.id]
        assert list_for_user(student.id) == []


class TestCancelResume:
    def test_cancel_and_resume_locally(self, student, course):
        sub = make_subscription(student, course, timedelta(days=20))
        assert subscriptions.cancel_subscription(student, sub.id).cancel_at_period_end
        assert not subscriptions.resume_subscription(student, sub.id).cancel_at_period_end

    def test_other_users_subscription(self, student, other_student, course):
        sub = make_subscription(student, course, timedelta(days=20))
        with pytest.raises(NotFoundError):
            subscriptions.cancel_subscription(other_student, sub.id)

    def test_cancel_calls_stripe(self, student, course, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
        sub = make_subscription(student, course, timedelta(days=20), stripe_id="sub_live")
        with patch("lms.core.subscriptions.stripe.Subscription.modify") as modify:
            subscriptions.cancel_subscription(student, sub.id)
        modify.assert_called_once_with("sub_live", cancel_at_period_end=True)

    def test_list_with_titles(self, student, course):
        make_subscription(student, course, timedelta(days=20))
        [view] = subscriptions.list_subscriptions(student)
        assert view.product_type == "course"
        assert view.product_title == "Python 101"


class TestSubscriptionEndpoints:
    def test_cron_open_without_secret(self, client):
        response = client.post("/api/subscriptions/check-expiring")
        assert response.status_code == 200
        assert response.json() == {"total": 0, "sent": [], "failed": []}

    def test_cron_requires_bearer_secret(self, client, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        assert client.post("/api/subscriptions/check-expiring").status_code == 401
        wrong = client.post("/api/subscriptions/check-expiring", headers={"Authorization": "Bearer nope"})
        assert wrong.status_code == 401
        ok = client.post("/api/subscriptions/check-expiring", headers={"Authorization": "Bearer s3cret"})
        assert ok.status_code == 200

    def test_list_and_cancel(self, client, student, course, as_user):
        sub = make_subscription(student, course, timedelta(days=20))
        listed = client.get("/api/subscriptions", headers=as_user(student)).json()
        assert listed[0]["subscription"]["id"] == sub.id

        response = client.post(f"/api/subscriptions/{sub.id}/cancel", headers=as_user(student))
        assert response.status_code == 200
        assert response.json()["cancel_at_period_end"] is True
