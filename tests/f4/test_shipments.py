"""Tests for shipping physical book orders (F4)."""

import pytest

from lms.core import books
from lms.core.accounts import register_user
from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import list_for_user
from lms.db import books_repository


@pytest.fixture
def book(instructor):
    return books.create_book(instructor, title="Field Guide", price=20.0, status="published")


@pytest.fixture
def order(book, student):
    books_repository.ensure_purchase(student.id, book.id, "physical", 20.0)
    return books_repository.get_purchase(student.id, book.id)


def shipment_notices(user) -> list[str]:
    return [n.message for n in list_for_user(user.id) if n.type == "shipment_update"]


class TestListShipments:
    def test_physical_orders_start_pending(self, order):
        assert order.delivery_status == "pending"
        assert order.shipped_at is None

    def test_digital_copies_are_not_shipped(self, instructor, book, order, other_student):
        books_repository.ensure_purchase(other_student.id, book.id, "digital", 20.0)
        [shipment] = books.list_shipments(instructor, book.id)
        assert shipment.purchase.id == order.id
        assert shipment.student.email == "stu@example.com"
        assert books_repository.get_purchase(other_student.id, book.id).delivery_status is None

    def test_author_only(self, book, order, student):
        with pytest.raises(PermissionDeniedError):
            books.list_shipments(student, book.id)

    def test_admin_may_manage(self, admin, book, order):
        assert len(books.list_shipments(admin, book.id)) == 1


class TestUpdateShipment:
    def test_shipped_stamps_and_notifies(self, instructor, book, order, student):
        updated = books.update_shipment(
            instructor,
            book.id,
            order.id,
            "shipped",
            {"tracking_number": "1Z999", "carrier_name": "UPS"},
        )
        assert updated.delivery_status == "shipped"
        assert updated.tracking_number == "1Z999"
        assert updated.carrier_name == "UPS"
        assert updated.shipped_at is not None
        assert updated.delivered_at is None
        assert shipment_notices(student) == ['Your order for "Field Guide" has been shipped! Tracking: 1Z999']

    def test_shipped_at_kept_once_set(self, instructor, book, order):
        shipped = books.update_shipment(instructor, book.id, order.id, "shipped")
        moving = books.update_shipment(instructor, book.id, order.id, "in_transit")
        assert moving.shipped_at == shipped.shipped_at

    def test_delivered_sets_both_stamps(self, instructor, book, order, student):
        delivered = books.update_shipment(instructor, book.id, order.id, "delivered")
        assert delivered.shipped_at is not None
        assert delivered.delivered_at is not None
        assert shipment_notices(student) == ['Your order for "Field Guide" has been delivered!']

    def test_processing_is_silent(self, instructor, book, order, student):
        books.update_shipment(instructor, book.id, order.id, "processing")
        assert shipment_notices(student) == []

    def test_blank_details_clear(self, instructor, book, order):
        books.update_shipment(instructor, book.id, order.id, "processing", {"tracking_number": "T1"})
        cleared = books.update_shipment(instructor, book.id, order.id, "processing", {"tracking_number": ""})
        assert cleared.tracking_number is None

    def test_unknown_status(self, instructor, book, order):
        with pytest.raises(ValidationError):
            books.update_shipment(instructor, book.id, order.id, "lost")

    def test_purchase_of_other_book(self, instructor, book, student):
        other = books.create_book(instructor, title="Atlas", price=5.0, status="published")
        books_repository.ensure_purchase(student.id, other.id, "physical", 5.0)
        purchase = books_repository.get_purchase(student.id, other.id)
        with pytest.raises(ValidationError):
            books.update_shipment(instructor, book.id, purchase.id, "shipped")

    def test_digital_purchase_rejected(self, instructor, book, student):
        books_repository.ensure_purchase(student.id, book.id, "digital", 20.0)
        purchase = books_repository.get_purchase(student.id, book.id)
        with pytest.raises(ValidationError):
            books.update_shipment(instructor, book.id, purchase.id, "shipped")

    def test_unknown_purchase(self, instructor, book):
        with pytest.raises(NotFoundError):
            books.update_shipment(instructor, book.id, "missing", "shipped")

    def test_other_author(self, book, order):
        rival = register_user("rival@example.com", "Rita", role="instructor", allow_admin=True)
        with pytest.raises(PermissionDeniedError):
            books.update_shipment(rival, book.id, order.id, "shipped")


class TestShipmentEndpoints:
    def test_list_and_update(self, client, instructor, book, order, as_user):
        headers = as_user(instructor)
        listed = client.get(f"/api/books/{book.id}/shipments", headers=headers).json()
        assert listed[0]["purchase"]["delivery_status"] == "pending"
        assert listed[0]["student_email"] == "stu@example.com"

        response = client.patch(
            f"/api/books/{book.id}/shipments/{order.id}",
            json={"delivery_status": "shipped", "tracking_number": "1Z999"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["tracking_number"] == "1Z999"
        assert response.json()["shipped_at"] is not None

    def test_student_forbidden(self, client, book, order, student, as_user):
        response = client.get(f"/api/books/{book.id}/shipments", headers=as_user(student))
        assert response.status_code == 403

    def test_bad_status(self, client, instructor, book, order, as_user):
        response = client.patch(
            f"/api/books/{book.id}/shipments/{order.id}",
            json={"delivery_status": "lost"},
            headers=as_user(instructor),
        )
        assert response.status_code == 400
