"""Tests for payment webhook handling."""

import json
import logging
from datetime import UTC, datetime

import pytest

from dispatch_core.booking import BookingStatus, PaymentStatus
from dispatch_core.core.exceptions import NotFound
from dispatch_core.events import NotificationKind
from dispatch_core.repository import InMemoryBookingRepository
from dispatch_core.webhooks import (
    CHARGE_REFUNDED,
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
    PaymentNotification,
    PaymentWebhookHandler,
)

PAID_AT = datetime(2026, 3, 14, 16, 45, tzinfo=UTC)


@pytest.fixture
def repository():
    return InMemoryBookingRepository()


@pytest.fixture
def handler(repository, lifecycle):
    return PaymentWebhookHandler(repository, lifecycle)


def _body(**fields) -> bytes:
    return json.dumps(fields).encode()


@pytest.mark.unit
class TestCheckoutCompleted:
    def test_capture_confirms_booking(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.PENDING_PAYMENT)
        repository.add(booking)

        event = handler.handle(
            _body(
                type=CHECKOUT_COMPLETED,
                booking_id=booking.booking_id,
                occurred_at=PAID_AT.isoformat(),
            )
        )

        stored = repository.get(booking.booking_id)
        assert event.kind is NotificationKind.PAYMENT_RECEIVED
        assert stored.status is BookingStatus.CONFIRMED
        assert stored.paid_at == PAID_AT
        assert handler.messages_processed == 1

    def test_duplicate_delivery_is_noop(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.PENDING_PAYMENT)
        repository.add(booking)
        body = _body(type=CHECKOUT_COMPLETED, booking_id=booking.booking_id)

        first = handler.handle(body)
        second = handler.handle(body)

        assert first is not None
        assert second is None
        assert repository.get(booking.booking_id).status is BookingStatus.CONFIRMED

    def test_capture_keeps_assigned(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(
            BookingStatus.ASSIGNED, payment_status=PaymentStatus.NONE
        )
        repository.add(booking)

        handler.handle(_body(type=CHECKOUT_COMPLETED, booking_id=booking.booking_id))

        stored = repository.get(booking.booking_id)
        assert stored.status is BookingStatus.ASSIGNED
        assert stored.is_paid

    def test_late_capture_logged_and_ignored(self, handler, repository, booking_factory, caplog):
        booking = booking_factory.priced_booking(
            BookingStatus.CANCELLED, payment_status=PaymentStatus.NONE
        )
        repository.add(booking)

        with caplog.at_level(logging.WARNING, logger="dispatch_core.webhooks"):
            result = handler.handle(_body(type=CHECKOUT_COMPLETED, booking_id=booking.booking_id))

        assert result is None
        assert handler.messages_ignored == 1
        assert "Dropping checkout.session.completed" in caplog.text
        assert repository.get(booking.booking_id).status is BookingStatus.CANCELLED

    def test_unknown_booking_propagates(self, handler):
        with pytest.raises(NotFound):
            handler.handle(_body(type=CHECKOUT_COMPLETED, booking_id="bk_missing"))

    def test_updates_payment_record(self, repository, lifecycle, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.PENDING_PAYMENT)
        repository.add(booking)
        payment = booking_factory.payment(
            13750, status=PaymentStatus.PENDING, booking_id=booking.booking_id
        )
        payments = {booking.booking_id: payment}
        handler = PaymentWebhookHandler(repository, lifecycle, payments=payments)

        handler.handle_notification(
            PaymentNotification(
                type=CHECKOUT_COMPLETED, booking_id=booking.booking_id, occurred_at=PAID_AT
            )
        )

        assert payments[booking.booking_id].status is PaymentStatus.PAID
        assert payments[booking.booking_id].paid_at == PAID_AT


@pytest.mark.unit
class TestRefunds:
    def test_partial_refund(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.COMPLETED)
        repository.add(booking)

        event = handler.handle(
            _body(
                type=CHARGE_REFUNDED,
                booking_id=booking.booking_id,
                refunded_cents=5000,
                total_paid_cents=13750,
            )
        )

        assert event.kind is NotificationKind.REFUND_ISSUED
        assert repository.get(booking.booking_id).status is BookingStatus.PARTIALLY_REFUNDED

    def test_full_refund_defaults_to_booking_total(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.CANCELLED)
        repository.add(booking)

        handler.handle(
            _body(type=CHARGE_REFUNDED, booking_id=booking.booking_id, refunded_cents=13750)
        )

        assert repository.get(booking.booking_id).status is BookingStatus.REFUNDED

    def test_refund_before_completion_ignored(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.EN_ROUTE)
        repository.add(booking)

        result = handler.handle(
            _body(type=CHARGE_REFUNDED, booking_id=booking.booking_id, refunded_cents=100)
        )

        assert result is None
        assert repository.get(booking.booking_id).status is BookingStatus.EN_ROUTE


@pytest.mark.unit
class TestMalformedDeliveries:
    def test_invalid_json(self, handler):
        assert handler.handle(b"{not json") is None
        assert handler.messages_ignored == 1

    def test_schema_violation(self, handler):
        body = _body(type=CHARGE_REFUNDED, booking_id="bk_1", refunded_cents=-5)
        assert handler.handle(body) is None
        assert handler.messages_ignored == 1

    def test_refund_without_amount(self, handler, repository, booking_factory):
        booking = booking_factory.priced_booking(BookingStatus.COMPLETED)
        repository.add(booking)

        assert handler.handle(_body(type=CHARGE_REFUNDED, booking_id=booking.booking_id)) is None
        assert handler.messages_ignored == 1
        assert repository.get(booking.booking_id).status is BookingStatus.COMPLETED

    def test_refund_notification_requires_amount(self):
        with pytest.raises(ValueError, match="positive refunded_cents"):
            PaymentNotification(type=CHARGE_REFUNDED, booking_id="bk_1", refunded_cents=0)

    def test_missing_booking_id(self, handler):
        assert handler.handle(_body(type=CHECKOUT_COMPLETED)) is None
        assert handler.messages_ignored == 1

    def test_unknown_type(self, handler):
        assert handler.handle(_body(type="customer.created", booking_id="bk_1")) is None
        assert handler.messages_ignored == 1

    def test_checkout_expired_marks_payment_failed(self, repository, lifecycle, booking_factory):
        payment = booking_factory.payment(13750, status=PaymentStatus.PENDING, booking_id="bk_1")
        payments = {"bk_1": payment}
        handler = PaymentWebhookHandler(repository, lifecycle, payments=payments)

        assert handler.handle(_body(type=CHECKOUT_EXPIRED, booking_id="bk_1")) is None
        assert payments["bk_1"].status is PaymentStatus.FAILED
        assert handler.messages_processed == 1
