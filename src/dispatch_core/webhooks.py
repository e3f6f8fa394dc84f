"""Payment provider webhook handling.

Translates provider notifications into lifecycle operations and runs each one
as a single read-modify-write on the repository. Deliveries may repeat or
arrive late; those are logged and dropped rather than raised.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from dispatch_core.booking import Booking, Payment, PaymentStatus
from dispatch_core.civil_time import as_utc
from dispatch_core.core.correlation import with_correlation
from dispatch_core.core.exceptions import InvalidTransition
from dispatch_core.events import LifecycleEvent
from dispatch_core.lifecycle import BookingLifecycle
from dispatch_core.repository import InMemoryBookingRepository

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHARGE_REFUNDED = "charge.refunded"


class PaymentNotification(BaseModel):
    """Provider-neutral webhook body."""

    type: str
    booking_id: str | None = None
    occurred_at: datetime | None = None
    amount_total_cents: int = Field(default=0, ge=0)
    refunded_cents: int = Field(default=0, ge=0)
    total_paid_cents: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def require_refund_amount(self) -> Self:
        if self.type == CHARGE_REFUNDED and self.refunded_cents <= 0:
            raise ValueError("charge.refunded requires a positive refunded_cents")
        return self


class PaymentWebhookHandler:
    """Applies payment notifications to bookings and their payment records."""

    def __init__(
        self,
        repository: InMemoryBookingRepository,
        lifecycle: BookingLifecycle,
        payments: dict[str, Payment] | None = None,
    ):
        self.repository = repository
        self.lifecycle = lifecycle
        self.payments = payments if payments is not None else {}
        self.messages_processed = 0
        self.messages_ignored = 0

    def handle(self, message: bytes | str) -> LifecycleEvent | None:
        """Process a raw webhook body; returns the emitted event, if any."""
        try:
            notification = PaymentNotification.model_validate(json.loads(message))
        except PydanticValidationError as e:
            logger.warning(f"Webhook validation error: {e}")
            self.messages_ignored += 1
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse webhook body: {e}")
            self.messages_ignored += 1
            return None
        return self.handle_notification(notification)

    def handle_notification(self, notification: PaymentNotification) -> LifecycleEvent | None:
        if notification.booking_id is None:
            self.messages_ignored += 1
            return None

        if notification.type == CHECKOUT_COMPLETED:
            return self._run(notification, self._capture)
        if notification.type == CHARGE_REFUNDED:
            return self._run(notification, self._refund)
        if notification.type == CHECKOUT_EXPIRED:
            self._update_payment(notification.booking_id, status=PaymentStatus.FAILED)
            self.messages_processed += 1
            return None

        logger.debug("Ignoring webhook type %s", notification.type)
        self.messages_ignored += 1
        return None

    def _run(
        self,
        notification: PaymentNotification,
        step: Callable[[Booking, PaymentNotification], LifecycleEvent | None],
    ) -> LifecycleEvent | None:
        booking_id = notification.booking_id
        with with_correlation(booking_id):
            try:
                event = self.repository.apply(booking_id, lambda b: step(b, notification))
            except InvalidTransition as e:
                logger.warning(
                    "Dropping %s for booking %s: %s",
                    notification.type,
                    booking_id,
                    e.message,
                    extra={"booking_id": booking_id},
                )
                self.messages_ignored += 1
                return None
        self.messages_processed += 1
        return event

    def _capture(
        self, booking: Booking, notification: PaymentNotification
    ) -> LifecycleEvent | None:
        paid_at = as_utc(notification.occurred_at) if notification.occurred_at else None
        event = self.lifecycle.record_payment_captured(booking, paid_at=paid_at)
        self._update_payment(
            booking.booking_id,
            status=PaymentStatus.PAID,
            paid_at=booking.paid_at,
            updated_at=booking.paid_at,
            amount_total_cents=notification.amount_total_cents or booking.total_cents,
        )
        return event

    def _refund(self, booking: Booking, notification: PaymentNotification) -> LifecycleEvent:
        total_paid = notification.total_paid_cents or booking.total_cents
        event = self.lifecycle.apply_refund(booking, notification.refunded_cents, total_paid)
        self._update_payment(
            booking.booking_id,
            status=booking.payment_status,
            updated_at=event.occurred_at,
        )
        return event

    def _update_payment(self, booking_id: str, **changes: Any) -> None:
        payment = self.payments.get(booking_id)
        if payment is None:
            return
        self.payments[booking_id] = payment.model_copy(update=changes)
