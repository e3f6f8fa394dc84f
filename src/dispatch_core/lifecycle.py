"""Guarded booking status transitions.

Every operation checks the booking's current status, mutates the booking in
place, and returns the :class:`LifecycleEvent` describing what happened. The
controller never sends notifications, persists, or retries; callers run each
operation inside their own per-booking read-modify-write (see
``dispatch_core.repository``).
"""

import logging
import math
from collections.abc import Callable, Collection
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from dispatch_core.booking import (
    ASSIGNABLE_STATUSES,
    DRIVER_BACKWARD,
    DRIVER_FORWARD,
    REFUNDABLE_STATUSES,
    VALID_TRANSITIONS,
    Actor,
    Assignment,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from dispatch_core.civil_time import as_utc
from dispatch_core.core.correlation import with_correlation
from dispatch_core.core.exceptions import InvalidFare, InvalidTransition, ValidationError
from dispatch_core.events import EventFactory, LifecycleEvent, NotificationKind
from dispatch_core.fare import FareBreakdown
from dispatch_core.settings import LifecycleSettings

logger = logging.getLogger(__name__)

_DRIVER_STEP_KINDS: dict[BookingStatus, NotificationKind] = {
    BookingStatus.EN_ROUTE: NotificationKind.DRIVER_EN_ROUTE,
    BookingStatus.ARRIVED: NotificationKind.DRIVER_ARRIVED,
    BookingStatus.IN_PROGRESS: NotificationKind.DRIVER_PICKED_UP,
    BookingStatus.COMPLETED: NotificationKind.TRIP_COMPLETED,
}

# Unpaid bookings can only get this far when dispatch does not wait for payment.
_UNGATED_CAPTURE_STATUSES = frozenset(
    {
        BookingStatus.EN_ROUTE,
        BookingStatus.ARRIVED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    }
)


class AvailableTransitions(BaseModel):
    """Driver-facing moves from the booking's current status."""

    current: BookingStatus
    forward: list[BookingStatus]
    backward: list[BookingStatus]
    can_mark_no_show: bool
    no_show_wait_remaining_minutes: int = 0


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BookingLifecycle:
    """Owns a booking's status field and the guards around it."""

    def __init__(
        self,
        settings: LifecycleSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._settings = settings or LifecycleSettings()
        self._clock = clock

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _reject(booking: Booking, operation: str, reason: str | None = None) -> InvalidTransition:
        message = f"Cannot {operation} booking {booking.booking_id} from {booking.status.value}"
        if reason:
            message = f"{message}: {reason}"
        return InvalidTransition(
            message,
            details={
                "booking_id": booking.booking_id,
                "from_status": booking.status.value,
                "operation": operation,
            },
        )

    def _guard(self, booking: Booking, operation: str, allowed: Collection[BookingStatus]) -> None:
        if booking.status not in allowed:
            raise self._reject(booking, operation)

    def _apply(
        self,
        booking: Booking,
        to_status: BookingStatus,
        kind: NotificationKind,
        *,
        operation: str,
        actor: str | None = None,
        **payload: Any,
    ) -> LifecycleEvent:
        from_status = booking.status
        if to_status is not from_status and to_status not in VALID_TRANSITIONS[from_status]:
            raise self._reject(booking, operation)

        booking.status = to_status
        event = EventFactory.create_for_booking(
            booking,
            kind=kind,
            from_status=from_status,
            occurred_at=self._now(),
            actor=actor,
            **payload,
        )
        with with_correlation(booking.booking_id):
            logger.debug(
                "Booking %s: %s -> %s (%s)",
                booking.booking_id,
                from_status.value,
                to_status.value,
                operation,
                extra={
                    "booking_id": booking.booking_id,
                    "driver_id": booking.driver_id,
                    "operation": operation,
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                },
            )
        return event

    # ------------------------------------------------------------------
    # Intake and approval
    # ------------------------------------------------------------------

    def submit_for_review(self, booking: Booking) -> LifecycleEvent:
        self._guard(booking, "submit", {BookingStatus.DRAFT})
        return self._apply(
            booking,
            BookingStatus.PENDING_REVIEW,
            NotificationKind.BOOKING_REQUESTED,
            operation="submit",
            actor="customer",
        )

    def approve_and_price(
        self,
        booking: Booking,
        fare: FareBreakdown,
        *,
        fees_cents: int = 0,
        taxes_cents: int = 0,
        currency: str | None = None,
    ) -> LifecycleEvent:
        """Lock the price and move the booking to PENDING_PAYMENT.

        ``total_cents`` is the fare subtotal plus caller-supplied fees and taxes.
        """
        self._guard(booking, "approve", {BookingStatus.PENDING_REVIEW})

        details = {"booking_id": booking.booking_id, "fees_cents": fees_cents}
        if fees_cents < 0 or taxes_cents < 0:
            raise InvalidFare(
                "Fees and taxes must be non-negative",
                details={**details, "taxes_cents": taxes_cents},
            )
        total_cents = fare.subtotal_cents + fees_cents + taxes_cents
        if total_cents <= 0:
            raise InvalidFare(
                f"Approved total must be positive, got {total_cents}",
                details={**details, "total_cents": total_cents},
            )

        booking.subtotal_cents = fare.subtotal_cents
        booking.fees_cents = fees_cents
        booking.taxes_cents = taxes_cents
        booking.total_cents = total_cents
        if currency:
            booking.currency = currency.lower()

        return self._apply(
            booking,
            BookingStatus.PENDING_PAYMENT,
            NotificationKind.BOOKING_APPROVED,
            operation="approve",
            actor="admin",
            total_cents=total_cents,
            min_fare_applied=fare.min_fare_applied,
            breakdown=fare.display,
        )

    def decline(self, booking: Booking, reason: str) -> LifecycleEvent:
        self._guard(booking, "decline", {BookingStatus.PENDING_REVIEW})
        if not reason or not reason.strip():
            raise ValidationError(
                "A reason is required to decline a booking",
                details={"booking_id": booking.booking_id},
            )
        booking.decline_reason = reason.strip()
        return self._apply(
            booking,
            BookingStatus.DECLINED,
            NotificationKind.BOOKING_DECLINED,
            operation="decline",
            actor="admin",
            reason=booking.decline_reason,
        )

    # ------------------------------------------------------------------
    # Payment and assignment gates
    # ------------------------------------------------------------------

    def record_payment_captured(
        self, booking: Booking, *, paid_at: datetime | None = None
    ) -> LifecycleEvent | None:
        """Mark the booking paid. Returns None when the capture was already recorded.

        A booking assigned before payment stays ASSIGNED. With the dispatch gate
        off, a trip already under way or completed keeps its status too.
        """
        if booking.status is BookingStatus.CONFIRMED:
            return None
        if booking.is_paid and booking.status is not BookingStatus.PENDING_PAYMENT:
            return None
        allowed = {BookingStatus.PENDING_PAYMENT, BookingStatus.ASSIGNED}
        if not self._settings.require_payment_before_dispatch:
            allowed |= _UNGATED_CAPTURE_STATUSES
        self._guard(booking, "record payment for", allowed)

        booking.payment_status = PaymentStatus.PAID
        booking.paid_at = as_utc(paid_at) if paid_at else self._now()
        to_status = (
            BookingStatus.CONFIRMED
            if booking.status is BookingStatus.PENDING_PAYMENT
            else booking.status
        )
        return self._apply(
            booking,
            to_status,
            NotificationKind.PAYMENT_RECEIVED,
            operation="record payment for",
            actor="system",
            total_cents=booking.total_cents,
        )

    def assign_driver(self, booking: Booking, assignment: Assignment) -> LifecycleEvent | None:
        """Store the assignment; move to ASSIGNED once driver and unit are both set.

        Returns None when the assignment is stored without a status change.
        """
        self._guard(booking, "assign", ASSIGNABLE_STATUSES)
        reassigned = booking.status is BookingStatus.ASSIGNED
        if reassigned and not assignment.is_complete:
            raise self._reject(booking, "reassign", "driver and vehicle unit are both required")

        if assignment.assigned_at is None:
            assignment = assignment.model_copy(update={"assigned_at": self._now()})
        booking.assignment = assignment
        if not assignment.is_complete:
            return None

        return self._apply(
            booking,
            BookingStatus.ASSIGNED,
            NotificationKind.DRIVER_ASSIGNED,
            operation="assign",
            actor="admin",
            driver_id=assignment.driver_id,
            vehicle_unit_id=assignment.vehicle_unit_id,
            reassigned=reassigned,
        )

    # ------------------------------------------------------------------
    # Driver execution
    # ------------------------------------------------------------------

    def driver_advance(self, booking: Booking, next_status: BookingStatus) -> LifecycleEvent:
        """Move one step along ASSIGNED -> EN_ROUTE -> ARRIVED -> IN_PROGRESS -> COMPLETED."""
        operation = f"advance to {next_status.value}"
        if DRIVER_FORWARD.get(booking.status) is not next_status:
            raise self._reject(booking, operation)
        if (
            next_status is BookingStatus.EN_ROUTE
            and self._settings.require_payment_before_dispatch
            and not booking.is_paid
        ):
            raise self._reject(booking, operation, "payment has not been captured")

        if next_status is BookingStatus.ARRIVED:
            booking.arrived_at = self._now()

        return self._apply(
            booking,
            next_status,
            _DRIVER_STEP_KINDS[next_status],
            operation=operation,
            actor="driver",
            driver_id=booking.driver_id,
            pickup_address=booking.pickup_address,
            customer_phone=booking.customer_phone,
        )

    def driver_revert(
        self, booking: Booking, previous_status: BookingStatus, reason: str
    ) -> LifecycleEvent:
        """Step back one status, e.g. a driver who tapped ARRIVED too early."""
        operation = f"revert to {previous_status.value}"
        if DRIVER_BACKWARD.get(booking.status) is not previous_status:
            raise self._reject(booking, operation)
        if not reason or not reason.strip():
            raise ValidationError(
                "A reason is required to revert a trip status",
                details={"booking_id": booking.booking_id},
            )

        if booking.status is BookingStatus.ARRIVED:
            booking.arrived_at = None

        return self._apply(
            booking,
            previous_status,
            NotificationKind.STATUS_REVERTED,
            operation=operation,
            actor="driver",
            reason=reason.strip(),
        )

    def _no_show_wait_remaining(self, booking: Booking) -> int:
        """Whole minutes left before a no-show may be recorded."""
        if booking.arrived_at is None:
            return 0
        waited = self._now() - as_utc(booking.arrived_at)
        remaining = self._settings.no_show_wait - waited
        if remaining.total_seconds() <= 0:
            return 0
        return math.ceil(remaining.total_seconds() / 60)

    def mark_no_show(self, booking: Booking, reason: str | None = None) -> LifecycleEvent:
        self._guard(booking, "mark no-show for", {BookingStatus.ARRIVED})
        remaining = self._no_show_wait_remaining(booking)
        if remaining > 0:
            plural = "" if remaining == 1 else "s"
            raise self._reject(
                booking,
                "mark no-show for",
                f"wait {remaining} more minute{plural} after arrival",
            )
        return self._apply(
            booking,
            BookingStatus.NO_SHOW,
            NotificationKind.NO_SHOW,
            operation="mark no-show for",
            actor="driver",
            reason=reason.strip() if reason else None,
            pickup_address=booking.pickup_address,
            customer_phone=booking.customer_phone,
        )

    # ------------------------------------------------------------------
    # Cancellation and refunds
    # ------------------------------------------------------------------

    def cancel(self, booking: Booking, actor: Actor, reason: str | None = None) -> LifecycleEvent:
        if booking.is_terminal:
            raise self._reject(booking, "cancel")
        booking.cancelled_by = actor
        booking.cancellation_reason = reason.strip() if reason else None
        return self._apply(
            booking,
            BookingStatus.CANCELLED,
            NotificationKind.BOOKING_CANCELLED,
            operation="cancel",
            actor=actor,
            reason=booking.cancellation_reason,
        )

    def apply_refund(
        self, booking: Booking, refunded_cents: int, total_paid_cents: int
    ) -> LifecycleEvent:
        """REFUNDED when the refund covers everything paid, else PARTIALLY_REFUNDED."""
        self._guard(booking, "refund", REFUNDABLE_STATUSES)
        if refunded_cents <= 0:
            raise InvalidFare(
                f"Refund amount must be positive, got {refunded_cents}",
                details={"booking_id": booking.booking_id, "refunded_cents": refunded_cents},
            )
        if total_paid_cents <= 0:
            raise self._reject(booking, "refund", "no captured payment to refund")

        full = refunded_cents >= total_paid_cents
        booking.refunded_cents = refunded_cents
        booking.payment_status = (
            PaymentStatus.REFUNDED if full else PaymentStatus.PARTIALLY_REFUNDED
        )
        return self._apply(
            booking,
            BookingStatus.REFUNDED if full else BookingStatus.PARTIALLY_REFUNDED,
            NotificationKind.REFUND_ISSUED,
            operation="refund",
            actor="system",
            refunded_cents=refunded_cents,
            total_paid_cents=total_paid_cents,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def available_transitions(self, booking: Booking) -> AvailableTransitions:
        forward: list[BookingStatus] = []
        if (step := DRIVER_FORWARD.get(booking.status)) is not None:
            forward.append(step)
        if booking.status is BookingStatus.ARRIVED:
            forward.append(BookingStatus.NO_SHOW)
        backward = [DRIVER_BACKWARD[booking.status]] if booking.status in DRIVER_BACKWARD else []

        remaining = 0
        can_mark_no_show = False
        if booking.status is BookingStatus.ARRIVED:
            remaining = self._no_show_wait_remaining(booking)
            can_mark_no_show = remaining == 0

        return AvailableTransitions(
            current=booking.status,
            forward=forward,
            backward=backward,
            can_mark_no_show=can_mark_no_show,
            no_show_wait_remaining_minutes=remaining,
        )
