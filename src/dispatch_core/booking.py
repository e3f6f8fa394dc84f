"""Booking status lifecycle states and models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from dispatch_core.fare import TripMeasurements


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    EN_ROUTE = "EN_ROUTE"
    ARRIVED = "ARRIVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    DECLINED = "DECLINED"

    def to_event_type(self) -> str:
        """Convert status to an event type (e.g., 'booking.en_route')."""
        return f"booking.{self.value.lower()}"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class PaymentStatus(str, Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


Actor = Literal["admin", "customer", "driver", "system"]

TERMINAL_STATUSES = frozenset(
    {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
        BookingStatus.REFUNDED,
        BookingStatus.PARTIALLY_REFUNDED,
        BookingStatus.DECLINED,
    }
)

REFUNDABLE_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

ASSIGNABLE_STATUSES = frozenset(
    {BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED, BookingStatus.ASSIGNED}
)

# Driver steps, one at a time.
DRIVER_FORWARD: dict[BookingStatus, BookingStatus] = {
    BookingStatus.ASSIGNED: BookingStatus.EN_ROUTE,
    BookingStatus.EN_ROUTE: BookingStatus.ARRIVED,
    BookingStatus.ARRIVED: BookingStatus.IN_PROGRESS,
    BookingStatus.IN_PROGRESS: BookingStatus.COMPLETED,
}

# Driver corrections; these require a reason.
DRIVER_BACKWARD: dict[BookingStatus, BookingStatus] = {
    BookingStatus.EN_ROUTE: BookingStatus.ASSIGNED,
    BookingStatus.ARRIVED: BookingStatus.EN_ROUTE,
    BookingStatus.IN_PROGRESS: BookingStatus.ARRIVED,
}

VALID_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.DRAFT: {BookingStatus.PENDING_REVIEW, BookingStatus.CANCELLED},
    BookingStatus.PENDING_REVIEW: {
        BookingStatus.PENDING_PAYMENT,
        BookingStatus.DECLINED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.PENDING_PAYMENT: {
        BookingStatus.CONFIRMED,
        BookingStatus.ASSIGNED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.ASSIGNED: {BookingStatus.EN_ROUTE, BookingStatus.CANCELLED},
    BookingStatus.EN_ROUTE: {
        BookingStatus.ARRIVED,
        BookingStatus.ASSIGNED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.ARRIVED: {
        BookingStatus.IN_PROGRESS,
        BookingStatus.NO_SHOW,
        BookingStatus.EN_ROUTE,
        BookingStatus.CANCELLED,
    },
    BookingStatus.IN_PROGRESS: {
        BookingStatus.COMPLETED,
        BookingStatus.ARRIVED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.COMPLETED: {BookingStatus.REFUNDED, BookingStatus.PARTIALLY_REFUNDED},
    BookingStatus.CANCELLED: {BookingStatus.REFUNDED, BookingStatus.PARTIALLY_REFUNDED},
    BookingStatus.NO_SHOW: set(),
    BookingStatus.REFUNDED: set(),
    BookingStatus.PARTIALLY_REFUNDED: set(),
    BookingStatus.DECLINED: set(),
}


class Assignment(BaseModel):
    """Driver and vehicle unit placed on a booking."""

    driver_id: str | None = None
    vehicle_unit_id: str | None = None
    assigned_at: datetime | None = None
    driver_payment_cents: int = Field(default=0, ge=0)

    @property
    def is_complete(self) -> bool:
        return bool(self.driver_id) and bool(self.vehicle_unit_id)


class Payment(BaseModel):
    """Checkout record for a booking, maintained by the payment provider webhooks."""

    payment_id: str
    booking_id: str
    status: PaymentStatus = PaymentStatus.NONE
    amount_subtotal_cents: int = Field(default=0, ge=0)
    amount_total_cents: int = Field(default=0, ge=0)
    amount_paid_cents: int = Field(default=0, ge=0)
    paid_at: datetime | None = None
    updated_at: datetime | None = None
    currency: str = "usd"


class Booking(BaseModel):
    """A ride request and the price, payment and assignment state around it."""

    booking_id: str
    status: BookingStatus = Field(default=BookingStatus.DRAFT)
    pickup_at: datetime
    pickup_address: str
    dropoff_address: str
    distance_miles: float | None = None
    duration_minutes: float | None = None
    hours_requested: float | None = None
    stop_count: int = 0
    service_type_id: str | None = None
    vehicle_category_id: str | None = None
    subtotal_cents: int = Field(default=0, ge=0)
    fees_cents: int = Field(default=0, ge=0)
    taxes_cents: int = Field(default=0, ge=0)
    total_cents: int = Field(default=0, ge=0)
    currency: str = "usd"
    customer_phone: str | None = None
    assignment: Assignment | None = None
    payment_status: PaymentStatus = PaymentStatus.NONE
    paid_at: datetime | None = None
    arrived_at: datetime | None = None
    refunded_cents: int = Field(default=0, ge=0)
    cancelled_by: Actor | None = None
    cancellation_reason: str | None = None
    decline_reason: str | None = None
    last_event_id: str | None = None
    version: int = 0

    @model_validator(mode="after")
    def infer_payment_for_confirmed(self) -> Self:
        # CONFIRMED is only reachable through a captured payment
        if self.status is BookingStatus.CONFIRMED and self.payment_status is PaymentStatus.NONE:
            self.payment_status = PaymentStatus.PAID
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.PAID

    @property
    def driver_id(self) -> str | None:
        return self.assignment.driver_id if self.assignment else None

    def measurements(self) -> TripMeasurements:
        """Trip measurements for the fare engine; unknown values count as zero."""
        return TripMeasurements(
            distance_miles=self.distance_miles,
            duration_minutes=self.duration_minutes,
            hours_requested=self.hours_requested,
            stop_count=self.stop_count,
        )
