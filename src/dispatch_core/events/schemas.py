from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from dispatch_core.booking import BookingStatus


class NotificationKind(str, Enum):
    """What a lifecycle event means to the notification collaborator."""

    BOOKING_REQUESTED = "BOOKING_REQUESTED"
    BOOKING_APPROVED = "BOOKING_APPROVED"
    BOOKING_DECLINED = "BOOKING_DECLINED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    DRIVER_EN_ROUTE = "DRIVER_EN_ROUTE"
    DRIVER_ARRIVED = "DRIVER_ARRIVED"
    DRIVER_PICKED_UP = "DRIVER_PICKED_UP"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    NO_SHOW = "NO_SHOW"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    REFUND_ISSUED = "REFUND_ISSUED"
    STATUS_REVERTED = "STATUS_REVERTED"


class EventMeta(BaseModel):
    label: str
    group: Literal["Bookings", "Payments", "Driver & Trip"]


EVENT_META: dict[NotificationKind, EventMeta] = {
    NotificationKind.BOOKING_REQUESTED: EventMeta(label="New booking request", group="Bookings"),
    NotificationKind.BOOKING_APPROVED: EventMeta(
        label="Booking approved and priced", group="Bookings"
    ),
    NotificationKind.BOOKING_DECLINED: EventMeta(label="Booking declined", group="Bookings"),
    NotificationKind.BOOKING_CANCELLED: EventMeta(label="Booking cancelled", group="Bookings"),
    NotificationKind.PAYMENT_RECEIVED: EventMeta(
        label="Client payment received", group="Payments"
    ),
    NotificationKind.REFUND_ISSUED: EventMeta(label="Refund issued", group="Payments"),
    NotificationKind.DRIVER_ASSIGNED: EventMeta(label="Driver assigned", group="Driver & Trip"),
    NotificationKind.DRIVER_EN_ROUTE: EventMeta(label="Driver en route", group="Driver & Trip"),
    NotificationKind.DRIVER_ARRIVED: EventMeta(label="Driver arrived", group="Driver & Trip"),
    NotificationKind.DRIVER_PICKED_UP: EventMeta(label="Client picked up", group="Driver & Trip"),
    NotificationKind.TRIP_COMPLETED: EventMeta(label="Trip completed", group="Driver & Trip"),
    NotificationKind.NO_SHOW: EventMeta(label="Client no-show", group="Driver & Trip"),
    NotificationKind.STATUS_REVERTED: EventMeta(
        label="Trip status reverted", group="Driver & Trip"
    ),
}

# Trip updates texted to the customer.
CUSTOMER_SMS_KINDS = frozenset(
    {
        NotificationKind.DRIVER_EN_ROUTE,
        NotificationKind.DRIVER_ARRIVED,
        NotificationKind.TRIP_COMPLETED,
        NotificationKind.NO_SHOW,
    }
)


class CorrelationMixin(BaseModel):
    """Mixin adding tracing fields to events."""

    correlation_id: str | None = Field(
        default=None, description="Primary correlation ID (the booking id)"
    )
    causation_id: str | None = Field(
        default=None, description="ID of the event that preceded this one"
    )


class LifecycleEvent(CorrelationMixin):
    """A booking status transition, handed to notification and dispatch collaborators."""

    event_id: UUID = Field(default_factory=uuid4)
    event_type: str
    kind: NotificationKind
    booking_id: str
    from_status: BookingStatus
    to_status: BookingStatus
    occurred_at: datetime
    actor: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def notifies_customer_by_sms(self) -> bool:
        return self.kind in CUSTOMER_SMS_KINDS

    @property
    def changed_status(self) -> bool:
        return self.from_status is not self.to_status

    @property
    def meta(self) -> EventMeta:
        return EVENT_META[self.kind]
