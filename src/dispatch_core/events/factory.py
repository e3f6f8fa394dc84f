"""Event factory for creating lifecycle events with tracing fields."""

from datetime import datetime
from typing import Any

from dispatch_core.booking import Booking, BookingStatus
from dispatch_core.events.schemas import LifecycleEvent, NotificationKind


class EventFactory:
    """Factory for creating lifecycle events with tracing fields populated."""

    @staticmethod
    def create_for_booking(
        booking: Booking,
        *,
        kind: NotificationKind,
        from_status: BookingStatus,
        occurred_at: datetime,
        actor: str | None = None,
        update_causation: bool = True,
        **payload: Any,
    ) -> LifecycleEvent:
        """Create a booking event with causation chaining.

        Uses booking_id as correlation_id and the booking's last_event_id as
        causation_id. The booking's current status is the event's to_status.

        Args:
            booking: The booking after the transition was applied
            kind: Notification meaning of the event
            from_status: Status before the transition
            occurred_at: Instant of the transition
            actor: Who triggered the transition, when known
            update_causation: If True, set booking.last_event_id to this event's ID
            **payload: Extra fields for the notification collaborator

        Returns:
            LifecycleEvent with tracing fields populated
        """
        event = LifecycleEvent(
            correlation_id=booking.booking_id,
            causation_id=booking.last_event_id,
            event_type=booking.status.to_event_type(),
            kind=kind,
            booking_id=booking.booking_id,
            from_status=from_status,
            to_status=booking.status,
            occurred_at=occurred_at,
            actor=actor,
            payload=payload,
        )
        if update_causation:
            booking.last_event_id = str(event.event_id)
        return event
