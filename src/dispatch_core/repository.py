"""In-memory booking repository with optimistic versioning."""

import logging
import threading
from collections.abc import Callable, Iterator
from typing import TypeVar

from dispatch_core.booking import Booking
from dispatch_core.core.exceptions import ConcurrentModificationError, NotFound, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryBookingRepository:
    """Repository for booking reads and guarded writes.

    Reads hand out copies; a write is rejected when the stored version moved
    since the copy was taken.
    """

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._bookings)

    def __contains__(self, booking_id: object) -> bool:
        return booking_id in self._bookings

    def add(self, booking: Booking) -> None:
        """Store a new booking."""
        with self._lock:
            if booking.booking_id in self._bookings:
                raise ValidationError(
                    f"Booking {booking.booking_id} already exists",
                    details={"booking_id": booking.booking_id},
                )
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)

    def get(self, booking_id: str) -> Booking:
        """Get a copy of a booking by ID."""
        with self._lock:
            stored = self._bookings.get(booking_id)
            if stored is None:
                raise NotFound(
                    f"Booking {booking_id} not found", details={"booking_id": booking_id}
                )
            return stored.model_copy(deep=True)

    def list_all(self) -> list[Booking]:
        with self._lock:
            return [b.model_copy(deep=True) for b in self._bookings.values()]

    def __iter__(self) -> Iterator[Booking]:
        return iter(self.list_all())

    def save(self, booking: Booking) -> Booking:
        """Write back a booking read earlier; bumps its version."""
        with self._lock:
            stored = self._bookings.get(booking.booking_id)
            if stored is None:
                raise NotFound(
                    f"Booking {booking.booking_id} not found",
                    details={"booking_id": booking.booking_id},
                )
            if stored.version != booking.version:
                raise ConcurrentModificationError(
                    f"Booking {booking.booking_id} was modified concurrently",
                    details={
                        "booking_id": booking.booking_id,
                        "from_status": stored.status.value,
                        "expected_version": booking.version,
                        "actual_version": stored.version,
                    },
                )
            booking.version += 1
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)
            return booking

    def apply(self, booking_id: str, operation: Callable[[Booking], T]) -> T:
        """Run ``operation`` on a fresh copy and save it, as one read-modify-write.

        Nothing is written when ``operation`` raises, so a rejected transition
        leaves the stored booking untouched.
        """
        with self._lock:
            booking = self.get(booking_id)
            result = operation(booking)
            self.save(booking)
            return result
