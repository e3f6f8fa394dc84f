from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from dispatch_core.civil_time import PHOENIX, CivilCalendar
from dispatch_core.lifecycle import BookingLifecycle
from dispatch_core.revenue import RevenueAggregator
from dispatch_core.settings import LifecycleSettings
from tests.factories import BookingFactory, create_faker_instance

if TYPE_CHECKING:
    from faker.proxy import Faker


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def fake() -> "Faker":
    """Seeded Faker instance for deterministic test data."""
    return create_faker_instance(seed=42)


@pytest.fixture
def booking_factory() -> BookingFactory:
    """Factory for creating bookings and payments with seeded Faker."""
    return BookingFactory(seed=42)


@pytest.fixture
def clock() -> FrozenClock:
    """Clock pinned to 2026-03-14 10:00 Phoenix (17:00 UTC)."""
    return FrozenClock(datetime(2026, 3, 14, 17, 0, tzinfo=UTC))


@pytest.fixture
def lifecycle_settings() -> LifecycleSettings:
    return LifecycleSettings(no_show_wait_minutes=15, require_payment_before_dispatch=True)


@pytest.fixture
def lifecycle(lifecycle_settings, clock) -> BookingLifecycle:
    """Controller reading time from the frozen clock."""
    return BookingLifecycle(settings=lifecycle_settings, clock=clock)


@pytest.fixture
def phoenix() -> CivilCalendar:
    return PHOENIX


@pytest.fixture
def aggregator(phoenix) -> RevenueAggregator:
    return RevenueAggregator(phoenix, max_chart_buckets=36)
