"""Finance and driver-earnings dashboard summaries."""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel

from dispatch_core.booking import Booking, BookingStatus, Payment
from dispatch_core.civil_time import Window, as_utc
from dispatch_core.money import average_cents
from dispatch_core.revenue.buckets import RevenueAggregator, month_over_month_pct


class FinanceSnapshot(BaseModel):
    month_label: str
    currency: str
    captured_month_cents: int
    captured_today_cents: int
    paid_count_month: int
    avg_order_value_month_cents: int
    refunds_month_cents: int
    refund_count_month: int
    net_month_cents: int
    pending_payment_count: int
    pending_payment_amount_cents: int
    month_over_month_pct: float | None


def build_finance_snapshot(
    aggregator: RevenueAggregator,
    payments: Iterable[Payment],
    bookings: Iterable[Booking],
    now: datetime,
    *,
    currency: str = "USD",
) -> FinanceSnapshot:
    """Admin headline numbers for the civil day and month containing ``now``.

    Pending payments are bookings awaiting payment whose pickup is still ahead.
    """
    payments = list(payments)
    cal = aggregator.calendar

    today = aggregator.day(payments, now)
    month = aggregator.month(payments, now)
    previous = aggregator.month(payments, cal.add_months(now, -1))

    now_utc = as_utc(now)
    pending_count = 0
    pending_cents = 0
    for booking in bookings:
        if booking.status is BookingStatus.PENDING_PAYMENT and as_utc(booking.pickup_at) >= now_utc:
            pending_count += 1
            pending_cents += booking.total_cents

    return FinanceSnapshot(
        month_label=month.label,
        currency=currency,
        captured_month_cents=month.captured_cents,
        captured_today_cents=today.captured_cents,
        paid_count_month=month.count,
        avg_order_value_month_cents=average_cents(month.captured_cents, month.count),
        refunds_month_cents=month.refunded_cents,
        refund_count_month=month.refunded_count,
        net_month_cents=month.net_cents,
        pending_payment_count=pending_count,
        pending_payment_amount_cents=pending_cents,
        month_over_month_pct=month_over_month_pct(month, previous),
    )


class EarningsWindow(BaseModel):
    start: datetime
    end: datetime
    payout_cents: int = 0
    gross_cents: int = 0
    trip_count: int = 0


class DriverEarnings(BaseModel):
    driver_id: str | None
    week: EarningsWindow
    month: EarningsWindow


def _tally_window(bookings: list[Booking], window: Window) -> EarningsWindow:
    earnings = EarningsWindow(start=window.start, end=window.end)
    for booking in bookings:
        if booking.pickup_at in window:
            earnings.trip_count += 1
            earnings.gross_cents += booking.total_cents
            if booking.assignment is not None:
                earnings.payout_cents += booking.assignment.driver_payment_cents
    return earnings


def driver_earnings(
    aggregator: RevenueAggregator,
    bookings: Iterable[Booking],
    now: datetime,
    driver_id: str | None = None,
) -> DriverEarnings:
    """Completed-trip totals for the civil week (from Sunday) and month containing ``now``.

    ``driver_id=None`` covers every driver, as on the admin view.
    """
    completed = [
        b
        for b in bookings
        if b.status is BookingStatus.COMPLETED and (driver_id is None or b.driver_id == driver_id)
    ]
    cal = aggregator.calendar
    return DriverEarnings(
        driver_id=driver_id,
        week=_tally_window(completed, cal.week_window(now)),
        month=_tally_window(completed, cal.month_window(now)),
    )
