"""Day/month revenue buckets over payment records.

Captured revenue is attributed to the window containing ``paid_at``; refunds to
the window containing the refund's ``updated_at``. Grouping keys come from the
civil calendar, so two payments on the same local day share a bucket even when
they straddle a UTC midnight.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from dispatch_core.booking import Payment, PaymentStatus
from dispatch_core.civil_time import CivilCalendar, Window, as_utc
from dispatch_core.money import average_cents, percent_change

REFUND_STATUSES = frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})

# Lookback for the "all" view when there are no payments at all.
_EMPTY_HISTORY_LOOKBACK = timedelta(days=365)
_DEFAULT_RANGE_DAYS = 30


class Granularity(str, Enum):
    DAY = "day"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class ViewKind(str, Enum):
    """Dashboard window views."""

    DAY = "day"
    MONTH = "month"
    DAILY = "daily"
    TRAILING = "trailing"
    YTD = "ytd"
    RANGE = "range"
    ALL = "all"


class WindowSpec(BaseModel):
    """Which window a dashboard wants, relative to a caller-supplied ``now``.

    ``from``/``to`` are inclusive "YYYY-MM-DD" civil days, ``month`` is "YYYY-MM".
    Missing or malformed keys fall back to the period containing ``now``.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: ViewKind = ViewKind.MONTH
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    month: str | None = None
    months: int = Field(default=12, ge=1, le=120)


class RevenueBucket(BaseModel):
    """Totals for one half-open window ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    start: datetime
    end: datetime
    captured_cents: int = Field(ge=0)
    refunded_cents: int = Field(ge=0)
    net_cents: int = Field(ge=0)
    count: int = Field(ge=0)
    refunded_count: int = Field(default=0, ge=0)

    @classmethod
    def from_totals(
        cls,
        *,
        key: str,
        label: str,
        window: Window,
        captured_cents: int,
        count: int,
        refunded_cents: int,
        refunded_count: int,
    ) -> "RevenueBucket":
        return cls(
            key=key,
            label=label,
            start=window.start,
            end=window.end,
            captured_cents=captured_cents,
            refunded_cents=refunded_cents,
            net_cents=max(0, captured_cents - refunded_cents),
            count=count,
            refunded_count=refunded_count,
        )


class KpiTotals(BaseModel):
    """Headline numbers derived from the same buckets as the chart."""

    captured_cents: int
    refunded_cents: int
    net_cents: int
    payment_count: int
    refund_count: int
    average_order_cents: int


@dataclass
class _Tally:
    cents: int = 0
    count: int = 0

    def add(self, cents: int) -> None:
        self.cents += cents
        self.count += 1


def month_over_month_pct(current: RevenueBucket, previous: RevenueBucket) -> float | None:
    """Percent change in captured revenue; None when the previous period captured nothing."""
    return percent_change(current.captured_cents, previous.captured_cents)


def period_changes(buckets: Sequence[RevenueBucket]) -> list[float | None]:
    """Change of each bucket against the one before it; the first is always None."""
    if not buckets:
        return []
    changes: list[float | None] = [None]
    for previous, current in zip(buckets, buckets[1:]):
        changes.append(month_over_month_pct(current, previous))
    return changes


def kpis_from_buckets(buckets: Iterable[RevenueBucket]) -> KpiTotals:
    captured = refunded = net = payments = refunds = 0
    for bucket in buckets:
        captured += bucket.captured_cents
        refunded += bucket.refunded_cents
        net += bucket.net_cents
        payments += bucket.count
        refunds += bucket.refunded_count
    return KpiTotals(
        captured_cents=captured,
        refunded_cents=refunded,
        net_cents=net,
        payment_count=payments,
        refund_count=refunds,
        average_order_cents=average_cents(captured, payments),
    )


class RevenueAggregator:
    """Buckets payments into civil day/month windows of a :class:`CivilCalendar`."""

    def __init__(self, calendar: CivilCalendar, *, max_chart_buckets: int = 36) -> None:
        if max_chart_buckets < 1:
            raise ValueError("max_chart_buckets must be >= 1")
        self.calendar = calendar
        self.max_chart_buckets = max_chart_buckets

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def _collect(
        self,
        payments: Iterable[Payment],
        window: Window,
        key_of: Callable[[datetime], str],
    ) -> tuple[dict[str, _Tally], dict[str, _Tally]]:
        captured: dict[str, _Tally] = defaultdict(_Tally)
        refunded: dict[str, _Tally] = defaultdict(_Tally)
        for payment in payments:
            if payment.status is PaymentStatus.PAID:
                if payment.paid_at is not None and payment.paid_at in window:
                    captured[key_of(payment.paid_at)].add(payment.amount_total_cents)
            elif payment.status in REFUND_STATUSES:
                if payment.updated_at is not None and payment.updated_at in window:
                    refunded[key_of(payment.updated_at)].add(payment.amount_total_cents)
        return captured, refunded

    def _period(self, start: datetime, granularity: Granularity) -> tuple[str, str, Window]:
        cal = self.calendar
        if granularity is Granularity.DAY:
            return cal.day_key(start), cal.day_label(start), Window(start, cal.add_days(start, 1))
        if granularity is Granularity.MONTH:
            window = Window(start, cal.add_months(start, 1))
            return cal.month_key(start), cal.month_label(start), window
        if granularity is Granularity.QUARTER:
            key = cal.quarter_key(start)
            year, quarter = key.split("-")
            return key, f"{quarter} {year}", Window(start, cal.add_months(start, 3))
        key = cal.year_key(start)
        return key, key, Window(start, cal.add_months(start, 12))

    def _key_function(self, granularity: Granularity) -> Callable[[datetime], str]:
        return {
            Granularity.DAY: self.calendar.day_key,
            Granularity.MONTH: self.calendar.month_key,
            Granularity.QUARTER: self.calendar.quarter_key,
            Granularity.YEAR: self.calendar.year_key,
        }[granularity]

    def _period_starts(self, window: Window, granularity: Granularity) -> list[datetime]:
        cal = self.calendar
        if granularity is Granularity.DAY:
            return list(cal.iter_day_starts(window))
        months = list(cal.iter_month_starts(window))
        if granularity is Granularity.MONTH:
            return months
        start_of = cal.start_of_quarter if granularity is Granularity.QUARTER else cal.start_of_year
        starts: list[datetime] = []
        for month in months:
            period_start = start_of(month)
            if not starts or starts[-1] != period_start:
                starts.append(period_start)
        return starts

    def series(
        self, payments: Iterable[Payment], window: Window, granularity: Granularity
    ) -> list[RevenueBucket]:
        """One bucket per period overlapping ``window``, oldest first, zeros included.

        Only payments inside ``window`` are counted, even when the first or last
        period extends past it.
        """
        captured, refunded = self._collect(payments, window, self._key_function(granularity))
        buckets = []
        for start in self._period_starts(window, granularity):
            key, label, period = self._period(start, granularity)
            c = captured.get(key, _Tally())
            r = refunded.get(key, _Tally())
            buckets.append(
                RevenueBucket.from_totals(
                    key=key,
                    label=label,
                    window=period,
                    captured_cents=c.cents,
                    count=c.count,
                    refunded_cents=r.cents,
                    refunded_count=r.count,
                )
            )
        return buckets

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def bucket(
        self, payments: Iterable[Payment], window: Window, *, key: str, label: str | None = None
    ) -> RevenueBucket:
        """Single bucket covering exactly ``window``."""
        captured, refunded = self._collect(payments, window, lambda _: key)
        c = captured.get(key, _Tally())
        r = refunded.get(key, _Tally())
        return RevenueBucket.from_totals(
            key=key,
            label=label or key,
            window=window,
            captured_cents=c.cents,
            count=c.count,
            refunded_cents=r.cents,
            refunded_count=r.count,
        )

    def day(self, payments: Iterable[Payment], now: datetime) -> RevenueBucket:
        window = self.calendar.day_window(now)
        return self.bucket(
            payments,
            window,
            key=self.calendar.day_key(window.start),
            label=self.calendar.day_label(window.start),
        )

    def month(self, payments: Iterable[Payment], now: datetime) -> RevenueBucket:
        window = self.calendar.month_window(now)
        return self.bucket(
            payments,
            window,
            key=self.calendar.month_key(window.start),
            label=self.calendar.month_label(window.start),
        )

    def daily_series(self, payments: Iterable[Payment], month_of: datetime) -> list[RevenueBucket]:
        """Every civil day of the month containing ``month_of``."""
        return self.series(payments, self.calendar.month_window(month_of), Granularity.DAY)

    def monthly_series(self, payments: Iterable[Payment], window: Window) -> list[RevenueBucket]:
        """Months across ``window``, rolled up to quarters then years when too many to chart."""
        month_count = sum(1 for _ in self.calendar.iter_month_starts(window))
        granularity = Granularity.MONTH
        if month_count > self.max_chart_buckets:
            granularity = Granularity.QUARTER
            if len(self._period_starts(window, granularity)) > self.max_chart_buckets:
                granularity = Granularity.YEAR
        return self.series(payments, window, granularity)

    def trailing_months(
        self, payments: Iterable[Payment], now: datetime, months: int = 12
    ) -> list[RevenueBucket]:
        """The current civil month and the ``months - 1`` before it."""
        return self.series(
            payments, self.calendar.trailing_months_window(now, months), Granularity.MONTH
        )

    def summarize(
        self, payments: Iterable[Payment], now: datetime, spec: WindowSpec
    ) -> list[RevenueBucket]:
        """Buckets for a dashboard view. ``now`` is never read from a clock here."""
        payments = list(payments)
        cal = self.calendar

        if spec.kind is ViewKind.DAY:
            day = cal.day_start_from_key(spec.from_) if spec.from_ else None
            return [self.day(payments, day or now)]

        if spec.kind in (ViewKind.MONTH, ViewKind.DAILY):
            month = cal.month_start_from_key(spec.month) if spec.month else None
            if spec.kind is ViewKind.MONTH:
                return [self.month(payments, month or now)]
            return self.daily_series(payments, month or now)

        if spec.kind is ViewKind.TRAILING:
            return self.trailing_months(payments, now, spec.months)

        if spec.kind is ViewKind.YTD:
            window = Window(cal.start_of_year(now), cal.add_months(now, 1))
            return self.monthly_series(payments, window)

        if spec.kind is ViewKind.RANGE:
            return self.monthly_series(payments, self._range_window(now, spec))

        return self.monthly_series(payments, self._all_time_window(payments, now))

    def _range_window(self, now: datetime, spec: WindowSpec) -> Window:
        cal = self.calendar
        today = cal.start_of_day(now)
        first = (cal.day_start_from_key(spec.from_) if spec.from_ else None) or cal.add_days(
            today, -_DEFAULT_RANGE_DAYS
        )
        last = (cal.day_start_from_key(spec.to) if spec.to else None) or today
        if last < first:
            first, last = last, first
        return Window(first, cal.add_days(last, 1))

    def _all_time_window(self, payments: Sequence[Payment], now: datetime) -> Window:
        cal = self.calendar
        paid_times = [as_utc(p.paid_at) for p in payments if p.paid_at is not None]
        earliest = min(paid_times) if paid_times else now - _EMPTY_HISTORY_LOOKBACK
        end = cal.add_days(cal.start_of_day(now), 1)
        start = min(cal.start_of_day(earliest), end)
        return Window(start, end)
