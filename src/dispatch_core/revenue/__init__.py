from dispatch_core.revenue.buckets import (
    Granularity,
    KpiTotals,
    RevenueAggregator,
    RevenueBucket,
    ViewKind,
    WindowSpec,
    kpis_from_buckets,
    month_over_month_pct,
    period_changes,
)
from dispatch_core.revenue.snapshot import (
    DriverEarnings,
    FinanceSnapshot,
    build_finance_snapshot,
    driver_earnings,
)

__all__ = [
    "DriverEarnings",
    "FinanceSnapshot",
    "Granularity",
    "KpiTotals",
    "RevenueAggregator",
    "RevenueBucket",
    "ViewKind",
    "WindowSpec",
    "build_finance_snapshot",
    "driver_earnings",
    "kpis_from_buckets",
    "month_over_month_pct",
    "period_changes",
]
