"""
Booking dispatch core - command line entry point.

``quote`` prices a trip from rates given on the command line. ``report`` reads
a JSON list of payment records and prints the revenue buckets of a dashboard
view, computed in the configured business timezone.
"""

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from pydantic import TypeAdapter

from dispatch_core.booking import Payment
from dispatch_core.civil_time import CivilCalendar
from dispatch_core.core.exceptions import ConfigurationError, DispatchError
from dispatch_core.dispatch_logging import setup_logging
from dispatch_core.fare import PricingConfig, PricingStrategy, TripMeasurements, compute_fare
from dispatch_core.money import dollars_to_cents
from dispatch_core.revenue import (
    RevenueAggregator,
    ViewKind,
    WindowSpec,
    kpis_from_buckets,
    period_changes,
)
from dispatch_core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_PAYMENTS = TypeAdapter(list[Payment])


def _parse_now(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(UTC)
    return datetime.fromisoformat(raw)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dispatch-core",
        description="Fare quotes and revenue reports for the booking dispatch core",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote = subparsers.add_parser("quote", help="Compute a fare breakdown")
    quote.add_argument(
        "--strategy",
        choices=[s.value for s in PricingStrategy],
        default=PricingStrategy.POINT_TO_POINT.value,
        help="Pricing strategy (default: POINT_TO_POINT)",
    )
    quote.add_argument("--base-fee", default="0", help='Base fee in dollars, e.g. "50.00"')
    quote.add_argument("--per-mile", default="0", help="Rate per mile in dollars")
    quote.add_argument("--per-hour", default="0", help="Rate per hour in dollars")
    quote.add_argument("--min-fare", default="0", help="Minimum fare in dollars")
    quote.add_argument("--min-hours", type=float, default=0.0, help="Minimum billable hours")
    quote.add_argument("--miles", type=float, default=0.0, help="Trip distance in miles")
    quote.add_argument("--minutes", type=float, default=0.0, help="Trip duration in minutes")
    quote.add_argument("--hours", type=float, default=0.0, help="Hours requested")
    quote.add_argument("--stops", type=int, default=0, help="Number of extra stops")

    report = subparsers.add_parser("report", help="Bucket payments for a dashboard view")
    report.add_argument("payments", type=Path, help="JSON file holding a list of payments")
    report.add_argument(
        "--view",
        choices=[v.value for v in ViewKind],
        default=ViewKind.MONTH.value,
        help="Window view (default: month)",
    )
    report.add_argument("--from", dest="from_", help="First civil day, YYYY-MM-DD")
    report.add_argument("--to", help="Last civil day, YYYY-MM-DD")
    report.add_argument("--month", help="Civil month, YYYY-MM")
    report.add_argument("--months", type=int, help="Number of months for the trailing view")
    report.add_argument("--now", help="ISO-8601 instant to report as of (default: current time)")
    return parser


def run_quote(args: argparse.Namespace, settings: Settings) -> dict:
    config = PricingConfig(
        pricing_strategy=PricingStrategy(args.strategy),
        base_fee_cents=dollars_to_cents(args.base_fee),
        per_mile_cents=dollars_to_cents(args.per_mile),
        per_hour_cents=dollars_to_cents(args.per_hour),
        min_fare_cents=dollars_to_cents(args.min_fare),
        min_hours=args.min_hours,
    )
    measurements = TripMeasurements(
        distance_miles=args.miles,
        duration_minutes=args.minutes,
        hours_requested=args.hours,
        stop_count=args.stops,
    )
    fare = compute_fare(
        config, measurements, extra_stop_fee_cents=settings.pricing.extra_stop_fee_cents
    )
    return fare.model_dump(mode="json")


def run_report(args: argparse.Namespace, settings: Settings) -> dict:
    payments = _PAYMENTS.validate_json(args.payments.read_bytes())
    calendar = CivilCalendar.from_offset_minutes(
        settings.calendar.utc_offset_minutes, settings.calendar.timezone_label
    )
    aggregator = RevenueAggregator(calendar, max_chart_buckets=settings.report.max_chart_buckets)
    spec = WindowSpec(
        kind=ViewKind(args.view),
        from_=args.from_,
        to=args.to,
        month=args.month,
        months=args.months or settings.report.trailing_months,
    )
    now = _parse_now(args.now)
    buckets = aggregator.summarize(payments, now, spec)
    logger.info(
        "Report %s over %d payments produced %d buckets",
        spec.kind.value,
        len(payments),
        len(buckets),
    )
    return {
        "view": spec.kind.value,
        "timezone": calendar.name,
        "currency": settings.report.currency,
        "buckets": [b.model_dump(mode="json") for b in buckets],
        "changes_pct": period_changes(buckets),
        "kpis": kpis_from_buckets(buckets).model_dump(mode="json"),
    }


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"ConfigurationError: {e.message}", file=sys.stderr)
        return 1
    setup_logging(settings.log)

    try:
        if args.command == "quote":
            result = run_quote(args, settings)
        else:
            result = run_report(args, settings)
    except DispatchError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
