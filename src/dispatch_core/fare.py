"""Fare computation for service/vehicle pricing configurations."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dispatch_core.money import clamp_cents, format_cents, line_item_cents, non_negative

EXTRA_STOP_FEE_CENTS = 1500


class PricingStrategy(str, Enum):
    POINT_TO_POINT = "POINT_TO_POINT"
    HOURLY = "HOURLY"
    FLAT = "FLAT"


class PricingConfig(BaseModel):
    """Rates for one service type or vehicle, or the sum of both.

    Negative or missing rates are clamped to zero on input.
    """

    model_config = ConfigDict(frozen=True)

    pricing_strategy: PricingStrategy = PricingStrategy.POINT_TO_POINT
    min_fare_cents: int = 0
    base_fee_cents: int = 0
    per_mile_cents: int = 0
    per_minute_cents: int = 0
    per_hour_cents: int = 0
    min_hours: float = 0.0

    @field_validator(
        "min_fare_cents",
        "base_fee_cents",
        "per_mile_cents",
        "per_minute_cents",
        "per_hour_cents",
        mode="before",
    )
    @classmethod
    def clamp_rate(cls, v: Any) -> int:
        return clamp_cents(v)

    @field_validator("min_hours", mode="before")
    @classmethod
    def clamp_hours(cls, v: Any) -> float:
        return non_negative(v)

    @classmethod
    def combine(cls, service: "PricingConfig", vehicle: "PricingConfig") -> "PricingConfig":
        """Service rates plus vehicle rates, field by field.

        The strategy comes from the service type; the billable-hours floor is the
        larger of the two.
        """
        return cls(
            pricing_strategy=service.pricing_strategy,
            min_fare_cents=service.min_fare_cents + vehicle.min_fare_cents,
            base_fee_cents=service.base_fee_cents + vehicle.base_fee_cents,
            per_mile_cents=service.per_mile_cents + vehicle.per_mile_cents,
            per_minute_cents=service.per_minute_cents + vehicle.per_minute_cents,
            per_hour_cents=service.per_hour_cents + vehicle.per_hour_cents,
            min_hours=max(service.min_hours, vehicle.min_hours),
        )


class TripMeasurements(BaseModel):
    """Routing output for a trip. Missing or negative values count as zero."""

    model_config = ConfigDict(frozen=True)

    distance_miles: float = 0.0
    duration_minutes: float = 0.0
    hours_requested: float = 0.0
    stop_count: int = 0

    @field_validator("distance_miles", "duration_minutes", "hours_requested", mode="before")
    @classmethod
    def clamp_measurement(cls, v: Any) -> float:
        return non_negative(v)

    @field_validator("stop_count", mode="before")
    @classmethod
    def clamp_stops(cls, v: Any) -> int:
        return int(non_negative(v))


class FareBreakdown(BaseModel):
    """Itemized fare. ``total_cents`` excludes taxes and fees."""

    model_config = ConfigDict(frozen=True)

    pricing_strategy: PricingStrategy
    base_fee_cents: int = Field(ge=0)
    distance_charge_cents: int = Field(ge=0)
    time_charge_cents: int = Field(ge=0)
    stop_count: int = Field(ge=0)
    stop_surcharge_cents: int = Field(ge=0)
    billed_hours: float | None = None
    subtotal_cents: int = Field(ge=0)
    min_fare_cents: int = Field(ge=0)
    min_fare_applied: bool
    total_cents: int = Field(ge=0)
    display: str


def _format_quantity(value: float) -> str:
    return f"{value:g}"


def compute_fare(
    config: PricingConfig,
    measurements: TripMeasurements,
    *,
    extra_stop_fee_cents: int = EXTRA_STOP_FEE_CENTS,
) -> FareBreakdown:
    """Compute the fare for a trip.

    Each line item is rounded to the cent before it is added, and the display
    string is assembled in the same order the amounts are computed: base, then
    distance or time, then stops, then the minimum-fare floor.
    """
    base_charge = config.base_fee_cents
    distance_charge = 0
    time_charge = 0
    billed_hours: float | None = None
    parts: list[str] = []

    if config.pricing_strategy is PricingStrategy.FLAT:
        parts.append(f"Flat rate: {format_cents(base_charge)}")
    elif base_charge > 0:
        parts.append(f"Base: {format_cents(base_charge)}")

    if config.pricing_strategy is PricingStrategy.POINT_TO_POINT:
        miles = measurements.distance_miles
        distance_charge = line_item_cents(miles, config.per_mile_cents)
        if distance_charge > 0:
            parts.append(
                f"Distance: {miles:.1f} mi × {format_cents(config.per_mile_cents)}/mi"
                f" = {format_cents(distance_charge)}"
            )
    elif config.pricing_strategy is PricingStrategy.HOURLY:
        billed_hours = max(measurements.hours_requested, config.min_hours)
        time_charge = line_item_cents(billed_hours, config.per_hour_cents)
        if time_charge > 0:
            parts.append(
                f"Time: {_format_quantity(billed_hours)} hrs × "
                f"{format_cents(config.per_hour_cents)}/hr = {format_cents(time_charge)}"
            )

    stop_fee = clamp_cents(extra_stop_fee_cents)
    stop_surcharge = measurements.stop_count * stop_fee
    if stop_surcharge > 0:
        parts.append(
            f"Stops: {measurements.stop_count} × {format_cents(stop_fee)}"
            f" = {format_cents(stop_surcharge)}"
        )

    subtotal = base_charge + distance_charge + time_charge + stop_surcharge

    min_fare_applied = False
    if subtotal < config.min_fare_cents:
        subtotal = config.min_fare_cents
        min_fare_applied = True
        parts.append(f"Minimum fare applied: {format_cents(config.min_fare_cents)}")

    return FareBreakdown(
        pricing_strategy=config.pricing_strategy,
        base_fee_cents=base_charge,
        distance_charge_cents=distance_charge,
        time_charge_cents=time_charge,
        stop_count=measurements.stop_count,
        stop_surcharge_cents=stop_surcharge,
        billed_hours=billed_hours,
        subtotal_cents=subtotal,
        min_fare_cents=config.min_fare_cents,
        min_fare_applied=min_fare_applied,
        total_cents=subtotal,
        display=" + ".join(parts),
    )
