"""Booking lifecycle, fare computation and revenue reporting for a dispatch business."""

from dispatch_core.booking import Assignment, Booking, BookingStatus, Payment, PaymentStatus
from dispatch_core.civil_time import PHOENIX, CivilCalendar, Window
from dispatch_core.fare import (
    FareBreakdown,
    PricingConfig,
    PricingStrategy,
    TripMeasurements,
    compute_fare,
)
from dispatch_core.lifecycle import AvailableTransitions, BookingLifecycle

__version__ = "0.1.0"

__all__ = [
    "PHOENIX",
    "Assignment",
    "AvailableTransitions",
    "Booking",
    "BookingLifecycle",
    "BookingStatus",
    "CivilCalendar",
    "FareBreakdown",
    "Payment",
    "PaymentStatus",
    "PricingConfig",
    "PricingStrategy",
    "TripMeasurements",
    "Window",
    "compute_fare",
]
