"""Integer-cents money helpers.

Every amount in the core is a non-negative ``int`` of cents. Floating point only
appears in trip measurements (miles, hours), and every product of a measurement
and a rate goes through :func:`round_cents` before it is summed.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dispatch_core.core.exceptions import ValidationError

_CENT = Decimal(1)
_MONEY_STRIP = str.maketrans("", "", "$, \t")


def _to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 2.675 as 2.675 rather than its binary expansion
    return Decimal(str(value))


def round_cents(value: float | int | Decimal) -> int:
    """Round to the nearest cent, halves away from zero."""
    return int(_to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def line_item_cents(quantity: float, rate_cents: int) -> int:
    """Charge for ``quantity`` units at ``rate_cents`` each, rounded on its own."""
    return round_cents(_to_decimal(quantity) * rate_cents)


def non_negative(value: float | int | None) -> float:
    """Normalize a measurement: None, NaN and negatives become zero."""
    if value is None:
        return 0.0
    number = float(value)
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def clamp_cents(value: int | float | None) -> int:
    """Normalize a rate or amount to a non-negative integer of cents."""
    if value is None:
        return 0
    if isinstance(value, float):
        if math.isnan(value):
            return 0
        value = round_cents(value)
    return max(0, int(value))


def dollars_to_cents(raw: str | float | int | None) -> int:
    """Parse "$1,234.56", "55" or 55.5 into cents. Blank input is zero."""
    if raw is None:
        return 0
    text = str(raw).strip().translate(_MONEY_STRIP)
    if not text:
        return 0
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f'Invalid money value: "{raw}"', {"value": str(raw)}) from None
    if not amount.is_finite():
        raise ValidationError(f'Invalid money value: "{raw}"', {"value": str(raw)})
    return round_cents(amount * 100)


def format_cents(cents: int, symbol: str = "$") -> str:
    """Format cents for display, e.g. ``13750 -> "$137.50"``."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole:,}.{frac:02d}"


def average_cents(total_cents: int, count: int) -> int:
    if count <= 0:
        return 0
    return round_cents(Decimal(total_cents) / count)


def percent_change(current: int, previous: int) -> float | None:
    """Percent change from ``previous`` to ``current``; None when previous is not positive."""
    if previous <= 0:
        return None
    return (current - previous) / previous * 100
