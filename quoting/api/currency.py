from __future__ import annotations

import math
import sys
from decimal import ROUND_HALF_UP, Context, Decimal

DAYS_PER_YEAR = 365
WHOLE = Decimal(1)

# Wide enough to hold any finite float exactly.
_CONTEXT = Context(prec=400)


def round_currency(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return value
    scaled = (value + math.copysign(sys.float_info.epsilon, value)) * 100
    if math.isinf(scaled):
        return value
    # Decimal(float) is exact, so the half test sees the binary cents value.
    # ROUND_HALF_UP in decimal rounds half away from zero.
    cents = Decimal(scaled).quantize(WHOLE, rounding=ROUND_HALF_UP, context=_CONTEXT)
    return float(cents) / 100


def project_annual(period_total: float, days_in_period: float) -> float:
    """Linear 365-day extrapolation; ignores leap years and seasonality."""
    if days_in_period <= 0:
        return 0.0
    return round_currency(period_total / days_in_period * DAYS_PER_YEAR)
