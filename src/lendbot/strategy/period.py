"""Loan duration selection from a daily lending rate.

Higher rates justify locking capital up for longer. The mapping is a
piecewise-linear staircase over 0.0001-wide rate bands, truncated to whole
days and clamped to the exchange's allowed range of [2, 120] days.
"""

from decimal import Decimal

from lendbot.exchange.types import to_decimal

MIN_PERIOD = 2
MAX_PERIOD = 120

# Rates at or above this always get the longest loan
MAX_PERIOD_RATE = Decimal("0.001")

_BASIS_POINT_SCALE = Decimal("10000")

# (lower inclusive, upper exclusive, slope, intercept):
#   period = slope * rate * 10000 + intercept
_BANDS: tuple[tuple[Decimal, Decimal, int, int], ...] = (
    (Decimal("0.00035"), Decimal("0.0004"), 4, -9),
    (Decimal("0.0004"), Decimal("0.0005"), 8, -25),
    (Decimal("0.0005"), Decimal("0.0006"), 15, -60),
    (Decimal("0.0006"), Decimal("0.0007"), 40, -210),
    (Decimal("0.0007"), Decimal("0.0008"), 25, -105),
    (Decimal("0.0008"), Decimal("0.0009"), 20, -65),
    (Decimal("0.0009"), Decimal("0.001"), 5, 70),
)


def period_for_rate(rate: Decimal | float | str) -> int:
    """Map a daily rate to a loan period in days.

    Pure function. Non-decreasing in ``rate``; always within
    [MIN_PERIOD, MAX_PERIOD].

    >>> period_for_rate("0.0005")
    15
    >>> period_for_rate("0.0002")
    2
    """
    value = to_decimal(rate)
    if value >= MAX_PERIOD_RATE:
        return MAX_PERIOD

    for lower, upper, slope, intercept in _BANDS:
        if lower <= value < upper:
            # int() on Decimal truncates toward zero
            period = int(slope * value * _BASIS_POINT_SCALE + intercept)
            return min(max(period, MIN_PERIOD), MAX_PERIOD)

    return MIN_PERIOD
