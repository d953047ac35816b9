"""Exchange-neutral numeric helpers.

All monetary values use Decimal. Never use float for rates, amounts, or balances.
"""

from decimal import Decimal


def to_decimal(value: object) -> Decimal:
    """Convert a wire value (float, int, str) to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_to_step(value: Decimal, step: Decimal) -> Decimal:
    """Round a value down to the nearest step increment.

    Uses integer division to ensure we always round DOWN (never up),
    which prevents offering more than the available balance.

    Args:
        value: The raw amount to round.
        step: The minimum increment (e.g., 0.01 for USD).

    Returns:
        The value rounded down to the nearest step.
    """
    return (value // step) * step
