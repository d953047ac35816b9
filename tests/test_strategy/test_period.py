"""Tests for loan period selection from a daily rate."""

from decimal import Decimal

import pytest

from lendbot.strategy.period import MAX_PERIOD, MIN_PERIOD, period_for_rate


class TestPeriodForRate:
    """Band values, truncation and clamping."""

    @pytest.mark.parametrize(
        ("rate", "expected"),
        [
            ("0", 2),
            ("0.0002", 2),
            ("0.00034999", 2),
            ("0.00035", 5),
            ("0.0004", 7),
            ("0.00045", 11),
            ("0.0005", 15),
            ("0.0006", 30),
            ("0.00065", 50),
            ("0.0007", 70),
            ("0.0008", 95),
            ("0.0009", 115),
            ("0.00095", 117),
            ("0.001", 120),
            ("0.005", 120),
        ],
    )
    def test_band_values(self, rate: str, expected: int) -> None:
        assert period_for_rate(Decimal(rate)) == expected

    def test_band_edges_are_continuous(self) -> None:
        """Just below a band edge is at most one day short of the edge period."""
        for edge in ("0.0004", "0.0005", "0.0006", "0.0007", "0.0008", "0.0009", "0.001"):
            below = period_for_rate(Decimal(edge) - Decimal("0.00000001"))
            at = period_for_rate(Decimal(edge))
            assert at - 1 <= below <= at

    def test_non_decreasing(self) -> None:
        previous = MIN_PERIOD
        rate = Decimal("0")
        step = Decimal("0.000001")
        while rate <= Decimal("0.0012"):
            period = period_for_rate(rate)
            assert period >= previous, f"period dropped at rate {rate}"
            previous = period
            rate += step

    def test_always_within_bounds(self) -> None:
        for rate in ("-0.001", "0", "0.00001", "0.00099999", "0.5", "10"):
            assert MIN_PERIOD <= period_for_rate(Decimal(rate)) <= MAX_PERIOD

    def test_accepts_float_and_str(self) -> None:
        assert period_for_rate(0.0005) == 15
        assert period_for_rate("0.0007") == 70

    def test_returns_int(self) -> None:
        assert isinstance(period_for_rate(Decimal("0.00065")), int)
