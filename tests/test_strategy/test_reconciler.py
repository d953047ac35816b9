"""Tests for stale offer selection and cancellation.

An offer is cancelled only when it is both mispriced (> 5% from the fair
rate) and older than one hour relative to the last tick.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, call

import pytest

from conftest import make_offer
from lendbot.exceptions import TransportError
from lendbot.exchange.client import LendingClient
from lendbot.strategy.reconciler import (
    MAX_OFFER_AGE_MS,
    OfferReconciler,
    rate_deviation,
    select_stale_offers,
)

LAST_TICK = 1_700_000_000_000
MINUTE = 60 * 1000
FAIR = Decimal("0.0005")


class TestRateDeviation:
    def test_relative_distance(self) -> None:
        assert rate_deviation(Decimal("0.00055"), FAIR) == Decimal("0.1")
        assert rate_deviation(Decimal("0.00045"), FAIR) == Decimal("0.1")

    def test_equal_rates(self) -> None:
        assert rate_deviation(FAIR, FAIR) == Decimal("0")

    def test_zero_fair_rate(self) -> None:
        assert rate_deviation(Decimal("0.0001"), Decimal("0")).is_infinite()
        assert rate_deviation(Decimal("0"), Decimal("0")) == Decimal("0")


class TestSelectStaleOffers:
    def test_mispriced_but_fresh_is_kept(self) -> None:
        offers = [make_offer(1, "0.00055", LAST_TICK - 10 * MINUTE)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == []

    def test_old_but_near_fair_is_kept(self) -> None:
        offers = [make_offer(1, "0.00051", LAST_TICK - 120 * MINUTE)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == []

    def test_old_and_mispriced_is_cancelled(self) -> None:
        offers = [make_offer(1, "0.00055", LAST_TICK - 120 * MINUTE)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == offers

    def test_underpriced_counts_as_mispriced(self) -> None:
        offers = [make_offer(1, "0.0004", LAST_TICK - 120 * MINUTE)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == offers

    def test_exactly_one_hour_is_not_stale(self) -> None:
        offers = [make_offer(1, "0.0006", LAST_TICK - MAX_OFFER_AGE_MS)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == []

    def test_exactly_five_percent_is_not_stale(self) -> None:
        offers = [make_offer(1, "0.000525", LAST_TICK - 120 * MINUTE)]
        assert select_stale_offers(offers, FAIR, LAST_TICK) == []

    def test_preserves_order(self) -> None:
        old = LAST_TICK - 120 * MINUTE
        offers = [
            make_offer(3, "0.0007", old),
            make_offer(1, "0.0005", old),
            make_offer(2, "0.0003", old),
        ]
        assert [o.id for o in select_stale_offers(offers, FAIR, LAST_TICK)] == [3, 2]


class TestOfferReconciler:
    @pytest.mark.asyncio
    async def test_cancels_only_stale(self) -> None:
        client = AsyncMock(spec=LendingClient)
        old = LAST_TICK - 120 * MINUTE
        offers = [
            make_offer(10, "0.0007", old),
            make_offer(11, "0.0005", old),
            make_offer(12, "0.0007", LAST_TICK - MINUTE),
        ]

        cancelled = await OfferReconciler(client).reconcile(offers, FAIR, LAST_TICK)

        assert [o.id for o in cancelled] == [10]
        client.cancel_offer.assert_awaited_once_with(10)

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self) -> None:
        client = AsyncMock(spec=LendingClient)
        cancelled = await OfferReconciler(client).reconcile([], FAIR, LAST_TICK)
        assert cancelled == []
        client.cancel_offer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_cancel_failure_stops_the_rest(self) -> None:
        client = AsyncMock(spec=LendingClient)
        client.cancel_offer.side_effect = [None, TransportError("rejected"), None]
        old = LAST_TICK - 120 * MINUTE
        offers = [make_offer(i, "0.0007", old) for i in (1, 2, 3)]

        with pytest.raises(TransportError):
            await OfferReconciler(client).reconcile(offers, FAIR, LAST_TICK)

        assert client.cancel_offer.await_args_list == [call(1), call(2)]
