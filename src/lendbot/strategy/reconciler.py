"""Cancellation of stale lending offers.

An offer is stale only when BOTH hold:
- its rate is more than 5% away from the current fair rate, and
- it is older than one hour, measured from the strategy's last tick.

A mispriced but fresh offer gets time to fill; an old offer that is still
near the fair rate keeps its place in the queue.
"""

from decimal import Decimal

from lendbot.exchange.client import LendingClient
from lendbot.logging import get_logger
from lendbot.models import Offer

logger = get_logger(__name__)

MAX_RATE_DEVIATION = Decimal("0.05")
MAX_OFFER_AGE_MS = 60 * 60 * 1000


def rate_deviation(rate: Decimal, fair_rate: Decimal) -> Decimal:
    """Relative distance ``|fair - rate| / fair``.

    A zero fair rate makes any non-zero rate infinitely far away.
    """
    diff = abs(fair_rate - rate)
    if fair_rate == 0:
        return Decimal("Infinity") if diff else Decimal("0")
    return diff / abs(fair_rate)


def select_stale_offers(
    offers: list[Offer], fair_rate: Decimal, last_tick_ms: int
) -> list[Offer]:
    """Return the offers to cancel, in their original order."""
    return [
        offer
        for offer in offers
        if rate_deviation(offer.rate, fair_rate) > MAX_RATE_DEVIATION
        and last_tick_ms - offer.created_at_ms > MAX_OFFER_AGE_MS
    ]


class OfferReconciler:
    """Cancels stale offers through the lending client.

    Cancellation is fail-fast: the first TransportError propagates and the
    remaining offers are left for the next tick.
    """

    def __init__(self, client: LendingClient) -> None:
        self._client = client

    async def reconcile(
        self, active_offers: list[Offer], fair_rate: Decimal, last_tick_ms: int
    ) -> list[Offer]:
        """Cancel stale offers and return the ones cancelled."""
        stale = select_stale_offers(active_offers, fair_rate, last_tick_ms)
        for offer in stale:
            await self._client.cancel_offer(offer.id)
            logger.info(
                "offer_cancelled",
                offer_id=offer.id,
                rate=str(offer.rate),
                fair_rate=str(fair_rate),
                age_minutes=(last_tick_ms - offer.created_at_ms) // 60000,
            )
        return stale
