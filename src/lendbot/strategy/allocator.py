"""Capital allocation into new lending offers.

Given the available balance, the fair rate and the funding book, decides
which offers to place this tick. Every offer is exactly ``lending_size``;
the plan is ordered and is submitted in that order.

Balance above ``reserved_amount_tier1`` may chase long book tiers whose
rate justifies their period; balance above ``reserved_amount_tier2`` may
also take short (<= 5 day) tiers. Below the reserves only tiers paying
more than ``max_apy`` are taken.
"""

from decimal import Decimal

from lendbot.config import LendingStrategyConfig
from lendbot.exchange.types import round_to_step
from lendbot.logging import get_logger
from lendbot.models import BookEntry, OfferRequest
from lendbot.strategy.period import period_for_rate
from lendbot.strategy.reconciler import rate_deviation

logger = get_logger(__name__)

TIER_RATE_TOLERANCE = Decimal("0.05")
SHORT_PERIOD_DAYS = 5
BALANCE_STEP = Decimal("0.01")


def build_candidate_tiers(book: list[BookEntry], fair_rate: Decimal) -> list[BookEntry]:
    """Lend-side book levels worth matching, best rate first.

    A level qualifies when its rate is within 5% of the fair rate, or when
    its rate would justify at least the period it asks for.
    """
    candidates = [
        entry
        for entry in book
        if entry.amount < 0
        and (
            rate_deviation(entry.rate, fair_rate) <= TIER_RATE_TOLERANCE
            or period_for_rate(entry.rate) >= entry.period
        )
    ]
    # sorted() is stable, equal rates keep book order
    return sorted(candidates, key=lambda e: e.rate, reverse=True)


def allocate(
    balance: Decimal,
    fair_rate: Decimal,
    book: list[BookEntry],
    config: LendingStrategyConfig,
) -> list[OfferRequest]:
    """Plan the offers to submit this tick.

    Args:
        balance: Available funding balance (positive).
        fair_rate: Reference rate from the rate estimator.
        book: Current funding book snapshot.
        config: Strategy thresholds.

    Returns:
        Offers in submission order. Empty when balance < lending_size.
    """
    unit = config.lending_size
    if balance < unit:
        logger.debug("balance_below_lending_size", balance=str(balance), unit=str(unit))
        return []

    remaining = round_to_step(balance, BALANCE_STEP)
    plan: list[OfferRequest] = []

    fair_period = period_for_rate(fair_rate)
    if remaining >= unit and (
        fair_rate >= config.min_apy or remaining > config.reserved_amount_tier1
    ):
        plan.append(OfferRequest(amount=unit, rate=fair_rate, period=fair_period))
        remaining -= unit

    for tier in build_candidate_tiers(book, fair_rate):
        period_lim = period_for_rate(tier.rate)

        if remaining > unit and (
            tier.rate > config.max_apy
            or (
                remaining > config.reserved_amount_tier1
                and period_lim >= tier.period
                and tier.rate >= config.min_apy
            )
        ):
            plan.append(OfferRequest(amount=unit, rate=tier.rate, period=period_lim))
            remaining -= unit
        elif (
            remaining >= unit
            and remaining > config.reserved_amount_tier2
            and tier.period <= SHORT_PERIOD_DAYS
            and tier.rate >= config.min_apy
        ):
            plan.append(OfferRequest(amount=unit, rate=tier.rate, period=tier.period))
            remaining -= unit
        else:
            logger.debug(
                "tier_skipped",
                available=str(remaining),
                rate_pct=str(tier.rate * 100),
                period=tier.period,
                period_lim=period_lim,
            )

    return plan
