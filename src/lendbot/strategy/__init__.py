"""Lending decision engine: rate model, period selection, reconciliation, allocation."""

from lendbot.strategy.allocator import allocate, build_candidate_tiers
from lendbot.strategy.lending import LendingStrategy
from lendbot.strategy.period import period_for_rate
from lendbot.strategy.rate_estimator import RateEstimator
from lendbot.strategy.reconciler import OfferReconciler, select_stale_offers

__all__ = [
    "LendingStrategy",
    "OfferReconciler",
    "RateEstimator",
    "allocate",
    "build_candidate_tiers",
    "period_for_rate",
    "select_stale_offers",
]
