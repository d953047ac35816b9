"""Fair lending rate estimation from stored funding trades.

The fair rate leans towards the best recent print:
``0.8 * max(rate) + 0.2 * avg(rate)`` over the last three hours of trades,
falling back to the most recent 100 trades when the market has been quiet.
"""

from decimal import Decimal

from lendbot.config import funding_symbol
from lendbot.data.store import LendingStore, RateStats
from lendbot.exceptions import DataUnavailable
from lendbot.logging import get_logger
from lendbot.models import now_ms as wall_clock_ms

logger = get_logger(__name__)

RECENT_WINDOW_MS = 3 * 60 * 60 * 1000
FALLBACK_TRADE_COUNT = 100

MAX_WEIGHT = Decimal("0.8")
AVG_WEIGHT = Decimal("0.2")


def blend(stats: RateStats) -> Decimal:
    """Weighted blend of max and mean rate."""
    return stats.max_rate * MAX_WEIGHT + stats.avg_rate * AVG_WEIGHT


class RateEstimator:
    """Derives a single fair lending rate for a symbol from the store."""

    def __init__(self, store: LendingStore) -> None:
        self._store = store

    async def estimate_rate(self, symbol: str, now_ms: int | None = None) -> Decimal:
        """Return the fair rate for ``symbol``.

        Args:
            symbol: Plain currency symbol (e.g. "USD"); trades are looked up
                under its funding instrument key.
            now_ms: Reference time for the 3-hour window. Defaults to wall clock.

        Raises:
            DataUnavailable: No trades are stored for the symbol at all.
        """
        key = funding_symbol(symbol)
        reference_ms = wall_clock_ms() if now_ms is None else now_ms

        stats = await self._store.get_rate_stats(key, reference_ms - RECENT_WINDOW_MS)
        if stats is None:
            stats = await self._store.get_recent_rate_stats(key, FALLBACK_TRADE_COUNT)
            if stats is None:
                raise DataUnavailable(f"no funding trades stored for {key}")
            logger.debug("rate_from_recent_trades", symbol=key, trades=stats.count)

        return blend(stats)
