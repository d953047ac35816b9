"""One lending cycle for a single (exchange, symbol) pair.

Each tick walks the same stages in order:
  1. FETCH HISTORY: funding trades for [last_tick, now) into the store.
     A failure is logged and the window is kept for the next tick.
  2. RECONCILE & ALLOCATE: cancel stale offers, then plan and submit new
     ones from the fresh balance and book. Skipped when no fair rate can be
     estimated; any other error aborts the tick.
  3. PERSIST: upsert credit history and provided funds by external id.
  4. REPORT: log market yield and duration next to the fair rate.

The strategy owns the pair's RunState. The caller guarantees ticks of one
pair never overlap.
"""

from decimal import Decimal

from lendbot.config import LendingStrategyConfig, funding_symbol
from lendbot.data.store import LendingStore
from lendbot.exceptions import DataUnavailable, PersistenceError, TransportError
from lendbot.exchange.client import LendingClient
from lendbot.logging import get_logger
from lendbot.models import ONE_MINUTE_MS, RunState, TickReport, now_ms
from lendbot.strategy.allocator import allocate
from lendbot.strategy.rate_estimator import RateEstimator
from lendbot.strategy.reconciler import OfferReconciler

logger = get_logger(__name__)


class LendingStrategy:
    """Lending strategy state machine for one pair.

    Args:
        client: Exchange lending client.
        config: Immutable strategy parameters.
        tick_interval_ms: Amount the history window moves per successful fetch.
        start_ms: Initial ``now`` of the run state. Defaults to wall clock.
    """

    def __init__(
        self,
        client: LendingClient,
        config: LendingStrategyConfig,
        tick_interval_ms: int = ONE_MINUTE_MS,
        start_ms: int | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tick_interval_ms = tick_interval_ms
        self._reconciler = OfferReconciler(client)
        self.run_state = RunState.starting_at(now_ms() if start_ms is None else start_ms)

    @property
    def config(self) -> LendingStrategyConfig:
        return self._config

    @property
    def symbol(self) -> str:
        return self._config.symbol

    async def tick(self, store: LendingStore) -> TickReport:
        """Run one full cycle against ``store``.

        Raises:
            TransportError: An exchange call after the history stage failed.
            PersistenceError: A store write after the history stage failed.
        """
        report = TickReport()

        await self._fetch_history(store, report)

        try:
            fair_rate = await RateEstimator(store).estimate_rate(self.symbol)
        except DataUnavailable as e:
            logger.warning("fair_rate_unavailable", symbol=self.symbol, reason=str(e))
            fair_rate = None

        if fair_rate is not None:
            report.fair_rate = fair_rate
            await self._reconcile_and_allocate(fair_rate, report)

        await self._persist(store)
        await self._report(fair_rate)
        return report

    async def _fetch_history(self, store: LendingStore, report: TickReport) -> None:
        state = self.run_state
        try:
            trades = await self._client.history(
                self.symbol, state.last_tick_ms, state.now_ms
            )
            await store.insert_trades(funding_symbol(self.symbol), trades)
        except (TransportError, PersistenceError) as e:
            logger.error(
                "history_fetch_failed",
                symbol=self.symbol,
                window_start_ms=state.last_tick_ms,
                window_end_ms=state.now_ms,
                error=str(e),
            )
            return

        state.advance(self._tick_interval_ms)
        report.history_advanced = True
        report.trades_fetched = len(trades)

    async def _reconcile_and_allocate(self, fair_rate: Decimal, report: TickReport) -> None:
        offers = await self._client.active_offers(self.symbol)
        report.cancelled = await self._reconciler.reconcile(
            offers, fair_rate, self.run_state.last_tick_ms
        )

        # Balance is read only after cancellations have released funds
        balance = await self._client.balance(self.symbol)
        logger.debug("balance_available", symbol=self.symbol, balance=str(balance))
        if balance < self._config.lending_size:
            return

        book = await self._client.books(self.symbol)
        for request in allocate(balance, fair_rate, book, self._config):
            await self._client.submit_offer(
                self.symbol, request.amount, request.rate, request.period
            )
            report.submitted.append(request)
            logger.info(
                "offer_submitted",
                symbol=self.symbol,
                amount=str(request.amount),
                rate=str(request.rate),
                period=request.period,
            )

    async def _persist(self, store: LendingStore) -> None:
        history = await self._client.credit_history(self.symbol)
        await store.upsert_credits(history)

        provided = await self._client.credits(self.symbol)
        await store.upsert_provided(provided)

    async def _report(self, fair_rate: Decimal | None) -> None:
        info = await self._client.info(self.symbol)
        logger.info(
            "lending_summary",
            symbol=self.symbol,
            market_rate_pct=f"{info.yield_lend * 100:.4f}",
            reference_rate_pct=f"{fair_rate * 100:.4f}" if fair_rate is not None else None,
            duration_days=f"{info.duration_lend:.0f}",
        )
