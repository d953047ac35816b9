"""Fixed-interval scheduling of lending ticks, one supervised task per pair.

BotContext is built once at startup and handed to the Scheduler. It owns
the shared database pool and one lending client per configured exchange.
There is no module-level state.

Each (exchange, symbol) pair gets its own PairRunner task:
  - ticks of one pair are single-flight (a per-runner lock),
  - ticks of different pairs run concurrently,
  - a failed tick is logged with the pair identity, recorded on the runner
    and never escapes the runner's task.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from lendbot.config import AppSettings, LendingStrategyConfig
from lendbot.data.database import DatabasePool
from lendbot.data.store import LendingStore
from lendbot.exceptions import ConfigError
from lendbot.exchange import create_client
from lendbot.exchange.client import LendingClient
from lendbot.logging import bind_pair, get_logger
from lendbot.models import TickReport, now_ms
from lendbot.strategy.lending import LendingStrategy

logger = get_logger(__name__)


@dataclass
class BotContext:
    """Process-wide collaborators shared by every pair runner."""

    settings: AppSettings
    pool: DatabasePool
    clients: dict[str, LendingClient] = field(default_factory=dict)

    @classmethod
    def build(cls, settings: AppSettings) -> BotContext:
        """Create the pool and one client per exchange (nothing is connected yet).

        Raises:
            ConfigError: If no lending strategy is configured.
        """
        if not settings.pairs():
            raise ConfigError("no lending strategies configured")
        pool = DatabasePool(settings.database.path, size=settings.database.pool_size)
        clients = {exchange.name: create_client(exchange) for exchange in settings.exchanges}
        return cls(settings=settings, pool=pool, clients=clients)

    async def open(self) -> None:
        await self.pool.connect()
        for client in self.clients.values():
            await client.connect()

    async def close(self) -> None:
        for client in self.clients.values():
            await client.close()
        await self.pool.close()


class PairRunner:
    """Runs one pair's strategy at a fixed cadence under supervision.

    Args:
        exchange: Exchange name, used for log context and status.
        strategy: The pair's lending strategy (owns its run state).
        pool: Shared connection pool; a tick holds one connection throughout.
        interval: Seconds between tick starts.
    """

    def __init__(
        self,
        exchange: str,
        strategy: LendingStrategy,
        pool: DatabasePool,
        interval: float,
    ) -> None:
        self._exchange = exchange
        self._strategy = strategy
        self._pool = pool
        self._interval = interval
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._running = False

        self.ticks = 0
        self.failures = 0
        self.last_error: str | None = None
        self.last_report: TickReport | None = None
        self.last_tick_at_ms: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self._exchange, self._strategy.symbol

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_busy(self) -> bool:
        """Whether a tick is in progress right now."""
        return self._lock.locked()

    async def run_once(self) -> TickReport:
        """Run exactly one tick; waits if a tick for this pair is already running.

        Exceptions from the tick propagate to the caller.
        """
        async with self._lock:
            async with self._pool.acquire() as conn:
                report = await self._strategy.tick(LendingStore(conn))
            self.ticks += 1
            self.last_report = report
            self.last_tick_at_ms = now_ms()
            return report

    async def start(self) -> None:
        """Begin ticking in the background."""
        if self._running:
            logger.warning("pair_runner_already_running", exchange=self._exchange, symbol=self._strategy.symbol)
            return
        self._running = True
        self._task = asyncio.create_task(
            self._run_loop(), name=f"lending:{self._exchange}:{self._strategy.symbol}"
        )

    async def stop(self) -> None:
        """Stop ticking; an in-flight tick is cancelled."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_loop(self) -> None:
        bind_pair(self._exchange, self._strategy.symbol)
        loop = asyncio.get_running_loop()
        logger.info("pair_runner_started", interval=self._interval)

        while self._running:
            started = loop.time()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error("pair_tick_failed", error=str(e), exc_info=True)
            else:
                self.last_error = None

            # Fixed cadence; an overrunning tick starts the next one immediately
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))

    def status(self) -> dict:
        state = self._strategy.run_state
        report = self.last_report
        return {
            "exchange": self._exchange,
            "symbol": self._strategy.symbol,
            "running": self._running,
            "busy": self.is_busy,
            "ticks": self.ticks,
            "failures": self.failures,
            "last_error": self.last_error,
            "last_tick_at_ms": self.last_tick_at_ms,
            "fair_rate": report.fair_rate if report else None,
            "window_start_ms": state.last_tick_ms,
            "window_end_ms": state.now_ms,
        }


class Scheduler:
    """Owns one PairRunner per configured (exchange, symbol) pair."""

    def __init__(self, context: BotContext) -> None:
        self._context = context
        interval = context.settings.scheduler.tick_interval_seconds
        interval_ms = int(interval * 1000)
        self._runners: list[PairRunner] = []
        for exchange, strategy_config in context.settings.pairs():
            self._runners.append(
                PairRunner(
                    exchange=exchange.name,
                    strategy=self._make_strategy(
                        context.clients[exchange.name], strategy_config, interval_ms
                    ),
                    pool=context.pool,
                    interval=interval,
                )
            )
        self._stopped = asyncio.Event()

    @staticmethod
    def _make_strategy(
        client: LendingClient, config: LendingStrategyConfig, interval_ms: int
    ) -> LendingStrategy:
        return LendingStrategy(client, config, tick_interval_ms=interval_ms)

    @property
    def runners(self) -> list[PairRunner]:
        return list(self._runners)

    async def run(self) -> None:
        """Start every runner and block until stop() is called."""
        self._stopped.clear()
        for runner in self._runners:
            await runner.start()
        logger.info("scheduler_started", pairs=len(self._runners))
        try:
            await self._stopped.wait()
        finally:
            for runner in self._runners:
                await runner.stop()
            logger.info("scheduler_stopped")

    async def stop(self) -> None:
        """Signal run() to stop all runners and return."""
        logger.info("scheduler_stopping")
        self._stopped.set()

    def status(self) -> list[dict]:
        return [runner.status() for runner in self._runners]
