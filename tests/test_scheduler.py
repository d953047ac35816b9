"""Tests for BotContext wiring, PairRunner supervision and the Scheduler.

Tests verify:
- BotContext.build rejects an empty configuration and builds one client per exchange
- Ticks of one pair never overlap
- Ticks of different pairs run concurrently
- A failing pair is recorded and does not stop itself or other pairs
- Scheduler.run starts every runner and stop() returns cleanly
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from lendbot.config import AppSettings, ExchangeConfig, LendingStrategyConfig, SchedulerSettings
from lendbot.data.database import DatabasePool
from lendbot.data.store import LendingStore
from lendbot.exceptions import ConfigError, TransportError
from lendbot.exchange.bitfinex_client import BitfinexClient
from lendbot.exchange.client import LendingClient
from lendbot.models import RunState, TickReport
from lendbot.scheduler import BotContext, PairRunner, Scheduler
from lendbot.strategy.lending import LendingStrategy


def make_strategy(symbol: str, tick: AsyncMock) -> MagicMock:
    strategy = MagicMock(spec=LendingStrategy)
    strategy.symbol = symbol
    strategy.run_state = RunState.starting_at(1_700_000_000_000)
    strategy.tick = tick
    return strategy


class TestBotContext:
    def test_build_without_strategies(self) -> None:
        settings = AppSettings(exchanges=[ExchangeConfig(name="bitfinex")])
        with pytest.raises(ConfigError, match="no lending strategies"):
            BotContext.build(settings)

    def test_build_creates_pool_and_clients(self, mock_settings: AppSettings) -> None:
        context = BotContext.build(mock_settings)
        assert isinstance(context.clients["bitfinex"], BitfinexClient)
        assert context.pool.size == 2

    def test_build_unknown_exchange(self) -> None:
        settings = AppSettings(
            exchanges=[
                ExchangeConfig(name="kraken", strategies=[LendingStrategyConfig(symbol="USD")])
            ]
        )
        with pytest.raises(ConfigError):
            BotContext.build(settings)

    @pytest.mark.asyncio
    async def test_open_and_close(self, mock_settings: AppSettings) -> None:
        client = AsyncMock(spec=LendingClient)
        context = BotContext(
            settings=mock_settings,
            pool=DatabasePool(mock_settings.database.path, size=1),
            clients={"bitfinex": client},
        )
        await context.open()
        assert context.pool.available == 1
        await context.close()

        client.connect.assert_awaited_once()
        client.close.assert_awaited_once()


class TestPairRunner:
    @pytest.mark.asyncio
    async def test_run_once_records_report(self, pool: DatabasePool) -> None:
        report = TickReport()
        tick = AsyncMock(return_value=report)
        runner = PairRunner("bitfinex", make_strategy("USD", tick), pool, interval=60)

        assert await runner.run_once() is report
        assert runner.ticks == 1
        assert runner.last_report is report
        assert isinstance(tick.await_args.args[0], LendingStore)

    @pytest.mark.asyncio
    async def test_same_pair_single_flight(self, pool: DatabasePool) -> None:
        active = 0
        max_active = 0

        async def slow_tick(store: LendingStore) -> TickReport:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.02)
            active -= 1
            return TickReport()

        runner = PairRunner("bitfinex", make_strategy("USD", AsyncMock(side_effect=slow_tick)), pool, 60)
        await asyncio.gather(runner.run_once(), runner.run_once(), runner.run_once())

        assert max_active == 1
        assert runner.ticks == 3

    @pytest.mark.asyncio
    async def test_different_pairs_overlap(self, pool: DatabasePool) -> None:
        both_running = asyncio.Event()
        started: set[str] = set()

        def tick_for(symbol: str) -> AsyncMock:
            async def _tick(store: LendingStore) -> TickReport:
                started.add(symbol)
                if len(started) == 2:
                    both_running.set()
                await asyncio.wait_for(both_running.wait(), timeout=1)
                return TickReport()

            return AsyncMock(side_effect=_tick)

        usd = PairRunner("bitfinex", make_strategy("USD", tick_for("USD")), pool, 60)
        btc = PairRunner("bitfinex", make_strategy("BTC", tick_for("BTC")), pool, 60)

        await asyncio.gather(usd.run_once(), btc.run_once())
        assert started == {"USD", "BTC"}

    @pytest.mark.asyncio
    async def test_failures_are_contained(self, pool: DatabasePool) -> None:
        failing = AsyncMock(side_effect=TransportError("exchange down"))
        healthy = AsyncMock(return_value=TickReport())
        bad = PairRunner("bitfinex", make_strategy("USD", failing), pool, interval=0.01)
        good = PairRunner("bitfinex", make_strategy("BTC", healthy), pool, interval=0.01)

        await bad.start()
        await good.start()
        await asyncio.sleep(0.1)
        await bad.stop()
        await good.stop()

        assert bad.failures >= 2
        assert bad.ticks == 0
        assert "exchange down" in (bad.last_error or "")
        assert good.ticks >= 2
        assert good.failures == 0
        assert pool.available == pool.size

    @pytest.mark.asyncio
    async def test_start_twice_is_ignored(self, pool: DatabasePool) -> None:
        runner = PairRunner("bitfinex", make_strategy("USD", AsyncMock(return_value=TickReport())), pool, 60)
        await runner.start()
        first_task = runner._task
        await runner.start()
        assert runner._task is first_task
        await runner.stop()
        assert not runner.is_running

    def test_status_shape(self) -> None:
        pool = MagicMock(spec=DatabasePool)
        runner = PairRunner("bitfinex", make_strategy("USD", AsyncMock()), pool, 60)
        status = runner.status()
        assert runner.key == ("bitfinex", "USD")
        assert status["exchange"] == "bitfinex"
        assert status["symbol"] == "USD"
        assert status["ticks"] == 0
        assert status["fair_rate"] is None
        assert status["window_end_ms"] - status["window_start_ms"] == 60_000


class TestScheduler:
    @pytest.mark.asyncio
    async def test_one_runner_per_pair(self, mock_settings: AppSettings, pool: DatabasePool) -> None:
        settings = mock_settings.model_copy(
            update={
                "exchanges": [
                    ExchangeConfig(
                        name="bitfinex",
                        strategies=[
                            LendingStrategyConfig(symbol="USD"),
                            LendingStrategyConfig(symbol="BTC"),
                        ],
                    )
                ]
            }
        )
        context = BotContext(settings=settings, pool=pool, clients={"bitfinex": AsyncMock(spec=LendingClient)})

        scheduler = Scheduler(context)

        assert [r.key for r in scheduler.runners] == [("bitfinex", "USD"), ("bitfinex", "BTC")]
        assert [s["symbol"] for s in scheduler.status()] == ["USD", "BTC"]

    @pytest.mark.asyncio
    async def test_run_until_stopped(
        self, mock_settings: AppSettings, mock_client: AsyncMock, pool: DatabasePool
    ) -> None:
        settings = mock_settings.model_copy(
            update={"scheduler": SchedulerSettings(tick_interval_seconds=0.01)}
        )
        context = BotContext(settings=settings, pool=pool, clients={"bitfinex": mock_client})
        scheduler = Scheduler(context)

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.1)
        await scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        runner = scheduler.runners[0]
        assert runner.ticks >= 2
        assert not runner.is_running
        mock_client.history.assert_awaited()
