"""Shared test fixtures for the funding lending bot."""

from collections.abc import AsyncIterator
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from lendbot.config import AppSettings, DatabaseSettings, ExchangeConfig, LendingStrategyConfig
from lendbot.data.database import DatabasePool
from lendbot.data.store import LendingStore
from lendbot.exchange.client import LendingClient
from lendbot.models import Credit, FundingInfo, Offer, Trade


def make_trade(timestamp_ms: int, rate: str, amount: str = "100", period: int = 2) -> Trade:
    return Trade(
        timestamp_ms=timestamp_ms,
        amount=Decimal(amount),
        rate=Decimal(rate),
        period=period,
    )


def make_offer(offer_id: int, rate: str, created_at_ms: int, symbol: str = "fUSD") -> Offer:
    return Offer(id=offer_id, symbol=symbol, rate=Decimal(rate), created_at_ms=created_at_ms)


def make_credit(
    credit_id: int,
    amount: str = "200",
    updated_at_ms: int = 1_700_000_000_000,
    symbol: str = "fUSD",
) -> Credit:
    return Credit(
        id=credit_id,
        symbol=symbol,
        created_at_ms=1_700_000_000_000,
        updated_at_ms=updated_at_ms,
        amount=Decimal(amount),
        rate=Decimal("0.0005"),
        period=15,
        opened_at_ms=1_700_000_000_000,
        last_payout_ms=None,
        position_pair="tBTCUSD",
    )


@pytest.fixture
def strategy_config() -> LendingStrategyConfig:
    """Default lending parameters for USD."""
    return LendingStrategyConfig(symbol="USD")


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:  # type: ignore[no-untyped-def]
    """AppSettings with one Bitfinex account lending USD and a temp database."""
    return AppSettings(
        log_level="DEBUG",
        database=DatabaseSettings(path=str(tmp_path / "lending.db"), pool_size=2),
        exchanges=[
            ExchangeConfig(
                name="bitfinex",
                api_key="test-key",  # type: ignore[arg-type]
                api_secret="test-secret",  # type: ignore[arg-type]
                strategies=[LendingStrategyConfig(symbol="USD")],
            )
        ],
    )


@pytest.fixture
def mock_client() -> AsyncMock:
    """Mock LendingClient with a quiet market: no trades, offers, or credits."""
    client = AsyncMock(spec=LendingClient)
    client.history.return_value = []
    client.books.return_value = []
    client.active_offers.return_value = []
    client.balance.return_value = Decimal("0")
    client.credits.return_value = []
    client.credit_history.return_value = []
    client.info.return_value = FundingInfo(
        yield_lend=Decimal("0.0005"), duration_lend=Decimal("12")
    )
    return client


@pytest_asyncio.fixture
async def pool(tmp_path) -> AsyncIterator[DatabasePool]:  # type: ignore[no-untyped-def]
    """Connected two-connection pool on a temp database file."""
    async with DatabasePool(str(tmp_path / "test.db"), size=2) as db_pool:
        yield db_pool


@pytest_asyncio.fixture
async def store(pool: DatabasePool) -> AsyncIterator[LendingStore]:
    """LendingStore over one connection borrowed from the pool."""
    async with pool.acquire() as conn:
        yield LendingStore(conn)
