"""Typed SQLite read/write abstraction for lending data.

Provides LendingStore with typed methods for appending funding trades,
upserting credit snapshots, and reading rate aggregates. All SQL is
isolated behind this interface.

CRITICAL: All rate/amount values stored as TEXT in SQLite, restored as Decimal on read.
Aggregates are therefore computed in Python, not with SQL MAX/AVG.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal

import aiosqlite

from lendbot.exceptions import PersistenceError
from lendbot.logging import get_logger
from lendbot.models import Credit, Trade

logger = get_logger(__name__)

_CREDIT_COLUMNS = (
    "id, symbol, created_at_ms, updated_at_ms, amount, rate, period, "
    "opened_at_ms, last_payout_ms, position_pair"
)


@dataclass(frozen=True)
class RateStats:
    """Max and mean rate over a set of stored trades."""

    max_rate: Decimal
    avg_rate: Decimal
    count: int


def _rate_stats(rows: list) -> RateStats | None:
    if not rows:
        return None
    rates = [Decimal(row[0]) for row in rows]
    return RateStats(
        max_rate=max(rates),
        avg_rate=sum(rates, Decimal("0")) / len(rates),
        count=len(rates),
    )


def _credit_row(credit: Credit) -> tuple:
    return (
        credit.id,
        credit.symbol,
        credit.created_at_ms,
        credit.updated_at_ms,
        str(credit.amount),
        str(credit.rate),
        credit.period,
        credit.opened_at_ms,
        credit.last_payout_ms,
        credit.position_pair,
    )


def _row_credit(row: tuple) -> Credit:
    return Credit(
        id=row[0],
        symbol=row[1],
        created_at_ms=row[2],
        updated_at_ms=row[3],
        amount=Decimal(row[4]),
        rate=Decimal(row[5]),
        period=row[6],
        opened_at_ms=row[7],
        last_payout_ms=row[8],
        position_pair=row[9],
    )


class LendingStore:
    """Async SQLite store over one pooled connection.

    Usage:
        async with pool.acquire() as conn:
            store = LendingStore(conn)
            await store.insert_trades("fUSD", trades)
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._db = connection

    @asynccontextmanager
    async def _persistence_errors(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except aiosqlite.Error as e:
            # Drop the partial batch before the connection is reused
            if self._db.in_transaction:
                await self._db.rollback()
            raise PersistenceError(f"{operation} failed: {e}") from e

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_trades(self, symbol: str, trades: list[Trade]) -> int:
        """Append trades under ``symbol``. No deduplication.

        Returns the number of rows written.
        """
        if not trades:
            return 0

        data = [
            (symbol, t.timestamp_ms, str(t.amount), str(t.rate), t.period)
            for t in trades
        ]
        async with self._persistence_errors("insert_trades"):
            await self._db.executemany(
                "INSERT INTO trades (symbol, timestamp_ms, amount, rate, period) "
                "VALUES (?, ?, ?, ?, ?)",
                data,
            )
            await self._db.commit()

        logger.debug("inserted_trades", symbol=symbol, count=len(data))
        return len(data)

    async def upsert_credits(self, credits: list[Credit]) -> int:
        """Replace-on-conflict write of historical credits, keyed by id."""
        return await self._upsert("credits", credits)

    async def upsert_provided(self, credits: list[Credit]) -> int:
        """Replace-on-conflict write of currently provided funds, keyed by id."""
        return await self._upsert("provided", credits)

    async def _upsert(self, table: str, credits: list[Credit]) -> int:
        if not credits:
            return 0
        async with self._persistence_errors(f"upsert_{table}"):
            await self._db.executemany(
                f"INSERT OR REPLACE INTO {table} ({_CREDIT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_credit_row(c) for c in credits],
            )
            await self._db.commit()
        logger.debug("upserted_credits", table=table, count=len(credits))
        return len(credits)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_rate_stats(self, symbol: str, since_ms: int) -> RateStats | None:
        """Max/avg rate over trades of ``symbol`` newer than ``since_ms``.

        Returns None when the window holds no trades.
        """
        async with self._persistence_errors("get_rate_stats"):
            cursor = await self._db.execute(
                "SELECT rate FROM trades WHERE symbol = ? AND timestamp_ms > ?",
                (symbol, since_ms),
            )
            rows = await cursor.fetchall()
        return _rate_stats(list(rows))

    async def get_recent_rate_stats(
        self, symbol: str, limit: int = 100
    ) -> RateStats | None:
        """Max/avg rate over the ``limit`` most recent trades of ``symbol``, any age."""
        async with self._persistence_errors("get_recent_rate_stats"):
            cursor = await self._db.execute(
                "SELECT rate FROM trades WHERE symbol = ? "
                "ORDER BY timestamp_ms DESC LIMIT ?",
                (symbol, limit),
            )
            rows = await cursor.fetchall()
        return _rate_stats(list(rows))

    async def count_trades(self, symbol: str) -> int:
        async with self._persistence_errors("count_trades"):
            cursor = await self._db.execute(
                "SELECT COUNT(*) FROM trades WHERE symbol = ?", (symbol,)
            )
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_credits(self, symbol: str | None = None) -> list[Credit]:
        """Stored historical credits, newest update first."""
        return await self._select("credits", symbol)

    async def get_provided(self, symbol: str | None = None) -> list[Credit]:
        """Stored provided-funds snapshot, newest update first."""
        return await self._select("provided", symbol)

    async def _select(self, table: str, symbol: str | None) -> list[Credit]:
        query = f"SELECT {_CREDIT_COLUMNS} FROM {table}"
        params: list = []
        if symbol is not None:
            query += " WHERE symbol = ?"
            params.append(symbol)
        query += " ORDER BY updated_at_ms DESC"

        async with self._persistence_errors(f"select_{table}"):
            cursor = await self._db.execute(query, params)
            rows = await cursor.fetchall()
        return [_row_credit(tuple(row)) for row in rows]
