"""Bounded async SQLite connection pool for the lending store.

Uses aiosqlite for non-blocking database operations with WAL mode so
several pair ticks can read and write the same file concurrently. The pool
holds a fixed number of connections; acquiring from an exhausted pool waits
until a tick returns its connection.
"""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

import aiosqlite

from lendbot.exceptions import PersistenceError
from lendbot.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS trades (
    symbol TEXT NOT NULL,
    timestamp_ms INTEGER NOT NULL,
    amount TEXT NOT NULL,
    rate TEXT NOT NULL,
    period INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS credits (
    id INTEGER PRIMARY KEY,
    symbol TEXT NOT NULL,
    created_at_ms INTEGER NOT NULL,
    updated_at_ms INTEGER NOT NULL,
    amount TEXT NOT NULL,
    rate TEXT NOT NULL,
    period INTEGER NOT NULL,
    opened_at_ms INTEGER NOT NULL,
    last_payout_ms INTEGER,
    position_pair TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS provided (
    id INTEGER PRIMARY KEY,
    symbol TEXT NOT NULL,
    created_at_ms INTEGER NOT NULL,
    updated_at_ms INTEGER NOT NULL,
    amount TEXT NOT NULL,
    rate TEXT NOT NULL,
    period INTEGER NOT NULL,
    opened_at_ms INTEGER NOT NULL,
    last_payout_ms INTEGER,
    position_pair TEXT NOT NULL
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_trades_symbol_ts
    ON trades(symbol, timestamp_ms);
"""


class DatabasePool:
    """Fixed-size pool of aiosqlite connections to one database file.

    Usage:
        async with DatabasePool("data/lending.db", size=4) as pool:
            async with pool.acquire() as conn:
                store = LendingStore(conn)
                ...
    """

    def __init__(self, db_path: str = "data/lending.db", size: int = 4) -> None:
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._db_path = db_path
        self._size = size
        self._connections: list[aiosqlite.Connection] = []
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        """Number of idle connections right now."""
        return self._idle.qsize()

    async def connect(self) -> None:
        """Open all connections, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        try:
            for _ in range(self._size):
                conn = await aiosqlite.connect(self._db_path)
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA synchronous=NORMAL")
                await conn.execute("PRAGMA busy_timeout=5000")
                if not self._connections:
                    await self._create_schema(conn)
                self._connections.append(conn)
                self._idle.put_nowait(conn)
        except aiosqlite.Error as e:
            await self.close()
            raise PersistenceError(f"cannot open database {self._db_path}: {e}") from e

        logger.info("database_pool_connected", db_path=self._db_path, size=self._size)

    async def close(self) -> None:
        """Close every connection in the pool."""
        if not self._connections:
            return
        for conn in self._connections:
            await conn.close()
        self._connections.clear()
        self._idle = asyncio.Queue()
        logger.info("database_pool_closed", db_path=self._db_path)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection, waiting while the pool is exhausted."""
        if not self._connections:
            raise RuntimeError("Database pool not connected. Call connect() first.")
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @staticmethod
    async def _create_schema(conn: aiosqlite.Connection) -> None:
        await conn.executescript(_CREATE_TABLES_SQL)
        await conn.executescript(_CREATE_INDEXES_SQL)
        cursor = await conn.execute("SELECT version FROM schema_version LIMIT 1")
        if await cursor.fetchone() is None:
            await conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info("schema_version_set", version=SCHEMA_VERSION)
        await conn.commit()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
