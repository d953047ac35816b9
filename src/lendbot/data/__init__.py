"""Lending data persistence layer.

Provides the bounded SQLite connection pool and the typed store for
funding trades, credits and provided-funds snapshots.
"""

from lendbot.data.database import DatabasePool
from lendbot.data.store import LendingStore, RateStats

__all__ = [
    "DatabasePool",
    "LendingStore",
    "RateStats",
]
