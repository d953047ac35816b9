"""Shared data models for the funding lending bot.

All rates and amounts use Decimal. Timestamps are UTC Unix milliseconds.
These are transient values fetched fresh each tick; only the store keeps
anything across ticks.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal

ONE_MINUTE_MS = 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Trade:
    """A historical funding trade. Append-only."""

    timestamp_ms: int
    amount: Decimal
    rate: Decimal
    period: int


@dataclass(frozen=True)
class BookEntry:
    """One aggregated funding book level.

    Negative amount is the ask (lend) side, positive the bid (borrow) side.
    """

    rate: Decimal
    period: int
    count: int
    amount: Decimal


@dataclass(frozen=True)
class Offer:
    """An outstanding (unfilled) lending offer owned by this account."""

    id: int
    symbol: str
    rate: Decimal
    created_at_ms: int


@dataclass(frozen=True)
class Credit:
    """Capital currently (or previously) lent out and matched."""

    id: int
    symbol: str
    created_at_ms: int
    updated_at_ms: int
    amount: Decimal
    rate: Decimal
    period: int
    opened_at_ms: int
    last_payout_ms: int | None
    position_pair: str


@dataclass(frozen=True)
class FundingInfo:
    """Read-only snapshot of market lending yield and duration."""

    yield_lend: Decimal
    duration_lend: Decimal
    yield_loan: Decimal = Decimal("0")
    duration_loan: Decimal = Decimal("0")


@dataclass(frozen=True)
class OfferRequest:
    """A new offer the allocator wants submitted."""

    amount: Decimal
    rate: Decimal
    period: int


@dataclass
class RunState:
    """History fetch window for one pair.

    ``[last_tick_ms, now_ms)`` is the next window to fetch. Both advance only
    after a successful fetch, so a failed window is retried whole.
    """

    now_ms: int
    last_tick_ms: int

    @classmethod
    def starting_at(cls, start_ms: int) -> "RunState":
        return cls(now_ms=start_ms, last_tick_ms=start_ms - ONE_MINUTE_MS)

    def advance(self, interval_ms: int) -> None:
        """Mark the current window as fetched and open the next one."""
        self.last_tick_ms = self.now_ms
        self.now_ms += interval_ms


@dataclass
class TickReport:
    """Outcome of one strategy tick, kept by the pair runner for status."""

    fair_rate: Decimal | None = None
    history_advanced: bool = False
    trades_fetched: int = 0
    cancelled: list[Offer] = field(default_factory=list)
    submitted: list[OfferRequest] = field(default_factory=list)
