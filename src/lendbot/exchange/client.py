"""Abstract lending client interface.

Defines the capability set every exchange must provide for the lending
strategy. Strategy code depends only on this interface; a new exchange is
added by implementing it and registering the class in
``lendbot.exchange.CLIENTS``.

Symbols passed in are plain currencies (e.g. "USD"); implementations map
them to their own instrument naming.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from lendbot.models import BookEntry, Credit, FundingInfo, Offer, Trade


class LendingClient(ABC):
    """Abstract base class for funding-market lending clients.

    All methods raise ``TransportError`` on network or protocol failure.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection resources."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def history(self, symbol: str, start_ms: int, end_ms: int) -> list[Trade]:
        """Fetch public funding trades in ``[start_ms, end_ms)``."""
        ...

    @abstractmethod
    async def books(self, symbol: str) -> list[BookEntry]:
        """Fetch the aggregated funding order book."""
        ...

    @abstractmethod
    async def info(self, symbol: str) -> FundingInfo:
        """Fetch current market lending yield and average duration."""
        ...

    @abstractmethod
    async def balance(self, symbol: str) -> Decimal:
        """Return available funding balance as a positive lendable amount."""
        ...

    @abstractmethod
    async def active_offers(self, symbol: str) -> list[Offer]:
        """Return this account's unfilled lending offers."""
        ...

    @abstractmethod
    async def submit_offer(
        self, symbol: str, amount: Decimal, rate: Decimal, period: int
    ) -> None:
        """Place a lending offer of ``amount`` at daily ``rate`` for ``period`` days."""
        ...

    @abstractmethod
    async def cancel_offer(self, offer_id: int) -> None:
        """Cancel one outstanding offer."""
        ...

    @abstractmethod
    async def credits(self, symbol: str) -> list[Credit]:
        """Return currently open (provided) funding positions."""
        ...

    @abstractmethod
    async def credit_history(self, symbol: str) -> list[Credit]:
        """Return historical, closed-out funding positions."""
        ...
