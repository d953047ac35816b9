"""Bitfinex lending client implementation via ccxt async.

Wraps ccxt.async_support.bitfinex and calls the v2 funding endpoints through
ccxt's implicit API methods. Bitfinex answers with positional arrays; the
parse_* helpers below turn them into the shared models.

Every ccxt error and every malformed response is re-raised as TransportError
so the strategy sees one failure type from the exchange boundary.
"""

from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

import ccxt.async_support as ccxt_async

from lendbot.config import ExchangeConfig, funding_symbol
from lendbot.exceptions import TransportError
from lendbot.exchange.client import LendingClient
from lendbot.exchange.types import to_decimal
from lendbot.logging import get_logger
from lendbot.models import BookEntry, Credit, FundingInfo, Offer, Trade

logger = get_logger(__name__)

# Book precision used for funding depth (rate aggregated to 3 significant digits)
BOOK_PRECISION = "P3"
# Bitfinex hard cap for trades/{symbol}/hist
HISTORY_LIMIT = 10000


def parse_trade(row: list) -> Trade:
    """[ID, MTS, AMOUNT, RATE, PERIOD]"""
    return Trade(
        timestamp_ms=int(row[1]),
        amount=to_decimal(row[2]),
        rate=to_decimal(row[3]),
        period=int(row[4]),
    )


def parse_book_entry(row: list) -> BookEntry:
    """[RATE, PERIOD, COUNT, AMOUNT]"""
    return BookEntry(
        rate=to_decimal(row[0]),
        period=int(row[1]),
        count=int(row[2]),
        amount=to_decimal(row[3]),
    )


def parse_offer(row: list) -> Offer:
    """[ID, SYMBOL, MTS_CREATED, MTS_UPDATED, AMOUNT, AMOUNT_ORIG, TYPE, _, _,
    FLAGS, STATUS, _, _, _, RATE, PERIOD, NOTIFY, HIDDEN, _, RENEW, _]
    """
    return Offer(
        id=int(row[0]),
        symbol=str(row[1]),
        rate=to_decimal(row[14]),
        created_at_ms=int(row[2]),
    )


def parse_credit(row: list) -> Credit:
    """[ID, SYMBOL, SIDE, MTS_CREATE, MTS_UPDATE, AMOUNT, FLAGS, STATUS,
    RATE_TYPE, _, _, RATE, PERIOD, MTS_OPENING, MTS_LAST_PAYOUT, NOTIFY,
    HIDDEN, _, RENEW, _, NO_CLOSE, POSITION_PAIR]
    """
    last_payout = row[14]
    return Credit(
        id=int(row[0]),
        symbol=str(row[1]),
        created_at_ms=int(row[3]),
        updated_at_ms=int(row[4]),
        amount=to_decimal(row[5]),
        rate=to_decimal(row[11]),
        period=int(row[12]),
        opened_at_ms=int(row[13]),
        last_payout_ms=int(last_payout) if last_payout is not None else None,
        position_pair=str(row[21] or ""),
    )


def parse_funding_info(payload: list) -> FundingInfo:
    """["sym", SYMBOL, [YIELD_LOAN, YIELD_LEND, DURATION_LOAN, DURATION_LEND]]"""
    details = payload[2]
    return FundingInfo(
        yield_loan=to_decimal(details[0]),
        yield_lend=to_decimal(details[1]),
        duration_loan=to_decimal(details[2]),
        duration_lend=to_decimal(details[3]),
    )


class BitfinexClient(LendingClient):
    """Concrete Bitfinex funding client using ccxt async."""

    def __init__(self, config: ExchangeConfig) -> None:
        self._config = config
        self._exchange = ccxt_async.bitfinex(
            {
                "apiKey": config.api_key.get_secret_value(),
                "secret": config.api_secret.get_secret_value(),
                "enableRateLimit": True,
            }
        )

    @property
    def exchange(self) -> ccxt_async.bitfinex:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Nothing to preload: funding endpoints do not need market metadata."""
        logger.info("bitfinex_client_ready")

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_bitfinex_connection")
        await self._exchange.close()
        logger.info("bitfinex_connection_closed")

    async def _call(
        self,
        endpoint: str,
        fn: Callable[[dict], Awaitable[Any]],
        params: dict,
    ) -> Any:
        """Invoke an implicit ccxt endpoint, mapping ccxt failures to TransportError."""
        try:
            return await fn(params)
        except ccxt_async.BaseError as e:
            logger.warning("bitfinex_request_failed", endpoint=endpoint, error=str(e))
            raise TransportError(f"{endpoint}: {e}") from e

    @staticmethod
    def _parse(endpoint: str, parser: Callable[[Any], Any], payload: Any) -> Any:
        try:
            return parser(payload)
        except (IndexError, KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise TransportError(f"{endpoint}: unexpected response {payload!r}") from e

    async def history(self, symbol: str, start_ms: int, end_ms: int) -> list[Trade]:
        """Fetch funding trades, keeping only ``start_ms <= mts < end_ms``.

        Bitfinex treats ``end`` as inclusive, so the upper bound is filtered here.
        """
        rows = await self._call(
            "trades/hist",
            self._exchange.public_get_trades_symbol_hist,
            {
                "symbol": funding_symbol(symbol),
                "start": start_ms,
                "end": end_ms,
                "limit": HISTORY_LIMIT,
                "sort": 1,
            },
        )
        trades = self._parse("trades/hist", lambda r: [parse_trade(x) for x in r], rows)
        return [t for t in trades if start_ms <= t.timestamp_ms < end_ms]

    async def books(self, symbol: str) -> list[BookEntry]:
        rows = await self._call(
            "book",
            self._exchange.public_get_book_symbol_precision,
            {"symbol": funding_symbol(symbol), "precision": BOOK_PRECISION},
        )
        return self._parse("book", lambda r: [parse_book_entry(x) for x in r], rows)

    async def info(self, symbol: str) -> FundingInfo:
        payload = await self._call(
            "info/funding",
            self._exchange.private_post_auth_r_info_funding_key,
            {"key": funding_symbol(symbol)},
        )
        return self._parse("info/funding", parse_funding_info, payload)

    async def balance(self, symbol: str) -> Decimal:
        """Available funding balance.

        calc/order/avail reports the lendable amount as a negative number
        for the FUNDING type; flip it to a positive quantity.
        """
        payload = await self._call(
            "calc/order/avail",
            self._exchange.private_post_auth_calc_order_avail,
            {"symbol": funding_symbol(symbol), "type": "FUNDING"},
        )
        return self._parse("calc/order/avail", lambda p: -to_decimal(p[0]), payload)

    async def active_offers(self, symbol: str) -> list[Offer]:
        rows = await self._call(
            "funding/offers",
            self._exchange.private_post_auth_r_funding_offers_symbol,
            {"symbol": funding_symbol(symbol)},
        )
        return self._parse("funding/offers", lambda r: [parse_offer(x) for x in r], rows)

    async def submit_offer(
        self, symbol: str, amount: Decimal, rate: Decimal, period: int
    ) -> None:
        logger.info(
            "submitting_offer",
            symbol=symbol,
            amount=str(amount),
            rate=str(rate),
            period=period,
        )
        response = await self._call(
            "funding/offer/submit",
            self._exchange.private_post_auth_w_funding_offer_submit,
            {
                "type": "LIMIT",
                "symbol": funding_symbol(symbol),
                "amount": str(amount),
                "rate": str(rate),
                "period": period,
            },
        )
        self._check_write("funding/offer/submit", response)

    async def cancel_offer(self, offer_id: int) -> None:
        logger.info("cancelling_offer", offer_id=offer_id)
        response = await self._call(
            "funding/offer/cancel",
            self._exchange.private_post_auth_w_funding_offer_cancel,
            {"id": offer_id},
        )
        self._check_write("funding/offer/cancel", response)

    async def credits(self, symbol: str) -> list[Credit]:
        rows = await self._call(
            "funding/credits",
            self._exchange.private_post_auth_r_funding_credits_symbol,
            {"symbol": funding_symbol(symbol)},
        )
        return self._parse("funding/credits", lambda r: [parse_credit(x) for x in r], rows)

    async def credit_history(self, symbol: str) -> list[Credit]:
        rows = await self._call(
            "funding/credits/hist",
            self._exchange.private_post_auth_r_funding_credits_symbol_hist,
            {"symbol": funding_symbol(symbol)},
        )
        return self._parse(
            "funding/credits/hist", lambda r: [parse_credit(x) for x in r], rows
        )

    @staticmethod
    def _check_write(endpoint: str, response: Any) -> None:
        """Write endpoints answer [MTS, TYPE, MSG_ID, null, DATA, CODE, STATUS, TEXT]."""
        try:
            status, text = response[6], response[7]
        except (IndexError, TypeError) as e:
            raise TransportError(f"{endpoint}: unexpected response {response!r}") from e
        if status != "SUCCESS":
            raise TransportError(f"{endpoint}: {status} {text}")
