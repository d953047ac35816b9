"""JSON API endpoints for pair runner status and stored lending positions."""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from lendbot.config import funding_symbol
from lendbot.data.store import LendingStore
from lendbot.models import Credit

router = APIRouter()


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _credits_payload(credits: list[Credit]) -> list[dict]:
    return [_decimal_to_str(asdict(c)) for c in credits]


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Per-pair runner state plus database pool occupancy."""
    scheduler = request.app.state.scheduler
    pool = request.app.state.pool
    return JSONResponse(
        content={
            "pairs": _decimal_to_str(scheduler.status()),
            "database": {"pool_size": pool.size, "idle_connections": pool.available},
        }
    )


@router.get("/trades")
async def get_trade_count(request: Request, symbol: str) -> JSONResponse:
    """Number of funding trades stored for one currency (e.g. ?symbol=USD)."""
    key = funding_symbol(symbol)
    async with request.app.state.pool.acquire() as conn:
        count = await LendingStore(conn).count_trades(key)
    return JSONResponse(content={"symbol": key, "count": count})


@router.get("/credits")
async def get_credits(request: Request, symbol: str | None = None) -> JSONResponse:
    """Stored historical credits, optionally for one currency (e.g. ?symbol=USD)."""
    key = funding_symbol(symbol) if symbol else None
    async with request.app.state.pool.acquire() as conn:
        credits = await LendingStore(conn).get_credits(key)
    return JSONResponse(content=_credits_payload(credits))


@router.get("/provided")
async def get_provided(request: Request, symbol: str | None = None) -> JSONResponse:
    """Stored snapshot of currently provided funds."""
    key = funding_symbol(symbol) if symbol else None
    async with request.app.state.pool.acquire() as conn:
        provided = await LendingStore(conn).get_provided(key)
    return JSONResponse(content=_credits_payload(provided))
