"""
Kraken Data Adapter

Order book depth from Kraken's public API. Used where Binance is
geo-blocked.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import aiohttp

from coinpulse.schemas.market import OrderBook
from coinpulse.services.base import MalformedPayloadError
from coinpulse.services.market_data.binance_adapter import parse_book_side
from coinpulse.services.market_data.http_client import fetch_json
from coinpulse.services.market_data.interface import OrderBookSource
from coinpulse.services.market_data.sources import KRAKEN

logger = logging.getLogger(__name__)

KRAKEN_BASE_URL = "https://api.kraken.com/0/public"


def get_kraken_pair(symbol: str) -> str:
    symbol = symbol.upper().strip()
    return KRAKEN.pair_overrides.get(symbol, f"{symbol}USD")


def parse_kraken_depth(symbol: str, payload: Any) -> OrderBook:
    if not isinstance(payload, dict):
        raise MalformedPayloadError("kraken", "Depth payload is not an object")

    errors = payload.get("error") or []
    if errors:
        raise MalformedPayloadError("kraken", f"API error: {', '.join(errors)}")

    result = payload.get("result") or {}
    if not result:
        raise MalformedPayloadError("kraken", "Depth payload has no result")

    book = next(iter(result.values()))
    if not isinstance(book, dict) or "bids" not in book or "asks" not in book:
        raise MalformedPayloadError("kraken", "Depth result missing bids/asks")

    return OrderBook(
        symbol=symbol.upper(),
        source="kraken",
        bids=parse_book_side(book["bids"], "kraken"),
        asks=parse_book_side(book["asks"], "kraken"),
        timestamp=datetime.now(timezone.utc),
    )


class KrakenOrderBookSource(OrderBookSource):
    """Kraken /Depth."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = KRAKEN_BASE_URL,
        timeout: float = 6.0,
    ):
        self._session = session
        self._base_url = base_url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "kraken"

    async def fetch_order_book(self, symbol: str, depth: int = 500) -> OrderBook:
        payload = await fetch_json(
            self._session,
            self.name,
            f"{self._base_url}/Depth",
            params={"pair": get_kraken_pair(symbol), "count": min(max(depth, 1), 500)},
            timeout=self._timeout,
        )
        return parse_kraken_depth(symbol, payload)
