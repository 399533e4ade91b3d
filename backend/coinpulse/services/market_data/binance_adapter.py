"""
Binance Data Adapter

Order book depth and kline history from the Binance spot REST API.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import aiohttp

from coinpulse.schemas.market import Candle, OrderBook, OrderBookLevel
from coinpulse.services.base import MalformedPayloadError
from coinpulse.services.market_data.http_client import fetch_json
from coinpulse.services.market_data.interface import HistorySource, OrderBookSource

logger = logging.getLogger(__name__)

BINANCE_BASE_URL = "https://api.binance.com/api/v3"

# /depth only accepts these limits
DEPTH_LIMITS = (5, 10, 20, 50, 100, 500, 1000, 5000)

INTERVALS = {"1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "8h", "12h", "1d", "3d", "1w", "1M"}


def get_binance_symbol(symbol: str) -> str:
    """BTC -> BTCUSDT. Symbols already quoted in USDT are kept."""
    symbol = symbol.upper().strip()
    return symbol if symbol.endswith("USDT") else f"{symbol}USDT"


def _depth_limit(depth: int) -> int:
    for limit in DEPTH_LIMITS:
        if depth <= limit:
            return limit
    return DEPTH_LIMITS[-1]


def parse_book_side(raw: Any, source: str) -> list[OrderBookLevel]:
    """[["97900.00", "1.5"], ...] -> levels. Zero-quantity levels are dropped."""
    levels = []
    try:
        for entry in raw:
            price, quantity = float(entry[0]), float(entry[1])
            if price > 0 and quantity > 0:
                levels.append(OrderBookLevel(price=price, quantity=quantity))
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedPayloadError(source, f"Bad order book level: {e}") from e
    return levels


def parse_binance_depth(symbol: str, payload: Any) -> OrderBook:
    if not isinstance(payload, dict) or "bids" not in payload or "asks" not in payload:
        raise MalformedPayloadError("binance", "Depth payload missing bids/asks")

    return OrderBook(
        symbol=symbol.upper(),
        source="binance",
        bids=parse_book_side(payload["bids"], "binance"),
        asks=parse_book_side(payload["asks"], "binance"),
        timestamp=datetime.now(timezone.utc),
    )


def parse_binance_klines(payload: Any) -> list[Candle]:
    if not isinstance(payload, list):
        raise MalformedPayloadError("binance", f"Expected kline list, got {type(payload).__name__}")

    candles = []
    for entry in payload:
        if not isinstance(entry, list) or len(entry) < 6:
            raise MalformedPayloadError("binance", f"Bad kline entry: {entry}")
        try:
            candles.append(
                Candle(
                    timestamp=datetime.fromtimestamp(int(entry[0]) / 1000, tz=timezone.utc),
                    open=float(entry[1]),
                    high=float(entry[2]),
                    low=float(entry[3]),
                    close=float(entry[4]),
                    volume=float(entry[5]),
                )
            )
        except (TypeError, ValueError) as e:
            raise MalformedPayloadError("binance", f"Bad kline entry: {e}") from e

    candles.sort(key=lambda c: c.timestamp)
    return candles


class BinanceMarketSource(OrderBookSource, HistorySource):
    """Binance order book + klines."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = BINANCE_BASE_URL,
        orderbook_timeout: float = 6.0,
        history_timeout: float = 8.0,
    ):
        self._session = session
        self._base_url = base_url
        self._orderbook_timeout = orderbook_timeout
        self._history_timeout = history_timeout

    @property
    def name(self) -> str:
        return "binance"

    async def fetch_order_book(self, symbol: str, depth: int = 500) -> OrderBook:
        payload = await fetch_json(
            self._session,
            self.name,
            f"{self._base_url}/depth",
            params={"symbol": get_binance_symbol(symbol), "limit": _depth_limit(depth)},
            timeout=self._orderbook_timeout,
        )
        book = parse_binance_depth(symbol, payload)
        logger.debug(f"Binance book {symbol}: {len(book.bids)} bids / {len(book.asks)} asks")
        return book

    async def fetch_candles(self, symbol: str, interval: str = "1h", limit: int = 168) -> list[Candle]:
        if interval not in INTERVALS:
            raise ValueError(f"Unsupported Binance interval: {interval}")

        payload = await fetch_json(
            self._session,
            self.name,
            f"{self._base_url}/klines",
            params={
                "symbol": get_binance_symbol(symbol),
                "interval": interval,
                "limit": min(max(limit, 1), 1000),
            },
            timeout=self._history_timeout,
        )
        return parse_binance_klines(payload)
