"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from coinpulse.core.config import Settings
from coinpulse.schemas.market import Candle, OrderBook, OrderBookLevel, PriceSeries, Quote
from coinpulse.services.base import SourceUnavailableError
from coinpulse.services.market_data.interface import (
    HistorySource,
    OrderBookSource,
    QuoteSource,
)

BASE_TIME = datetime(2025, 1, 10, 0, 0, tzinfo=timezone.utc)

# Rising series with shallow pullbacks: +2, -1, +4, +2, -1, ...
UPTREND_CLOSES = [
    100, 102, 101, 105, 107, 106, 110, 108, 112, 115, 114, 118, 120, 119,
    123, 125, 124, 128, 130, 129, 133, 135, 134, 138, 140, 139, 143, 145,
    144, 148, 150, 149, 153, 155, 154, 158, 160, 159, 163, 165,
]


def make_quote(source: str, price: float, volume: float = 1_000_000.0, change: float = 0.0) -> Quote:
    return Quote(
        source=source,
        symbol="BTC",
        price=price,
        volume_24h=volume,
        change_24h=change,
        fetched_at=BASE_TIME,
    )


def make_candles(closes: list[float], spread: float = 1.0) -> list[Candle]:
    return [
        Candle(
            timestamp=BASE_TIME + timedelta(hours=i),
            open=close,
            high=close + spread,
            low=close - spread,
            close=close,
            volume=10.0 + i,
        )
        for i, close in enumerate(closes)
    ]


class FakeQuoteSource(QuoteSource):
    """Quote source returning a fixed price, raising, or stalling."""

    def __init__(
        self,
        name: str,
        price: Optional[float] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        volume: float = 1_000_000.0,
        change: float = 0.0,
    ):
        self._name = name
        self.price = price
        self.error = error
        self.delay = delay
        self.volume = volume
        self.change = change
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def fetch_quote(self, symbol: str) -> Quote:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return make_quote(self._name, self.price, self.volume, self.change)


class FakeOrderBookSource(OrderBookSource):
    def __init__(self, name: str = "fakebook", book: Optional[OrderBook] = None, error: Optional[Exception] = None):
        self._name = name
        self.book = book
        self.error = error
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def fetch_order_book(self, symbol: str, depth: int) -> OrderBook:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.book


class FakeHistorySource(HistorySource):
    INTERVALS = {"1h", "4h", "1d"}

    def __init__(self, candles: list[Candle], error: Optional[Exception] = None):
        self.candles = candles
        self.error = error
        self.calls = 0

    @property
    def name(self) -> str:
        return "fakehistory"

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        self.calls += 1
        if interval not in self.INTERVALS:
            raise ValueError(f"Unsupported interval: {interval}")
        if self.error is not None:
            raise self.error
        return self.candles[-limit:]


def failing_source(name: str) -> FakeQuoteSource:
    return FakeQuoteSource(name, error=SourceUnavailableError(name, "HTTP 503"))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        quote_timeout_seconds=0.5,
        orderbook_timeout_seconds=0.5,
        history_timeout_seconds=0.5,
        history_limit=100,
        cache_ttl_seconds=30,
        allow_cached_price_fallback=False,
    )


@pytest.fixture
def btc_quote_sources() -> list[FakeQuoteSource]:
    return [
        FakeQuoteSource("binance", 98000.0),
        FakeQuoteSource("coinbase", 98200.0),
        FakeQuoteSource("kraken", 98100.0),
    ]


@pytest.fixture
def btc_order_book() -> OrderBook:
    """Bid wall of 50 units at 97,900 out of 400 bid units; current price ~98,100."""
    bids = [
        OrderBookLevel(price=97910.0, quantity=20.0),
        OrderBookLevel(price=97900.0, quantity=20.0),
        OrderBookLevel(price=97890.0, quantity=10.0),
    ]
    # 35 levels of 10 units, one per $100 bucket from 97,000 down
    bids += [OrderBookLevel(price=97000.0 - 100 * i, quantity=10.0) for i in range(35)]

    asks = [
        OrderBookLevel(price=98300.0, quantity=30.0),
        OrderBookLevel(price=98600.0, quantity=5.0),
        OrderBookLevel(price=99500.0, quantity=5.0),
    ]
    return OrderBook(symbol="BTC", source="fakebook", bids=bids, asks=asks, timestamp=BASE_TIME)


@pytest.fixture
def uptrend_candles() -> list[Candle]:
    return make_candles(UPTREND_CLOSES)


@pytest.fixture
def uptrend_series(uptrend_candles) -> PriceSeries:
    return PriceSeries.from_candles(uptrend_candles, "1h")
