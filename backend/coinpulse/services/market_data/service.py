"""
Market Data Service Implementation

Aggregated price, order book depth and candle history for one symbol,
fetched concurrently. Only the price is mandatory: a missing book or
history degrades the snapshot with a warning instead of failing it.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from coinpulse.core.config import Settings, settings as default_settings
from coinpulse.schemas.market import AggregatedPrice, Candle, MarketSnapshot, OrderBook
from coinpulse.services.base import (
    BaseService,
    InsufficientDataError,
    ServiceError,
)
from coinpulse.services.market_data import aggregator
from coinpulse.services.market_data.interface import (
    HistorySource,
    OrderBookSource,
    QuoteSource,
)

logger = logging.getLogger(__name__)


class MarketDataService(BaseService[str, MarketSnapshot]):
    """
    Market Data Service.

    Quote sources are aggregated; order book sources are tried in order
    until one answers (Binance first, Kraken where Binance is blocked).
    """

    def __init__(
        self,
        quote_sources: Sequence[QuoteSource],
        order_book_sources: Sequence[OrderBookSource] = (),
        history_source: Optional[HistorySource] = None,
        settings: Optional[Settings] = None,
    ):
        self._quote_sources = list(quote_sources)
        self._order_book_sources = list(order_book_sources)
        self._history_source = history_source
        self._settings = settings or default_settings

    @property
    def name(self) -> str:
        return "MarketDataService"

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self._quote_sources]

    @property
    def default_interval(self) -> str:
        return self._settings.history_interval

    async def execute(self, input_data: str) -> MarketSnapshot:
        return await self.fetch_snapshot(input_data)

    async def get_price(self, symbol: str) -> AggregatedPrice:
        """Cross-validated price. Raises InsufficientDataError when no source answers."""
        return await aggregator.aggregate(
            symbol,
            self._quote_sources,
            timeout=self._settings.quote_timeout_seconds,
            spread_anomaly_percent=self._settings.spread_anomaly_percent,
            arbitrage_min_spread_percent=self._settings.arbitrage_min_spread_percent,
        )

    async def get_order_book(self, symbol: str, depth: Optional[int] = None) -> OrderBook:
        """First order book that any configured source returns."""
        symbol = symbol.upper().strip()
        depth = depth or self._settings.orderbook_depth
        errors = []

        for source in self._order_book_sources:
            try:
                book = await asyncio.wait_for(
                    source.fetch_order_book(symbol, depth),
                    timeout=self._settings.orderbook_timeout_seconds,
                )
            except asyncio.TimeoutError:
                errors.append(f"{source.name}: timed out")
                logger.warning(f"Order book from {source.name} timed out for {symbol}")
                continue
            except ServiceError as e:
                errors.append(f"{source.name}: {e.message}")
                logger.warning(f"Order book from {source.name} failed for {symbol}: {e.message}")
                continue

            if book.bids or book.asks:
                return book
            errors.append(f"{source.name}: empty book")

        raise InsufficientDataError(
            self.name,
            f"No order book available for {symbol}",
            {"errors": errors},
        )

    async def get_candles(
        self,
        symbol: str,
        interval: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Candle]:
        """Time-ascending candles. Raises ValueError for an unknown interval."""
        if self._history_source is None:
            raise InsufficientDataError(self.name, "No history source configured")

        return await asyncio.wait_for(
            self._history_source.fetch_candles(
                symbol.upper().strip(),
                interval or self._settings.history_interval,
                limit or self._settings.history_limit,
            ),
            timeout=self._settings.history_timeout_seconds,
        )

    async def fetch_snapshot(
        self,
        symbol: str,
        interval: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> MarketSnapshot:
        """
        Price, book and history in parallel.

        Raises:
            InsufficientDataError: no quote source answered
            ValueError: unsupported interval
        """
        symbol = symbol.upper().strip()
        interval = interval or self._settings.history_interval

        price, book, candles = await asyncio.gather(
            self.get_price(symbol),
            self.get_order_book(symbol),
            self.get_candles(symbol, interval, limit),
            return_exceptions=True,
        )

        if isinstance(price, BaseException):
            raise price
        if isinstance(candles, ValueError):
            raise candles

        warnings = list(price.warnings)

        if isinstance(book, BaseException):
            warnings.append(f"Order book unavailable: {_describe(book)}")
            book = None

        if isinstance(candles, BaseException):
            warnings.append(f"Price history unavailable: {_describe(candles)}")
            candles = []

        logger.info(
            f"Snapshot {symbol}: price from {price.source_count} sources, "
            f"book={'yes' if book else 'no'}, {len(candles)} candles"
        )

        return MarketSnapshot(
            symbol=symbol,
            price=price,
            order_book=book,
            candles=candles,
            interval=interval,
            warnings=warnings,
            timestamp=datetime.now(timezone.utc),
        )

    async def health_check(self) -> bool:
        """Healthy when at least one quote source is configured."""
        return len(self._quote_sources) > 0


def _describe(error: BaseException) -> str:
    if isinstance(error, ServiceError):
        return error.message
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return str(error) or type(error).__name__
