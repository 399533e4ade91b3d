"""
Market Data Source Interfaces

Defines the contracts every exchange adapter implements.
Adapters are constructed by the application and injected; they never
create their own HTTP sessions.
"""

from abc import ABC, abstractmethod

from coinpulse.schemas.market import Candle, OrderBook, Quote


class QuoteSource(ABC):
    """
    Quote Source Contract.

    INPUT: symbol (e.g. "BTC")
    OUTPUT: Quote normalized from one exchange/aggregator ticker

    Raises SourceUnavailableError (or a subclass) on any failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        pass


class OrderBookSource(ABC):
    """Order book depth provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def fetch_order_book(self, symbol: str, depth: int) -> OrderBook:
        pass


class HistorySource(ABC):
    """Historical OHLCV provider. Candles come back time-ascending."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        pass
