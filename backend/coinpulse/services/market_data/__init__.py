"""
Market Data Service

CONTRACT:
    Input:  symbol (e.g. "BTC")
    Output: AggregatedPrice / MarketSnapshot

RESPONSIBILITIES:
    - Fetch tickers from Binance, Coinbase, Kraken, CoinGecko, CoinMarketCap
    - Cross-validate them into one price with a confidence level
    - Fetch order book depth (Binance, Kraken fallback)
    - Fetch candle history (Binance klines)

NO PLACEHOLDER PRICES - when every source fails, the caller gets an error.
"""

from coinpulse.services.market_data.aggregator import (
    aggregate,
    aggregate_quotes,
    best_price,
)
from coinpulse.services.market_data.binance_adapter import BinanceMarketSource
from coinpulse.services.market_data.http_client import create_session
from coinpulse.services.market_data.interface import (
    HistorySource,
    OrderBookSource,
    QuoteSource,
)
from coinpulse.services.market_data.kraken_adapter import KrakenOrderBookSource
from coinpulse.services.market_data.mapped_source import (
    FieldMapping,
    MappedQuoteSource,
    QuoteSourceConfig,
)
from coinpulse.services.market_data.service import MarketDataService
from coinpulse.services.market_data.sources import build_quote_sources

__all__ = [
    "aggregate",
    "aggregate_quotes",
    "best_price",
    "BinanceMarketSource",
    "build_quote_sources",
    "create_session",
    "FieldMapping",
    "HistorySource",
    "KrakenOrderBookSource",
    "MappedQuoteSource",
    "MarketDataService",
    "OrderBookSource",
    "QuoteSource",
    "QuoteSourceConfig",
]
