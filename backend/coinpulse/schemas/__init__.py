"""
CoinPulse Schema Contracts

This module defines all JSON contracts between system components.
These are the authoritative interfaces - all modules must conform to these schemas.
"""

from coinpulse.schemas.market import (
    Quote,
    AggregatedPrice,
    ConfidenceLevel,
    OrderBook,
    OrderBookLevel,
    Candle,
    PriceSeries,
    MarketSnapshot,
)
from coinpulse.schemas.indicators import (
    IndicatorSet,
    MACDData,
    BollingerBandsData,
    TrendDirection,
)
from coinpulse.schemas.zones import (
    Zone,
    ZoneAnalysis,
    ZoneSide,
    ZoneSource,
    ZoneStrength,
)
from coinpulse.schemas.signals import (
    SignalOutput,
    MarketAnalysis,
)

__all__ = [
    # Market
    "Quote",
    "AggregatedPrice",
    "ConfidenceLevel",
    "OrderBook",
    "OrderBookLevel",
    "Candle",
    "PriceSeries",
    "MarketSnapshot",
    # Indicators
    "IndicatorSet",
    "MACDData",
    "BollingerBandsData",
    "TrendDirection",
    # Zones
    "Zone",
    "ZoneAnalysis",
    "ZoneSide",
    "ZoneSource",
    "ZoneStrength",
    # Signals
    "SignalOutput",
    "MarketAnalysis",
]
