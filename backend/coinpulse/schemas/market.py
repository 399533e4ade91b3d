"""
CONTRACT 1: Market Data Layer

Input: symbol + configured sources
Output: Quote, AggregatedPrice, OrderBook, Candle / PriceSeries

This module defines what the exchange adapters normalize into and what the
quote aggregator returns.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, computed_field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class ConfidenceLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# =============================================================================
# QUOTES
# =============================================================================


class Quote(BaseModel):
    """Normalized ticker from one price source."""

    source: str
    symbol: str
    price: float = Field(..., gt=0, allow_inf_nan=False)
    volume_24h: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="24h volume in quote currency")
    change_24h: float = Field(default=0.0, allow_inf_nan=False, description="24h change %")
    high_24h: Optional[float] = Field(default=None, allow_inf_nan=False)
    low_24h: Optional[float] = Field(default=None, allow_inf_nan=False)
    fetched_at: datetime

    class Config:
        frozen = True


class SourceFailure(BaseModel):
    """A source excluded from one aggregation."""

    source: str
    error_type: str
    message: str


class ArbitrageOpportunity(BaseModel):
    """Cross-source price gap wide enough to report."""

    buy_source: str
    sell_source: str
    buy_price: float
    sell_price: float
    spread: float
    spread_percent: float


class AggregatedPrice(BaseModel):
    """
    Cross-validated price built from every source that answered.
    Returned by: Quote Aggregator
    Consumed by: Zone Detector, Signal Composer, HTTP layer

    Invariants: min <= median <= max, spread_pct >= 0.
    spread_pct is expressed in percent: (max - min) / average * 100.
    """

    symbol: str
    average: float = Field(..., gt=0)
    median: float = Field(..., gt=0)
    min: float = Field(..., gt=0)
    max: float = Field(..., gt=0)
    spread_pct: float = Field(..., ge=0)
    source_count: int = Field(..., ge=1)
    confidence: ConfidenceLevel

    anomalous_spread: bool = False
    vwap: Optional[float] = None
    total_volume_24h: float = 0.0
    average_change_24h: float = 0.0
    data_quality: float = Field(default=0.0, ge=0, le=100)
    quotes: list[Quote] = Field(default_factory=list)
    failed_sources: list[SourceFailure] = Field(default_factory=list)
    arbitrage: list[ArbitrageOpportunity] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stale: bool = Field(default=False, description="Served from last-known cache")
    fetch_duration_ms: int = 0
    timestamp: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "symbol": "BTC",
                "average": 98100.0,
                "median": 98100.0,
                "min": 98000.0,
                "max": 98200.0,
                "spread_pct": 0.2039,
                "source_count": 3,
                "confidence": "HIGH",
                "anomalous_spread": False,
                "timestamp": "2025-01-10T12:00:00Z",
            }
        }


# =============================================================================
# ORDER BOOK
# =============================================================================


class OrderBookLevel(BaseModel):
    """Single price level of an order book side."""

    price: float = Field(..., gt=0)
    quantity: float = Field(..., ge=0)

    @computed_field
    @property
    def notional(self) -> float:
        return self.price * self.quantity


class OrderBook(BaseModel):
    """Depth snapshot. Bids descending, asks ascending."""

    symbol: str
    source: str
    bids: list[OrderBookLevel]
    asks: list[OrderBookLevel]
    timestamp: datetime

    @model_validator(mode="after")
    def _sort_sides(self) -> "OrderBook":
        self.bids = sorted(self.bids, key=lambda lvl: lvl.price, reverse=True)
        self.asks = sorted(self.asks, key=lambda lvl: lvl.price)
        return self

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    @property
    def mid_price(self) -> Optional[float]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid + self.best_ask) / 2


# =============================================================================
# HISTORICAL SERIES
# =============================================================================


class Candle(BaseModel):
    """Single candlestick."""

    timestamp: datetime
    open: float = Field(..., gt=0)
    high: float = Field(..., gt=0)
    low: float = Field(..., gt=0)
    close: float = Field(..., gt=0)
    volume: float = Field(..., ge=0)


class PriceSeries(BaseModel):
    """
    Time-ascending closes with optional index-aligned highs/lows/volumes.

    Indicator and zone functions only read from it.
    """

    closes: list[float]
    highs: Optional[list[float]] = None
    lows: Optional[list[float]] = None
    volumes: Optional[list[float]] = None
    timestamps: Optional[list[datetime]] = None
    interval: Optional[str] = None

    @model_validator(mode="after")
    def _check_alignment(self) -> "PriceSeries":
        n = len(self.closes)
        for name in ("highs", "lows", "volumes", "timestamps"):
            values = getattr(self, name)
            if values is not None and len(values) != n:
                raise ValueError(f"{name} has {len(values)} values, closes has {n}")
        if self.timestamps:
            for prev, cur in zip(self.timestamps, self.timestamps[1:]):
                if cur <= prev:
                    raise ValueError("timestamps must be strictly ascending")
        return self

    def __len__(self) -> int:
        return len(self.closes)

    @property
    def has_ranges(self) -> bool:
        return self.highs is not None and self.lows is not None

    @classmethod
    def from_candles(cls, candles: list[Candle], interval: Optional[str] = None) -> "PriceSeries":
        ordered = sorted(candles, key=lambda c: c.timestamp)
        return cls(
            closes=[c.close for c in ordered],
            highs=[c.high for c in ordered],
            lows=[c.low for c in ordered],
            volumes=[c.volume for c in ordered],
            timestamps=[c.timestamp for c in ordered],
            interval=interval,
        )


# =============================================================================
# OUTPUT: MarketSnapshot
# =============================================================================


class MarketSnapshot(BaseModel):
    """
    Everything fetched for one symbol in one request.
    Returned by: MarketDataService
    Consumed by: Indicator Engine, Zone Detector
    """

    symbol: str
    price: AggregatedPrice
    order_book: Optional[OrderBook] = None
    candles: list[Candle] = Field(default_factory=list)
    interval: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    timestamp: datetime

    def series(self) -> Optional[PriceSeries]:
        if not self.candles:
            return None
        return PriceSeries.from_candles(self.candles, self.interval)
