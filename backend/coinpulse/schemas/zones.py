"""
CONTRACT 3: Zone Detector

Input: current price, optional OrderBook, optional PriceSeries
Output: ZoneAnalysis

Supply zones sit strictly above the current price, demand zones strictly
below. No input data means no zones.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class ZoneStrength(str, Enum):
    WEAK = "WEAK"
    MEDIUM = "MEDIUM"
    STRONG = "STRONG"
    VERY_STRONG = "VERY_STRONG"


class ZoneSource(str, Enum):
    ORDERBOOK = "ORDERBOOK"
    HISTORICAL = "HISTORICAL"
    PIVOT = "PIVOT"
    FIBONACCI = "FIBONACCI"


class ZoneSide(str, Enum):
    SUPPLY = "SUPPLY"
    DEMAND = "DEMAND"


# =============================================================================
# OUTPUT: Zone Components
# =============================================================================


class Zone(BaseModel):
    """Price level with concentrated buying or selling interest."""

    level: float = Field(..., gt=0)
    volume: float = Field(default=0.0, ge=0)
    strength: ZoneStrength
    confidence: int = Field(..., ge=0, le=100)
    source: ZoneSource
    side: ZoneSide
    touches: int = Field(default=0, ge=0)
    volume_share: Optional[float] = Field(default=None, ge=0, le=100, description="% of side volume")
    distance_percent: Optional[float] = Field(default=None, description="% away from current price")
    description: str = ""


class PivotLevels(BaseModel):
    """Standard floor pivots."""

    pivot: float
    r1: float
    r2: float
    s1: float
    s2: float


class FibonacciLevels(BaseModel):
    """Retracements measured down from the window high."""

    high: float
    low: float
    levels: dict[str, float] = Field(..., description="Ratio label -> price")


class OrderBookImbalance(BaseModel):
    """Top-of-book pressure."""

    volume_imbalance: float = Field(..., ge=-1, le=1)
    value_imbalance: float = Field(..., ge=-1, le=1)
    bid_pressure: float = Field(..., ge=0, le=1)
    ask_pressure: float = Field(..., ge=0, le=1)
    strongest_bid: float = Field(..., ge=0)
    strongest_ask: float = Field(..., ge=0)


# =============================================================================
# OUTPUT: ZoneAnalysis (Complete Response)
# =============================================================================


class ZoneAnalysis(BaseModel):
    """
    Ranked supply and demand zones.
    Returned by: Zone Detector
    Consumed by: Signal Composer, HTTP layer
    """

    current_price: float = Field(..., gt=0)
    supply: list[Zone] = Field(default_factory=list)
    demand: list[Zone] = Field(default_factory=list)
    low_confidence: bool = False
    sources_used: list[ZoneSource] = Field(default_factory=list)
    pivots: Optional[PivotLevels] = None
    fibonacci: Optional[FibonacciLevels] = None
    imbalance: Optional[OrderBookImbalance] = None
    nearest_support: Optional[float] = None
    nearest_resistance: Optional[float] = None
    summary: str = ""
