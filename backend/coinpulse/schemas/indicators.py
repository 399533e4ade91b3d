"""
CONTRACT 2: Indicator Engine

Input: PriceSeries (closes, optional highs/lows/volumes)
Output: IndicatorSet

This module performs ALL indicator math.
Pure Python/NumPy - NO network access.

A field is None when the series is shorter than that indicator's window.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class TrendDirection(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


# =============================================================================
# OUTPUT: Indicator Components
# =============================================================================


class MACDData(BaseModel):
    """MACD indicator values. histogram == line - signal."""

    line: float
    signal: float
    histogram: float
    trend: TrendDirection


class BollingerBandsData(BaseModel):
    """Bollinger Bands values."""

    upper: float
    middle: float
    lower: float
    bandwidth: Optional[float] = Field(default=None, ge=0, description="Band width as ratio of middle")
    percent_b: Optional[float] = Field(default=None, description="Close position within bands (0-1)")


# =============================================================================
# OUTPUT: IndicatorSet (Complete Response)
# =============================================================================


class IndicatorSet(BaseModel):
    """
    Indicator readings for the last bar of a series.
    Returned by: Indicator Service
    Consumed by: Signal Composer, HTTP layer
    """

    bars: int = Field(..., ge=0, description="Series length the readings were computed on")
    last_close: Optional[float] = None
    rsi: Optional[float] = Field(default=None, ge=0, le=100)
    ema: dict[int, Optional[float]] = Field(default_factory=dict)
    sma: dict[int, Optional[float]] = Field(default_factory=dict)
    macd: Optional[MACDData] = None
    bollinger: Optional[BollingerBandsData] = None
    atr: Optional[float] = Field(default=None, ge=0)
    stochastic_k: Optional[float] = Field(default=None, ge=0, le=100)
    stochastic_d: Optional[float] = Field(default=None, ge=0, le=100)

    class Config:
        json_schema_extra = {
            "example": {
                "bars": 168,
                "last_close": 98100.0,
                "rsi": 61.2,
                "ema": {"12": 97950.4, "26": 97610.8},
                "sma": {"20": 97700.0},
                "macd": {"line": 339.6, "signal": 280.1, "histogram": 59.5, "trend": "BULLISH"},
                "bollinger": {"upper": 98900.0, "middle": 97700.0, "lower": 96500.0},
                "atr": 412.3,
                "stochastic_k": 78.4,
            }
        }
