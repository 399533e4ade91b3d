"""
CONTRACT 4: Signal Composer

Input: AggregatedPrice, IndicatorSet, ZoneAnalysis, optional sentiment
Output: SignalOutput

Heuristic weighted vote. Consumed by the HTTP layer.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from coinpulse.schemas.indicators import IndicatorSet, TrendDirection
from coinpulse.schemas.market import AggregatedPrice
from coinpulse.schemas.zones import ZoneAnalysis


class SignalOutput(BaseModel):
    """Directional bias with bounded confidence."""

    direction: TrendDirection
    confidence: int = Field(..., ge=0, le=100)
    bullish_votes: float = Field(default=0.0, ge=0)
    bearish_votes: float = Field(default=0.0, ge=0)
    total_votes: float = Field(default=0.0, ge=0)
    reasoning: list[str] = Field(default_factory=list)


class MarketAnalysis(BaseModel):
    """
    Full per-symbol analysis.
    Returned by: MarketAnalysisService
    Consumed by: HTTP layer
    """

    symbol: str
    price: AggregatedPrice
    indicators: Optional[IndicatorSet] = None
    zones: ZoneAnalysis
    signal: SignalOutput
    interval: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    timestamp: datetime
