"""
Indicator Engine Service

CONTRACT:
    Input:  PriceSeries (closes, optional highs/lows)
    Output: IndicatorSet

RESPONSIBILITIES:
    - RSI (Wilder), EMA, SMA, MACD
    - Bollinger Bands, ATR, Stochastic %K/%D
    - None for any indicator whose window the series cannot fill

Pure NumPy. All math is deterministic and reproducible.
"""

from coinpulse.services.indicators.interface import IndicatorServiceInterface
from coinpulse.services.indicators.service import IndicatorService

__all__ = [
    "IndicatorServiceInterface",
    "IndicatorService",
]
