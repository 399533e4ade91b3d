"""
Signal Composer

CONTRACT:
    Input:  AggregatedPrice, IndicatorSet, ZoneAnalysis, optional sentiment
    Output: SignalOutput (direction, confidence 0-100, reasoning)
"""

from coinpulse.services.signals.composer import compose_signal

__all__ = ["compose_signal"]
