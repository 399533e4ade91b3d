"""
Market Analysis Service

CONTRACT:
    Input:  symbol, optional sentiment
    Output: MarketAnalysis

Pipeline: Market Data → Indicators → Zones → Signal, cached per symbol.
"""

from coinpulse.services.analysis.service import MarketAnalysisService

__all__ = ["MarketAnalysisService"]
