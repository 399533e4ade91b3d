"""
Zone Detector Service

CONTRACT:
    Input:  current price, optional OrderBook, optional PriceSeries
    Output: ZoneAnalysis

RESPONSIBILITIES:
    - Cluster order-book depth into price buckets (live supply/demand)
    - Pivots, Fibonacci retracements, swing points, volume profile
    - Merge confluent levels, rank, keep top-K per side

NO SYNTHETIC ZONES - without input data the lists stay empty.
"""

from coinpulse.services.zones.interface import ZoneDetectorInterface, ZoneRequest
from coinpulse.services.zones.service import ZoneDetector

__all__ = [
    "ZoneDetectorInterface",
    "ZoneRequest",
    "ZoneDetector",
]
