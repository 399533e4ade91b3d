"""
Cache module for CoinPulse.

Provides Redis caching for analysis results and last known prices.
"""

from coinpulse.services.cache.redis_client import (
    AnalysisCache,
    analysis_key,
    close_redis,
    init_redis,
    last_price_key,
)

__all__ = [
    "AnalysisCache",
    "analysis_key",
    "close_redis",
    "init_redis",
    "last_price_key",
]
