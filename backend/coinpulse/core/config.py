"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "CoinPulse Backend"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Redis
    redis_url: str = "redis://localhost:6379"

    # CORS (Frontend URL)
    frontend_url: str = "http://localhost:3000"
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Quote sources (order matters only for display)
    quote_sources: list[str] = ["binance", "coinbase", "kraken", "coingecko", "coinmarketcap"]
    coingecko_api_key: Optional[str] = None
    coinmarketcap_api_key: Optional[str] = None  # Source skipped when missing

    # Per-source deadlines (seconds)
    quote_timeout_seconds: float = 6.0
    orderbook_timeout_seconds: float = 6.0
    history_timeout_seconds: float = 8.0

    # Aggregation
    spread_anomaly_percent: float = 2.5
    arbitrage_min_spread_percent: float = 2.0

    # Historical series / order book
    history_interval: str = "1h"
    history_limit: int = 168  # One week of hourly bars
    orderbook_depth: int = 500

    # Indicators
    macd_deadband: float = 0.5

    # Zones
    zone_top_k: int = 4
    zone_min_volume_share_percent: float = 2.0
    zone_min_units: float = 0.0  # 0 disables the absolute size rule
    zone_very_strong_units: float = 0.0

    # Cache
    cache_ttl_seconds: int = 30
    last_price_ttl_seconds: int = 3600
    # Serve the last known price when every live source fails.
    # Off by default: no live data is an error, not a placeholder.
    allow_cached_price_fallback: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
