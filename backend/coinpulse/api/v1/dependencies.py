"""
Request dependencies.

Services are built once in the application lifespan and stored on
app.state; endpoints receive them through Depends so tests can override.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import Path, Request

from coinpulse.services.analysis import MarketAnalysisService
from coinpulse.services.indicators import IndicatorService
from coinpulse.services.market_data import MarketDataService
from coinpulse.services.zones import ZoneDetector

Symbol = Annotated[
    str,
    Path(pattern=r"^[A-Za-z0-9]{1,15}$", description="Asset symbol, e.g. BTC"),
]


def get_market_data_service(request: Request) -> MarketDataService:
    return request.app.state.market_data


def get_indicator_service(request: Request) -> IndicatorService:
    return request.app.state.indicators


def get_zone_detector(request: Request) -> ZoneDetector:
    return request.app.state.zones


def get_analysis_service(request: Request) -> MarketAnalysisService:
    return request.app.state.analysis


def wrap(data: Any) -> dict:
    """Standard response envelope."""
    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }
