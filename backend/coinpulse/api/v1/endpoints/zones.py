"""
Zone API Endpoints

Supply and demand zones from order book depth and price history.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from coinpulse.api.v1.dependencies import (
    Symbol,
    get_market_data_service,
    get_zone_detector,
    wrap,
)
from coinpulse.services.base import InsufficientDataError
from coinpulse.services.market_data import MarketDataService
from coinpulse.services.zones import ZoneDetector

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{symbol}")
async def get_zones(
    symbol: Symbol,
    market_data: MarketDataService = Depends(get_market_data_service),
    detector: ZoneDetector = Depends(get_zone_detector),
):
    """
    Top supply zones above and demand zones below the current price.

    Empty lists with low_confidence=true when neither the order book nor
    the price history could be fetched.
    """
    try:
        snapshot = await market_data.fetch_snapshot(symbol)
    except InsufficientDataError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    zones = detector.detect(snapshot.price.average, snapshot.order_book, snapshot.series())
    return wrap(
        {
            "symbol": snapshot.symbol,
            "price": snapshot.price.average,
            "price_confidence": snapshot.price.confidence,
            "zones": zones,
            "warnings": snapshot.warnings,
        }
    )
