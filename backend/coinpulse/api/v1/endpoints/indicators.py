"""
Indicator API Endpoints

Endpoints for technical indicator calculations.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from coinpulse.api.v1.dependencies import (
    Symbol,
    get_indicator_service,
    get_market_data_service,
    wrap,
)
from coinpulse.schemas.market import PriceSeries
from coinpulse.services.base import ServiceError
from coinpulse.services.indicators import IndicatorService
from coinpulse.services.market_data import MarketDataService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{symbol}")
async def get_indicators(
    symbol: Symbol,
    interval: Optional[str] = Query(default=None, description="Candle interval, e.g. 1h"),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    market_data: MarketDataService = Depends(get_market_data_service),
    indicators: IndicatorService = Depends(get_indicator_service),
):
    """
    Indicator readings for the latest candle.

    Indicators whose window is longer than the fetched history are null.
    """
    try:
        candles = await market_data.get_candles(symbol, interval, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail=f"Price history for {symbol} timed out")
    except ServiceError as e:
        logger.warning(f"History fetch failed for {symbol}: {e}")
        raise HTTPException(status_code=503, detail=e.message)

    series = PriceSeries.from_candles(candles, interval)
    return wrap(
        {
            "symbol": symbol.upper(),
            "interval": interval or market_data.default_interval,
            "indicators": indicators.calculate(series),
        }
    )
