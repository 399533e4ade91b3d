"""
Market Data API Endpoints

Endpoints for aggregated prices and order book depth.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from coinpulse.api.v1.dependencies import (
    Symbol,
    get_analysis_service,
    get_market_data_service,
    wrap,
)
from coinpulse.services.analysis import MarketAnalysisService
from coinpulse.services.base import InsufficientDataError
from coinpulse.services.market_data import MarketDataService, best_price

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/sources")
async def list_sources(market_data: MarketDataService = Depends(get_market_data_service)):
    """Quote sources enabled in this deployment."""
    return wrap({"sources": market_data.source_names})


@router.get("/{symbol}/price")
async def get_price(
    symbol: Symbol,
    analysis: MarketAnalysisService = Depends(get_analysis_service),
):
    """
    Cross-validated price for a symbol.

    Queries every configured exchange concurrently. Confidence is HIGH with
    3+ agreeing sources and LOW when their spread is anomalous.
    """
    try:
        price = await analysis.get_price(symbol)
    except InsufficientDataError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return wrap(price)


@router.get("/{symbol}/best-price")
async def get_best_price(
    symbol: Symbol,
    side: Literal["buy", "sell"] = Query(default="buy"),
    analysis: MarketAnalysisService = Depends(get_analysis_service),
):
    """Cheapest source to buy from, or the highest to sell to."""
    try:
        price = await analysis.get_price(symbol)
    except InsufficientDataError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return wrap({"side": side, "quote": best_price(price, side), "average": price.average})


@router.get("/{symbol}/orderbook")
async def get_order_book(
    symbol: Symbol,
    depth: Optional[int] = Query(default=None, ge=5, le=5000),
    market_data: MarketDataService = Depends(get_market_data_service),
):
    """Order book depth (Binance, Kraken fallback)."""
    try:
        book = await market_data.get_order_book(symbol, depth)
    except InsufficientDataError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return wrap(
        {
            "symbol": book.symbol,
            "source": book.source,
            "best_bid": book.best_bid,
            "best_ask": book.best_ask,
            "mid_price": book.mid_price,
            "bids": book.bids,
            "asks": book.asks,
            "timestamp": book.timestamp,
        }
    )
