"""
Analysis API Endpoints

Full per-symbol analysis: price, indicators, zones and signal.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from coinpulse.api.v1.dependencies import Symbol, get_analysis_service, wrap
from coinpulse.services.analysis import MarketAnalysisService
from coinpulse.services.base import InsufficientDataError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{symbol}")
async def get_analysis(
    symbol: Symbol,
    sentiment: Optional[float] = Query(
        default=None, ge=-1, le=1, description="External sentiment score in [-1, 1]"
    ),
    analysis: MarketAnalysisService = Depends(get_analysis_service),
):
    """
    Run the analysis pipeline for a symbol.

    Cached for 30 seconds per symbol unless a sentiment score is supplied.
    """
    try:
        result = await analysis.analyze(symbol, sentiment)
    except InsufficientDataError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return wrap(result)
