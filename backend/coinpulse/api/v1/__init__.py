"""
API v1 Router

All API endpoints for the frontend.
"""

from fastapi import APIRouter

from coinpulse.api.v1.endpoints import analysis, indicators, market, zones

router = APIRouter()

# Include all endpoint routers
router.include_router(market.router, prefix="/market", tags=["Market Data"])
router.include_router(indicators.router, prefix="/indicators", tags=["Indicators"])
router.include_router(zones.router, prefix="/zones", tags=["Supply & Demand Zones"])
router.include_router(analysis.router, prefix="/analysis", tags=["Analysis"])
