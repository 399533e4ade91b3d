"""
CoinPulse Backend - FastAPI Application

Main entry point for the backend API.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coinpulse.core.config import settings
from coinpulse.api.v1 import router as api_v1_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler. Owns the HTTP session, Redis and services."""
    from coinpulse.services.analysis import MarketAnalysisService
    from coinpulse.services.cache import AnalysisCache, close_redis, init_redis
    from coinpulse.services.indicators import IndicatorService
    from coinpulse.services.market_data import (
        BinanceMarketSource,
        KrakenOrderBookSource,
        MarketDataService,
        build_quote_sources,
        create_session,
    )
    from coinpulse.services.zones import ZoneDetector

    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    session = create_session()

    # Initialize Redis cache
    redis_client = await init_redis(settings.redis_url)
    if redis_client:
        logger.info("Redis cache connected")
    else:
        logger.info("Redis unavailable - using in-memory cache")

    quote_sources = build_quote_sources(session, settings)
    logger.info(f"Quote sources: {', '.join(s.name for s in quote_sources) or 'none'}")

    binance = BinanceMarketSource(
        session,
        orderbook_timeout=settings.orderbook_timeout_seconds,
        history_timeout=settings.history_timeout_seconds,
    )
    kraken = KrakenOrderBookSource(session, timeout=settings.orderbook_timeout_seconds)

    market_data = MarketDataService(
        quote_sources,
        order_book_sources=[binance, kraken],
        history_source=binance,
        settings=settings,
    )
    indicators = IndicatorService(macd_deadband=settings.macd_deadband)
    zones = ZoneDetector(
        top_k=settings.zone_top_k,
        min_volume_share_percent=settings.zone_min_volume_share_percent,
        min_units=settings.zone_min_units,
        very_strong_units=settings.zone_very_strong_units,
    )
    cache = AnalysisCache(redis_client, default_ttl=settings.cache_ttl_seconds)

    app.state.market_data = market_data
    app.state.indicators = indicators
    app.state.zones = zones
    app.state.analysis = MarketAnalysisService(market_data, indicators, zones, cache, settings)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await session.close()
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    CoinPulse Crypto Market Analysis API

    ## Architecture
    - **Quote Aggregator**: Cross-validates prices from Binance, Coinbase, Kraken, CoinGecko, CoinMarketCap
    - **Indicator Engine**: RSI, EMA/SMA, MACD, Bollinger Bands, ATR, Stochastic (pure NumPy)
    - **Zone Detector**: Supply/demand zones from order book depth and price history
    - **Signal Composer**: Weighted vote with bounded confidence

    ## Core Principles
    - No placeholder prices: when every source fails, the request fails
    - Indicators are null, never NaN, when history is too short
    - No synthetic zones without data
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
# Add any additional origins from settings
if settings.allowed_origins:
    cors_origins.extend([o for o in settings.allowed_origins if o not in cors_origins])

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    services = {}
    for attr in ("market_data", "indicators", "zones", "analysis"):
        service = getattr(app.state, attr, None)
        if service is not None:
            services[service.name] = await service.health_check()

    return {
        "status": "healthy" if all(services.values()) else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "services": services,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "CoinPulse Backend API",
        "docs": "/docs",
        "health": "/health",
    }
