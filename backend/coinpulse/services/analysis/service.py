"""
Market Analysis Service Implementation

Orchestrates the per-symbol pipeline:
    Market Data → Indicators → Zones → Signal

Results are cached per symbol with single-flight, so a burst of requests
after expiry triggers one upstream fetch.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from coinpulse.core.config import Settings, settings as default_settings
from coinpulse.schemas.market import AggregatedPrice, ConfidenceLevel
from coinpulse.schemas.signals import MarketAnalysis
from coinpulse.services.base import BaseService, InsufficientDataError
from coinpulse.services.cache import AnalysisCache, analysis_key
from coinpulse.services.indicators import IndicatorService
from coinpulse.services.market_data import MarketDataService
from coinpulse.services.signals import compose_signal
from coinpulse.services.zones import ZoneDetector

logger = logging.getLogger(__name__)


class MarketAnalysisService(BaseService[str, MarketAnalysis]):
    """
    Market Analysis Service.

    The only place that decides whether a last known price may stand in
    for a live one (settings.allow_cached_price_fallback).
    """

    def __init__(
        self,
        market_data: MarketDataService,
        indicators: IndicatorService,
        zones: ZoneDetector,
        cache: AnalysisCache,
        settings: Optional[Settings] = None,
    ):
        self.market_data = market_data
        self.indicators = indicators
        self.zones = zones
        self.cache = cache
        self._settings = settings or default_settings

    @property
    def name(self) -> str:
        return "MarketAnalysisService"

    async def execute(self, input_data: str) -> MarketAnalysis:
        return await self.analyze(input_data)

    async def get_price(self, symbol: str) -> AggregatedPrice:
        """
        Live aggregated price, remembered as the last known price.

        When no source answers, the last known price is served (marked
        stale) only if the fallback policy is enabled.
        """
        symbol = symbol.upper().strip()
        try:
            price = await self.market_data.get_price(symbol)
        except InsufficientDataError:
            if not self._settings.allow_cached_price_fallback:
                raise
            cached = await self.cache.get_last_price(symbol)
            if cached is None:
                raise
            logger.warning(
                f"All sources failed for {symbol}; serving last known price "
                f"${cached.average:,.2f} from {cached.timestamp.isoformat()}"
            )
            return cached.model_copy(
                update={
                    "stale": True,
                    "confidence": ConfidenceLevel.LOW,
                    "warnings": cached.warnings + ["Live sources unavailable: serving last known price"],
                }
            )

        await self.cache.set_last_price(price)
        return price

    async def analyze(self, symbol: str, sentiment: Optional[float] = None) -> MarketAnalysis:
        """
        Cached full analysis.

        Sentiment changes the signal, so requests carrying one bypass the cache.
        """
        symbol = symbol.upper().strip()
        if sentiment is not None:
            return await self._compute(symbol, sentiment)

        return await self.cache.get_or_compute(
            analysis_key(symbol),
            lambda: self._compute(symbol),
            MarketAnalysis,
            ttl=self._settings.cache_ttl_seconds,
        )

    async def _compute(self, symbol: str, sentiment: Optional[float] = None) -> MarketAnalysis:
        start = datetime.now(timezone.utc)

        snapshot = await self.market_data.fetch_snapshot(symbol)
        await self.cache.set_last_price(snapshot.price)

        series = snapshot.series()
        indicator_set = self.indicators.calculate(series) if series is not None else None
        zone_analysis = self.zones.detect(snapshot.price.average, snapshot.order_book, series)
        signal = compose_signal(snapshot.price, indicator_set, zone_analysis, sentiment)

        warnings = list(snapshot.warnings)
        if zone_analysis.low_confidence:
            warnings.append("Zone analysis is low-confidence")

        elapsed_ms = int((datetime.now(timezone.utc) - start).total_seconds() * 1000)
        logger.info(
            f"Analysis {symbol}: {signal.direction.value} ({signal.confidence}) "
            f"{len(zone_analysis.supply)} supply / {len(zone_analysis.demand)} demand zones, {elapsed_ms}ms"
        )

        return MarketAnalysis(
            symbol=symbol,
            price=snapshot.price,
            indicators=indicator_set,
            zones=zone_analysis,
            signal=signal,
            interval=snapshot.interval,
            warnings=warnings,
            timestamp=datetime.now(timezone.utc),
        )

    async def health_check(self) -> bool:
        return await self.market_data.health_check()
