"""
Multi-Source Quote Aggregator

Fetches the same ticker from several exchanges concurrently and
cross-validates them into one AggregatedPrice.

A failing source is excluded, never fatal. Zero successful sources is an
InsufficientDataError: no hard-coded or cached price is substituted here.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from itertools import combinations
from typing import Optional, Sequence

import numpy as np

from coinpulse.schemas.market import (
    AggregatedPrice,
    ArbitrageOpportunity,
    ConfidenceLevel,
    Quote,
    SourceFailure,
)
from coinpulse.services.base import InsufficientDataError, ServiceError
from coinpulse.services.market_data.interface import QuoteSource

logger = logging.getLogger(__name__)

# Spread above which one of the quotes is considered stale or wrong
SPREAD_ANOMALY_PERCENT = 2.5

# Minimum gap between two sources worth reporting as arbitrage
ARBITRAGE_MIN_SPREAD_PERCENT = 2.0


def _failure_from(source: str, error: BaseException, timeout: float) -> SourceFailure:
    if isinstance(error, asyncio.TimeoutError):
        return SourceFailure(
            source=source,
            error_type="SourceUnavailableError",
            message=f"Timed out after {timeout:.1f}s",
        )
    if isinstance(error, ServiceError):
        return SourceFailure(source=source, error_type=type(error).__name__, message=error.message)
    return SourceFailure(source=source, error_type=type(error).__name__, message=str(error) or repr(error))


async def collect_quotes(
    symbol: str,
    sources: Sequence[QuoteSource],
    timeout: float = 6.0,
) -> tuple[list[Quote], list[SourceFailure]]:
    """
    Run every source concurrently, each under its own deadline.

    Waits for all of them to settle; returns successes and failures.
    """
    results = await asyncio.gather(
        *(asyncio.wait_for(source.fetch_quote(symbol), timeout=timeout) for source in sources),
        return_exceptions=True,
    )

    quotes: list[Quote] = []
    failures: list[SourceFailure] = []
    for source, result in zip(sources, results):
        if isinstance(result, Quote):
            quotes.append(result)
            logger.debug(f"{source.name}: {symbol} @ ${result.price:,.2f}")
            continue

        failure = _failure_from(source.name, result, timeout)
        failures.append(failure)
        if isinstance(result, (ServiceError, asyncio.TimeoutError)):
            logger.debug(f"{source.name} failed for {symbol}: {failure.message}")
        else:
            logger.warning(f"{source.name} raised unexpected {failure.error_type} for {symbol}: {failure.message}")

    return quotes, failures


def _determine_confidence(source_count: int, anomalous_spread: bool) -> ConfidenceLevel:
    """Spread anomaly overrides the source-count rule."""
    if anomalous_spread:
        return ConfidenceLevel.LOW
    if source_count >= 3:
        return ConfidenceLevel.HIGH
    if source_count == 2:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_vwap(quotes: Sequence[Quote]) -> Optional[float]:
    """Volume-weighted price over sources that report 24h volume."""
    weighted = [(q.price, q.volume_24h) for q in quotes if q.volume_24h > 0]
    if not weighted:
        return None
    prices, volumes = np.array(weighted).T
    return float(np.sum(prices * volumes) / np.sum(volumes))


def detect_arbitrage(
    quotes: Sequence[Quote],
    min_spread_percent: float = ARBITRAGE_MIN_SPREAD_PERCENT,
) -> list[ArbitrageOpportunity]:
    """Every source pair whose gap, relative to the cheaper side, is wide enough."""
    opportunities = []
    for a, b in combinations(quotes, 2):
        buy, sell = (a, b) if a.price <= b.price else (b, a)
        spread = sell.price - buy.price
        spread_percent = spread / buy.price * 100
        if spread_percent >= min_spread_percent:
            opportunities.append(
                ArbitrageOpportunity(
                    buy_source=buy.source,
                    sell_source=sell.source,
                    buy_price=buy.price,
                    sell_price=sell.price,
                    spread=round(spread, 8),
                    spread_percent=round(spread_percent, 4),
                )
            )
    return sorted(opportunities, key=lambda o: o.spread_percent, reverse=True)


def _calculate_data_quality(quotes: Sequence[Quote], failure_count: int, average: float) -> float:
    """
    Data quality score (0-100).

    Scoring:
    - Base: share of sources that answered
    - +10 scaled by share of sources reporting volume
    - Up to -20 for the largest deviation from the average
    """
    total = len(quotes) + failure_count
    if total == 0:
        return 0.0

    success_rate = len(quotes) / total * 100
    volume_bonus = sum(1 for q in quotes if q.volume_24h > 0) / total * 10

    penalty = 0.0
    if len(quotes) > 1:
        max_deviation = max(abs(q.price - average) / average * 100 for q in quotes)
        penalty = min(max_deviation * 2, 20)

    return max(0.0, min(100.0, success_rate + volume_bonus - penalty))


def aggregate_quotes(
    symbol: str,
    quotes: Sequence[Quote],
    failures: Sequence[SourceFailure] = (),
    spread_anomaly_percent: float = SPREAD_ANOMALY_PERCENT,
    arbitrage_min_spread_percent: float = ARBITRAGE_MIN_SPREAD_PERCENT,
    fetch_duration_ms: int = 0,
) -> AggregatedPrice:
    """
    Combine already-fetched quotes.

    Raises:
        InsufficientDataError: no quotes
    """
    if not quotes:
        raise InsufficientDataError(
            "QuoteAggregator",
            f"No price source returned data for {symbol}",
            {"failed_sources": [f.model_dump() for f in failures]},
        )

    prices = np.array([q.price for q in quotes], dtype=float)
    average = float(np.mean(prices))
    median = float(np.median(prices))
    low = float(np.min(prices))
    high = float(np.max(prices))
    spread_pct = (high - low) / average * 100

    warnings: list[str] = []
    anomalous = len(quotes) >= 2 and spread_pct > spread_anomaly_percent
    if anomalous:
        cheapest = min(quotes, key=lambda q: q.price)
        dearest = max(quotes, key=lambda q: q.price)
        message = (
            f"Price spread {spread_pct:.2f}% across {len(quotes)} sources exceeds "
            f"{spread_anomaly_percent:.2f}% ({cheapest.source} ${cheapest.price:,.2f} vs "
            f"{dearest.source} ${dearest.price:,.2f})"
        )
        warnings.append(message)
        logger.warning(f"{symbol}: {message}")

    for failure in failures:
        warnings.append(f"{failure.source} unavailable: {failure.message}")

    return AggregatedPrice(
        symbol=symbol.upper(),
        average=average,
        median=median,
        min=low,
        max=high,
        spread_pct=spread_pct,
        source_count=len(quotes),
        confidence=_determine_confidence(len(quotes), anomalous),
        anomalous_spread=anomalous,
        vwap=calculate_vwap(quotes),
        total_volume_24h=float(sum(q.volume_24h for q in quotes)),
        average_change_24h=float(np.mean([q.change_24h for q in quotes])),
        data_quality=round(_calculate_data_quality(quotes, len(failures), average), 2),
        quotes=list(quotes),
        failed_sources=list(failures),
        arbitrage=detect_arbitrage(quotes, arbitrage_min_spread_percent),
        warnings=warnings,
        fetch_duration_ms=fetch_duration_ms,
        timestamp=datetime.now(timezone.utc),
    )


async def aggregate(
    symbol: str,
    sources: Sequence[QuoteSource],
    timeout: float = 6.0,
    spread_anomaly_percent: float = SPREAD_ANOMALY_PERCENT,
    arbitrage_min_spread_percent: float = ARBITRAGE_MIN_SPREAD_PERCENT,
) -> AggregatedPrice:
    """Fetch from every source concurrently and aggregate the survivors."""
    symbol = symbol.upper().strip()
    start = time.perf_counter()

    quotes, failures = await collect_quotes(symbol, sources, timeout=timeout)
    duration_ms = int((time.perf_counter() - start) * 1000)

    if not quotes:
        logger.error(f"No price data for {symbol} from any of {len(sources)} sources")

    result = aggregate_quotes(
        symbol,
        quotes,
        failures,
        spread_anomaly_percent=spread_anomaly_percent,
        arbitrage_min_spread_percent=arbitrage_min_spread_percent,
        fetch_duration_ms=duration_ms,
    )
    logger.info(
        f"{symbol}: ${result.average:,.2f} from {result.source_count}/{len(sources)} sources "
        f"(spread {result.spread_pct:.3f}%, confidence {result.confidence.value}, {duration_ms}ms)"
    )
    return result


def best_price(aggregation: AggregatedPrice, side: str) -> Optional[Quote]:
    """Lowest quote to buy at, highest quote to sell at."""
    if not aggregation.quotes:
        return None
    if side == "buy":
        return min(aggregation.quotes, key=lambda q: q.price)
    if side == "sell":
        return max(aggregation.quotes, key=lambda q: q.price)
    raise ValueError(f"side must be 'buy' or 'sell', got {side!r}")
