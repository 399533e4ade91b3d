"""
Signal Composer

Weighted vote over indicator readings, zone position, order-book pressure
and an optional sentiment score. The weights are tuning, not math: keep
them in VOTE_WEIGHTS.
"""

import logging
from typing import Optional

from coinpulse.schemas.indicators import IndicatorSet, TrendDirection
from coinpulse.schemas.market import AggregatedPrice, ConfidenceLevel
from coinpulse.schemas.signals import SignalOutput
from coinpulse.schemas.zones import ZoneAnalysis

logger = logging.getLogger(__name__)

VOTE_WEIGHTS = {
    "rsi_extreme": 2.0,
    "rsi_momentum": 1.0,
    "macd": 2.0,
    "bollinger": 1.0,
    "stochastic": 1.0,
    "ema_cross": 1.5,
    "ema_trend": 1.0,
    "change_24h": 1.0,
    "zone_position": 1.0,
    "imbalance": 1.0,
    "sentiment": 1.5,
}

# Net vote (bull - bear) / total needed to call a direction
DIRECTION_THRESHOLD = 0.15

# Confidence ceiling when the price itself is unreliable
LOW_PRICE_CONFIDENCE_CAP = 60


class _Ballot:
    def __init__(self):
        self.bullish = 0.0
        self.bearish = 0.0
        self.reasoning: list[str] = []

    def bull(self, key: str, reason: str, scale: float = 1.0):
        self.bullish += VOTE_WEIGHTS[key] * scale
        self.reasoning.append(reason)

    def bear(self, key: str, reason: str, scale: float = 1.0):
        self.bearish += VOTE_WEIGHTS[key] * scale
        self.reasoning.append(reason)


def _vote_indicators(ballot: _Ballot, indicators: IndicatorSet, price: float):
    if indicators.rsi is not None:
        if indicators.rsi < 30:
            ballot.bull("rsi_extreme", f"RSI {indicators.rsi:.1f} is oversold")
        elif indicators.rsi > 70:
            ballot.bear("rsi_extreme", f"RSI {indicators.rsi:.1f} is overbought")
        elif indicators.rsi > 50:
            ballot.bull("rsi_momentum", f"RSI {indicators.rsi:.1f} shows positive momentum")
        elif indicators.rsi < 50:
            ballot.bear("rsi_momentum", f"RSI {indicators.rsi:.1f} shows negative momentum")

    if indicators.macd is not None:
        if indicators.macd.trend == TrendDirection.BULLISH:
            ballot.bull("macd", f"MACD histogram positive ({indicators.macd.histogram:.2f})")
        elif indicators.macd.trend == TrendDirection.BEARISH:
            ballot.bear("macd", f"MACD histogram negative ({indicators.macd.histogram:.2f})")

    bollinger = indicators.bollinger
    if bollinger is not None and bollinger.percent_b is not None:
        if bollinger.percent_b < 0.2:
            ballot.bull("bollinger", "Price near lower Bollinger band")
        elif bollinger.percent_b > 0.8:
            ballot.bear("bollinger", "Price near upper Bollinger band")

    if indicators.stochastic_k is not None:
        if indicators.stochastic_k < 20:
            ballot.bull("stochastic", f"Stochastic %K {indicators.stochastic_k:.1f} oversold")
        elif indicators.stochastic_k > 80:
            ballot.bear("stochastic", f"Stochastic %K {indicators.stochastic_k:.1f} overbought")

    fast, slow = indicators.ema.get(12), indicators.ema.get(26)
    if fast is not None and slow is not None and fast != slow:
        if fast > slow:
            ballot.bull("ema_cross", "EMA12 above EMA26")
        else:
            ballot.bear("ema_cross", "EMA12 below EMA26")

    long_ema = indicators.ema.get(200) or indicators.ema.get(50)
    if long_ema is not None and price != long_ema:
        if price > long_ema:
            ballot.bull("ema_trend", "Price above long-term EMA")
        else:
            ballot.bear("ema_trend", "Price below long-term EMA")


def _vote_zones(ballot: _Ballot, zones: ZoneAnalysis, price: float):
    support, resistance = zones.nearest_support, zones.nearest_resistance
    if support is not None and resistance is not None and resistance > support:
        position = (price - support) / (resistance - support)
        if position < 0.25:
            ballot.bull("zone_position", f"Price sits near support ${support:,.2f}")
        elif position > 0.75:
            ballot.bear("zone_position", f"Price sits near resistance ${resistance:,.2f}")

    if zones.imbalance is not None:
        imbalance = zones.imbalance.value_imbalance
        if imbalance > 0.2:
            ballot.bull("imbalance", f"Bids outweigh asks ({imbalance:+.2f})")
        elif imbalance < -0.2:
            ballot.bear("imbalance", f"Asks outweigh bids ({imbalance:+.2f})")


def compose_signal(
    price: AggregatedPrice,
    indicators: Optional[IndicatorSet],
    zones: ZoneAnalysis,
    sentiment: Optional[float] = None,
) -> SignalOutput:
    """
    Directional bias with confidence in [0, 100].

    Args:
        sentiment: optional news/social score in [-1, 1]

    Raises:
        ValueError: sentiment outside [-1, 1]
    """
    if sentiment is not None and not -1 <= sentiment <= 1:
        raise ValueError(f"sentiment must be within [-1, 1], got {sentiment}")

    ballot = _Ballot()
    current = price.average

    if indicators is not None:
        _vote_indicators(ballot, indicators, current)

    if price.average_change_24h > 2:
        ballot.bull("change_24h", f"Up {price.average_change_24h:.2f}% in 24h")
    elif price.average_change_24h < -2:
        ballot.bear("change_24h", f"Down {abs(price.average_change_24h):.2f}% in 24h")

    _vote_zones(ballot, zones, current)

    if sentiment is not None:
        if sentiment > 0.2:
            ballot.bull("sentiment", f"Positive sentiment ({sentiment:+.2f})", scale=sentiment)
        elif sentiment < -0.2:
            ballot.bear("sentiment", f"Negative sentiment ({sentiment:+.2f})", scale=-sentiment)

    total = ballot.bullish + ballot.bearish
    if total == 0:
        direction = TrendDirection.NEUTRAL
        confidence = 0
        ballot.reasoning.append("No indicator, zone or sentiment input produced a vote")
    else:
        net = (ballot.bullish - ballot.bearish) / total
        if net > DIRECTION_THRESHOLD:
            direction = TrendDirection.BULLISH
        elif net < -DIRECTION_THRESHOLD:
            direction = TrendDirection.BEARISH
        else:
            direction = TrendDirection.NEUTRAL

        if direction == TrendDirection.NEUTRAL:
            confidence = round((1 - abs(net)) * 50)
        else:
            confidence = round(max(ballot.bullish, ballot.bearish) / total * 100)

    if price.confidence == ConfidenceLevel.LOW and confidence > LOW_PRICE_CONFIDENCE_CAP:
        confidence = LOW_PRICE_CONFIDENCE_CAP
        ballot.reasoning.append(
            f"Confidence capped at {LOW_PRICE_CONFIDENCE_CAP}: price backed by "
            f"{price.source_count} source(s)"
            + (" with anomalous spread" if price.anomalous_spread else "")
        )

    confidence = max(0, min(100, confidence))
    logger.debug(
        f"{price.symbol} signal {direction.value} ({confidence}) "
        f"bull={ballot.bullish:.1f} bear={ballot.bearish:.1f}"
    )

    return SignalOutput(
        direction=direction,
        confidence=confidence,
        bullish_votes=round(ballot.bullish, 2),
        bearish_votes=round(ballot.bearish, 2),
        total_votes=round(total, 2),
        reasoning=ballot.reasoning,
    )
