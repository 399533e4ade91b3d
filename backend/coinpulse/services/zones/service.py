"""
Zone Detector Service Implementation

Combines live order-book clusters with historical levels (pivots,
Fibonacci, swing points, volume profile) into ranked supply and demand
zones. With neither input available the result is empty and flagged
low-confidence.
"""

import logging
from typing import Optional

import numpy as np

from coinpulse.schemas.market import OrderBook, PriceSeries
from coinpulse.schemas.zones import (
    FibonacciLevels,
    OrderBookImbalance,
    PivotLevels,
    Zone,
    ZoneAnalysis,
    ZoneSide,
    ZoneSource,
    ZoneStrength,
)
from coinpulse.services.zones.interface import ZoneDetectorInterface, ZoneRequest
from coinpulse.services.zones.calculations import (
    KEY_FIB_RATIOS,
    cluster_order_book,
    count_touches,
    distance_percent,
    fibonacci_levels,
    find_swing_points,
    order_book_confidence,
    order_book_imbalance,
    order_book_strength,
    pivot_points,
    proximity_points,
    qualifies,
    touches_strength,
    volume_profile,
)

logger = logging.getLogger(__name__)

STRENGTH_POINTS = {
    ZoneStrength.WEAK: 0,
    ZoneStrength.MEDIUM: 5,
    ZoneStrength.STRONG: 10,
    ZoneStrength.VERY_STRONG: 15,
}

ORDERBOOK_BONUS = 5

PIVOT_SCORES = {
    "pivot": (55, ZoneStrength.MEDIUM),
    "r1": (65, ZoneStrength.MEDIUM),
    "s1": (65, ZoneStrength.MEDIUM),
    "r2": (60, ZoneStrength.WEAK),
    "s2": (60, ZoneStrength.WEAK),
}


class ZoneDetector(ZoneDetectorInterface):
    """
    Zone Detector.

    Ranking score per zone:
        confidence * 0.6 + strength points + proximity points (+5 for ORDERBOOK)
    Ties go to ORDERBOOK zones, then to the zone closer to price.
    """

    def __init__(
        self,
        top_k: int = 4,
        min_volume_share_percent: float = 2.0,
        min_units: float = 0.0,
        very_strong_units: float = 0.0,
        merge_tolerance_percent: float = 0.5,
        pivot_window: int = 24,
        swing_lookback: int = 100,
        imbalance_depth: int = 20,
    ):
        self.top_k = top_k
        self.min_volume_share_percent = min_volume_share_percent
        self.min_units = min_units
        self.very_strong_units = very_strong_units
        self.merge_tolerance_percent = merge_tolerance_percent
        self.pivot_window = pivot_window
        self.swing_lookback = swing_lookback
        self.imbalance_depth = imbalance_depth

    @property
    def name(self) -> str:
        return "ZoneDetector"

    async def execute(self, input_data: ZoneRequest) -> ZoneAnalysis:
        return self.detect(input_data.current_price, input_data.order_book, input_data.series)

    def detect(
        self,
        current_price: float,
        order_book: Optional[OrderBook] = None,
        series: Optional[PriceSeries] = None,
    ) -> ZoneAnalysis:
        if current_price <= 0:
            raise ValueError(f"current_price must be positive, got {current_price}")

        candidates: list[Zone] = []
        sources_used: list[ZoneSource] = []
        pivots: Optional[PivotLevels] = None
        fibonacci: Optional[FibonacciLevels] = None
        imbalance: Optional[OrderBookImbalance] = None

        if order_book is not None and (order_book.bids or order_book.asks):
            candidates.extend(self._order_book_zones(order_book, current_price))
            sources_used.append(ZoneSource.ORDERBOOK)
            imbalance = OrderBookImbalance(
                **order_book_imbalance(order_book.bids, order_book.asks, self.imbalance_depth)
            )

        if series is not None and len(series) > 0:
            closes = np.array(series.closes, dtype=float)
            highs = np.array(series.highs, dtype=float) if series.has_ranges else closes
            lows = np.array(series.lows, dtype=float) if series.has_ranges else closes

            window_high = float(np.max(highs[-self.pivot_window :]))
            window_low = float(np.min(lows[-self.pivot_window :]))

            pivots = PivotLevels(**pivot_points(window_high, window_low, float(closes[-1])))
            candidates.extend(self._pivot_zones(pivots, current_price))
            sources_used.append(ZoneSource.PIVOT)

            if window_high > window_low:
                fibonacci = FibonacciLevels(
                    high=window_high,
                    low=window_low,
                    levels=fibonacci_levels(window_high, window_low),
                )
                candidates.extend(self._fibonacci_zones(fibonacci, current_price))
                sources_used.append(ZoneSource.FIBONACCI)

            historical = self._swing_zones(highs, lows, current_price)
            if series.volumes:
                historical += self._volume_profile_zones(
                    closes, np.array(series.volumes, dtype=float), highs, lows, current_price
                )
            if historical:
                candidates.extend(historical)
                sources_used.append(ZoneSource.HISTORICAL)

        supply = self._rank_side(
            [z for z in candidates if z.side == ZoneSide.SUPPLY and z.level > current_price],
            current_price,
        )
        demand = self._rank_side(
            [z for z in candidates if z.side == ZoneSide.DEMAND and z.level < current_price],
            current_price,
        )

        nearest_support = max((z.level for z in demand), default=None)
        nearest_resistance = min((z.level for z in supply), default=None)

        if not sources_used:
            logger.warning("Zone detection without order book or price history: returning no zones")

        return ZoneAnalysis(
            current_price=current_price,
            supply=supply,
            demand=demand,
            low_confidence=not sources_used or not (supply or demand),
            sources_used=sources_used,
            pivots=pivots,
            fibonacci=fibonacci,
            imbalance=imbalance,
            nearest_support=nearest_support,
            nearest_resistance=nearest_resistance,
            summary=_summarize(current_price, supply, demand, sources_used),
        )

    # =========================================================================
    # CANDIDATES
    # =========================================================================

    def _order_book_zones(self, book: OrderBook, current_price: float) -> list[Zone]:
        zones = []
        for side, levels, label in (
            (ZoneSide.DEMAND, book.bids, "Bid"),
            (ZoneSide.SUPPLY, book.asks, "Ask"),
        ):
            for cluster in cluster_order_book(levels, current_price):
                if not qualifies(
                    cluster.share_percent,
                    cluster.quantity,
                    self.min_volume_share_percent,
                    self.min_units,
                ):
                    continue
                zones.append(
                    Zone(
                        level=cluster.level,
                        volume=cluster.quantity,
                        strength=ZoneStrength(
                            order_book_strength(
                                cluster.share_percent, cluster.quantity, self.very_strong_units
                            )
                        ),
                        confidence=order_book_confidence(cluster.share_percent),
                        source=ZoneSource.ORDERBOOK,
                        side=side,
                        volume_share=round(cluster.share_percent, 4),
                        distance_percent=round(distance_percent(cluster.level, current_price), 4),
                        description=(
                            f"{label} wall of {cluster.quantity:,.4f} at ${cluster.level:,.2f} "
                            f"({cluster.share_percent:.1f}% of {label.lower()}s)"
                        ),
                    )
                )
        return zones

    def _pivot_zones(self, pivots: PivotLevels, current_price: float) -> list[Zone]:
        zones = []
        for key, (confidence, strength) in PIVOT_SCORES.items():
            zone = _positioned_zone(
                getattr(pivots, key),
                current_price,
                strength=strength,
                confidence=confidence,
                source=ZoneSource.PIVOT,
                description=f"Pivot {key.upper()}",
            )
            if zone:
                zones.append(zone)
        return zones

    def _fibonacci_zones(self, fib: FibonacciLevels, current_price: float) -> list[Zone]:
        key_labels = {f"{ratio * 100:.1f}" for ratio in KEY_FIB_RATIOS}
        zones = []
        for label, level in fib.levels.items():
            is_key = label in key_labels
            zone = _positioned_zone(
                level,
                current_price,
                strength=ZoneStrength.MEDIUM if is_key else ZoneStrength.WEAK,
                confidence=70 if is_key else 60,
                source=ZoneSource.FIBONACCI,
                description=f"Fibonacci {label}% retracement",
            )
            if zone:
                zones.append(zone)
        return zones

    def _swing_zones(self, highs: np.ndarray, lows: np.ndarray, current_price: float) -> list[Zone]:
        highs = highs[-self.swing_lookback :]
        lows = lows[-self.swing_lookback :]
        swing_highs, swing_lows = find_swing_points(highs, lows)

        zones = []
        for kind, points in (("high", swing_highs), ("low", swing_lows)):
            for _, level in points:
                touches = count_touches(highs, lows, level)
                zone = _positioned_zone(
                    level,
                    current_price,
                    strength=ZoneStrength(touches_strength(touches)),
                    confidence=min(95, 60 + touches * 10),
                    source=ZoneSource.HISTORICAL,
                    touches=touches,
                    description=f"Swing {kind} at ${level:,.2f} ({touches} touches)",
                )
                if zone:
                    zones.append(zone)
        return zones

    def _volume_profile_zones(
        self,
        closes: np.ndarray,
        volumes: np.ndarray,
        highs: np.ndarray,
        lows: np.ndarray,
        current_price: float,
    ) -> list[Zone]:
        zones = []
        for cluster in volume_profile(closes, volumes, current_price):
            if cluster.count < 2 or cluster.share_percent <= self.min_volume_share_percent:
                continue
            touches = count_touches(highs, lows, cluster.level)
            zone = _positioned_zone(
                cluster.level,
                current_price,
                strength=ZoneStrength(order_book_strength(cluster.share_percent)),
                confidence=min(90, 40 + touches * 10),
                source=ZoneSource.HISTORICAL,
                volume=cluster.quantity,
                volume_share=round(cluster.share_percent, 4),
                touches=touches,
                description=(
                    f"High-volume node at ${cluster.level:,.2f} "
                    f"({cluster.share_percent:.1f}% of traded volume)"
                ),
            )
            if zone:
                zones.append(zone)
        return zones

    # =========================================================================
    # RANKING
    # =========================================================================

    def _score(self, zone: Zone, current_price: float) -> float:
        score = zone.confidence * 0.6 + STRENGTH_POINTS[zone.strength]
        score += proximity_points(distance_percent(zone.level, current_price))
        if zone.source == ZoneSource.ORDERBOOK:
            score += ORDERBOOK_BONUS
        return score

    def _sort_key(self, zone: Zone, current_price: float) -> tuple:
        return (
            -self._score(zone, current_price),
            zone.source != ZoneSource.ORDERBOOK,
            distance_percent(zone.level, current_price),
        )

    def _rank_side(self, zones: list[Zone], current_price: float) -> list[Zone]:
        """Merge zones within the tolerance into the best-ranked one, then keep top-K."""
        ranked = sorted(zones, key=lambda z: self._sort_key(z, current_price))

        survivors: list[Zone] = []
        merged: list[int] = []
        for zone in ranked:
            for i, survivor in enumerate(survivors):
                gap = abs(zone.level - survivor.level) / survivor.level * 100
                if gap <= self.merge_tolerance_percent:
                    merged[i] += 1
                    break
            else:
                survivors.append(zone)
                merged.append(0)

        boosted = []
        for zone, count in zip(survivors, merged):
            if count:
                zone = zone.model_copy(
                    update={
                        "confidence": min(98, zone.confidence + 5 * count),
                        "description": f"{zone.description} + {count} confluent level(s)",
                    }
                )
            boosted.append(zone)

        boosted.sort(key=lambda z: self._sort_key(z, current_price))
        return boosted[: self.top_k]

    async def health_check(self) -> bool:
        return True


def _positioned_zone(level: float, current_price: float, **fields) -> Optional[Zone]:
    """Historical level becomes supply above price and demand below. None at price."""
    if level <= 0 or level == current_price:
        return None
    side = ZoneSide.SUPPLY if level > current_price else ZoneSide.DEMAND
    return Zone(
        level=level,
        side=side,
        distance_percent=round(distance_percent(level, current_price), 4),
        **fields,
    )


def _summarize(
    current_price: float,
    supply: list[Zone],
    demand: list[Zone],
    sources_used: list[ZoneSource],
) -> str:
    if not sources_used:
        return "No order book or price history available; no zones detected."

    parts = []
    if demand:
        support = max(demand, key=lambda z: z.level)
        parts.append(
            f"Nearest support at ${support.level:,.2f} "
            f"({distance_percent(support.level, current_price):.2f}% below, {support.strength.value})."
        )
    if supply:
        resistance = min(supply, key=lambda z: z.level)
        parts.append(
            f"Nearest resistance at ${resistance.level:,.2f} "
            f"({distance_percent(resistance.level, current_price):.2f}% above, {resistance.strength.value})."
        )
    if not parts:
        parts.append("No qualifying zones around the current price.")
    return " ".join(parts)
