"""
Zone Calculations

Order-book clustering, pivots, Fibonacci retracements, swing points and
volume profile. Pure NumPy, no I/O.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from coinpulse.schemas.market import OrderBookLevel


FIB_RATIOS = (0.236, 0.382, 0.5, 0.618, 0.786)

# Retracements that get a higher confidence
KEY_FIB_RATIOS = (0.382, 0.5, 0.618)


@dataclass
class PriceCluster:
    """Volume gathered into one price bucket."""

    level: float
    quantity: float
    notional: float
    share_percent: float
    count: int


# =============================================================================
# PRICE BUCKETS
# =============================================================================


def bucket_size(price: float) -> float:
    """Bucket resolution scaled to price magnitude."""
    if price >= 10_000:
        return 100.0
    if price >= 1_000:
        return 10.0
    if price >= 100:
        return 1.0
    if price >= 1:
        return 0.01
    return 0.0001


def bucket_price(price: float, size: float) -> float:
    return round(round(price / size) * size, 8)


def _cluster(
    prices: np.ndarray,
    quantities: np.ndarray,
    size: float,
) -> list[PriceCluster]:
    total = float(np.sum(quantities))
    if total <= 0:
        return []

    buckets: dict[float, list[float]] = {}
    for price, quantity in zip(prices, quantities):
        entry = buckets.setdefault(bucket_price(float(price), size), [0.0, 0.0, 0])
        entry[0] += float(quantity)
        entry[1] += float(price * quantity)
        entry[2] += 1

    clusters = [
        PriceCluster(
            level=level,
            quantity=quantity,
            notional=notional,
            share_percent=quantity / total * 100,
            count=count,
        )
        for level, (quantity, notional, count) in buckets.items()
        if level > 0
    ]
    return sorted(clusters, key=lambda c: c.notional, reverse=True)


def cluster_order_book(
    levels: Sequence[OrderBookLevel],
    reference_price: float,
) -> list[PriceCluster]:
    """
    Sum one book side per price bucket, ranked by notional.

    share_percent is the bucket's share of the side's total quantity.
    """
    if not levels:
        return []
    prices = np.array([lvl.price for lvl in levels], dtype=float)
    quantities = np.array([lvl.quantity for lvl in levels], dtype=float)
    return _cluster(prices, quantities, bucket_size(reference_price))


def volume_profile(
    closes: np.ndarray,
    volumes: np.ndarray,
    reference_price: float,
) -> list[PriceCluster]:
    """Traded volume per close-price bucket. count is the number of bars in the bucket."""
    if len(closes) == 0:
        return []
    return _cluster(closes, volumes, bucket_size(reference_price))


# =============================================================================
# ORDER BOOK CLASSIFICATION
# =============================================================================


def order_book_strength(
    share_percent: float,
    quantity: float = 0.0,
    very_strong_units: float = 0.0,
) -> str:
    """VERY_STRONG > 10% or above the unit threshold, STRONG > 5%, MEDIUM > 3%."""
    if share_percent > 10 or (very_strong_units > 0 and quantity > very_strong_units):
        return "VERY_STRONG"
    if share_percent > 5:
        return "STRONG"
    if share_percent > 3:
        return "MEDIUM"
    return "WEAK"


def order_book_confidence(share_percent: float) -> int:
    return int(min(98, round(40 + share_percent * 4)))


def qualifies(
    share_percent: float,
    quantity: float,
    min_share_percent: float = 2.0,
    min_units: float = 0.0,
) -> bool:
    """Share above the minimum OR size above the unit threshold (0 disables it)."""
    return share_percent > min_share_percent or (min_units > 0 and quantity > min_units)


def order_book_imbalance(
    bids: Sequence[OrderBookLevel],
    asks: Sequence[OrderBookLevel],
    depth: int = 20,
) -> dict:
    """
    Pressure over the top `depth` levels of each side.

    Imbalances are in [-1, 1], positive when bids dominate.
    """
    top_bids = list(bids[:depth])
    top_asks = list(asks[:depth])

    bid_volume = sum(lvl.quantity for lvl in top_bids)
    ask_volume = sum(lvl.quantity for lvl in top_asks)
    bid_value = sum(lvl.notional for lvl in top_bids)
    ask_value = sum(lvl.notional for lvl in top_asks)

    total_volume = bid_volume + ask_volume
    total_value = bid_value + ask_value

    return {
        "volume_imbalance": (bid_volume - ask_volume) / total_volume if total_volume > 0 else 0.0,
        "value_imbalance": (bid_value - ask_value) / total_value if total_value > 0 else 0.0,
        "bid_pressure": bid_volume / total_volume if total_volume > 0 else 0.5,
        "ask_pressure": ask_volume / total_volume if total_volume > 0 else 0.5,
        "strongest_bid": max(top_bids, key=lambda lvl: lvl.quantity).price if top_bids else 0.0,
        "strongest_ask": max(top_asks, key=lambda lvl: lvl.quantity).price if top_asks else 0.0,
    }


# =============================================================================
# HISTORICAL LEVELS
# =============================================================================


def pivot_points(high: float, low: float, close: float) -> dict:
    """Standard floor pivots."""
    pivot = (high + low + close) / 3
    return {
        "pivot": pivot,
        "r1": 2 * pivot - low,
        "r2": pivot + (high - low),
        "s1": 2 * pivot - high,
        "s2": pivot - (high - low),
    }


def fibonacci_levels(high: float, low: float) -> dict[str, float]:
    """Retracements down from the high, keyed by percent label ("61.8")."""
    diff = high - low
    return {f"{ratio * 100:.1f}": high - diff * ratio for ratio in FIB_RATIOS}


def find_swing_points(
    highs: np.ndarray, lows: np.ndarray, neighbours: int = 2
) -> tuple[list[tuple[int, float]], list[tuple[int, float]]]:
    """
    Bars whose high (low) is strictly above (below) `neighbours` bars on each side.

    Returns: (swing_highs, swing_lows) as (index, price) pairs
    """
    swing_highs = []
    swing_lows = []

    for i in range(neighbours, len(highs) - neighbours):
        left = slice(i - neighbours, i)
        right = slice(i + 1, i + neighbours + 1)

        if highs[i] > np.max(highs[left]) and highs[i] > np.max(highs[right]):
            swing_highs.append((i, float(highs[i])))
        if lows[i] < np.min(lows[left]) and lows[i] < np.min(lows[right]):
            swing_lows.append((i, float(lows[i])))

    return swing_highs, swing_lows


def count_touches(
    highs: np.ndarray, lows: np.ndarray, level: float, tolerance: float = 0.005
) -> int:
    """Bars whose high or low came within `tolerance` (fraction) of the level."""
    if level <= 0:
        return 0
    near_high = np.abs(highs - level) / level <= tolerance
    near_low = np.abs(lows - level) / level <= tolerance
    return int(np.sum(near_high | near_low))


def touches_strength(touches: int) -> str:
    if touches >= 4:
        return "VERY_STRONG"
    if touches >= 3:
        return "STRONG"
    if touches >= 2:
        return "MEDIUM"
    return "WEAK"


def distance_percent(level: float, current_price: float) -> float:
    return abs(level - current_price) / current_price * 100


def proximity_points(distance: float, max_points: float = 20.0) -> float:
    """Full points at the current price, none beyond 5% away."""
    return max(0.0, max_points - distance * 4)

