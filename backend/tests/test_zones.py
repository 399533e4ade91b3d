"""Tests for supply/demand zone detection."""

import asyncio

import numpy as np
import pytest

from conftest import BASE_TIME, make_candles
from coinpulse.schemas.market import OrderBook, OrderBookLevel, PriceSeries
from coinpulse.schemas.zones import ZoneSide, ZoneSource, ZoneStrength
from coinpulse.services.zones import ZoneDetector, ZoneRequest
from coinpulse.services.zones.calculations import (
    bucket_price,
    bucket_size,
    cluster_order_book,
    count_touches,
    fibonacci_levels,
    find_swing_points,
    order_book_confidence,
    order_book_imbalance,
    order_book_strength,
    pivot_points,
    qualifies,
    volume_profile,
)


def book(bids, asks) -> OrderBook:
    return OrderBook(
        symbol="BTC",
        source="test",
        bids=[OrderBookLevel(price=p, quantity=q) for p, q in bids],
        asks=[OrderBookLevel(price=p, quantity=q) for p, q in asks],
        timestamp=BASE_TIME,
    )


def assert_sides(analysis):
    assert all(z.level > analysis.current_price for z in analysis.supply)
    assert all(z.level < analysis.current_price for z in analysis.demand)
    assert all(z.side == ZoneSide.SUPPLY for z in analysis.supply)
    assert all(z.side == ZoneSide.DEMAND for z in analysis.demand)
    for zone in analysis.supply + analysis.demand:
        assert 0 <= zone.confidence <= 100


class TestBuckets:
    @pytest.mark.parametrize(
        "price,expected",
        [(98100.0, 100.0), (3400.0, 10.0), (150.0, 1.0), (2.5, 0.01), (0.5, 0.0001)],
    )
    def test_bucket_size_by_magnitude(self, price, expected):
        assert bucket_size(price) == expected

    def test_bucket_price_rounds_to_nearest(self):
        assert bucket_price(97910.0, 100.0) == 97900.0
        assert bucket_price(97890.0, 100.0) == 97900.0
        assert bucket_price(0.123456, 0.0001) == 0.1235

    def test_cluster_order_book(self, btc_order_book):
        clusters = cluster_order_book(btc_order_book.bids, 98100.0)
        top = clusters[0]

        assert top.level == 97900.0
        assert top.quantity == 50.0
        assert top.count == 3
        assert top.share_percent == pytest.approx(12.5)
        assert sum(c.quantity for c in clusters) == pytest.approx(400.0)


class TestClassification:
    @pytest.mark.parametrize(
        "share,expected",
        [(12.5, "VERY_STRONG"), (7.0, "STRONG"), (4.0, "MEDIUM"), (2.5, "WEAK"), (10.0, "STRONG")],
    )
    def test_strength_by_share(self, share, expected):
        assert order_book_strength(share) == expected

    def test_strength_by_units(self):
        assert order_book_strength(4.0, quantity=120.0, very_strong_units=100.0) == "VERY_STRONG"
        assert order_book_strength(4.0, quantity=120.0, very_strong_units=0.0) == "MEDIUM"

    def test_confidence_is_capped(self):
        assert order_book_confidence(12.5) == 90
        assert order_book_confidence(2.5) == 50
        assert order_book_confidence(75.0) == 98

    def test_qualifies_by_share_or_units(self):
        assert qualifies(2.5, 1.0)
        assert not qualifies(2.0, 1.0)
        assert qualifies(1.0, 150.0, min_units=100.0)
        assert not qualifies(1.0, 150.0, min_units=0.0)

    def test_imbalance(self):
        bids = [OrderBookLevel(price=100.0, quantity=30.0)]
        asks = [OrderBookLevel(price=101.0, quantity=10.0)]
        result = order_book_imbalance(bids, asks)

        assert result["volume_imbalance"] == pytest.approx(0.5)
        assert result["bid_pressure"] == pytest.approx(0.75)
        assert result["strongest_bid"] == 100.0

    def test_imbalance_only_counts_top_levels(self):
        bids = [OrderBookLevel(price=100.0 - i, quantity=1.0) for i in range(30)]
        asks = [OrderBookLevel(price=101.0 + i, quantity=1.0) for i in range(20)]
        assert order_book_imbalance(bids, asks, depth=20)["volume_imbalance"] == 0.0

    def test_empty_imbalance(self):
        result = order_book_imbalance([], [])
        assert result["volume_imbalance"] == 0.0
        assert result["bid_pressure"] == 0.5


class TestHistoricalLevels:
    def test_pivot_points(self):
        pivots = pivot_points(110.0, 90.0, 100.0)
        assert pivots["pivot"] == pytest.approx(100.0)
        assert pivots["r1"] == pytest.approx(110.0)
        assert pivots["s1"] == pytest.approx(90.0)
        assert pivots["r2"] == pytest.approx(120.0)
        assert pivots["s2"] == pytest.approx(80.0)

    def test_fibonacci_levels(self):
        levels = fibonacci_levels(200.0, 100.0)
        assert levels["61.8"] == pytest.approx(138.2)
        assert levels["50.0"] == pytest.approx(150.0)
        assert set(levels) == {"23.6", "38.2", "50.0", "61.8", "78.6"}

    def test_swing_points(self):
        highs = np.array([1.0, 2.0, 5.0, 2.0, 1.0, 2.0, 3.0, 2.0, 1.0])
        lows = highs - 0.5
        swing_highs, swing_lows = find_swing_points(highs, lows)

        assert swing_highs == [(2, 5.0), (6, 3.0)]
        assert swing_lows == [(4, 0.5)]

    def test_count_touches(self):
        highs = np.array([1.0, 2.0, 5.0, 2.0, 1.0, 2.0, 3.0, 2.0, 1.0])
        assert count_touches(highs, highs - 0.5, 2.0) == 4

    def test_volume_profile(self):
        clusters = volume_profile(np.array([100.2, 100.4, 105.0]), np.array([10.0, 10.0, 5.0]), 100.0)
        assert clusters[0].level == 100.0
        assert clusters[0].count == 2
        assert clusters[0].share_percent == pytest.approx(80.0)


class TestZoneDetector:
    def test_bid_wall_is_top_demand(self, btc_order_book):
        analysis = ZoneDetector().detect(98100.0, order_book=btc_order_book)

        top = analysis.demand[0]
        assert top.level == 97900.0
        assert top.strength == ZoneStrength.VERY_STRONG
        assert top.confidence >= 90
        assert top.source == ZoneSource.ORDERBOOK
        assert top.volume_share == pytest.approx(12.5)
        assert analysis.supply[0].level == 98300.0
        assert analysis.nearest_support == 97900.0
        assert analysis.nearest_resistance == 98300.0
        assert analysis.sources_used == [ZoneSource.ORDERBOOK]
        assert analysis.imbalance is not None
        assert analysis.low_confidence is False
        assert_sides(analysis)

    def test_nearby_levels_merge(self, btc_order_book):
        analysis = ZoneDetector().detect(98100.0, order_book=btc_order_book)

        # 98,600 sits within 0.5% of 98,300 and is folded into it
        assert [z.level for z in analysis.supply] == [98300.0, 99500.0]
        assert "confluent" in analysis.supply[0].description

    def test_very_strong_units(self):
        bids = [(97900.0, 12.0)] + [(96000.0 - 100 * i, 10.0) for i in range(30)]
        detector = ZoneDetector(very_strong_units=10.0)
        analysis = detector.detect(98100.0, order_book=book(bids, []))

        wall = next(z for z in analysis.demand if z.level == 97900.0)
        assert wall.volume_share < 5
        assert wall.strength == ZoneStrength.VERY_STRONG

    def test_top_k(self, btc_order_book):
        analysis = ZoneDetector(top_k=2).detect(98100.0, order_book=btc_order_book)
        assert len(analysis.demand) <= 2
        assert len(analysis.supply) <= 2

    def test_crossed_book_filtered(self, uptrend_series):
        crossed = book(bids=[(170.0, 50.0), (150.0, 20.0)], asks=[(140.0, 40.0), (180.0, 10.0)])
        analysis = ZoneDetector().detect(160.0, order_book=crossed, series=uptrend_series)

        assert_sides(analysis)
        assert 170.0 not in [z.level for z in analysis.demand]
        assert 140.0 not in [z.level for z in analysis.supply]

    def test_series_only(self, uptrend_series):
        analysis = ZoneDetector().detect(150.0, series=uptrend_series)

        assert ZoneSource.PIVOT in analysis.sources_used
        assert ZoneSource.FIBONACCI in analysis.sources_used
        assert ZoneSource.ORDERBOOK not in analysis.sources_used
        assert analysis.pivots is not None
        assert analysis.fibonacci.high > analysis.fibonacci.low
        assert analysis.supply or analysis.demand
        assert_sides(analysis)

    def test_swing_levels_from_history(self):
        closes = [100.0, 104.0, 110.0, 104.0, 100.0, 96.0, 92.0, 96.0, 100.0, 104.0, 108.0, 104.0, 100.0]
        series = PriceSeries.from_candles(make_candles(closes, spread=0.5), "1h")
        analysis = ZoneDetector(top_k=10).detect(101.0, series=series)

        assert ZoneSource.HISTORICAL in analysis.sources_used
        historical = [z for z in analysis.supply + analysis.demand if z.source == ZoneSource.HISTORICAL]
        assert any(z.touches >= 1 for z in historical)
        assert_sides(analysis)

    def test_no_input_means_no_zones(self):
        analysis = ZoneDetector().detect(98100.0)

        assert analysis.supply == []
        assert analysis.demand == []
        assert analysis.low_confidence is True
        assert analysis.sources_used == []

    def test_empty_book(self):
        analysis = ZoneDetector().detect(98100.0, order_book=book([], []))

        assert analysis.supply == []
        assert analysis.demand == []
        assert analysis.low_confidence is True

    def test_rejects_non_positive_price(self):
        with pytest.raises(ValueError):
            ZoneDetector().detect(0.0)

    def test_execute(self, btc_order_book):
        request = ZoneRequest(current_price=98100.0, order_book=btc_order_book)
        analysis = asyncio.run(ZoneDetector().execute(request))
        assert analysis.demand[0].level == 97900.0
