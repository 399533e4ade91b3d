"""Tests for multi-source quote aggregation."""

import asyncio

import pytest

from conftest import FakeQuoteSource, failing_source, make_quote
from coinpulse.schemas.market import ConfidenceLevel
from coinpulse.services.base import InsufficientDataError, MalformedPayloadError
from coinpulse.services.market_data.aggregator import (
    aggregate,
    aggregate_quotes,
    best_price,
    calculate_vwap,
    detect_arbitrage,
)
from coinpulse.services.market_data.mapped_source import MappedQuoteSource
from coinpulse.services.market_data.sources import BINANCE


class CannedTickerSource(MappedQuoteSource):
    """Binance-mapped source that parses a fixed payload instead of calling the API."""

    def __init__(self, payload: dict):
        super().__init__(BINANCE, None)
        self.payload = payload

    async def fetch_quote(self, symbol: str):
        return self.parse(symbol.upper(), self.payload)


class TestAggregateQuotes:
    def test_three_agreeing_sources(self):
        quotes = [
            make_quote("binance", 98000.0),
            make_quote("coinbase", 98200.0),
            make_quote("kraken", 98100.0),
        ]
        result = aggregate_quotes("btc", quotes)

        assert result.symbol == "BTC"
        assert result.average == pytest.approx(98100.0)
        assert result.median == 98100.0
        assert result.min == 98000.0
        assert result.max == 98200.0
        assert result.spread_pct == pytest.approx(200 / 98100 * 100)
        assert result.spread_pct == pytest.approx(0.2039, abs=1e-4)
        assert result.source_count == 3
        assert result.confidence == ConfidenceLevel.HIGH
        assert result.anomalous_spread is False
        assert result.arbitrage == []

    def test_identical_quotes_have_zero_spread(self):
        quotes = [make_quote(name, 50000.0) for name in ("a", "b", "c", "d")]
        result = aggregate_quotes("BTC", quotes)
        assert result.spread_pct == 0.0
        assert result.min == result.median == result.max == 50000.0

    def test_even_count_median(self):
        quotes = [make_quote("a", 100.0), make_quote("b", 101.0), make_quote("c", 103.0), make_quote("d", 110.0)]
        assert aggregate_quotes("X", quotes).median == pytest.approx(102.0)

    @pytest.mark.parametrize(
        "prices",
        [
            [1.0],
            [3.0, 1.0],
            [0.00012, 0.00011, 0.000125],
            [98000.0, 97000.0, 99500.0, 98100.0, 120000.0],
        ],
    )
    def test_min_median_max_ordering(self, prices):
        quotes = [make_quote(f"s{i}", p) for i, p in enumerate(prices)]
        result = aggregate_quotes("X", quotes)
        assert result.min <= result.median <= result.max
        assert result.spread_pct >= 0

    @pytest.mark.parametrize(
        "count,expected",
        [(1, ConfidenceLevel.LOW), (2, ConfidenceLevel.MEDIUM), (3, ConfidenceLevel.HIGH), (5, ConfidenceLevel.HIGH)],
    )
    def test_confidence_by_source_count(self, count, expected):
        quotes = [make_quote(f"s{i}", 98000.0 + i) for i in range(count)]
        assert aggregate_quotes("BTC", quotes).confidence == expected

    def test_anomalous_spread_forces_low(self):
        quotes = [
            make_quote("binance", 100000.0),
            make_quote("coinbase", 100100.0),
            make_quote("kraken", 103500.0),
        ]
        result = aggregate_quotes("BTC", quotes, spread_anomaly_percent=2.5)

        assert result.spread_pct > 2.5
        assert result.anomalous_spread is True
        assert result.confidence == ConfidenceLevel.LOW
        assert any("exceeds" in w for w in result.warnings)

    def test_arbitrage_pairs(self):
        quotes = [
            make_quote("binance", 100000.0),
            make_quote("coinbase", 100100.0),
            make_quote("kraken", 103500.0),
        ]
        opportunities = detect_arbitrage(quotes, min_spread_percent=2.0)

        assert len(opportunities) == 2
        assert opportunities[0].buy_source == "binance"
        assert opportunities[0].sell_source == "kraken"
        assert opportunities[0].spread_percent == pytest.approx(3.5)
        assert opportunities[0].spread_percent >= opportunities[1].spread_percent

    def test_no_quotes_raises(self):
        with pytest.raises(InsufficientDataError):
            aggregate_quotes("BTC", [])

    def test_vwap_weights_by_volume(self):
        quotes = [make_quote("a", 100.0, volume=3.0), make_quote("b", 200.0, volume=1.0)]
        assert calculate_vwap(quotes) == pytest.approx(125.0)
        assert calculate_vwap([make_quote("a", 100.0, volume=0.0)]) is None

    def test_data_quality_bounds(self):
        result = aggregate_quotes("BTC", [make_quote("a", 98000.0), make_quote("b", 98010.0)])
        assert 0 <= result.data_quality <= 100

    def test_best_price(self):
        quotes = [make_quote("a", 100.0), make_quote("b", 99.0), make_quote("c", 101.0)]
        result = aggregate_quotes("X", quotes)
        assert best_price(result, "buy").source == "b"
        assert best_price(result, "sell").source == "c"
        with pytest.raises(ValueError):
            best_price(result, "hold")


class TestAggregate:
    def test_failed_sources_are_excluded(self):
        sources = [
            FakeQuoteSource("binance", 98000.0),
            FakeQuoteSource("coinbase", 98200.0),
            failing_source("kraken"),
            FakeQuoteSource("coingecko", error=MalformedPayloadError("coingecko", "missing usd")),
        ]
        result = asyncio.run(aggregate("BTC", sources, timeout=1.0))

        assert result.source_count == 2
        assert result.confidence == ConfidenceLevel.MEDIUM
        assert {f.source for f in result.failed_sources} == {"kraken", "coingecko"}
        assert {f.error_type for f in result.failed_sources} == {
            "SourceUnavailableError",
            "MalformedPayloadError",
        }

    def test_timeout_is_per_source(self):
        sources = [
            FakeQuoteSource("binance", 98000.0),
            FakeQuoteSource("coinbase", 98200.0),
            FakeQuoteSource("kraken", 98100.0),
            FakeQuoteSource("slow", 98150.0, delay=5.0),
        ]
        result = asyncio.run(aggregate("BTC", sources, timeout=0.05))

        assert result.source_count == 3
        assert result.confidence == ConfidenceLevel.HIGH
        assert [f.source for f in result.failed_sources] == ["slow"]
        assert "Timed out" in result.failed_sources[0].message

    @pytest.mark.parametrize("bad_price", ["inf", "nan"])
    def test_non_finite_ticker_excluded_from_aggregation(self, bad_price):
        sources = [
            FakeQuoteSource("coinbase", 98000.0),
            FakeQuoteSource("kraken", 98100.0),
            CannedTickerSource({"lastPrice": bad_price, "quoteVolume": "1000.0"}),
        ]
        result = asyncio.run(aggregate("BTC", sources, timeout=1.0))

        assert result.source_count == 2
        assert result.average == pytest.approx(98050.0)
        assert result.spread_pct >= 0
        assert [f.source for f in result.failed_sources] == ["binance"]
        assert result.failed_sources[0].error_type == "MalformedPayloadError"

    def test_unexpected_errors_do_not_abort(self):
        sources = [
            FakeQuoteSource("binance", 98000.0),
            FakeQuoteSource("broken", error=KeyError("lastPrice")),
        ]
        result = asyncio.run(aggregate("BTC", sources, timeout=1.0))

        assert result.source_count == 1
        assert result.confidence == ConfidenceLevel.LOW
        assert result.failed_sources[0].error_type == "KeyError"

    def test_all_sources_failing_raises(self):
        sources = [failing_source("binance"), failing_source("kraken")]
        with pytest.raises(InsufficientDataError) as exc_info:
            asyncio.run(aggregate("BTC", sources, timeout=1.0))

        assert len(exc_info.value.details["failed_sources"]) == 2

    def test_no_sources_raises(self):
        with pytest.raises(InsufficientDataError):
            asyncio.run(aggregate("BTC", [], timeout=1.0))

    def test_sources_run_concurrently(self):
        sources = [FakeQuoteSource(f"s{i}", 98000.0 + i, delay=0.2) for i in range(5)]

        async def run():
            loop = asyncio.get_running_loop()
            start = loop.time()
            result = await aggregate("BTC", sources, timeout=2.0)
            return result, loop.time() - start

        result, elapsed = asyncio.run(run())
        assert result.source_count == 5
        assert elapsed < 0.9
