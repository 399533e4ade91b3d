"""Tests for the signal composer."""

import pytest

from conftest import BASE_TIME
from coinpulse.schemas.indicators import BollingerBandsData, IndicatorSet, MACDData, TrendDirection
from coinpulse.schemas.market import AggregatedPrice, ConfidenceLevel
from coinpulse.schemas.zones import OrderBookImbalance, ZoneAnalysis
from coinpulse.services.signals import compose_signal
from coinpulse.services.signals.composer import LOW_PRICE_CONFIDENCE_CAP


def make_price(confidence=ConfidenceLevel.HIGH, change=0.0, source_count=3) -> AggregatedPrice:
    return AggregatedPrice(
        symbol="BTC",
        average=100.0,
        median=100.0,
        min=100.0,
        max=100.0,
        spread_pct=0.0,
        source_count=source_count,
        confidence=confidence,
        average_change_24h=change,
        timestamp=BASE_TIME,
    )


def empty_zones() -> ZoneAnalysis:
    return ZoneAnalysis(current_price=100.0, low_confidence=True)


@pytest.fixture
def bullish_indicators() -> IndicatorSet:
    return IndicatorSet(
        bars=200,
        last_close=100.0,
        rsi=25.0,
        ema={12: 98.0, 26: 95.0, 50: 90.0},
        macd=MACDData(line=3.0, signal=1.0, histogram=2.0, trend=TrendDirection.BULLISH),
        bollinger=BollingerBandsData(upper=110.0, middle=104.0, lower=98.0, bandwidth=0.115, percent_b=0.17),
        stochastic_k=15.0,
    )


@pytest.fixture
def bearish_indicators() -> IndicatorSet:
    return IndicatorSet(
        bars=200,
        last_close=100.0,
        rsi=78.0,
        ema={12: 101.0, 26: 104.0, 50: 110.0},
        macd=MACDData(line=-3.0, signal=-1.0, histogram=-2.0, trend=TrendDirection.BEARISH),
        bollinger=BollingerBandsData(upper=101.0, middle=96.0, lower=91.0, bandwidth=0.104, percent_b=0.9),
        stochastic_k=88.0,
    )


class TestComposeSignal:
    def test_bullish_setup(self, bullish_indicators):
        signal = compose_signal(make_price(change=3.0), bullish_indicators, empty_zones())

        assert signal.direction == TrendDirection.BULLISH
        assert signal.confidence == 100
        assert signal.bearish_votes == 0
        assert any("oversold" in reason for reason in signal.reasoning)

    def test_bearish_setup(self, bearish_indicators):
        signal = compose_signal(make_price(change=-4.0), bearish_indicators, empty_zones())

        assert signal.direction == TrendDirection.BEARISH
        assert signal.confidence == 100
        assert signal.bullish_votes == 0

    def test_low_price_confidence_caps(self, bullish_indicators):
        price = make_price(confidence=ConfidenceLevel.LOW, source_count=1)
        signal = compose_signal(price, bullish_indicators, empty_zones())

        assert signal.direction == TrendDirection.BULLISH
        assert signal.confidence == LOW_PRICE_CONFIDENCE_CAP
        assert any("capped" in reason for reason in signal.reasoning)

    def test_no_input_is_neutral_zero(self):
        signal = compose_signal(make_price(), None, empty_zones())

        assert signal.direction == TrendDirection.NEUTRAL
        assert signal.confidence == 0
        assert signal.total_votes == 0

    def test_balanced_votes_are_neutral(self):
        indicators = IndicatorSet(bars=50, rsi=55.0, stochastic_k=85.0)
        signal = compose_signal(make_price(), indicators, empty_zones())

        assert signal.direction == TrendDirection.NEUTRAL
        assert signal.confidence == 50

    def test_sentiment_votes(self):
        signal = compose_signal(make_price(), None, empty_zones(), sentiment=0.8)

        assert signal.direction == TrendDirection.BULLISH
        assert signal.bullish_votes == pytest.approx(1.2)

    def test_mild_sentiment_ignored(self):
        signal = compose_signal(make_price(), None, empty_zones(), sentiment=0.1)
        assert signal.total_votes == 0

    @pytest.mark.parametrize("sentiment", [1.5, -1.01])
    def test_sentiment_out_of_range(self, sentiment):
        with pytest.raises(ValueError):
            compose_signal(make_price(), None, empty_zones(), sentiment=sentiment)

    def test_zone_position_and_imbalance(self):
        zones = ZoneAnalysis(
            current_price=100.0,
            nearest_support=95.0,
            nearest_resistance=120.0,
            imbalance=OrderBookImbalance(
                volume_imbalance=0.4,
                value_imbalance=0.4,
                bid_pressure=0.7,
                ask_pressure=0.3,
                strongest_bid=99.0,
                strongest_ask=101.0,
            ),
        )
        signal = compose_signal(make_price(), None, zones)

        assert signal.direction == TrendDirection.BULLISH
        assert signal.bullish_votes == pytest.approx(2.0)

    def test_confidence_always_bounded(self, bullish_indicators, bearish_indicators):
        for indicators in (bullish_indicators, bearish_indicators, None):
            for sentiment in (-1.0, 0.0, 1.0, None):
                for level in ConfidenceLevel:
                    signal = compose_signal(make_price(confidence=level), indicators, empty_zones(), sentiment)
                    assert 0 <= signal.confidence <= 100
