"""
Indicator Engine Service Implementation

Reduces a PriceSeries to the last-bar readings of every indicator.
Pure NumPy calculations; short series produce None, never NaN.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from coinpulse.schemas.market import PriceSeries
from coinpulse.schemas.indicators import (
    BollingerBandsData,
    IndicatorSet,
    MACDData,
    TrendDirection,
)
from coinpulse.services.indicators.interface import IndicatorServiceInterface
from coinpulse.services.indicators.calculations import (
    atr,
    bollinger_bands,
    classify_histogram,
    ema,
    get_last_valid,
    macd,
    rsi,
    sma,
    stochastic,
)

logger = logging.getLogger(__name__)

DEFAULT_EMA_PERIODS = (12, 26, 50, 200)
DEFAULT_SMA_PERIODS = (20, 50)


class IndicatorService(IndicatorServiceInterface):
    """
    Indicator Engine Service.

    Calculates technical indicators for market analysis.
    All calculations are deterministic and reproducible.
    """

    def __init__(
        self,
        ema_periods: Sequence[int] = DEFAULT_EMA_PERIODS,
        sma_periods: Sequence[int] = DEFAULT_SMA_PERIODS,
        rsi_period: int = 14,
        macd_periods: tuple[int, int, int] = (12, 26, 9),
        macd_deadband: float = 0.5,
        bollinger_period: int = 20,
        bollinger_std: float = 2.0,
        atr_period: int = 14,
        stochastic_period: int = 14,
    ):
        self.ema_periods = tuple(ema_periods)
        self.sma_periods = tuple(sma_periods)
        self.rsi_period = rsi_period
        self.macd_periods = macd_periods
        self.macd_deadband = macd_deadband
        self.bollinger_period = bollinger_period
        self.bollinger_std = bollinger_std
        self.atr_period = atr_period
        self.stochastic_period = stochastic_period

    @property
    def name(self) -> str:
        return "IndicatorService"

    async def execute(self, input_data: PriceSeries) -> IndicatorSet:
        return self.calculate(input_data)

    def calculate(self, series: PriceSeries) -> IndicatorSet:
        """Calculate every indicator the series is long enough for."""
        closes = np.array(series.closes, dtype=float)
        highs = np.array(series.highs, dtype=float) if series.highs else None
        lows = np.array(series.lows, dtype=float) if series.lows else None

        stoch_k, stoch_d = self._calculate_stochastic(closes, highs, lows)

        result = IndicatorSet(
            bars=len(closes),
            last_close=float(closes[-1]) if len(closes) else None,
            rsi=get_last_valid(rsi(closes, self.rsi_period)),
            ema={p: get_last_valid(ema(closes, p)) for p in self.ema_periods},
            sma={p: get_last_valid(sma(closes, p)) for p in self.sma_periods},
            macd=self._calculate_macd(closes),
            bollinger=self._calculate_bollinger(closes),
            atr=self._calculate_atr(closes, highs, lows),
            stochastic_k=stoch_k,
            stochastic_d=stoch_d,
        )

        logger.debug(
            f"Indicators over {len(closes)} bars: rsi={result.rsi}, "
            f"macd={'yes' if result.macd else 'no'}, atr={result.atr}"
        )
        return result

    def _calculate_macd(self, closes: np.ndarray) -> Optional[MACDData]:
        fast, slow, signal = self.macd_periods
        line, signal_line, histogram = macd(closes, fast, slow, signal)

        line_value = get_last_valid(line)
        signal_value = get_last_valid(signal_line)
        if line_value is None or signal_value is None:
            return None

        hist_value = line_value - signal_value
        return MACDData(
            line=line_value,
            signal=signal_value,
            histogram=hist_value,
            trend=TrendDirection(classify_histogram(hist_value, self.macd_deadband)),
        )

    def _calculate_bollinger(self, closes: np.ndarray) -> Optional[BollingerBandsData]:
        upper, middle, lower, bandwidth, percent_b = bollinger_bands(
            closes, self.bollinger_period, self.bollinger_std
        )

        middle_value = get_last_valid(middle)
        if middle_value is None:
            return None

        # Clamp float noise so upper >= middle >= lower holds exactly
        return BollingerBandsData(
            upper=max(get_last_valid(upper), middle_value),
            middle=middle_value,
            lower=min(get_last_valid(lower), middle_value),
            bandwidth=get_last_valid(bandwidth),
            percent_b=get_last_valid(percent_b),
        )

    def _calculate_atr(
        self,
        closes: np.ndarray,
        highs: Optional[np.ndarray],
        lows: Optional[np.ndarray],
    ) -> Optional[float]:
        if highs is None or lows is None:
            return None
        return get_last_valid(atr(highs, lows, closes, self.atr_period))

    def _calculate_stochastic(
        self,
        closes: np.ndarray,
        highs: Optional[np.ndarray],
        lows: Optional[np.ndarray],
    ) -> tuple[Optional[float], Optional[float]]:
        if highs is None or lows is None:
            return None, None
        k, d = stochastic(highs, lows, closes, self.stochastic_period)
        return get_last_valid(k), get_last_valid(d)

    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        return True
