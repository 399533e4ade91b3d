"""
Technical Indicator Calculations

Pure NumPy implementations of technical indicators.
Every function returns an array aligned with its input, NaN where the
window is not yet full. Inputs are never modified.
"""

import numpy as np
from typing import Optional


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average."""
    result = np.full(len(data), np.nan)
    if period <= 0 or len(data) < period:
        return result

    window_sums = np.convolve(data, np.ones(period), mode="valid")
    result[period - 1 :] = window_sums / period
    return result


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """
    Exponential Moving Average.

    Seeded with the simple mean of the first `period` values, then
    ema = price * k + ema * (1 - k) with k = 2 / (period + 1).
    """
    result = np.full(len(data), np.nan)
    if period <= 0 or len(data) < period:
        return result

    multiplier = 2 / (period + 1)
    result[period - 1] = np.mean(data[:period])

    for i in range(period, len(data)):
        result[i] = (data[i] - result[i - 1]) * multiplier + result[i - 1]

    return result


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def rsi(closes: np.ndarray, period: int = 14) -> np.ndarray:
    """Relative Strength Index with Wilder's smoothing. Needs period + 1 closes."""
    result = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return result

    deltas = np.diff(closes)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = np.mean(gains[:period])
    avg_loss = np.mean(losses[:period])
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def macd(
    closes: np.ndarray,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence).

    The signal line is an EMA over the MACD line history, starting at the
    first bar where the slow EMA exists. Needs slow + signal closes.

    Returns: (macd_line, signal_line, histogram)
    """
    n = len(closes)
    if n < slow_period + signal_period:
        nan_arr = np.full(n, np.nan)
        return nan_arr, nan_arr.copy(), nan_arr.copy()

    macd_line = ema(closes, fast_period) - ema(closes, slow_period)

    signal_line = np.full(n, np.nan)
    signal_line[slow_period - 1 :] = ema(macd_line[slow_period - 1 :], signal_period)

    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def stochastic(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Stochastic Oscillator. A flat window reads 50.

    Returns: (k, d)
    """
    k = np.full(len(closes), np.nan)
    if len(closes) < k_period:
        return k, np.full(len(closes), np.nan)

    for i in range(k_period - 1, len(closes)):
        highest_high = np.max(highs[i - k_period + 1 : i + 1])
        lowest_low = np.min(lows[i - k_period + 1 : i + 1])

        if highest_high == lowest_low:
            k[i] = 50.0
        else:
            k[i] = ((closes[i] - lowest_low) / (highest_high - lowest_low)) * 100

    d = np.full(len(closes), np.nan)
    d[k_period - 1 :] = sma(k[k_period - 1 :], d_period)

    return np.clip(k, 0, 100), np.clip(d, 0, 100)


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True range per bar. The first bar has no previous close and stays NaN."""
    tr = np.full(len(closes), np.nan)
    if len(closes) < 2:
        return tr

    prev_close = closes[:-1]
    tr[1:] = np.maximum.reduce([
        highs[1:] - lows[1:],
        np.abs(highs[1:] - prev_close),
        np.abs(lows[1:] - prev_close),
    ])
    return tr


def atr(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> np.ndarray:
    """Average True Range: simple mean of the last `period` true ranges."""
    result = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return result

    result[1:] = sma(true_range(highs, lows, closes)[1:], period)
    return result


def bollinger_bands(
    closes: np.ndarray, period: int = 20, std_dev: float = 2.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands over the population standard deviation.

    A zero-variance window collapses the bands onto the middle and reads
    percent_b as 0.5.

    Returns: (upper, middle, lower, bandwidth, percent_b)
    """
    n = len(closes)
    middle = sma(closes, period)

    std = np.full(n, np.nan)
    for i in range(period - 1, n):
        std[i] = np.std(closes[i - period + 1 : i + 1])

    upper = middle + (std_dev * std)
    lower = middle - (std_dev * std)

    with np.errstate(divide="ignore", invalid="ignore"):
        bandwidth = (upper - lower) / middle
        width = upper - lower
        percent_b = np.where(width > 0, (closes - lower) / width, 0.5)
    percent_b[np.isnan(middle)] = np.nan

    return upper, middle, lower, bandwidth, percent_b


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_last_valid(arr: np.ndarray) -> Optional[float]:
    """Last value if it is finite, else None. Never returns NaN or inf."""
    if len(arr) == 0:
        return None
    value = float(arr[-1])
    return value if np.isfinite(value) else None


def classify_histogram(histogram: float, deadband: float = 0.5) -> str:
    """BULLISH above +deadband, BEARISH below -deadband, else NEUTRAL."""
    if histogram > deadband:
        return "BULLISH"
    if histogram < -deadband:
        return "BEARISH"
    return "NEUTRAL"
