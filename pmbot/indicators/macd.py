"""
MACD - fast/slow EMA spread with a signal line.

Feeds the histogram and its bar-to-bar change into the direction score.
"""

from dataclasses import dataclass

from .moving_averages import ema_series


@dataclass
class MACDResult:
    """MACD values at the latest bar."""

    macd_line: float  # Fast EMA - Slow EMA
    signal_line: float  # EMA of MACD line
    histogram: float  # MACD line - Signal line
    hist_delta: float | None = None  # Histogram change since the previous bar

    @property
    def is_bullish(self) -> bool:
        """True if MACD is above signal line."""
        return self.histogram > 0

    def to_dict(self) -> dict:
        return {
            "macd": self.macd_line,
            "signal": self.signal_line,
            "hist": self.histogram,
            "hist_delta": self.hist_delta,
        }


def macd(
    prices: list[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult | None:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    MACD Line = Fast EMA - Slow EMA
    Signal Line = EMA of the MACD line series
    Histogram = MACD Line - Signal Line

    The MACD line series is built from running EMAs, so the signal line is
    the same value a from-scratch recomputation at every prefix would give.

    Args:
        prices: List of prices (most recent last)
        fast: Fast EMA period (default 12)
        slow: Slow EMA period (default 26)
        signal: Signal line EMA period (default 9)

    Returns:
        MACDResult, or None with fewer than slow + signal prices.
        hist_delta is None until one more price is available.
    """
    if fast <= 0 or slow <= 0 or signal <= 0:
        return None

    if len(prices) < slow + signal:
        return None

    fast_ema = ema_series(prices, fast)
    slow_ema = ema_series(prices, slow)

    # MACD line exists once both EMAs do
    macd_line_series = [
        f - s for f, s in zip(fast_ema, slow_ema) if f is not None and s is not None
    ]

    signal_series = ema_series(macd_line_series, signal)
    if not signal_series or signal_series[-1] is None:
        return None

    current_macd = macd_line_series[-1]
    current_signal = signal_series[-1]
    histogram = current_macd - current_signal

    hist_delta = None
    if len(prices) >= slow + signal + 1 and signal_series[-2] is not None:
        prev_histogram = macd_line_series[-2] - signal_series[-2]
        hist_delta = histogram - prev_histogram

    return MACDResult(
        macd_line=current_macd,
        signal_line=current_signal,
        histogram=histogram,
        hist_delta=hist_delta,
    )
