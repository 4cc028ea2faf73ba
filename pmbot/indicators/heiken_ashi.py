"""
Heiken Ashi Indicator - smoothed candlesticks.

Averages open/high/low/close so trends read as runs of same-colored candles.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pmbot.core.models import Candle


@dataclass(frozen=True)
class HeikenAshiCandle:
    """A synthetic Heiken Ashi candle."""

    open: float
    high: float
    low: float
    close: float
    is_green: bool

    @property
    def body(self) -> float:
        """Absolute distance between HA open and close."""
        return abs(self.close - self.open)


@dataclass(frozen=True)
class CandleRun:
    """Trailing run of same-colored candles."""

    color: str | None  # "green", "red", or None for no candles
    count: int


def heiken_ashi(candles: list["Candle"]) -> list[HeikenAshiCandle]:
    """
    Convert regular candles into Heiken Ashi candles.

    ha_close = (open + high + low + close) / 4
    ha_open  = (prev ha_open + prev ha_close) / 2, first bar (open + close) / 2
    ha_high  = max(high, ha_open, ha_close)
    ha_low   = min(low, ha_open, ha_close)

    Args:
        candles: OHLC candles (oldest first)

    Returns:
        One HeikenAshiCandle per input candle
    """
    result: list[HeikenAshiCandle] = []

    for candle in candles:
        ha_close = (candle.open + candle.high + candle.low + candle.close) / 4

        if result:
            prev = result[-1]
            ha_open = (prev.open + prev.close) / 2
        else:
            ha_open = (candle.open + candle.close) / 2

        result.append(
            HeikenAshiCandle(
                open=ha_open,
                high=max(candle.high, ha_open, ha_close),
                low=min(candle.low, ha_open, ha_close),
                close=ha_close,
                is_green=ha_close >= ha_open,
            )
        )

    return result


def count_consecutive(ha_candles: list[HeikenAshiCandle]) -> CandleRun:
    """Count same-colored candles scanning back from the most recent one."""
    if not ha_candles:
        return CandleRun(color=None, count=0)

    target = ha_candles[-1].is_green
    count = 0
    for candle in reversed(ha_candles):
        if candle.is_green != target:
            break
        count += 1

    return CandleRun(color="green" if target else "red", count=count)
