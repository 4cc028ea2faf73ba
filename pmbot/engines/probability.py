"""
Probability Engine - direction scoring from indicator values.

Each bullish or bearish condition adds weight to its side, starting from
one point each. raw_up is the up share of the total.

| Condition                         | Weight    |
|-----------------------------------|-----------|
| Price above / below VWAP          | +2        |
| VWAP slope up / down              | +2        |
| RSI > 55 rising / RSI < 45 falling| +2        |
| MACD histogram expanding          | +2        |
| MACD line above / below zero      | +1        |
| 2+ same-color Heiken Ashi candles | +1        |
| Failed VWAP reclaim               | +3 down   |
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pmbot.indicators.snapshot import IndicatorSnapshot

RSI_BULL_LEVEL = 55
RSI_BEAR_LEVEL = 45
MIN_HEIKEN_RUN = 2
FAILED_RECLAIM_WEIGHT = 3


@dataclass(frozen=True)
class DirectionScore:
    """Weighted up/down scores."""

    up_score: int
    down_score: int
    raw_up: float

    @property
    def raw_down(self) -> float:
        return 1.0 - self.raw_up


@dataclass(frozen=True)
class TimeAdjustedProbability:
    """Model probability after decaying toward 50/50 near expiry."""

    time_decay: float
    adjusted_up: float
    adjusted_down: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def score_direction(snapshot: "IndicatorSnapshot") -> DirectionScore:
    """
    Score the probability of an up move from an indicator snapshot.

    Missing indicator values contribute nothing.

    Args:
        snapshot: Indicator values for the current candle window

    Returns:
        DirectionScore with raw_up = up / (up + down)
    """
    up = 1
    down = 1

    price, vwap = snapshot.price, snapshot.vwap
    if price is not None and vwap is not None:
        if price > vwap:
            up += 2
        elif price < vwap:
            down += 2

    if snapshot.vwap_slope is not None:
        if snapshot.vwap_slope > 0:
            up += 2
        elif snapshot.vwap_slope < 0:
            down += 2

    rsi, rsi_slope = snapshot.rsi, snapshot.rsi_slope
    if rsi is not None and rsi_slope is not None:
        if rsi > RSI_BULL_LEVEL and rsi_slope > 0:
            up += 2
        elif rsi < RSI_BEAR_LEVEL and rsi_slope < 0:
            down += 2

    macd = snapshot.macd
    # Line bias only counts alongside a usable histogram delta
    if macd is not None and macd.hist_delta is not None:
        if macd.histogram > 0 and macd.hist_delta > 0:
            up += 2
        elif macd.histogram < 0 and macd.hist_delta < 0:
            down += 2

        if macd.macd_line > 0:
            up += 1
        elif macd.macd_line < 0:
            down += 1

    if snapshot.heiken_color is not None and snapshot.heiken_count >= MIN_HEIKEN_RUN:
        if snapshot.heiken_color == "green":
            up += 1
        elif snapshot.heiken_color == "red":
            down += 1

    if snapshot.failed_vwap_reclaim:
        down += FAILED_RECLAIM_WEIGHT

    total = up + down
    raw_up = up / total if total > 0 else 0.5

    return DirectionScore(up_score=up, down_score=down, raw_up=raw_up)


def apply_time_awareness(
    raw_up: float,
    remaining_minutes: float,
    window_minutes: float,
) -> TimeAdjustedProbability:
    """
    Decay the raw probability toward 50/50 as the window runs out.

    decay = clamp(remaining / window, 0, 1)
    adjusted_up = 0.5 + (raw_up - 0.5) * decay

    Returns:
        TimeAdjustedProbability; (0.0, 0.5, 0.5) for a non-positive window
    """
    if window_minutes <= 0:
        return TimeAdjustedProbability(time_decay=0.0, adjusted_up=0.5, adjusted_down=0.5)

    time_decay = _clamp(remaining_minutes / window_minutes, 0.0, 1.0)
    adjusted_up = _clamp(0.5 + (raw_up - 0.5) * time_decay, 0.0, 1.0)

    return TimeAdjustedProbability(
        time_decay=time_decay,
        adjusted_up=adjusted_up,
        adjusted_down=1.0 - adjusted_up,
    )
