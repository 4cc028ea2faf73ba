"""
Regime Engine - classify market structure from price, VWAP and volume.
"""

from dataclasses import dataclass
from enum import Enum

LOW_VOLUME_RATIO = 0.6
FLAT_PRICE_PCT = 0.001
FREQUENT_CROSS_COUNT = 3


class Regime(str, Enum):
    TREND_UP = "trend_up"
    TREND_DOWN = "trend_down"
    RANGE = "range"
    CHOP = "chop"


class Bias(str, Enum):
    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class RegimeResult:
    regime: Regime
    reason: str


def _is_low_volume_flat(
    price: float,
    vwap: float,
    volume_recent: float | None,
    volume_avg: float | None,
) -> bool:
    """Thin volume while price hugs VWAP (within 0.1%)."""
    if volume_recent is None or volume_avg is None or volume_avg <= 0 or vwap == 0:
        return False

    low_volume = volume_recent < LOW_VOLUME_RATIO * volume_avg
    flat_price = abs((price - vwap) / vwap) < FLAT_PRICE_PCT
    return low_volume and flat_price


def detect_regime(
    price: float | None,
    vwap: float | None,
    vwap_slope: float | None,
    vwap_cross_count: int | None = None,
    volume_recent: float | None = None,
    volume_avg: float | None = None,
) -> RegimeResult:
    """
    Detect the current market regime.

    Checks in order: missing inputs (chop), low-volume flat (chop),
    frequent VWAP crosses (range), trend up, trend down, else range.

    Args:
        price: Current price
        vwap: Session VWAP
        vwap_slope: Slope of the VWAP series
        vwap_cross_count: Number of price/VWAP crosses in the window
        volume_recent: Recent average volume
        volume_avg: Whole-window average volume

    Returns:
        RegimeResult with the regime and a short reason code
    """
    if price is None or vwap is None or vwap_slope is None:
        return RegimeResult(Regime.CHOP, "missing_inputs")

    if _is_low_volume_flat(price, vwap, volume_recent, volume_avg):
        return RegimeResult(Regime.CHOP, "low_volume_flat")

    # Frequent crosses override any trend reading
    if vwap_cross_count is not None and vwap_cross_count >= FREQUENT_CROSS_COUNT:
        return RegimeResult(Regime.RANGE, "frequent_vwap_cross")

    above_vwap = price > vwap
    if above_vwap and vwap_slope > 0:
        return RegimeResult(Regime.TREND_UP, "price_above_vwap_slope_up")
    if not above_vwap and vwap_slope < 0:
        return RegimeResult(Regime.TREND_DOWN, "price_below_vwap_slope_down")

    return RegimeResult(Regime.RANGE, "default")


def is_tradeable(regime: Regime) -> bool:
    """Every regime except chop supports directional trades."""
    return regime != Regime.CHOP


def regime_bias(regime: Regime) -> Bias:
    if regime == Regime.TREND_UP:
        return Bias.LONG
    if regime == Regime.TREND_DOWN:
        return Bias.SHORT
    return Bias.NEUTRAL
