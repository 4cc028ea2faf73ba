"""
VWAP Indicator - Volume-Weighted Average Price.

Cumulative sum of (typical price * volume) divided by cumulative volume
over the session, where typical price = (high + low + close) / 3.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pmbot.core.models import Candle


def session_vwap(candles: list["Candle"]) -> float | None:
    """
    Calculate the session VWAP over all candles.

    Returns:
        VWAP or None if candles is empty or total volume is 0
    """
    pv_sum = 0.0
    v_sum = 0.0
    for candle in candles:
        pv_sum += candle.typical_price * candle.volume
        v_sum += candle.volume

    if v_sum == 0:
        return None

    return pv_sum / v_sum


def vwap_series(candles: list["Candle"]) -> list[float | None]:
    """
    Running VWAP: element i is the session VWAP of candles[: i + 1].

    Uses cumulative sums, so the whole series is a single pass.
    Entries are None while cumulative volume is still 0.
    """
    result: list[float | None] = []
    pv_sum = 0.0
    v_sum = 0.0

    for candle in candles:
        pv_sum += candle.typical_price * candle.volume
        v_sum += candle.volume
        result.append(pv_sum / v_sum if v_sum != 0 else None)

    return result


def count_crosses(prices: list[float], vwaps: list[float | None]) -> int:
    """
    Count how many times price crosses the VWAP series.

    A cross is a flip of the (price above VWAP) flag between adjacent
    samples. A missing VWAP value counts as "not above".

    Returns:
        Number of crosses, 0 if the lists differ in length
    """
    if len(prices) != len(vwaps):
        return 0

    above = [v is not None and p > v for p, v in zip(prices, vwaps)]
    return sum(1 for before, after in zip(above, above[1:]) if before != after)
