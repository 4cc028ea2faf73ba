"""
Moving Average Indicators - SMA, EMA and series slope.

Pure math functions over value sequences (most recent last).
"""


def sma(values: list[float], period: int) -> float | None:
    """
    Calculate Simple Moving Average of the last `period` values.

    Args:
        values: List of values (most recent last)
        period: Number of periods to average

    Returns:
        SMA value or None if insufficient data
    """
    if len(values) < period or period <= 0:
        return None

    return sum(values[-period:]) / period


def ema(values: list[float], period: int) -> float | None:
    """
    Calculate Exponential Moving Average.

    Uses multiplier k = 2 / (period + 1), seeded with the first value:
    EMA_t = value_t * k + EMA_{t-1} * (1 - k)

    Args:
        values: List of values (most recent last)
        period: Number of periods for EMA calculation

    Returns:
        Current EMA value or None if fewer than `period` values
    """
    if len(values) < period or period <= 0:
        return None

    return ema_series(values, period)[-1]


def ema_series(values: list[float], period: int) -> list[float | None]:
    """
    Calculate the running EMA for every prefix of values.

    Element i equals ema(values[: i + 1], period), computed in a single
    pass. Entries are None until `period` values have been seen.

    Args:
        values: List of values (most recent last)
        period: Number of periods for EMA calculation

    Returns:
        List aligned with values
    """
    if period <= 0:
        return []

    multiplier = 2 / (period + 1)
    result: list[float | None] = []
    current: float | None = None

    for i, value in enumerate(values):
        if current is None:
            current = float(value)
        else:
            current = value * multiplier + current * (1 - multiplier)
        result.append(current if i + 1 >= period else None)

    return result


def slope(values: list[float | None], points: int) -> float | None:
    """
    Slope of the last `points` values: (last - first) / (points - 1).

    Returns:
        Slope or None if points < 2, too few values, or an endpoint is missing
    """
    if points < 2 or len(values) < points:
        return None

    window = values[-points:]
    first, last = window[0], window[-1]
    if first is None or last is None:
        return None

    return (last - first) / (points - 1)
