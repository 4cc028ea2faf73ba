"""
RSI Indicator - Relative Strength Index calculation.

Measures the speed and magnitude of recent price changes
to evaluate overbought or oversold conditions.
"""


def rsi(prices: list[float], period: int = 14) -> float | None:
    """
    Calculate Relative Strength Index over the last period + 1 prices.

    RSI = 100 - (100 / (1 + RS))
    RS = Average Gain / Average Loss over the period

    Args:
        prices: List of prices (most recent last), needs period + 1 prices minimum
        period: Lookback period (default 14)

    Returns:
        RSI value (0-100) or None if insufficient data
    """
    if period <= 0 or len(prices) < period + 1:
        return None

    recent = prices[-(period + 1) :]
    gains = 0.0
    losses = 0.0
    for prev, cur in zip(recent, recent[1:]):
        change = cur - prev
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period

    if avg_loss == 0:
        return 100.0
    if avg_gain == 0:
        return 0.0

    rs = avg_gain / avg_loss
    return min(100.0, max(0.0, 100.0 - 100.0 / (1.0 + rs)))


def rsi_series(prices: list[float], period: int = 14) -> list[float | None]:
    """
    Running RSI: element i is rsi(prices[: i + 1], period).

    Only the trailing period + 1 prices matter, so each point looks at
    that window instead of the whole prefix.

    Returns:
        List aligned with prices, None until there is enough data
    """
    if period <= 0:
        return []

    result: list[float | None] = []
    for i in range(len(prices)):
        if i < period:
            result.append(None)
        else:
            result.append(rsi(prices[i - period : i + 1], period))

    return result
