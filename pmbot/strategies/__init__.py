"""
Trading Strategies Module.

Strategies consume price ticks and emit signals; the backtest engine turns
signals into fills. Each registry entry is a Strategy class, instantiated
on lookup so runs never share strategy objects.

Available strategies:
- mean_reversion: buy dips below the rolling average
- momentum: ride lookback returns, with a stop loss
- arbitrage: buy YES + NO when they cost less than $1
- indicator_combo: VWAP/RSI/MACD/Heiken Ashi model vs market quotes

Usage:
    from pmbot.strategies import get_strategy

    strategy = get_strategy("mean_reversion")
    print(strategy.name())  # "Mean Reversion"
    state = strategy.init({"window_size": 10})
"""

from pmbot.strategies.arbitrage import ArbitrageStrategy
from pmbot.strategies.base import Signal, SignalKind, Strategy
from pmbot.strategies.indicator_combo import IndicatorComboStrategy, analyze_historical
from pmbot.strategies.mean_reversion import MeanReversionStrategy
from pmbot.strategies.momentum import MomentumStrategy

# Registry of all strategies
_STRATEGIES: dict[str, type[Strategy]] = {
    "mean_reversion": MeanReversionStrategy,
    "momentum": MomentumStrategy,
    "arbitrage": ArbitrageStrategy,
    "indicator_combo": IndicatorComboStrategy,
}


def _key(name: str) -> str:
    return name.lower().replace(" ", "_").replace("-", "_")


def get_strategy(name: str) -> Strategy:
    """
    Get a new instance of a registered strategy by name.

    Args:
        name: Strategy name (case-insensitive, underscores/hyphens/spaces accepted)

    Returns:
        Strategy instance

    Raises:
        ValueError: If strategy not found

    Example:
        >>> strategy = get_strategy("mean_reversion")
        >>> strategy = get_strategy("Mean Reversion")  # Also works
        >>> strategy = get_strategy("mean-reversion")  # Also works
    """
    key = _key(name)
    if key not in _STRATEGIES:
        available = ", ".join(_STRATEGIES.keys())
        raise ValueError(f"Unknown strategy '{name}'. Available: {available}")

    return _STRATEGIES[key]()


def list_strategies() -> list[tuple[str, str]]:
    """
    List available strategies with descriptions.

    Returns:
        List of (name, description) tuples
    """
    return [
        ("mean_reversion", "Buy below the rolling average, sell on recovery"),
        ("momentum", "Enter on lookback return, exit on reversal or stop loss"),
        ("arbitrage", "Buy YES + NO when the pair costs less than $1"),
        ("indicator_combo", "Indicator probability model vs market quotes"),
    ]


def register_strategy(name: str, strategy: type[Strategy]) -> None:
    """
    Register a custom strategy class.

    Args:
        name: Name to register the strategy under
        strategy: Strategy subclass

    Example:
        >>> from pmbot.strategies import Signal, Strategy, register_strategy
        >>> class AlwaysHold(Strategy):
        ...     display_name = "Always Hold"
        ...     def init(self, config=None):
        ...         return {}
        ...     def on_price(self, tick, state):
        ...         return Signal.hold(), state
        >>> register_strategy("always_hold", AlwaysHold)
    """
    _STRATEGIES[_key(name)] = strategy


__all__ = [
    # Base classes
    "Signal",
    "SignalKind",
    "Strategy",
    # Registry functions
    "get_strategy",
    "list_strategies",
    "register_strategy",
    # Strategies
    "MeanReversionStrategy",
    "MomentumStrategy",
    "ArbitrageStrategy",
    "IndicatorComboStrategy",
    "analyze_historical",
]
