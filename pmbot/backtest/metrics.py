"""
Performance Metrics - aggregate statistics over a trade list.

Every function takes a sequence of trades, each either a Trade or a mapping
with a "return" key (fractional return, 0.1 = +10%). A trade without a
numeric return counts as 0.0.
"""

from collections.abc import Mapping, Sequence
from typing import Any

# Profit factor reported when there are wins but no losses
PROFIT_FACTOR_CAP = 999.99


def trade_return(trade: Any) -> float:
    """Fractional return of a Trade or trade mapping."""
    if isinstance(trade, Mapping):
        value = trade.get("return")
    else:
        value = getattr(trade, "return_", None)

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _returns(trades: Sequence[Any]) -> list[float]:
    return [trade_return(t) for t in trades]


def total_return(trades: Sequence[Any]) -> float:
    """Compounded return: product of (1 + r) minus 1."""
    equity = 1.0
    for r in _returns(trades):
        equity *= 1 + r
    return equity - 1.0


def count_wins(trades: Sequence[Any]) -> int:
    return sum(1 for r in _returns(trades) if r > 0)


def count_losses(trades: Sequence[Any]) -> int:
    return sum(1 for r in _returns(trades) if r < 0)


def win_rate(trades: Sequence[Any]) -> float:
    """Fraction of trades with a positive return."""
    if not trades:
        return 0.0
    return count_wins(trades) / len(trades)


def avg_win(trades: Sequence[Any]) -> float:
    wins = [r for r in _returns(trades) if r > 0]
    return sum(wins) / len(wins) if wins else 0.0


def avg_loss(trades: Sequence[Any]) -> float:
    """Average losing return (negative), 0.0 without losses."""
    losses = [r for r in _returns(trades) if r < 0]
    return sum(losses) / len(losses) if losses else 0.0


def max_drawdown(trades: Sequence[Any]) -> float:
    """
    Largest peak-to-trough decline of the compounded equity path.

    Equity starts at 1.0 and is multiplied by (1 + r) per trade.

    Returns:
        Drawdown as a fraction of the peak (0.25 = 25%)
    """
    equity = 1.0
    peak = 1.0
    max_dd = 0.0

    for r in _returns(trades):
        equity *= 1 + r
        peak = max(peak, equity)
        if peak > 0:
            max_dd = max(max_dd, (peak - equity) / peak)

    return max_dd


def profit_factor(trades: Sequence[Any]) -> float:
    """
    Gross profit / gross loss.

    Returns PROFIT_FACTOR_CAP with wins and no losses, 0.0 with neither.
    """
    returns = _returns(trades)
    gross_profit = sum(r for r in returns if r > 0)
    gross_loss = abs(sum(r for r in returns if r < 0))

    if gross_loss > 0:
        return gross_profit / gross_loss
    return PROFIT_FACTOR_CAP if gross_profit > 0 else 0.0


def sharpe_ratio(trades: Sequence[Any], risk_free_rate: float = 0.0) -> float:
    """
    Per-trade Sharpe ratio: (mean return - risk free) / sample std-dev.

    Not annualized. Returns 0.0 with fewer than 2 trades or zero variance.
    """
    returns = _returns(trades)
    n = len(returns)
    if n < 2:
        return 0.0

    mean_return = sum(returns) / n
    variance = sum((r - mean_return) ** 2 for r in returns) / (n - 1)
    std_return = variance**0.5

    if std_return == 0:
        return 0.0

    return (mean_return - risk_free_rate) / std_return


def expectancy(trades: Sequence[Any]) -> float:
    """Expected return per trade: win_rate * avg_win - loss_rate * |avg_loss|."""
    wr = win_rate(trades)
    return wr * avg_win(trades) - (1 - wr) * abs(avg_loss(trades))


def best_trade(trades: Sequence[Any]) -> Any:
    return max(trades, key=trade_return, default=None)


def worst_trade(trades: Sequence[Any]) -> Any:
    return min(trades, key=trade_return, default=None)


def empty_metrics() -> dict[str, Any]:
    """Metrics for a run without trades."""
    return {
        "total_trades": 0,
        "total_return": 0.0,
        "win_rate": 0.0,
        "avg_win": 0.0,
        "avg_loss": 0.0,
        "max_drawdown": 0.0,
        "profit_factor": 0.0,
        "sharpe_ratio": 0.0,
        "expectancy": 0.0,
        "best_trade": None,
        "worst_trade": None,
        "winning_trades": 0,
        "losing_trades": 0,
    }


def calculate(trades: Sequence[Any], risk_free_rate: float = 0.0) -> dict[str, Any]:
    """
    Calculate all metrics for a trade list.

    Args:
        trades: Trades in execution order
        risk_free_rate: Per-trade risk-free return for the Sharpe ratio

    Returns:
        Dict of metrics (empty_metrics() when there are no trades)
    """
    if not trades:
        return empty_metrics()

    return {
        "total_trades": len(trades),
        "total_return": total_return(trades),
        "win_rate": win_rate(trades),
        "avg_win": avg_win(trades),
        "avg_loss": avg_loss(trades),
        "max_drawdown": max_drawdown(trades),
        "profit_factor": profit_factor(trades),
        "sharpe_ratio": sharpe_ratio(trades, risk_free_rate),
        "expectancy": expectancy(trades),
        "best_trade": best_trade(trades),
        "worst_trade": worst_trade(trades),
        "winning_trades": count_wins(trades),
        "losing_trades": count_losses(trades),
    }
