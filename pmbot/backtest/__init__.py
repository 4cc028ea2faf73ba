"""
Backtest Module - replay recorded prediction-market ticks through a strategy.

Orchestrates the flow: Price Store → Strategy → Signals → Position Manager → Metrics
"""

from .costs import (
    ArbitrageEstimate,
    CostBreakdown,
    CostConfig,
    MarketContext,
    OrderSide,
    RoundTripEstimate,
    apply_costs,
    calculate_fees,
    calculate_slippage,
    calculate_spread_cost,
    context_from_tick,
    estimate_arbitrage_costs,
    estimate_round_trip_costs,
)
from .models import BacktestConfig, BacktestError, BacktestResult, Trade
from .position_manager import (
    ClosedPosition,
    InsufficientFundsError,
    PortfolioState,
    Position,
    PositionError,
    PositionKind,
    PositionManager,
    PositionNotFoundError,
)
from .engine import BacktestEngine, EquityTracker, infer_trades, run_backtest

__all__ = [
    # Engine
    "BacktestEngine",
    "EquityTracker",
    "infer_trades",
    "run_backtest",
    # Models
    "BacktestConfig",
    "BacktestError",
    "BacktestResult",
    "Trade",
    # Positions
    "ClosedPosition",
    "InsufficientFundsError",
    "PortfolioState",
    "Position",
    "PositionError",
    "PositionKind",
    "PositionManager",
    "PositionNotFoundError",
    # Costs
    "ArbitrageEstimate",
    "CostBreakdown",
    "CostConfig",
    "MarketContext",
    "OrderSide",
    "RoundTripEstimate",
    "apply_costs",
    "calculate_fees",
    "calculate_slippage",
    "calculate_spread_cost",
    "context_from_tick",
    "estimate_arbitrage_costs",
    "estimate_round_trip_costs",
]
