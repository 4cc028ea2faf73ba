"""
Position Manager - multi-position ledger for backtesting.

Tracks cash, open positions and realized P&L for one backtest run:
- Opening long/short positions and YES+NO arbitrage positions
- Scaling into and out of positions
- Marking unrealized P&L and recording the equity curve

Position sizes are in contracts; entry_cost = execution price * size.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pmbot.backtest.costs import (
    CostBreakdown,
    CostConfig,
    MarketContext,
    OrderSide,
    apply_costs,
    estimate_arbitrage_costs,
)

logger = logging.getLogger(__name__)


class PositionKind(str, Enum):
    LONG = "long"
    SHORT = "short"
    ARBITRAGE = "arbitrage"


class PositionError(Exception):
    """A ledger operation was rejected. The portfolio is left unchanged."""

    reason = "position_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientFundsError(PositionError):
    reason = "insufficient_funds"


class PositionNotFoundError(PositionError):
    reason = "position_not_found"


@dataclass
class Position:
    """
    An open position.

    Arbitrage positions hold both outcome legs: entry_price is the combined
    leg price and net_spread is the profit per contract locked at entry.
    """

    id: int
    kind: PositionKind
    entry_price: float
    size: float
    entry_timestamp: datetime | None
    entry_cost: float
    current_price: float
    unrealized_pnl: float = 0.0
    cost_breakdown: CostBreakdown | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # Arbitrage legs
    yes_entry_price: float | None = None
    no_entry_price: float | None = None
    gross_spread: float | None = None
    net_spread: float | None = None

    @property
    def is_arbitrage(self) -> bool:
        return self.kind == PositionKind.ARBITRAGE

    @property
    def market_value(self) -> float:
        """Entry cost plus unrealized P&L."""
        return self.entry_cost + self.unrealized_pnl

    def pnl_at(self, price: float) -> float:
        """P&L if the whole position were valued at price."""
        if self.kind == PositionKind.ARBITRAGE:
            return (self.net_spread or 0.0) * self.size
        if self.entry_price <= 0:
            return 0.0
        change = (price - self.entry_price) / self.entry_price * self.entry_cost
        return change if self.kind == PositionKind.LONG else -change


@dataclass(frozen=True)
class ClosedPosition:
    """A position after it left the ledger."""

    position: Position
    exit_price: float
    exit_timestamp: datetime | None
    realized_pnl: float

    @property
    def id(self) -> int:
        return self.position.id

    @property
    def return_pct(self) -> float:
        """Realized P&L as a fraction of entry cost."""
        if self.position.entry_cost == 0:
            return 0.0
        return self.realized_pnl / self.position.entry_cost


@dataclass
class PortfolioState:
    """Cash, open positions (in open order) and the equity curve of one run."""

    cash: float
    positions: dict[int, Position] = field(default_factory=dict)
    next_id: int = 1
    total_realized_pnl: float = 0.0
    equity_curve: list[float] = field(default_factory=list)


class PositionManager:
    """
    Multi-position ledger.

    Owns one PortfolioState. Rejected operations raise a PositionError
    subclass and leave the state untouched.
    """

    def __init__(self, initial_capital: float, cost_config: CostConfig | None = None) -> None:
        """
        Initialize the ledger.

        Args:
            initial_capital: Starting cash
            cost_config: Trading cost model; None fills at the quoted price
        """
        if initial_capital <= 0:
            raise ValueError("initial_capital must be positive")

        self.initial_capital = initial_capital
        self.cost_config = cost_config
        self.state = PortfolioState(cash=initial_capital, equity_curve=[initial_capital])

    # =========================================================================
    # Fills
    # =========================================================================

    def _fill(
        self,
        price: float,
        side: OrderSide,
        size: float,
        context: MarketContext | None,
    ) -> tuple[float, CostBreakdown | None]:
        if self.cost_config is None:
            return price, None
        return apply_costs(price, side, size, self.cost_config, context)

    def _get(self, position_id: int) -> Position:
        position = self.state.positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(f"Position {position_id} not found")
        return position

    def _add(self, position: Position) -> Position:
        self.state.cash -= position.entry_cost
        self.state.positions[position.id] = position
        self.state.next_id += 1
        return position

    # =========================================================================
    # Opening
    # =========================================================================

    def open_position(
        self,
        kind: PositionKind | str,
        price: float,
        size: float,
        timestamp: datetime | None = None,
        context: MarketContext | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Position:
        """
        Open a long or short position at the quoted price plus buy costs.

        Raises:
            InsufficientFundsError: If the entry cost exceeds available cash
        """
        kind = PositionKind(kind)
        if kind == PositionKind.ARBITRAGE:
            raise ValueError("Use open_arbitrage_position for arbitrage positions")
        if size <= 0:
            raise ValueError("size must be positive")

        execution_price, breakdown = self._fill(price, OrderSide.BUY, size, context)
        entry_cost = execution_price * size

        if entry_cost > self.state.cash:
            raise InsufficientFundsError(
                f"Entry cost {entry_cost:.4f} exceeds cash {self.state.cash:.4f}"
            )

        position = self._add(
            Position(
                id=self.state.next_id,
                kind=kind,
                entry_price=execution_price,
                size=size,
                entry_timestamp=timestamp,
                entry_cost=entry_cost,
                current_price=execution_price,
                cost_breakdown=breakdown,
                metadata=metadata or {},
            )
        )
        logger.debug(f"Opened {kind.value} #{position.id}: {size} @ {execution_price:.4f}")
        return position

    def open_arbitrage_position(
        self,
        yes_price: float,
        no_price: float,
        size: float,
        timestamp: datetime | None = None,
        context: MarketContext | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Position:
        """
        Buy both YES and NO legs.

        The spread is locked at entry: unrealized P&L is preset to
        net_spread * size and does not move with later prices.

        Raises:
            InsufficientFundsError: If the combined entry cost exceeds cash
        """
        if size <= 0:
            raise ValueError("size must be positive")

        breakdown = None
        if self.cost_config is None:
            yes_exec, no_exec = yes_price, no_price
        else:
            estimate = estimate_arbitrage_costs(
                yes_price, no_price, size, self.cost_config, context
            )
            yes_exec, no_exec = estimate.yes_execution_price, estimate.no_execution_price
            breakdown = CostBreakdown(
                base_price=yes_price + no_price,
                execution_price=estimate.actual_entry_cost,
                slippage_pct=max(estimate.yes_costs.slippage_pct, estimate.no_costs.slippage_pct),
                slippage_amount=estimate.yes_costs.slippage_amount + estimate.no_costs.slippage_amount,
                spread_cost=estimate.yes_costs.spread_cost + estimate.no_costs.spread_cost,
                fee_amount=estimate.yes_costs.fee_amount + estimate.no_costs.fee_amount,
                total_cost=estimate.total_cost,
            )

        combined = yes_exec + no_exec
        entry_cost = combined * size

        if entry_cost > self.state.cash:
            raise InsufficientFundsError(
                f"Entry cost {entry_cost:.4f} exceeds cash {self.state.cash:.4f}"
            )

        gross_spread = 1.0 - (yes_price + no_price)
        net_spread = 1.0 - combined

        position = self._add(
            Position(
                id=self.state.next_id,
                kind=PositionKind.ARBITRAGE,
                entry_price=combined,
                size=size,
                entry_timestamp=timestamp,
                entry_cost=entry_cost,
                current_price=combined,
                unrealized_pnl=net_spread * size,
                cost_breakdown=breakdown,
                metadata=metadata or {},
                yes_entry_price=yes_exec,
                no_entry_price=no_exec,
                gross_spread=gross_spread,
                net_spread=net_spread,
            )
        )
        logger.debug(
            f"Opened arbitrage #{position.id}: {size} @ YES {yes_exec:.4f} + NO {no_exec:.4f} "
            f"(net spread {net_spread:.4f})"
        )
        return position

    # =========================================================================
    # Closing
    # =========================================================================

    def close_position(
        self,
        position_id: int,
        price: float,
        timestamp: datetime | None = None,
        context: MarketContext | None = None,
    ) -> ClosedPosition:
        """
        Close a position at the quoted price minus sell costs.

        Returns entry_cost + realized P&L to cash.

        Raises:
            PositionNotFoundError: If no open position has this id
        """
        position = self._get(position_id)

        execution_price, _ = self._fill(price, OrderSide.SELL, position.size, context)
        realized_pnl = position.pnl_at(execution_price)

        self.state.cash += position.entry_cost + realized_pnl
        self.state.total_realized_pnl += realized_pnl
        del self.state.positions[position_id]

        logger.debug(f"Closed #{position_id} @ {execution_price:.4f}, P&L {realized_pnl:+.4f}")
        return ClosedPosition(
            position=position,
            exit_price=execution_price,
            exit_timestamp=timestamp,
            realized_pnl=realized_pnl,
        )

    def close_all_positions(
        self,
        price: float,
        timestamp: datetime | None = None,
        context: MarketContext | None = None,
    ) -> list[ClosedPosition]:
        """Close every open position, oldest first."""
        return [
            self.close_position(position_id, price, timestamp, context)
            for position_id in list(self.state.positions)
        ]

    # =========================================================================
    # Scaling
    # =========================================================================

    def scale_in(
        self,
        position_id: int,
        additional_size: float,
        price: float,
        context: MarketContext | None = None,
    ) -> Position:
        """
        Add size to a long/short position, averaging the entry price.

        Raises:
            PositionNotFoundError: If no open position has this id
            InsufficientFundsError: If the added cost exceeds cash
        """
        position = self._get(position_id)
        if position.is_arbitrage:
            raise ValueError("Arbitrage positions cannot be scaled in")
        if additional_size <= 0:
            raise ValueError("additional_size must be positive")

        execution_price, _ = self._fill(price, OrderSide.BUY, additional_size, context)
        additional_cost = execution_price * additional_size

        if additional_cost > self.state.cash:
            raise InsufficientFundsError(
                f"Additional cost {additional_cost:.4f} exceeds cash {self.state.cash:.4f}"
            )

        position.entry_cost += additional_cost
        position.size += additional_size
        position.entry_price = position.entry_cost / position.size
        self.state.cash -= additional_cost

        return position

    def scale_out(
        self,
        position_id: int,
        reduce_size: float,
        price: float,
        timestamp: datetime | None = None,
        context: MarketContext | None = None,
    ) -> Position | ClosedPosition:
        """
        Reduce a position. Reducing by the full size (or more) closes it.

        Returns:
            The reduced Position, or a ClosedPosition on full exit

        Raises:
            PositionNotFoundError: If no open position has this id
        """
        position = self._get(position_id)
        if reduce_size <= 0:
            raise ValueError("reduce_size must be positive")
        if reduce_size >= position.size:
            return self.close_position(position_id, price, timestamp, context)

        execution_price, _ = self._fill(price, OrderSide.SELL, reduce_size, context)

        proportion = reduce_size / position.size
        cost_returned = position.entry_cost * proportion
        partial_pnl = position.pnl_at(execution_price) * proportion

        position.size -= reduce_size
        position.entry_cost -= cost_returned
        if position.is_arbitrage:
            position.unrealized_pnl = (position.net_spread or 0.0) * position.size

        self.state.cash += cost_returned + partial_pnl
        self.state.total_realized_pnl += partial_pnl

        return position

    # =========================================================================
    # Valuation
    # =========================================================================

    def update_unrealized_pnl(self, price: float) -> float:
        """
        Mark open positions to price and append total equity to the curve.

        This is the only place the equity curve grows.

        Returns:
            Total equity after marking
        """
        for position in self.state.positions.values():
            if position.is_arbitrage:
                position.unrealized_pnl = (position.net_spread or 0.0) * position.size
            else:
                position.current_price = price
                position.unrealized_pnl = position.pnl_at(price)

        equity = self.get_total_equity()
        self.state.equity_curve.append(equity)
        return equity

    def get_total_equity(self) -> float:
        """Cash plus entry cost and unrealized P&L of every open position."""
        return self.state.cash + sum(p.market_value for p in self.state.positions.values())

    def get_open_position_count(self) -> int:
        return len(self.state.positions)

    def get_positions_by_kind(self, kind: PositionKind | str) -> list[Position]:
        kind = PositionKind(kind)
        return [p for p in self.state.positions.values() if p.kind == kind]

    def most_recent_position(self) -> Position | None:
        """The last opened position still held, if any."""
        if not self.state.positions:
            return None
        return next(reversed(self.state.positions.values()))

    def get_summary(self) -> dict[str, Any]:
        """Portfolio-level aggregates."""
        positions = list(self.state.positions.values())
        total_unrealized = sum(p.unrealized_pnl for p in positions)

        return {
            "cash": self.state.cash,
            "total_equity": self.get_total_equity(),
            "open_positions": len(positions),
            "total_position_cost": sum(p.entry_cost for p in positions),
            "total_unrealized_pnl": total_unrealized,
            "total_realized_pnl": self.state.total_realized_pnl,
            "total_pnl": total_unrealized + self.state.total_realized_pnl,
        }
