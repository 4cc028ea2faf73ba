"""
Arbitrage Strategy - buy both outcomes when YES + NO costs less than $1.

One of the two tokens pays $1 at resolution, so buying both for less
locks in the gap. Positions are held to resolution; the strategy never
emits an exit.

In cost-aware mode the spread is taken after slippage, spread crossing
and fees on both legs, so opportunities eaten by frictions are skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pmbot.backtest.costs import CostConfig, context_from_tick, estimate_arbitrage_costs
from pmbot.strategies.base import Signal, Strategy

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick

logger = logging.getLogger(__name__)


@dataclass
class ArbitrageEntry:
    """A spread captured at entry."""

    yes_price: float
    no_price: float
    total_cost: float  # yes + no (execution prices in cost-aware mode)
    spread: float  # Effective spread at entry
    gross_spread: float
    timestamp: datetime | None = None


@dataclass
class ArbitrageState:
    config: dict[str, Any]
    cost_config: CostConfig | None
    positions: list[ArbitrageEntry] = field(default_factory=list)
    opportunities_found: int = 0
    skipped_unprofitable: int = 0


class ArbitrageStrategy(Strategy[ArbitrageState]):
    """YES + NO spread capture."""

    display_name = "Arbitrage"
    DEFAULT_CONFIG = {
        "entry_threshold": 0.02,  # Minimum spread to enter
        "position_size": 1.0,
        "max_positions": 5,
        "cost_aware": False,  # Use the net spread after trading costs
        "min_net_spread": 0.005,  # Floor for the effective spread
        "cost_config": None,
    }

    def init(self, config: dict[str, Any] | None = None) -> ArbitrageState:
        config = self.merge_config(config)

        cost_config = config.get("cost_config")
        if isinstance(cost_config, dict):
            cost_config = CostConfig.from_dict(cost_config)
        if config["cost_aware"] and cost_config is None:
            cost_config = CostConfig()

        return ArbitrageState(config=config, cost_config=cost_config)

    def _entry_threshold(self, config: dict[str, Any]) -> float:
        return max(config["entry_threshold"], config["min_net_spread"])

    def on_price(self, tick: "PriceTick", state: ArbitrageState) -> tuple[Signal, ArbitrageState]:
        config = state.config
        threshold = self._entry_threshold(config)
        if len(state.positions) >= config["max_positions"]:
            return Signal.hold(), state

        gross_spread = tick.gross_spread
        yes_cost, no_cost = tick.yes_price, tick.no_price
        spread = gross_spread

        if config["cost_aware"]:
            estimate = estimate_arbitrage_costs(
                tick.yes_price,
                tick.no_price,
                config["position_size"],
                state.cost_config,
                context_from_tick(tick),
            )
            spread = estimate.net_spread
            yes_cost, no_cost = estimate.yes_execution_price, estimate.no_execution_price

            if gross_spread > threshold and spread <= threshold:
                state.skipped_unprofitable += 1
                logger.debug(
                    f"Skipped spread {gross_spread:.4f}: net {spread:.4f} after costs"
                )

        if spread <= threshold:
            return Signal.hold(), state

        state.positions.append(
            ArbitrageEntry(
                yes_price=yes_cost,
                no_price=no_cost,
                total_cost=yes_cost + no_cost,
                spread=spread,
                gross_spread=gross_spread,
                timestamp=tick.timestamp,
            )
        )
        state.opportunities_found += 1
        return Signal.open_arbitrage(config["position_size"]), state

    def on_complete(self, state: ArbitrageState) -> dict[str, Any]:
        positions = state.positions
        spreads = [p.spread for p in positions]
        theoretical_profit = sum(spreads)
        total_invested = sum(p.total_cost for p in positions)

        return {
            "opportunities_found": state.opportunities_found,
            "positions_held": len(positions),
            "spreads_captured": spreads,
            "avg_spread": round(theoretical_profit / len(positions), 4) if positions else 0.0,
            "theoretical_profit": round(theoretical_profit, 4),
            "total_invested": round(total_invested, 4),
            "roi_percent": round(theoretical_profit / total_invested * 100, 2)
            if total_invested > 0
            else 0.0,
            "skipped_unprofitable": state.skipped_unprofitable,
            "cost_aware": bool(state.config["cost_aware"]),
            "positions": positions,
        }
