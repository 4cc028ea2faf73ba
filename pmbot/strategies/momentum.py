"""
Momentum Strategy - ride strong moves in the YES price.

Momentum is the return over the last `lookback` ticks. A position is
opened when it exceeds entry_threshold and closed when momentum drops
below exit_threshold or the position loses more than stop_loss.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pmbot.backtest.models import Trade
from pmbot.strategies.base import Signal, Strategy

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick


@dataclass
class MomentumState:
    config: dict[str, Any]
    price_history: deque[float]
    entry_price: float | None = None
    highest_since_entry: float | None = None
    trades: list[Trade] = field(default_factory=list)

    @property
    def in_position(self) -> bool:
        return self.entry_price is not None


class MomentumStrategy(Strategy[MomentumState]):
    """Lookback-return momentum with a stop loss."""

    display_name = "Momentum"
    DEFAULT_CONFIG = {
        "lookback": 10,
        "entry_threshold": 0.03,
        "exit_threshold": 0.0,
        "stop_loss": 0.10,
        "position_size": 1.0,
    }

    def init(self, config: dict[str, Any] | None = None) -> MomentumState:
        config = self.merge_config(config)
        if config["lookback"] < 1:
            raise ValueError("lookback must be at least 1")

        # lookback + 1 prices give a return over `lookback` ticks
        return MomentumState(config=config, price_history=deque(maxlen=config["lookback"] + 1))

    def on_price(self, tick: "PriceTick", state: MomentumState) -> tuple[Signal, MomentumState]:
        config = state.config
        price = tick.yes_price
        state.price_history.append(price)

        if len(state.price_history) <= config["lookback"]:
            return Signal.hold(), state

        old_price = state.price_history[0]
        momentum = (price - old_price) / old_price if old_price > 0 else 0.0

        if not state.in_position:
            if momentum > config["entry_threshold"]:
                state.entry_price = price
                state.highest_since_entry = price
                return Signal.buy(config["position_size"]), state
            return Signal.hold(), state

        state.highest_since_entry = max(state.highest_since_entry or price, price)
        current_return = (price - state.entry_price) / state.entry_price
        stopped_out = current_return < -config["stop_loss"]

        if stopped_out or momentum < config["exit_threshold"]:
            state.trades.append(
                Trade(
                    entry_price=state.entry_price,
                    exit_price=price,
                    return_=current_return,
                    timestamp=tick.timestamp,
                    exit_reason="stop_loss" if stopped_out else "momentum",
                    metadata={"highest_price": state.highest_since_entry},
                )
            )
            state.entry_price = None
            state.highest_since_entry = None
            return Signal.sell(config["position_size"]), state

        return Signal.hold(), state

    def on_complete(self, state: MomentumState) -> dict[str, Any]:
        return {
            "total_trades": len(state.trades),
            "trades": list(state.trades),
            "final_position": "long" if state.in_position else None,
            "stop_loss_exits": sum(1 for t in state.trades if t.exit_reason == "stop_loss"),
        }
