"""
Mean Reversion Strategy - buy dips below the rolling average, sell the recovery.

Enters long when the YES price sits more than `threshold` below the
average of the last `window_size` prices, and exits once the price is
back at or above that average.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pmbot.backtest.models import Trade
from pmbot.strategies.base import Signal, Strategy

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick


@dataclass
class MeanReversionState:
    config: dict[str, Any]
    price_history: deque[float]
    entry_price: float | None = None
    trades: list[Trade] = field(default_factory=list)

    @property
    def in_position(self) -> bool:
        return self.entry_price is not None


class MeanReversionStrategy(Strategy[MeanReversionState]):
    """Rolling-average mean reversion on the YES price."""

    display_name = "Mean Reversion"
    DEFAULT_CONFIG = {
        "window_size": 20,
        "threshold": 0.05,  # Fractional deviation below the average to enter
        "position_size": 1.0,
    }

    def init(self, config: dict[str, Any] | None = None) -> MeanReversionState:
        config = self.merge_config(config)
        if config["window_size"] < 1:
            raise ValueError("window_size must be at least 1")

        return MeanReversionState(
            config=config,
            price_history=deque(maxlen=config["window_size"]),
        )

    def on_price(
        self, tick: "PriceTick", state: MeanReversionState
    ) -> tuple[Signal, MeanReversionState]:
        config = state.config
        price = tick.yes_price
        state.price_history.append(price)

        # Need a full window for the average
        if len(state.price_history) < config["window_size"]:
            return Signal.hold(), state

        moving_avg = sum(state.price_history) / len(state.price_history)
        if moving_avg == 0:
            return Signal.hold(), state
        deviation = (price - moving_avg) / moving_avg

        if not state.in_position and deviation < -config["threshold"]:
            state.entry_price = price
            return Signal.buy(config["position_size"]), state

        if state.in_position and deviation >= 0:
            state.trades.append(
                Trade.from_prices(state.entry_price, price, timestamp=tick.timestamp)
            )
            state.entry_price = None
            return Signal.sell(config["position_size"]), state

        return Signal.hold(), state

    def on_complete(self, state: MeanReversionState) -> dict[str, Any]:
        return {
            "total_trades": len(state.trades),
            "trades": list(state.trades),
            "final_position": "long" if state.in_position else None,
        }
