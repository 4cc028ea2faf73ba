"""
Base classes for backtest strategies.

- SignalKind / Signal: the symbolic decision a strategy emits per tick
- Strategy: the interface the backtest engine drives

A strategy is pure: it reads ticks, updates its own state and returns
signals. The engine turns signals into fills.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick


class SignalKind(str, Enum):
    """Trading actions a strategy can request."""

    HOLD = "hold"
    BUY = "buy"
    SELL = "sell"
    OPEN_ARBITRAGE = "open_arbitrage"
    CLOSE_POSITION = "close_position"
    CLOSE_ALL = "close_all"


@dataclass(frozen=True)
class Signal:
    """
    A strategy decision for one tick.

    size is set for buy/sell/open_arbitrage, position_id for close_position.
    """

    kind: SignalKind
    size: float | None = None
    position_id: int | None = None

    def __post_init__(self) -> None:
        """Validate signal payload."""
        if self.size is not None and self.size <= 0:
            raise ValueError(f"Signal size must be positive, got {self.size}")
        if self.kind == SignalKind.CLOSE_POSITION and self.position_id is None:
            raise ValueError("close_position requires a position_id")

    @property
    def is_hold(self) -> bool:
        return self.kind == SignalKind.HOLD

    @classmethod
    def hold(cls) -> "Signal":
        return cls(SignalKind.HOLD)

    @classmethod
    def buy(cls, size: float = 1.0) -> "Signal":
        return cls(SignalKind.BUY, size=size)

    @classmethod
    def sell(cls, size: float = 1.0) -> "Signal":
        return cls(SignalKind.SELL, size=size)

    @classmethod
    def open_arbitrage(cls, size: float = 1.0) -> "Signal":
        return cls(SignalKind.OPEN_ARBITRAGE, size=size)

    @classmethod
    def close_position(cls, position_id: int) -> "Signal":
        return cls(SignalKind.CLOSE_POSITION, position_id=position_id)

    @classmethod
    def close_all(cls) -> "Signal":
        return cls(SignalKind.CLOSE_ALL)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "size": self.size, "position_id": self.position_id}


StateT = TypeVar("StateT")


class Strategy(ABC, Generic[StateT]):
    """
    Interface for backtest strategies.

    The engine calls, in order:
    1. init(config) once, to build the strategy state
    2. on_price(tick, state) for every tick, in timestamp order
    3. on_complete(state) once, for final statistics

    State is owned by a single run. on_price may update it in place and
    must return it alongside the signal.

    Subclasses set display_name and DEFAULT_CONFIG.
    """

    display_name: ClassVar[str] = "Strategy"
    DEFAULT_CONFIG: ClassVar[dict[str, Any]] = {}

    def name(self) -> str:
        """Strategy name for reporting."""
        return self.display_name

    def default_config(self) -> dict[str, Any]:
        """A copy of the default configuration."""
        return dict(self.DEFAULT_CONFIG)

    def merge_config(self, config: dict[str, Any] | None) -> dict[str, Any]:
        """User config merged over the defaults."""
        merged = self.default_config()
        merged.update(config or {})
        return merged

    @abstractmethod
    def init(self, config: dict[str, Any] | None = None) -> StateT:
        """Build the initial state from config (merged over defaults)."""

    @abstractmethod
    def on_price(self, tick: "PriceTick", state: StateT) -> tuple[Signal, StateT]:
        """Process one tick and return (signal, state)."""

    def on_complete(self, state: StateT) -> dict[str, Any]:
        """Final statistics. Strategies with trades return them under "trades"."""
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
