"""
Data models for backtesting configuration and results.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

from pmbot.backtest.costs import CostConfig

if TYPE_CHECKING:
    from pmbot.strategies.base import Strategy


class BacktestError(Exception):
    """A backtest run could not start or produced no result."""


@dataclass(frozen=True)
class Trade:
    """
    A completed round trip.

    return_ is the fractional return (0.1 = +10%); it serializes as "return".
    """

    entry_price: float
    exit_price: float
    return_: float
    timestamp: datetime | None = None
    exit_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_prices(
        cls,
        entry_price: float,
        exit_price: float,
        timestamp: datetime | None = None,
        exit_reason: str | None = None,
        **metadata: Any,
    ) -> "Trade":
        """Create a long trade, deriving the return from the two prices (0 for a zero entry)."""
        return cls(
            entry_price=entry_price,
            exit_price=exit_price,
            return_=(exit_price - entry_price) / entry_price if entry_price > 0 else 0.0,
            timestamp=timestamp,
            exit_reason=exit_reason,
            metadata=dict(metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "return": self.return_,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "exit_reason": self.exit_reason,
        }
        data.update(to_plain(self.metadata))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trade":
        """Create a trade from a dictionary with a "return" key."""
        core = {"entry_price", "exit_price", "return", "timestamp", "exit_reason"}
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        return cls(
            entry_price=float(data["entry_price"]),
            exit_price=float(data["exit_price"]),
            return_=float(data.get("return", 0.0)),
            timestamp=timestamp,
            exit_reason=data.get("exit_reason"),
            metadata={k: v for k, v in data.items() if k not in core},
        )


@dataclass
class BacktestConfig:
    """
    Configuration for a backtest run.

    market_id and strategy are checked by the engine before any data is
    loaded, so a config missing them can still be built and reported.
    """

    market_id: str | None = None
    strategy: "str | Strategy | None" = None  # Registry name or instance
    strategy_config: dict[str, Any] = field(default_factory=dict)

    # Optional date range filter (uses full data if not specified)
    start_date: datetime | None = None
    end_date: datetime | None = None

    initial_capital: float = 1000.0
    cost_config: CostConfig | dict[str, Any] | None = None  # None = fill at quoted prices
    multi_position: bool = False  # Use the PositionManager ledger
    validate_ticks: bool = False  # Reject non-increasing timestamps

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if isinstance(self.cost_config, dict):
            self.cost_config = CostConfig.from_dict(self.cost_config)

    @property
    def trading_costs_enabled(self) -> bool:
        return self.cost_config is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestConfig":
        """Create config from dictionary."""
        return cls(
            market_id=data.get("market_id"),
            strategy=data.get("strategy"),
            strategy_config=dict(data.get("strategy_config") or {}),
            start_date=datetime.fromisoformat(data["start_date"])
            if data.get("start_date")
            else None,
            end_date=datetime.fromisoformat(data["end_date"]) if data.get("end_date") else None,
            initial_capital=data.get("initial_capital", 1000.0),
            cost_config=data.get("cost_config"),
            multi_position=data.get("multi_position", False),
            validate_ticks=data.get("validate_ticks", False),
        )


@dataclass
class BacktestResult:
    """
    Results from a completed backtest run.

    to_dict() is the plain record handed to renderers and storage.
    """

    market_id: str
    strategy_name: str
    strategy_config: dict[str, Any]
    start_date: datetime | None
    end_date: datetime | None
    data_points: int
    initial_capital: float
    final_capital: float
    metrics: dict[str, Any]
    trades: list[Trade]
    equity_curve: list[float]
    strategy_stats: dict[str, Any]
    position_summary: dict[str, Any] | None = None  # Multi-position runs only
    trading_costs_enabled: bool = False
    cancelled: bool = False

    @property
    def pnl(self) -> float:
        return self.final_capital - self.initial_capital

    @property
    def pnl_pct(self) -> float:
        return self.pnl / self.initial_capital * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "market_id": self.market_id,
            "strategy_name": self.strategy_name,
            "strategy_config": to_plain(self.strategy_config),
            "start_date": to_plain(self.start_date),
            "end_date": to_plain(self.end_date),
            "data_points": self.data_points,
            "initial_capital": self.initial_capital,
            "final_capital": self.final_capital,
            "metrics": to_plain(self.metrics),
            "trades": [t.to_dict() for t in self.trades],
            "equity_curve": list(self.equity_curve),
            "strategy_stats": to_plain(self.strategy_stats),
            "position_summary": to_plain(self.position_summary),
            "trading_costs_enabled": self.trading_costs_enabled,
            "cancelled": self.cancelled,
        }

    def print_summary(self, console: Console | None = None) -> None:
        """Print a summary table of backtest results."""
        console = console or Console()
        m = self.metrics

        table = Table(title=f"Backtest: {self.strategy_name} on {self.market_id}", show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Data points", str(self.data_points))
        table.add_row("Initial capital", f"${self.initial_capital:,.2f}")
        table.add_row("Final capital", f"${self.final_capital:,.2f}")
        pnl_style = "green" if self.pnl >= 0 else "red"
        table.add_row("P&L", f"[{pnl_style}]${self.pnl:+,.2f} ({self.pnl_pct:+.2f}%)[/]")
        table.add_section()
        table.add_row("Trades", str(m.get("total_trades", 0)))
        table.add_row("Win rate", f"{m.get('win_rate', 0.0):.1%}")
        table.add_row("Total return", f"{m.get('total_return', 0.0):+.2%}")
        table.add_row("Max drawdown", f"{m.get('max_drawdown', 0.0):.2%}")
        table.add_row("Profit factor", f"{m.get('profit_factor', 0.0):.2f}")
        table.add_row("Sharpe ratio", f"{m.get('sharpe_ratio', 0.0):.2f}")
        table.add_row("Expectancy", f"{m.get('expectancy', 0.0):+.4f}")
        table.add_section()
        table.add_row("Trading costs", "on" if self.trading_costs_enabled else "off")
        if self.cancelled:
            table.add_row("Status", "[yellow]cancelled[/]")

        console.print(table)


def to_plain(value: Any) -> Any:
    """
    Convert a value into JSON-safe builtins.

    Dataclasses become dicts (field order), enums their values, datetimes
    ISO-8601 strings, tuples lists. Anything else non-primitive is
    rendered with str().
    """
    if isinstance(value, Enum):
        return to_plain(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Trade):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return str(value)
