"""
Backtest Engine - replays a market's price history through a strategy.

Flow: Price Store → Strategy (on_price per tick) → Signals → Equity Tracker
or Position Manager → Trades → Metrics

A run is a deterministic fold over an ordered tick sequence. Strategy
state and portfolio state belong to one run only, so independent runs
(e.g. a parameter sweep) never interfere.
"""

import dataclasses
import itertools
import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pmbot.backtest import metrics
from pmbot.backtest.costs import CostConfig, OrderSide, apply_costs, context_from_tick
from pmbot.backtest.models import BacktestConfig, BacktestError, BacktestResult, Trade
from pmbot.backtest.position_manager import PositionError, PositionKind, PositionManager
from pmbot.core.timing import to_unix_ms
from pmbot.strategies.base import Signal, SignalKind, Strategy

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick
    from pmbot.historical.store import MarketStats, MarketSummary, PriceHistoryStore

logger = logging.getLogger(__name__)


@dataclass
class EquityTracker:
    """
    Single-position equity tracker used when multi_position is off.

    size is a fraction of current equity. A buy while flat enters at the
    cost-adjusted price; a sell while long realizes
    (exit - entry) / entry * (capital_at_entry * size). Every tick appends
    one marked equity point.
    """

    equity: float
    cost_config: CostConfig | None = None
    entry_price: float | None = None
    size: float = 0.0
    capital_at_entry: float = 0.0
    equity_curve: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.equity_curve:
            self.equity_curve.append(self.equity)

    @property
    def in_position(self) -> bool:
        return self.entry_price is not None

    def _fill(self, price: float, side: OrderSide, notional: float, tick: "PriceTick") -> float:
        if self.cost_config is None:
            return price
        execution_price, _ = apply_costs(
            price, side, notional, self.cost_config, context_from_tick(tick)
        )
        return execution_price

    def _position_pnl(self, price: float) -> float:
        assert self.entry_price is not None
        if self.entry_price <= 0:
            return 0.0
        position_value = self.capital_at_entry * self.size
        return (price - self.entry_price) / self.entry_price * position_value

    def apply(self, signal: Signal, tick: "PriceTick") -> None:
        price = tick.yes_price

        if signal.kind == SignalKind.BUY and not self.in_position:
            size = signal.size or 1.0
            self.entry_price = self._fill(price, OrderSide.BUY, size * self.equity, tick)
            self.size = size
            self.capital_at_entry = self.equity
        elif signal.kind == SignalKind.SELL and self.in_position:
            exit_price = self._fill(price, OrderSide.SELL, self.capital_at_entry * self.size, tick)
            self.equity = self.capital_at_entry + self._position_pnl(exit_price)
            self.entry_price = None
            self.size = 0.0
            self.capital_at_entry = 0.0

        self.equity_curve.append(self.marked_equity(price))

    def marked_equity(self, price: float) -> float:
        """Equity with any open position marked to price."""
        if not self.in_position:
            return self.equity
        return self.capital_at_entry + self._position_pnl(price)


def apply_signal(
    manager: PositionManager,
    signal: Signal,
    tick: "PriceTick",
) -> None:
    """
    Apply a signal to the position manager, then mark to the YES price.

    Capital errors (insufficient funds, unknown position) leave the
    portfolio unchanged; the run continues.
    """
    context = context_from_tick(tick)
    price = tick.yes_price

    try:
        if signal.kind == SignalKind.BUY:
            manager.open_position(
                PositionKind.LONG, price, signal.size or 1.0, tick.timestamp, context
            )
        elif signal.kind == SignalKind.OPEN_ARBITRAGE:
            manager.open_arbitrage_position(
                tick.yes_price, tick.no_price, signal.size or 1.0, tick.timestamp, context
            )
        elif signal.kind == SignalKind.SELL:
            position = manager.most_recent_position()
            if position is not None:
                manager.close_position(position.id, price, tick.timestamp, context)
        elif signal.kind == SignalKind.CLOSE_POSITION:
            assert signal.position_id is not None
            manager.close_position(signal.position_id, price, tick.timestamp, context)
        elif signal.kind == SignalKind.CLOSE_ALL:
            manager.close_all_positions(price, tick.timestamp, context)
    except PositionError as e:
        logger.debug(f"Ignored {signal.kind.value} at {tick.timestamp}: {e.reason} ({e.message})")

    manager.update_unrealized_pnl(price)


def infer_trades(history: Iterable[tuple[Signal, "PriceTick"]]) -> list[Trade]:
    """
    Pair buy and sell signals first-in, first-out into trades.

    Each sell closes the oldest unmatched buy; unmatched sells are ignored.
    """
    open_entries: deque[float] = deque()
    trades: list[Trade] = []

    for signal, tick in history:
        if signal.kind == SignalKind.BUY:
            open_entries.append(tick.yes_price)
        elif signal.kind == SignalKind.SELL and open_entries:
            trades.append(
                Trade.from_prices(open_entries.popleft(), tick.yes_price, timestamp=tick.timestamp)
            )

    return trades


def _strategy_trades(stats: dict[str, Any]) -> list[Trade] | None:
    if "trades" not in stats:
        return None
    return [t if isinstance(t, Trade) else Trade.from_dict(t) for t in stats["trades"]]


def _recorded_config(strategy_config: dict[str, Any]) -> dict[str, Any]:
    """Strategy config for the result record, with candle series reduced to a count."""
    recorded = dict(strategy_config)
    if "candles" in recorded:
        recorded["candle_count"] = len(recorded.pop("candles") or [])
    return recorded


class BacktestEngine:
    """
    Runs strategies over recorded market ticks.

    Usage:
        engine = BacktestEngine(CsvPriceStore("data/prices.csv"))
        result = engine.run(BacktestConfig(market_id="btc-up", strategy="mean_reversion"))
        result.print_summary()
    """

    def __init__(self, store: "PriceHistoryStore") -> None:
        """
        Initialize the engine.

        Args:
            store: Read-only price history; shared safely across runs
        """
        self.store = store

    def _resolve_strategy(self, strategy: "str | Strategy") -> Strategy:
        if isinstance(strategy, Strategy):
            return strategy

        from pmbot.strategies import get_strategy

        try:
            return get_strategy(strategy)
        except ValueError as e:
            raise BacktestError(str(e)) from e

    def _load_ticks(self, config: BacktestConfig) -> list["PriceTick"]:
        logger.info(f"Loading historical data for market {config.market_id}...")
        ticks = self.store.load_ticks(config.market_id, config.start_date, config.end_date)

        if not ticks:
            raise BacktestError(f"No data found for market {config.market_id}")

        logger.info(f"Loaded {len(ticks)} price snapshots")

        if config.validate_ticks:
            for prev, curr in itertools.pairwise(ticks):
                if to_unix_ms(curr.timestamp) <= to_unix_ms(prev.timestamp):
                    raise BacktestError(
                        f"Tick timestamps not strictly increasing at {curr.timestamp}"
                    )

        return ticks

    def run(
        self,
        config: BacktestConfig,
        should_stop: Callable[[], bool] | None = None,
    ) -> BacktestResult:
        """
        Run one backtest.

        Args:
            config: Backtest configuration
            should_stop: Optional callable checked between ticks; when it
                returns True the run stops early and is marked cancelled

        Returns:
            BacktestResult

        Raises:
            BacktestError: Missing market/strategy, unknown strategy, invalid
                strategy config, or no data
        """
        if not config.market_id:
            raise BacktestError("Missing required option: market_id")
        if not config.strategy:
            raise BacktestError("Missing required option: strategy")

        strategy = self._resolve_strategy(config.strategy)

        cost_config = config.cost_config
        assert cost_config is None or isinstance(cost_config, CostConfig)

        strategy_config = dict(config.strategy_config)
        if cost_config is not None:
            strategy_config.setdefault("cost_config", cost_config)

        # Bad strategy config fails before any data is read
        try:
            state = strategy.init(strategy_config)
        except ValueError as e:
            raise BacktestError(f"Invalid config for {strategy.name()}: {e}") from e

        ticks = self._load_ticks(config)

        logger.info(
            f"Running backtest with {strategy.name()} "
            f"({'multi-position' if config.multi_position else 'single-position'}, "
            f"costs {'on' if cost_config else 'off'})"
        )

        manager = (
            PositionManager(config.initial_capital, cost_config) if config.multi_position else None
        )
        tracker = (
            None if manager else EquityTracker(equity=config.initial_capital, cost_config=cost_config)
        )

        history: list[tuple[Signal, "PriceTick"]] = []
        processed = 0
        cancelled = False

        for tick in ticks:
            if should_stop is not None and should_stop():
                cancelled = True
                logger.warning(f"Backtest cancelled after {processed} of {len(ticks)} ticks")
                break

            signal, state = strategy.on_price(tick, state)
            history.append((signal, tick))
            processed += 1

            if manager is not None:
                apply_signal(manager, signal, tick)
            else:
                assert tracker is not None
                tracker.apply(signal, tick)

        stats = strategy.on_complete(state)
        trades = _strategy_trades(stats)
        if trades is None:
            trades = infer_trades(history)

        if manager is not None:
            equity_curve = list(manager.state.equity_curve)
            final_capital = manager.get_total_equity()
            position_summary = manager.get_summary()
        else:
            assert tracker is not None
            equity_curve = list(tracker.equity_curve)
            final_capital = equity_curve[-1]
            position_summary = None

        seen = ticks[:processed]
        result = BacktestResult(
            market_id=config.market_id,
            strategy_name=strategy.name(),
            strategy_config=_recorded_config(config.strategy_config),
            start_date=seen[0].timestamp if seen else None,
            end_date=seen[-1].timestamp if seen else None,
            data_points=processed,
            initial_capital=config.initial_capital,
            final_capital=final_capital,
            metrics=metrics.calculate(trades),
            trades=trades,
            equity_curve=equity_curve,
            strategy_stats=stats,
            position_summary=position_summary,
            trading_costs_enabled=config.trading_costs_enabled,
            cancelled=cancelled,
        )

        logger.info(
            f"Backtest complete: {len(trades)} trades, "
            f"P&L: {result.pnl_pct:+.2f}%, {processed} ticks"
        )
        return result

    def run_sweep(
        self,
        base_config: BacktestConfig,
        grid: dict[str, list[Any]],
    ) -> list[BacktestResult]:
        """
        Run one backtest per combination of strategy parameters.

        Args:
            base_config: Config shared by every run
            grid: Strategy config key -> candidate values

        Returns:
            Results in grid order (first key varies slowest)

        Example:
            >>> engine.run_sweep(config, {"window_size": [5, 10], "threshold": [0.03, 0.05]})
        """
        if not grid:
            return [self.run(base_config)]

        keys = list(grid)
        results = []
        for values in itertools.product(*(grid[k] for k in keys)):
            overrides = dict(zip(keys, values))
            run_config = dataclasses.replace(
                base_config,
                strategy_config={**base_config.strategy_config, **overrides},
            )
            logger.info(f"Sweep run: {overrides}")
            results.append(self.run(run_config))

        return results

    def list_available_markets(self) -> list["MarketSummary"]:
        """Markets with recorded data, most data points first."""
        return self.store.list_markets()

    def market_stats(self, market_id: str) -> "MarketStats":
        """Data points, time range and YES price statistics for a market."""
        return self.store.market_stats(market_id)


def run_backtest(
    store: "PriceHistoryStore",
    market_id: str,
    strategy: "str | Strategy",
    **options: Any,
) -> BacktestResult:
    """
    Convenience function to run a backtest with common defaults.

    Args:
        store: Price history store
        market_id: Market to replay
        strategy: Registry name or Strategy instance
        **options: Any other BacktestConfig field

    Example:
        result = run_backtest(store, "btc-up", "momentum", strategy_config={"lookback": 5})
    """
    config = BacktestConfig(market_id=market_id, strategy=strategy, **options)
    return BacktestEngine(store).run(config)
