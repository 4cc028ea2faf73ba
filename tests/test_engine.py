#!/usr/bin/env python3
"""
Integration tests for the backtest engine.

Run with:
    python -m pytest tests/test_engine.py -v
"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from rich.console import Console

# Add project root to path for standalone execution
sys.path.insert(0, str(Path(__file__).parent.parent))

from pmbot.backtest import (
    BacktestConfig,
    BacktestEngine,
    BacktestError,
    EquityTracker,
    Trade,
    infer_trades,
    run_backtest,
)
from pmbot.core.models import PriceTick
from pmbot.historical import InMemoryPriceStore
from pmbot.strategies import ArbitrageStrategy, Signal, Strategy

START = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
MARKET = "btc-up-15m"


def make_ticks(yes_prices: list[float], no_prices: list[float] | None = None) -> list[PriceTick]:
    """Helper to create one tick per minute."""
    no_prices = no_prices or [round(1.0 - p, 4) for p in yes_prices]
    return [
        PriceTick(START + timedelta(minutes=i), yes, no)
        for i, (yes, no) in enumerate(zip(yes_prices, no_prices))
    ]


def make_engine(yes_prices: list[float], no_prices: list[float] | None = None) -> BacktestEngine:
    return BacktestEngine(InMemoryPriceStore({MARKET: make_ticks(yes_prices, no_prices)}))


class ScriptedStrategy(Strategy):
    """Emits a fixed signal sequence, one per tick."""

    display_name = "Scripted"

    def __init__(self, signals: list[Signal]) -> None:
        self.signals = signals

    def init(self, config=None):
        return {"index": 0, "config": dict(config or {})}

    def on_price(self, tick, state):
        signal = self.signals[state["index"]] if state["index"] < len(self.signals) else Signal.hold()
        state["index"] += 1
        return signal, state


MEAN_REVERSION = {"window_size": 2, "threshold": 0.05}

# =============================================================================
# Test Validation and Errors
# =============================================================================


class TestValidation:
    """Tests for up-front validation."""

    def test_missing_market(self):
        """market_id is checked before data access."""
        engine = make_engine([0.5])
        with pytest.raises(BacktestError, match="Missing required option: market_id"):
            engine.run(BacktestConfig(strategy="mean_reversion"))

    def test_missing_strategy(self):
        """strategy is checked before data access."""
        engine = make_engine([0.5])
        with pytest.raises(BacktestError, match="Missing required option: strategy"):
            engine.run(BacktestConfig(market_id=MARKET))

    def test_no_data(self):
        """An unknown market or empty range fails the run."""
        engine = make_engine([0.5])
        with pytest.raises(BacktestError, match="No data found for market other"):
            engine.run(BacktestConfig(market_id="other", strategy="momentum"))

        with pytest.raises(BacktestError, match=f"No data found for market {MARKET}"):
            engine.run(
                BacktestConfig(
                    market_id=MARKET,
                    strategy="momentum",
                    start_date=START + timedelta(days=1),
                )
            )

    def test_unknown_strategy(self):
        """Unknown strategy names surface as a run error."""
        with pytest.raises(BacktestError, match="Unknown strategy"):
            make_engine([0.5]).run(BacktestConfig(market_id=MARKET, strategy="nope"))

    def test_invalid_strategy_config(self):
        """Bad strategy config is a run error raised before data access."""
        engine = make_engine([0.5])
        with pytest.raises(BacktestError, match="Invalid config for Mean Reversion"):
            engine.run(
                BacktestConfig(
                    market_id="no-such-market",
                    strategy="mean_reversion",
                    strategy_config={"window_size": 0},
                )
            )

    def test_config_validation(self):
        """Capital and date order are validated on the config."""
        with pytest.raises(ValueError):
            BacktestConfig(initial_capital=0)
        with pytest.raises(ValueError):
            BacktestConfig(start_date=START, end_date=START - timedelta(days=1))

    def test_validate_ticks(self):
        """Duplicate timestamps are rejected when validation is on."""
        ticks = [PriceTick(START, 0.5, 0.5), PriceTick(START, 0.6, 0.4)]
        engine = BacktestEngine(InMemoryPriceStore({MARKET: ticks}))
        config = BacktestConfig(market_id=MARKET, strategy="momentum", validate_ticks=True)

        with pytest.raises(BacktestError, match="not strictly increasing"):
            engine.run(config)

        config.validate_ticks = False
        assert engine.run(config).data_points == 2


# =============================================================================
# Test Single-Position Runs
# =============================================================================


class TestSinglePosition:
    """Tests for the default equity-tracker mode."""

    def test_mean_reversion_end_to_end(self):
        """Dip at 0.45, recovery at 0.50: one trade returning about 11%."""
        result = make_engine([0.50, 0.45, 0.50]).run(
            BacktestConfig(
                market_id=MARKET,
                strategy="mean_reversion",
                strategy_config=MEAN_REVERSION,
            )
        )

        assert result.strategy_name == "Mean Reversion"
        assert result.data_points == 3
        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.entry_price == 0.45
        assert trade.exit_price == 0.50
        assert trade.return_ == pytest.approx(0.1111, abs=1e-4)
        assert result.metrics["total_trades"] == 1
        assert result.metrics["win_rate"] == 1.0
        assert result.final_capital == pytest.approx(1000 * 0.5 / 0.45)
        assert result.equity_curve[0] == 1000.0
        assert len(result.equity_curve) == 4
        assert result.start_date == START
        assert result.end_date == START + timedelta(minutes=2)
        assert result.position_summary is None
        assert not result.cancelled

    def test_costs_reduce_profit(self):
        """The cost model shrinks the same trade's P&L."""
        engine = make_engine([0.50, 0.45, 0.50])
        base = BacktestConfig(
            market_id=MARKET, strategy="mean_reversion", strategy_config=MEAN_REVERSION
        )
        with_costs = BacktestConfig(
            market_id=MARKET,
            strategy="mean_reversion",
            strategy_config=MEAN_REVERSION,
            cost_config={"taker_fee": 0.0},
        )

        free = engine.run(base)
        costly = engine.run(with_costs)

        assert costly.trading_costs_enabled
        assert costly.final_capital < free.final_capital

    def test_equity_tracker_marks_open_position(self):
        """Open positions are marked to the YES price each tick."""
        tracker = EquityTracker(equity=100.0)
        ticks = make_ticks([0.50, 0.60, 0.40])
        tracker.apply(Signal.buy(0.5), ticks[0])
        tracker.apply(Signal.hold(), ticks[1])
        tracker.apply(Signal.sell(), ticks[2])

        # Half of equity in at 0.50; +20% marked, then -20% realized
        assert tracker.equity_curve == pytest.approx([100.0, 100.0, 110.0, 90.0])
        assert not tracker.in_position

    def test_trades_inferred_without_strategy_trades(self):
        """Buy/sell pairs become trades when a strategy reports none."""
        strategy = ScriptedStrategy([Signal.buy(), Signal.hold(), Signal.sell()])
        result = make_engine([0.40, 0.45, 0.50]).run(
            BacktestConfig(market_id=MARKET, strategy=strategy)
        )

        assert len(result.trades) == 1
        assert result.trades[0].return_ == pytest.approx(0.25)
        assert result.strategy_name == "Scripted"

    def test_cost_config_injected_into_strategy(self):
        """Strategies see the run's cost model unless they set their own."""
        seen = {}

        class Recorder(ScriptedStrategy):
            def init(self, config=None):
                seen.update(config or {})
                return super().init(config)

        make_engine([0.5]).run(
            BacktestConfig(market_id=MARKET, strategy=Recorder([]), cost_config={"taker_fee": 0.01})
        )
        assert seen["cost_config"].taker_fee == 0.01

    def test_determinism(self):
        """Identical inputs give identical result records."""
        engine = make_engine([0.50, 0.45, 0.50, 0.44, 0.47, 0.52])
        config = BacktestConfig(
            market_id=MARKET, strategy="mean_reversion", strategy_config=MEAN_REVERSION
        )

        first = json.dumps(engine.run(config).to_dict(), sort_keys=True)
        second = json.dumps(engine.run(config).to_dict(), sort_keys=True)

        assert first == second


# =============================================================================
# Test Multi-Position Runs
# =============================================================================


class TestMultiPosition:
    """Tests for the position-manager mode."""

    def test_arbitrage_positions(self):
        """Arbitrage signals open YES + NO positions in the ledger."""
        engine = make_engine([0.47, 0.47, 0.50], [0.50, 0.50, 0.50])
        result = engine.run(
            BacktestConfig(
                market_id=MARKET,
                strategy="arbitrage",
                strategy_config={"position_size": 100, "max_positions": 5},
                multi_position=True,
            )
        )

        summary = result.position_summary
        assert summary["open_positions"] == 2
        assert summary["total_position_cost"] == pytest.approx(194.0)
        assert result.final_capital == pytest.approx(1006.0)
        assert len(result.equity_curve) == 4
        assert result.trades == []
        assert result.strategy_stats["opportunities_found"] == 2

    def test_sell_closes_most_recent(self):
        """A sell closes the last opened position."""
        strategy = ScriptedStrategy([Signal.buy(10), Signal.buy(10), Signal.sell()])
        result = make_engine([0.40, 0.50, 0.60]).run(
            BacktestConfig(market_id=MARKET, strategy=strategy, multi_position=True)
        )

        summary = result.position_summary
        assert summary["open_positions"] == 1
        # Second position: 10 @ 0.50 closed @ 0.60
        assert summary["total_realized_pnl"] == pytest.approx(1.0)

    def test_capital_errors_are_absorbed(self):
        """Insufficient funds and unknown ids leave the run going."""
        strategy = ScriptedStrategy(
            [Signal.buy(10_000), Signal.close_position(99), Signal.buy(10), Signal.close_all()]
        )
        result = make_engine([0.50, 0.50, 0.40, 0.50]).run(
            BacktestConfig(market_id=MARKET, strategy=strategy, multi_position=True)
        )

        assert result.data_points == 4
        assert result.position_summary["open_positions"] == 0
        assert result.position_summary["total_realized_pnl"] == pytest.approx(1.0)
        assert result.final_capital == pytest.approx(1001.0)
        assert len(result.equity_curve) == 5

    def test_mean_reversion_multi_position(self):
        """The same mean-reversion trade, sized in contracts."""
        result = make_engine([0.50, 0.45, 0.50]).run(
            BacktestConfig(
                market_id=MARKET,
                strategy="mean_reversion",
                strategy_config={**MEAN_REVERSION, "position_size": 100},
                multi_position=True,
            )
        )
        assert result.final_capital == pytest.approx(1005.0)
        assert len(result.trades) == 1


class TestZeroPrice:
    """Tests for entries at a YES price of 0 (resolved markets)."""

    @pytest.mark.parametrize("multi_position", [False, True])
    def test_entry_at_zero_completes(self, multi_position):
        """A buy at 0 is marked and closed with zero P&L instead of failing."""
        result = make_engine([0.5, 0.5, 0.0, 0.5]).run(
            BacktestConfig(
                market_id=MARKET,
                strategy="mean_reversion",
                strategy_config={"window_size": 3, "threshold": 0.05},
                multi_position=multi_position,
            )
        )

        assert result.data_points == 4
        assert len(result.trades) == 1
        assert result.trades[0].entry_price == 0.0
        assert result.trades[0].return_ == 0.0
        assert result.final_capital == pytest.approx(1000.0)
        assert result.equity_curve == pytest.approx([1000.0] * 5)

    def test_inferred_trade_from_zero(self):
        """FIFO inference gives a zero return for a zero entry."""
        ticks = make_ticks([0.0, 0.5])
        trades = infer_trades([(Signal.buy(), ticks[0]), (Signal.sell(), ticks[1])])
        assert trades[0].return_ == 0.0

    def test_tracker_marks_zero_entry(self):
        """The equity tracker keeps its equity flat around a zero entry."""
        tracker = EquityTracker(equity=100.0)
        ticks = make_ticks([0.0, 0.3])
        tracker.apply(Signal.buy(), ticks[0])
        tracker.apply(Signal.hold(), ticks[1])
        assert tracker.marked_equity(0.9) == 100.0


# =============================================================================
# Test Cancellation, Sweeps and Results
# =============================================================================


class TestRunControl:
    """Tests for cancellation and parameter sweeps."""

    def test_cancellation(self):
        """should_stop ends the run between ticks."""
        calls = {"n": 0}

        def stop_after_two() -> bool:
            calls["n"] += 1
            return calls["n"] > 2

        result = make_engine([0.50, 0.45, 0.50, 0.60]).run(
            BacktestConfig(
                market_id=MARKET, strategy="mean_reversion", strategy_config=MEAN_REVERSION
            ),
            should_stop=stop_after_two,
        )

        assert result.cancelled
        assert result.data_points == 2
        assert result.end_date == START + timedelta(minutes=1)
        assert result.trades == []

    def test_sweep(self):
        """One run per grid combination, first key slowest."""
        engine = make_engine([0.50, 0.45, 0.50, 0.44, 0.47, 0.52])
        results = engine.run_sweep(
            BacktestConfig(market_id=MARKET, strategy="mean_reversion"),
            {"window_size": [2, 3], "threshold": [0.05, 0.5]},
        )

        assert len(results) == 4
        assert [(r.strategy_config["window_size"], r.strategy_config["threshold"]) for r in results] == [
            (2, 0.05),
            (2, 0.5),
            (3, 0.05),
            (3, 0.5),
        ]
        # A 50% dip never happens
        assert results[1].trades == []

    def test_market_listing(self):
        """Market listing and stats come from the store."""
        engine = make_engine([0.4, 0.6])
        markets = engine.list_available_markets()
        assert [m.market_id for m in markets] == [MARKET]
        assert markets[0].data_points == 2

        stats = engine.market_stats(MARKET)
        assert stats.avg_yes_price == pytest.approx(0.5)
        assert stats.max_yes_price == 0.6

    def test_run_backtest_helper(self):
        """The convenience function builds the config."""
        store = InMemoryPriceStore({MARKET: make_ticks([0.50, 0.45, 0.50])})
        result = run_backtest(store, MARKET, ArbitrageStrategy(), initial_capital=500.0)
        assert result.initial_capital == 500.0
        assert result.strategy_name == "Arbitrage"


class TestResultRecord:
    """Tests for the plain result record."""

    def test_to_dict_is_json_safe(self):
        """Datetimes, enums and trades serialize to plain values."""
        result = make_engine([0.50, 0.45, 0.50]).run(
            BacktestConfig(
                market_id=MARKET, strategy="mean_reversion", strategy_config=MEAN_REVERSION
            )
        )
        record = result.to_dict()
        json.dumps(record)

        assert record["start_date"] == START.isoformat()
        assert record["trades"][0]["return"] == pytest.approx(0.1111, abs=1e-4)
        assert record["metrics"]["best_trade"]["entry_price"] == 0.45
        assert record["strategy_config"] == MEAN_REVERSION

    def test_candles_recorded_as_count(self):
        """Candle series in the strategy config are reduced to a count."""
        result = make_engine([0.5]).run(
            BacktestConfig(
                market_id=MARKET, strategy="indicator_combo", strategy_config={"candles": []}
            )
        )
        assert result.strategy_config == {"candle_count": 0}

    def test_print_summary(self):
        """The summary table renders."""
        result = make_engine([0.50, 0.45, 0.50]).run(
            BacktestConfig(
                market_id=MARKET, strategy="mean_reversion", strategy_config=MEAN_REVERSION
            )
        )
        console = Console(record=True, width=100)
        result.print_summary(console)
        text = console.export_text()
        assert "Mean Reversion" in text
        assert "Final capital" in text

    def test_infer_trades_fifo(self):
        """Sells close the oldest open buy."""
        ticks = make_ticks([0.40, 0.50, 0.60, 0.30])
        history = [
            (Signal.buy(), ticks[0]),
            (Signal.buy(), ticks[1]),
            (Signal.sell(), ticks[2]),
            (Signal.sell(), ticks[3]),
        ]
        trades = infer_trades(history)
        assert [(t.entry_price, t.exit_price) for t in trades] == [(0.40, 0.60), (0.50, 0.30)]
        assert all(isinstance(t, Trade) for t in trades)
