#!/usr/bin/env python3
"""
Unit tests for performance metrics.

Run with:
    python -m pytest tests/test_metrics.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for standalone execution
sys.path.insert(0, str(Path(__file__).parent.parent))

from pmbot.backtest import metrics
from pmbot.backtest.models import Trade


def trades_from(returns: list[float]) -> list[dict]:
    return [{"return": r} for r in returns]


class TestMetrics:
    """Tests for individual metric functions."""

    def test_total_return_compounds(self):
        """(1 + r1)(1 + r2) - 1."""
        assert metrics.total_return(trades_from([0.1, -0.05])) == pytest.approx(1.1 * 0.95 - 1)

    def test_trade_objects_and_mappings(self):
        """Trade objects and mappings are interchangeable."""
        trade = Trade(entry_price=0.4, exit_price=0.5, return_=0.25)
        assert metrics.trade_return(trade) == 0.25
        assert metrics.trade_return({"return": 0.25}) == 0.25

    def test_missing_return_counts_as_zero(self):
        """Trades without a numeric return count as 0."""
        assert metrics.trade_return({}) == 0.0
        assert metrics.trade_return({"return": "n/a"}) == 0.0
        assert metrics.trade_return({"return": True}) == 0.0

    def test_win_rate_and_averages(self):
        """Wins, losses and their averages."""
        trades = trades_from([0.2, -0.1, 0.1, 0.0])
        assert metrics.win_rate(trades) == pytest.approx(0.5)
        assert metrics.avg_win(trades) == pytest.approx(0.15)
        assert metrics.avg_loss(trades) == pytest.approx(-0.1)
        assert metrics.count_wins(trades) == 2
        assert metrics.count_losses(trades) == 1

    def test_profit_factor(self):
        """Gross profit over gross loss, sentinel without losses."""
        assert metrics.profit_factor(trades_from([0.2, -0.1])) == pytest.approx(2.0)
        assert metrics.profit_factor(trades_from([0.2, 0.1])) == metrics.PROFIT_FACTOR_CAP
        assert metrics.profit_factor(trades_from([0.0])) == 0.0

    def test_max_drawdown(self):
        """Peak-to-trough over the compounded path."""
        # 1.0 -> 1.5 -> 0.75 -> 0.825
        dd = metrics.max_drawdown(trades_from([0.5, -0.5, 0.1]))
        assert dd == pytest.approx(0.5)
        assert metrics.max_drawdown(trades_from([0.1, 0.1])) == 0.0

    def test_sharpe_ratio(self):
        """Mean over sample std-dev; 0 for fewer than two trades or no variance."""
        trades = trades_from([0.1, 0.3])
        # mean 0.2, sample std sqrt(0.02)
        assert metrics.sharpe_ratio(trades) == pytest.approx(0.2 / 0.02**0.5)
        assert metrics.sharpe_ratio(trades, risk_free_rate=0.2) == pytest.approx(0.0)
        assert metrics.sharpe_ratio(trades_from([0.1])) == 0.0
        assert metrics.sharpe_ratio(trades_from([0.1, 0.1])) == 0.0

    def test_expectancy(self):
        """win_rate * avg_win - loss_rate * |avg_loss|."""
        trades = trades_from([0.2, -0.1])
        assert metrics.expectancy(trades) == pytest.approx(0.5 * 0.2 - 0.5 * 0.1)

    def test_best_and_worst(self):
        """Best and worst return the trade objects themselves."""
        trades = trades_from([0.2, -0.1, 0.05])
        assert metrics.best_trade(trades) is trades[0]
        assert metrics.worst_trade(trades) is trades[1]


class TestCalculate:
    """Tests for the aggregate calculate()."""

    def test_no_trades(self):
        """No trades gives zero-valued metrics."""
        assert metrics.calculate([]) == metrics.empty_metrics()
        assert metrics.calculate([])["best_trade"] is None

    def test_all_keys(self):
        """Every metric is reported."""
        result = metrics.calculate(trades_from([0.1, -0.05, 0.2]))
        assert set(result) == set(metrics.empty_metrics())
        assert result["total_trades"] == 3
        assert result["winning_trades"] == 2
        assert result["losing_trades"] == 1
