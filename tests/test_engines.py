#!/usr/bin/env python3
"""
Unit tests for the decision engines (probability, edge, regime).

Run with:
    python -m pytest tests/test_engines.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for standalone execution
sys.path.insert(0, str(Path(__file__).parent.parent))

from pmbot.core.timing import Phase
from pmbot.engines import (
    Action,
    Bias,
    Regime,
    Side,
    Strength,
    apply_time_awareness,
    compute_edge,
    decide,
    detect_regime,
    determine_strength,
    is_tradeable,
    regime_bias,
    score_direction,
)
from pmbot.indicators import IndicatorSnapshot
from pmbot.indicators.macd import MACDResult

# =============================================================================
# Test Probability Engine
# =============================================================================


class TestScoreDirection:
    """Tests for direction scoring."""

    def test_empty_snapshot_is_even(self):
        """No indicators: 1 vs 1."""
        score = score_direction(IndicatorSnapshot())
        assert score.up_score == 1
        assert score.down_score == 1
        assert score.raw_up == 0.5
        assert score.raw_down == 0.5

    def test_all_bullish(self):
        """Every bullish condition adds its weight."""
        snapshot = IndicatorSnapshot(
            price=101.0,
            vwap=100.0,
            vwap_slope=0.5,
            rsi=60.0,
            rsi_slope=1.0,
            macd=MACDResult(macd_line=0.8, signal_line=0.5, histogram=0.3, hist_delta=0.1),
            heiken_color="green",
            heiken_count=3,
        )
        score = score_direction(snapshot)
        # 1 + 2 (vwap) + 2 (slope) + 2 (rsi) + 2 (hist) + 1 (line) + 1 (heiken)
        assert score.up_score == 11
        assert score.down_score == 1
        assert score.raw_up == pytest.approx(11 / 12)

    def test_failed_reclaim_weighs_down(self):
        """Failed VWAP reclaim adds three to the down side."""
        score = score_direction(IndicatorSnapshot(failed_vwap_reclaim=True))
        assert score.down_score == 4
        assert score.raw_up == pytest.approx(0.2)

    def test_macd_needs_hist_delta(self):
        """MACD contributes nothing without a histogram delta."""
        snapshot = IndicatorSnapshot(macd=MACDResult(macd_line=1.0, signal_line=0.5, histogram=0.5))
        assert score_direction(snapshot).up_score == 1

    def test_single_heiken_candle_ignored(self):
        """A run of one candle does not count."""
        snapshot = IndicatorSnapshot(heiken_color="red", heiken_count=1)
        assert score_direction(snapshot).down_score == 1

    def test_rsi_needs_matching_slope(self):
        """High RSI falling is neutral."""
        snapshot = IndicatorSnapshot(rsi=70.0, rsi_slope=-1.0)
        score = score_direction(snapshot)
        assert (score.up_score, score.down_score) == (1, 1)


class TestTimeAwareness:
    """Tests for time decay toward 50/50."""

    def test_full_window_keeps_raw(self):
        """With the whole window left, probability is unchanged."""
        adjusted = apply_time_awareness(0.8, 15, 15)
        assert adjusted.time_decay == 1.0
        assert adjusted.adjusted_up == pytest.approx(0.8)
        assert adjusted.adjusted_down == pytest.approx(0.2)

    def test_half_window(self):
        """Halfway the edge over 50% halves."""
        adjusted = apply_time_awareness(0.8, 7.5, 15)
        assert adjusted.adjusted_up == pytest.approx(0.65)

    def test_expired_and_invalid(self):
        """Expired windows and non-positive windows go to 50/50."""
        assert apply_time_awareness(0.9, 0, 15).adjusted_up == 0.5
        assert apply_time_awareness(0.9, -3, 15).time_decay == 0.0
        invalid = apply_time_awareness(0.9, 5, 0)
        assert (invalid.time_decay, invalid.adjusted_up, invalid.adjusted_down) == (0.0, 0.5, 0.5)


# =============================================================================
# Test Edge Engine
# =============================================================================


class TestComputeEdge:
    """Tests for model vs market edge."""

    def test_normalizes_market(self):
        """Quotes are normalized by their sum."""
        edge = compute_edge(0.6, 0.4, 0.48, 0.48)
        assert edge.market_up == pytest.approx(0.5)
        assert edge.edge_up == pytest.approx(0.1)
        assert edge.edge_down == pytest.approx(-0.1)

    def test_missing_quotes(self):
        """Missing or zero quotes give no edge."""
        assert compute_edge(0.6, 0.4, None, 0.5).edge_up is None
        assert compute_edge(0.6, 0.4, 0.0, 0.0).edge_down is None


class TestDecide:
    """Tests for the trade decision."""

    def test_early_optional_entry(self):
        """12 minutes left, 6% edge, 60% model: optional early up entry."""
        decision = decide(12, 0.06, -0.06, model_up=0.60, model_down=0.40)
        assert decision.action == Action.ENTER
        assert decision.phase == Phase.EARLY
        assert decision.side == Side.UP
        assert decision.strength == Strength.OPTIONAL
        assert decision.should_enter

    def test_missing_market_data(self):
        """No edge means no trade."""
        decision = decide(12, None, 0.1)
        assert decision.action == Action.NO_TRADE
        assert decision.reason == "missing_market_data"

    def test_edge_below_phase_threshold(self):
        """A 6% edge is not enough in the mid phase."""
        decision = decide(8, 0.06, -0.06)
        assert decision.action == Action.NO_TRADE
        assert decision.phase == Phase.MID
        assert decision.reason == "edge_below_0.1"

    def test_probability_below_minimum(self):
        """Enough edge but a weak model probability."""
        decision = decide(3, -0.3, 0.25, model_up=0.35, model_down=0.6)
        assert decision.phase == Phase.LATE
        assert decision.reason == "prob_below_0.65"

    def test_tie_picks_down(self):
        """Equal edges favor the down side."""
        decision = decide(12, 0.1, 0.1)
        assert decision.side == Side.DOWN
        assert decision.strength == Strength.GOOD

    def test_strength_levels(self):
        """Strength tiers at 10% and 20%."""
        assert determine_strength(0.25) == Strength.STRONG
        assert determine_strength(0.10) == Strength.GOOD
        assert determine_strength(0.05) == Strength.OPTIONAL


# =============================================================================
# Test Regime Engine
# =============================================================================


class TestRegime:
    """Tests for regime detection."""

    def test_missing_inputs_is_chop(self):
        """Without VWAP the regime is chop."""
        result = detect_regime(100.0, None, 0.1)
        assert result.regime == Regime.CHOP
        assert result.reason == "missing_inputs"

    def test_low_volume_flat(self):
        """Thin volume hugging VWAP is chop."""
        result = detect_regime(100.0, 100.05, 0.1, 0, volume_recent=5.0, volume_avg=10.0)
        assert result.reason == "low_volume_flat"

    def test_frequent_crosses_is_range(self):
        """Frequent crosses override trend."""
        result = detect_regime(101.0, 100.0, 0.5, vwap_cross_count=3)
        assert result.regime == Regime.RANGE
        assert result.reason == "frequent_vwap_cross"

    def test_trends(self):
        """Price and slope agreeing gives a trend."""
        assert detect_regime(101.0, 100.0, 0.5).regime == Regime.TREND_UP
        assert detect_regime(99.0, 100.0, -0.5).regime == Regime.TREND_DOWN
        assert detect_regime(101.0, 100.0, -0.5).reason == "default"

    def test_zero_vwap_does_not_divide(self):
        """A zero VWAP skips the flat-price check."""
        result = detect_regime(1.0, 0.0, 0.5, volume_recent=1.0, volume_avg=10.0)
        assert result.regime == Regime.TREND_UP

    def test_bias_and_tradeable(self):
        """Bias follows trend direction; chop is not tradeable."""
        assert regime_bias(Regime.TREND_UP) == Bias.LONG
        assert regime_bias(Regime.TREND_DOWN) == Bias.SHORT
        assert regime_bias(Regime.RANGE) == Bias.NEUTRAL
        assert not is_tradeable(Regime.CHOP)
        assert is_tradeable(Regime.RANGE)
