"""
Indicator-Combo Strategy - technical-analysis signals for short BTC windows.

Each tick:
1. Take the BTC candles closed at or before the tick (no look-ahead)
2. Compute the indicator snapshot (VWAP, RSI, MACD, Heiken Ashi)
3. Score direction and decay it toward 50/50 as the window runs out
4. Compare model probability with the market's YES/NO quotes
5. Enter when the edge clears the phase threshold

Regime is recorded with every evaluation but does not gate entries.
Once in a position the strategy holds; it defines no exit.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pmbot.core.timing import get_window_timing, group_candles_by_window, to_unix_ms
from pmbot.engines.edge import Action, Side, compute_edge, decide
from pmbot.engines.probability import apply_time_awareness, score_direction
from pmbot.engines.regime import RegimeResult, detect_regime
from pmbot.indicators.snapshot import IndicatorConfig, IndicatorSnapshot, compute_snapshot
from pmbot.strategies.base import Signal, Strategy

if TYPE_CHECKING:
    from pmbot.core.models import Candle, PriceTick

logger = logging.getLogger(__name__)

# Evaluations kept in the signal log
SIGNAL_LOG_LIMIT = 100
# Candles averaged for "recent" volume in regime detection
RECENT_VOLUME_CANDLES = 5


@dataclass
class IndicatorComboState:
    config: dict[str, Any]
    indicator_config: IndicatorConfig
    candles: list["Candle"]
    cursor: int = 0  # Candles [0, cursor) have closed
    position: str | None = None
    entry_price: float | None = None
    entry_side: Side | None = None
    entry_edge: float | None = None
    trades: list[dict[str, Any]] = field(default_factory=list)
    signals: deque[dict[str, Any]] = field(default_factory=lambda: deque(maxlen=SIGNAL_LOG_LIMIT))
    evaluations: int = 0


def detect_window_regime(
    candles: list["Candle"],
    snapshot: IndicatorSnapshot,
) -> RegimeResult:
    """Regime for a candle window, with recent volume over the last five candles."""
    volumes = [c.volume for c in candles]
    volume_recent = sum(volumes[-RECENT_VOLUME_CANDLES:]) / RECENT_VOLUME_CANDLES
    volume_avg = sum(volumes) / len(volumes) if volumes else None

    return detect_regime(
        price=snapshot.price,
        vwap=snapshot.vwap,
        vwap_slope=snapshot.vwap_slope,
        vwap_cross_count=snapshot.vwap_cross_count,
        volume_recent=volume_recent,
        volume_avg=volume_avg,
    )


class IndicatorComboStrategy(Strategy[IndicatorComboState]):
    """VWAP / RSI / MACD / Heiken Ashi probability model traded against the market."""

    display_name = "Indicator Combo"
    DEFAULT_CONFIG = {
        "window_minutes": 15,
        "vwap_slope_lookback": 5,
        "rsi_period": 14,
        "rsi_slope_lookback": 3,
        "macd_fast": 12,
        "macd_slow": 26,
        "macd_signal": 9,
        "position_size": 1.0,
        "min_candles": 30,
        "max_candles": 240,
        "candles": [],
    }

    def init(self, config: dict[str, Any] | None = None) -> IndicatorComboState:
        config = self.merge_config(config)
        if config["window_minutes"] <= 0:
            raise ValueError("window_minutes must be positive")

        candles = sorted(config.get("candles") or [], key=lambda c: c.close_time)
        if not candles:
            logger.warning("Indicator combo strategy has no candles; it will only hold")

        return IndicatorComboState(
            config=config,
            indicator_config=IndicatorConfig.from_dict(config),
            candles=candles,
        )

    def _visible_candles(self, tick_ms: int, state: IndicatorComboState) -> list["Candle"]:
        """Candles closed at or before tick_ms, capped to max_candles."""
        candles = state.candles
        while state.cursor < len(candles) and candles[state.cursor].close_time <= tick_ms:
            state.cursor += 1

        start = max(0, state.cursor - state.config["max_candles"])
        return candles[start : state.cursor]

    def on_price(
        self, tick: "PriceTick", state: IndicatorComboState
    ) -> tuple[Signal, IndicatorComboState]:
        config = state.config
        window = self._visible_candles(to_unix_ms(tick.timestamp), state)

        if len(window) < config["min_candles"]:
            return Signal.hold(), state

        timing = get_window_timing(tick.timestamp, config["window_minutes"])
        remaining = timing.remaining_minutes

        snapshot = compute_snapshot(window, state.indicator_config)
        score = score_direction(snapshot)
        adjusted = apply_time_awareness(score.raw_up, remaining, config["window_minutes"])

        edge = compute_edge(
            adjusted.adjusted_up, adjusted.adjusted_down, tick.yes_price, tick.no_price
        )
        decision = decide(
            remaining_minutes=remaining,
            edge_up=edge.edge_up,
            edge_down=edge.edge_down,
            model_up=adjusted.adjusted_up,
            model_down=adjusted.adjusted_down,
        )
        regime = detect_window_regime(window, snapshot)

        state.evaluations += 1
        state.signals.append(
            {
                "timestamp": tick.timestamp,
                "remaining_minutes": remaining,
                "phase": decision.phase,
                "indicators": snapshot.to_dict(),
                "raw_up": score.raw_up,
                "model_up": adjusted.adjusted_up,
                "model_down": adjusted.adjusted_down,
                "market_yes": tick.yes_price,
                "market_no": tick.no_price,
                "edge_up": edge.edge_up,
                "edge_down": edge.edge_down,
                "action": decision.action,
                "side": decision.side,
                "reason": decision.reason,
                "regime": regime.regime,
            }
        )

        # Already positioned: hold until an explicit exit
        if decision.action != Action.ENTER or state.position is not None:
            return Signal.hold(), state

        state.position = "long"
        state.entry_side = decision.side
        state.entry_edge = decision.edge
        state.entry_price = tick.yes_price if decision.side == Side.UP else tick.no_price
        logger.debug(
            f"Enter {decision.side.value} @ {state.entry_price:.4f} "
            f"(edge {decision.edge:.3f}, {decision.strength.value})"
        )
        return Signal.buy(config["position_size"]), state

    def on_complete(self, state: IndicatorComboState) -> dict[str, Any]:
        trades = state.trades
        wins = sum(1 for t in trades if t.get("return", 0) > 0)
        edges = [t.get("edge") or 0.0 for t in trades]

        return {
            "total_trades": len(trades),
            "trades": list(trades),
            "signals": list(state.signals),
            "signals_evaluated": state.evaluations,
            "final_position": state.position,
            "entry_side": state.entry_side,
            "entry_edge": state.entry_edge,
            "win_rate": wins / len(trades) * 100 if trades else 0.0,
            "avg_edge": sum(edges) / len(edges) if edges else 0.0,
        }


def analyze_historical(
    candles: list["Candle"],
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Score every window of a candle history without market quotes.

    Candles are grouped into epoch-aligned windows; windows with fewer than
    min_candles are skipped.

    Returns:
        {"signals": [...], "summary": {total_windows, avg_raw_up, regime_distribution}}
    """
    config = IndicatorComboStrategy().merge_config(config)
    indicator_config = IndicatorConfig.from_dict(config)

    signals: list[dict[str, Any]] = []
    for window_start, window_candles in group_candles_by_window(candles, config["window_minutes"]):
        if len(window_candles) < config["min_candles"]:
            continue

        snapshot = compute_snapshot(window_candles, indicator_config)
        score = score_direction(snapshot)
        regime = detect_window_regime(window_candles, snapshot)

        signals.append(
            {
                "window_start": datetime.fromtimestamp(window_start / 1000, tz=timezone.utc),
                "indicators": snapshot.to_dict(),
                "direction_score": score,
                "raw_up": score.raw_up,
                "regime": regime.regime,
            }
        )

    raw_ups = [s["raw_up"] for s in signals]
    regimes = Counter(s["regime"].value for s in signals)

    return {
        "signals": signals,
        "summary": {
            "total_windows": len(signals),
            "avg_raw_up": sum(raw_ups) / len(raw_ups) if raw_ups else 0.0,
            "regime_distribution": dict(sorted(regimes.items())),
        },
    }
