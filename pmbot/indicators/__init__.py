"""
Technical Indicators Module - Pure math functions for market analysis.

All functions are stateless and operate on price/candle data. They return
None (not raise) when the input is too short.
"""

from .heiken_ashi import CandleRun, HeikenAshiCandle, count_consecutive, heiken_ashi
from .macd import MACDResult, macd
from .moving_averages import ema, ema_series, slope, sma
from .rsi import rsi, rsi_series
from .snapshot import (
    IndicatorConfig,
    IndicatorSnapshot,
    compute_snapshot,
    detect_failed_vwap_reclaim,
)
from .vwap import count_crosses, session_vwap, vwap_series

__all__ = [
    # Moving Averages
    "sma",
    "ema",
    "ema_series",
    "slope",
    # VWAP
    "session_vwap",
    "vwap_series",
    "count_crosses",
    # RSI
    "rsi",
    "rsi_series",
    # MACD
    "macd",
    "MACDResult",
    # Heiken Ashi
    "heiken_ashi",
    "count_consecutive",
    "HeikenAshiCandle",
    "CandleRun",
    # Snapshot
    "IndicatorConfig",
    "IndicatorSnapshot",
    "compute_snapshot",
    "detect_failed_vwap_reclaim",
]
