"""
Core module - data models and timing helpers shared by every layer.
"""

from .models import Candle, PriceTick
from .timing import (
    Phase,
    WindowTiming,
    get_phase,
    get_window_timing,
    group_candles_by_window,
    is_tradeable_window,
    next_window_start,
    to_unix_ms,
)

__all__ = [
    # Models
    "PriceTick",
    "Candle",
    # Timing
    "Phase",
    "WindowTiming",
    "get_window_timing",
    "get_phase",
    "is_tradeable_window",
    "next_window_start",
    "group_candles_by_window",
    "to_unix_ms",
]
