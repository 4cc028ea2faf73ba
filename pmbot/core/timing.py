"""
Window Timing - position of a timestamp inside a fixed trading window.

Prediction markets on short BTC moves resolve on fixed windows (15 minutes
by default) aligned to the epoch. Everything here is derived from the
timestamp passed in; nothing reads the wall clock, so replays stay
deterministic.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pmbot.core.models import Candle


class Phase(str, Enum):
    """Trading phase inside a window."""

    EARLY = "early"  # > 10 minutes remaining
    MID = "mid"  # 5 - 10 minutes remaining
    LATE = "late"  # <= 5 minutes remaining


@dataclass(frozen=True)
class WindowTiming:
    """Where a timestamp falls inside its window."""

    start_ms: int
    end_ms: int
    elapsed_ms: int
    remaining_ms: int

    @property
    def window_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def start_dt(self) -> datetime:
        return datetime.fromtimestamp(self.start_ms / 1000, tz=timezone.utc)

    @property
    def end_dt(self) -> datetime:
        return datetime.fromtimestamp(self.end_ms / 1000, tz=timezone.utc)

    @property
    def elapsed_minutes(self) -> float:
        return self.elapsed_ms / 60_000

    @property
    def remaining_minutes(self) -> float:
        return self.remaining_ms / 60_000

    @property
    def progress(self) -> float:
        """Progress through the window (0.0 to 1.0)."""
        return self.elapsed_ms / self.window_ms


def to_unix_ms(timestamp: datetime) -> int:
    """Convert a datetime to Unix milliseconds. Naive datetimes are read as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return int(timestamp.timestamp() * 1000)


def get_window_timing(timestamp: datetime, window_minutes: int = 15) -> WindowTiming:
    """
    Get timing information for the window containing a timestamp.

    Args:
        timestamp: Point in time (usually the tick timestamp)
        window_minutes: Window duration in minutes (default 15)

    Returns:
        WindowTiming with start/end and elapsed/remaining milliseconds
    """
    if window_minutes <= 0:
        raise ValueError("window_minutes must be positive")

    now_ms = to_unix_ms(timestamp)
    window_ms = window_minutes * 60 * 1000
    start_ms = (now_ms // window_ms) * window_ms
    end_ms = start_ms + window_ms

    return WindowTiming(
        start_ms=start_ms,
        end_ms=end_ms,
        elapsed_ms=now_ms - start_ms,
        remaining_ms=end_ms - now_ms,
    )


def get_phase(remaining_minutes: float) -> Phase:
    """
    Determine the trading phase from minutes remaining.

    EARLY above 10 minutes, MID above 5 minutes, LATE otherwise.
    """
    if remaining_minutes > 10:
        return Phase.EARLY
    if remaining_minutes > 5:
        return Phase.MID
    return Phase.LATE


def is_tradeable_window(remaining_minutes: float, window_minutes: int = 15) -> bool:
    """False in the first minute (no data yet) and the last minute (too close to expiry)."""
    return 1.0 <= remaining_minutes <= window_minutes - 1.0


def next_window_start(timestamp: datetime, window_minutes: int = 15) -> datetime:
    """Start of the window following the one containing timestamp."""
    return get_window_timing(timestamp, window_minutes).end_dt


def group_candles_by_window(
    candles: list["Candle"],
    window_minutes: int = 15,
) -> list[tuple[int, list["Candle"]]]:
    """
    Group candles into windows aligned to the epoch (0, 15, 30, 45 for 15m).

    Returns:
        List of (window_start_ms, candles) sorted by window start, candles
        inside each window sorted by open_time
    """
    window_ms = window_minutes * 60 * 1000
    groups: dict[int, list[Candle]] = {}

    for candle in candles:
        window_start = (candle.open_time // window_ms) * window_ms
        groups.setdefault(window_start, []).append(candle)

    return [
        (start, sorted(group, key=lambda c: c.open_time))
        for start, group in sorted(groups.items())
    ]
