"""
Indicator Snapshot - every indicator the decision engines read, in one bundle.

compute_snapshot() runs the whole indicator library over a candle window.
Fields are None when the window is too short for that indicator.
"""

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

from .heiken_ashi import count_consecutive, heiken_ashi
from .macd import MACDResult, macd
from .moving_averages import slope
from .rsi import rsi, rsi_series
from .vwap import count_crosses, session_vwap, vwap_series

if TYPE_CHECKING:
    from pmbot.core.models import Candle

# Candles inspected by the failed-reclaim pattern
RECLAIM_LOOKBACK = 5


@dataclass
class IndicatorConfig:
    """Lookback settings for compute_snapshot."""

    vwap_slope_lookback: int = 5
    rsi_period: int = 14
    rsi_slope_lookback: int = 3
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) <= 0:
                raise ValueError(f"{f.name} must be positive")
        if self.macd_fast >= self.macd_slow:
            raise ValueError("macd_fast must be less than macd_slow")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndicatorConfig":
        """Pick the indicator keys out of a (larger) strategy config."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class IndicatorSnapshot:
    """Indicator values at the last candle of a window."""

    price: float | None = None
    vwap: float | None = None
    vwap_slope: float | None = None
    vwap_cross_count: int = 0
    rsi: float | None = None
    rsi_slope: float | None = None
    macd: MACDResult | None = None
    heiken_color: str | None = None
    heiken_count: int = 0
    failed_vwap_reclaim: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "vwap": self.vwap,
            "vwap_slope": self.vwap_slope,
            "vwap_cross_count": self.vwap_cross_count,
            "rsi": self.rsi,
            "rsi_slope": self.rsi_slope,
            "macd": self.macd.to_dict() if self.macd else None,
            "heiken_color": self.heiken_color,
            "heiken_count": self.heiken_count,
            "failed_vwap_reclaim": self.failed_vwap_reclaim,
        }


def detect_failed_vwap_reclaim(candles: list["Candle"], vwap: float | None) -> bool:
    """
    Failed VWAP reclaim over the last five closes.

    The first two closes sit below VWAP, one of the next two pokes above it,
    and the final close is back below.
    """
    if vwap is None or len(candles) < RECLAIM_LOOKBACK:
        return False

    closes = [c.close for c in candles[-RECLAIM_LOOKBACK:]]

    below_before = all(c < vwap for c in closes[:2])
    crossed_above = any(c > vwap for c in closes[1:3])
    back_below = closes[-1] < vwap

    return below_before and crossed_above and back_below


def compute_snapshot(
    candles: list["Candle"],
    config: IndicatorConfig | None = None,
) -> IndicatorSnapshot:
    """
    Compute the full indicator snapshot for a candle window.

    Args:
        candles: Window of candles (oldest first)
        config: Lookback settings (defaults when None)

    Returns:
        IndicatorSnapshot; an empty window gives all-None fields
    """
    config = config or IndicatorConfig()
    if not candles:
        return IndicatorSnapshot()

    closes = [c.close for c in candles]

    vwap = session_vwap(candles)
    vwaps = vwap_series(candles)

    # Slope only over the RSI points that exist
    rsi_values = [v for v in rsi_series(closes, config.rsi_period) if v is not None]

    ha_run = count_consecutive(heiken_ashi(candles))

    return IndicatorSnapshot(
        price=closes[-1],
        vwap=vwap,
        vwap_slope=slope(vwaps, config.vwap_slope_lookback),
        vwap_cross_count=count_crosses(closes, vwaps),
        rsi=rsi(closes, config.rsi_period),
        rsi_slope=slope(rsi_values, config.rsi_slope_lookback),
        macd=macd(closes, config.macd_fast, config.macd_slow, config.macd_signal),
        heiken_color=ha_run.color,
        heiken_count=ha_run.count,
        failed_vwap_reclaim=detect_failed_vwap_reclaim(candles, vwap),
    )
