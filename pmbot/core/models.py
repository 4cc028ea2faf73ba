"""
Data models for market observations.

PriceTick is the unit the backtest replays. Candle is the OHLCV bar the
indicator library consumes.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PriceTick:
    """
    One YES/NO quote observation for a binary market.

    Example: YES @ $0.48, NO @ $0.50 -> the $0.02 gap below $1.00 is the
    arbitrage spread.
    """

    timestamp: datetime
    yes_price: float  # 0.0 - 1.0
    no_price: float  # 0.0 - 1.0
    volume: float | None = None
    liquidity: float | None = None

    # Optional orderbook data used by the cost model
    spread: float | None = None
    bid: float | None = None
    ask: float | None = None

    def __post_init__(self) -> None:
        """Validate quote ranges."""
        if not 0.0 <= self.yes_price <= 1.0:
            raise ValueError(f"yes_price must be between 0 and 1, got {self.yes_price}")
        if not 0.0 <= self.no_price <= 1.0:
            raise ValueError(f"no_price must be between 0 and 1, got {self.no_price}")

    @property
    def mid_sum(self) -> float:
        """Combined YES + NO price."""
        return self.yes_price + self.no_price

    @property
    def gross_spread(self) -> float:
        """What buying both sides locks in at resolution, before costs."""
        return 1.0 - self.mid_sum

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "yes_price": self.yes_price,
            "no_price": self.no_price,
            "volume": self.volume,
            "liquidity": self.liquidity,
            "spread": self.spread,
            "bid": self.bid,
            "ask": self.ask,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PriceTick":
        """Create a tick from a dictionary (e.g. a CSV row)."""
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        return cls(
            timestamp=timestamp,
            yes_price=float(data["yes_price"]),
            no_price=float(data["no_price"]),
            volume=_optional_float(data.get("volume")),
            liquidity=_optional_float(data.get("liquidity")),
            spread=_optional_float(data.get("spread")),
            bid=_optional_float(data.get("bid")),
            ask=_optional_float(data.get("ask")),
        )


@dataclass(frozen=True)
class Candle:
    """A single OHLCV candlestick. Times are Unix milliseconds."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int

    def __post_init__(self) -> None:
        """Validate OHLC consistency."""
        if self.high < max(self.open, self.close):
            raise ValueError(f"high {self.high} below open/close")
        if self.low > min(self.open, self.close):
            raise ValueError(f"low {self.low} above open/close")

    @property
    def is_bullish(self) -> bool:
        """Returns True if close >= open (green candle)."""
        return self.close >= self.open

    @property
    def typical_price(self) -> float:
        """(high + low + close) / 3, the VWAP input price."""
        return (self.high + self.low + self.close) / 3

    def to_dict(self) -> dict:
        """Convert to dictionary for CSV export."""
        return {
            "open_time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "close_time": self.close_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Candle":
        """Create a candle from a dictionary (e.g. a CSV row)."""
        return cls(
            open_time=int(data["open_time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
            close_time=int(data["close_time"]),
        )

    @classmethod
    def from_binance_kline(cls, row: list) -> "Candle":
        """
        Create from a Binance kline row.

        Binance returns: [openTime, open, high, low, close, volume, closeTime, ...]
        Prices and volume as strings, times as integers.
        """
        return cls(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time=int(row[6]),
        )


def _optional_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    return float(value)  # type: ignore[arg-type]
