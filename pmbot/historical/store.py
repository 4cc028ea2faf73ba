"""
Price History Stores - read-only sources of recorded market ticks.

The backtest engine only needs load_ticks(); list_markets() and
market_stats() back the CLI's market listing. Stores are read-only once
loaded, so one store can serve concurrent backtests.
"""

import csv
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pmbot.core.models import Candle, PriceTick
from pmbot.core.timing import to_unix_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketSummary:
    """A market with recorded data."""

    market_id: str
    data_points: int
    first_snapshot: datetime
    last_snapshot: datetime


@dataclass(frozen=True)
class MarketStats:
    """Summary statistics for one market's history."""

    data_points: int
    first_snapshot: datetime | None
    last_snapshot: datetime | None
    avg_yes_price: float | None
    min_yes_price: float | None
    max_yes_price: float | None


class PriceHistoryStore(Protocol):
    """Protocol for price-history stores."""

    def load_ticks(
        self,
        market_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[PriceTick]: ...

    def list_markets(self) -> list[MarketSummary]: ...

    def market_stats(self, market_id: str) -> MarketStats: ...


class InMemoryPriceStore:
    """
    Price history held in memory, keyed by market id.

    Usage:
        store = InMemoryPriceStore({"btc-up-15m": ticks})
        ticks = store.load_ticks("btc-up-15m", start=datetime(2026, 2, 1))
    """

    def __init__(self, markets: dict[str, Iterable[PriceTick]] | None = None) -> None:
        self._markets: dict[str, list[PriceTick]] = {}
        for market_id, ticks in (markets or {}).items():
            self.add_ticks(market_id, ticks)

    def add_ticks(self, market_id: str, ticks: Iterable[PriceTick]) -> None:
        """Add ticks for a market, keeping them sorted by timestamp."""
        existing = self._markets.setdefault(market_id, [])
        existing.extend(ticks)
        existing.sort(key=lambda t: to_unix_ms(t.timestamp))

    def load_ticks(
        self,
        market_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[PriceTick]:
        """
        Ticks for a market in timestamp order, within [start, end] when given.

        Unknown markets give an empty list.
        """
        start_ms = to_unix_ms(start) if start else None
        end_ms = to_unix_ms(end) if end else None

        result = []
        for tick in self._markets.get(market_id, []):
            tick_ms = to_unix_ms(tick.timestamp)
            if start_ms is not None and tick_ms < start_ms:
                continue
            if end_ms is not None and tick_ms > end_ms:
                continue
            result.append(tick)
        return result

    def list_markets(self) -> list[MarketSummary]:
        """Markets with data, most data points first."""
        summaries = [
            MarketSummary(
                market_id=market_id,
                data_points=len(ticks),
                first_snapshot=ticks[0].timestamp,
                last_snapshot=ticks[-1].timestamp,
            )
            for market_id, ticks in self._markets.items()
            if ticks
        ]
        return sorted(summaries, key=lambda s: (-s.data_points, s.market_id))

    def market_stats(self, market_id: str) -> MarketStats:
        ticks = self._markets.get(market_id, [])
        if not ticks:
            return MarketStats(0, None, None, None, None, None)

        yes_prices = [t.yes_price for t in ticks]
        return MarketStats(
            data_points=len(ticks),
            first_snapshot=ticks[0].timestamp,
            last_snapshot=ticks[-1].timestamp,
            avg_yes_price=sum(yes_prices) / len(yes_prices),
            min_yes_price=min(yes_prices),
            max_yes_price=max(yes_prices),
        )

    def __len__(self) -> int:
        return sum(len(ticks) for ticks in self._markets.values())


class CsvPriceStore(InMemoryPriceStore):
    """
    Price history loaded from a CSV file.

    Expected columns: market_id, timestamp (ISO-8601), yes_price, no_price,
    and optionally volume, liquidity, spread, bid, ask.

    Usage:
        store = CsvPriceStore("data/prices.csv")
        print(store.list_markets())
    """

    def __init__(self, filepath: str | Path) -> None:
        """
        Load ticks from a CSV file.

        Args:
            filepath: Path to the CSV file

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file has no rows or lacks required columns
        """
        super().__init__()
        self.filepath = Path(filepath)
        if not self.filepath.exists():
            raise FileNotFoundError(f"Price history file not found: {filepath}")

        self._load_data()

    def _load_data(self) -> None:
        """Load CSV data into memory."""
        required = {"market_id", "timestamp", "yes_price", "no_price"}
        by_market: dict[str, list[PriceTick]] = {}

        with self.filepath.open(newline="") as f:
            reader = csv.DictReader(f)
            missing = required - set(reader.fieldnames or [])
            if missing:
                raise ValueError(
                    f"{self.filepath} is missing columns: {', '.join(sorted(missing))}"
                )

            for line_no, row in enumerate(reader, start=2):
                try:
                    tick = PriceTick.from_dict(row)
                except ValueError as e:
                    logger.warning(f"Skipping {self.filepath.name}:{line_no}: {e}")
                    continue
                by_market.setdefault(row["market_id"], []).append(tick)

        if not by_market:
            raise ValueError(f"No data found in {self.filepath}")

        for market_id, ticks in by_market.items():
            self.add_ticks(market_id, ticks)

        logger.info(f"Loaded {len(self)} ticks for {len(by_market)} markets from {self.filepath}")

    def __repr__(self) -> str:
        return f"CsvPriceStore({self.filepath}, {len(self)} ticks)"


def load_candles_csv(filepath: str | Path) -> list[Candle]:
    """
    Load candles from a CSV with open_time, open, high, low, close, volume,
    close_time columns (as written by BinanceKlineFetcher.save_csv).
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Candle file not found: {filepath}")

    with filepath.open(newline="") as f:
        candles = [Candle.from_dict(row) for row in csv.DictReader(f)]

    candles.sort(key=lambda c: c.open_time)
    return candles
