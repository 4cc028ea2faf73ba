"""
Binance Kline Fetcher.

Downloads BTC candles from Binance's public REST API for the
indicator-combo strategy and for offline analysis.
"""

import csv
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx

from pmbot.core.models import Candle
from pmbot.core.timing import to_unix_ms

logger = logging.getLogger(__name__)

KLINES_PATH = "/api/v3/klines"

# Maximum klines per request (Binance limit)
MAX_LIMIT = 1000

DAY_MS = 24 * 60 * 60_000

# Interval to milliseconds mapping
INTERVAL_MS = {
    "1m": 60_000,
    "3m": 3 * 60_000,
    "5m": 5 * 60_000,
    "15m": 15 * 60_000,
    "30m": 30 * 60_000,
    "1h": 60 * 60_000,
    "2h": 2 * 60 * 60_000,
    "4h": 4 * 60 * 60_000,
    "6h": 6 * 60 * 60_000,
    "12h": 12 * 60 * 60_000,
    "1d": DAY_MS,
}

CANDLE_FIELDS = ["open_time", "open", "high", "low", "close", "volume", "close_time"]


class BinanceAPIError(Exception):
    """Binance returned an HTTP error or an unexpected payload."""


@dataclass
class BinanceConfig:
    """Connection settings for the kline fetcher."""

    base_url: str = "https://api.binance.com"
    symbol: str = "BTCUSDT"
    interval: str = "1m"
    timeout: float = 10.0
    rate_limit_seconds: float = 0.1  # Pause between paginated requests

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.interval not in INTERVAL_MS:
            raise ValueError(
                f"Unsupported interval '{self.interval}'. Supported: {', '.join(INTERVAL_MS)}"
            )
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.rate_limit_seconds < 0:
            raise ValueError("rate_limit_seconds must not be negative")

    @property
    def interval_ms(self) -> int:
        return INTERVAL_MS[self.interval]


class BinanceKlineFetcher:
    """
    Fetches kline data from Binance.

    Usage:
        with BinanceKlineFetcher(BinanceConfig(symbol="BTCUSDT")) as fetcher:
            candles = fetcher.fetch_last_n_days(3)
            fetcher.save_csv(candles, "data/btc_1m.csv")
    """

    def __init__(
        self,
        config: BinanceConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            config: Connection settings (defaults to BTCUSDT 1m)
            client: Optional pre-built httpx client (e.g. with a mock transport)
        """
        self.config = config or BinanceConfig()
        self.client = client or httpx.Client(
            base_url=self.config.base_url, timeout=self.config.timeout
        )

    def fetch_klines(
        self,
        start_ms: int | None = None,
        end_ms: int | None = None,
        limit: int = 500,
    ) -> list[Candle]:
        """
        Fetch a single page of klines.

        Args:
            start_ms: Inclusive start (Unix ms)
            end_ms: Inclusive end (Unix ms)
            limit: Klines to request, capped at 1000

        Returns:
            Candles in ascending open_time order

        Raises:
            BinanceAPIError: On HTTP failure or a non-list response
        """
        params: dict[str, str | int] = {
            "symbol": self.config.symbol,
            "interval": self.config.interval,
            "limit": max(1, min(limit, MAX_LIMIT)),
        }
        if start_ms is not None:
            params["startTime"] = start_ms
        if end_ms is not None:
            params["endTime"] = end_ms

        try:
            response = self.client.get(KLINES_PATH, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise BinanceAPIError(f"Kline request failed: {e}") from e
        except ValueError as e:
            raise BinanceAPIError(f"Invalid kline response: {e}") from e

        if not isinstance(data, list):
            message = data.get("msg", "Unknown error") if isinstance(data, dict) else data
            raise BinanceAPIError(f"Binance API error: {message}")

        try:
            return [Candle.from_binance_kline(row) for row in data]
        except (IndexError, TypeError, ValueError) as e:
            raise BinanceAPIError(f"Malformed kline row: {e}") from e

    def fetch_all(self, start_ms: int, end_ms: int) -> list[Candle]:
        """
        Fetch every kline opening in [start_ms, end_ms), paginating forward.

        Returns:
            Candles sorted by open_time ascending
        """
        all_candles: list[Candle] = []
        current = start_ms
        request_count = 0

        while current < end_ms:
            batch = self.fetch_klines(current, end_ms - 1, MAX_LIMIT)
            if not batch:
                break

            all_candles.extend(c for c in batch if start_ms <= c.open_time < end_ms)
            request_count += 1

            next_start = batch[-1].open_time + self.config.interval_ms
            if next_start <= current or len(batch) < MAX_LIMIT:
                break
            current = next_start

            if request_count % 5 == 0:
                logger.info(f"... fetched {len(all_candles)} candles so far")

            # Rate limiting - be nice to the API
            time.sleep(self.config.rate_limit_seconds)

        all_candles.sort(key=lambda c: c.open_time)
        logger.info(
            f"Received {len(all_candles)} {self.config.symbol} {self.config.interval} candles "
            f"in {request_count} requests"
        )
        return all_candles

    def fetch_last_n_days(self, days: float, now: datetime | None = None) -> list[Candle]:
        """Fetch the candles of the last `days` days up to now."""
        if days <= 0:
            raise ValueError("days must be positive")

        end_ms = to_unix_ms(now or datetime.now(timezone.utc))
        start_ms = end_ms - int(days * DAY_MS)
        return self.fetch_all(start_ms, end_ms)

    def save_csv(self, candles: list[Candle], filepath: str | Path) -> Path:
        """
        Save candles to CSV file.

        Args:
            candles: List of candles to save
            filepath: Output file path

        Returns:
            Path to saved file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with filepath.open("w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CANDLE_FIELDS)
            writer.writeheader()
            for candle in candles:
                writer.writerow(candle.to_dict())

        logger.info(f"Saved {len(candles)} candles to {filepath}")
        return filepath

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> "BinanceKlineFetcher":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def aggregate_candles(candles: list[Candle], minutes: int) -> list[Candle]:
    """
    Roll candles up into epoch-aligned `minutes`-minute candles.

    Open is the first open, close the last close, high/low the extremes
    and volume the sum of each bucket.
    """
    if minutes <= 0:
        raise ValueError("minutes must be positive")

    period_ms = minutes * 60_000
    buckets: dict[int, list[Candle]] = {}
    for candle in sorted(candles, key=lambda c: c.open_time):
        buckets.setdefault(candle.open_time // period_ms * period_ms, []).append(candle)

    return [
        Candle(
            open_time=start,
            open=group[0].open,
            high=max(c.high for c in group),
            low=min(c.low for c in group),
            close=group[-1].close,
            volume=sum(c.volume for c in group),
            close_time=start + period_ms - 1,
        )
        for start, group in buckets.items()
    ]
