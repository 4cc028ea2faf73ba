"""
Historical data module for backtesting.

Provides two types of historical data:
1. Market ticks (YES/NO quotes) from a price-history store - what the backtest replays
2. BTC candles (OHLCV) from Binance - input for the indicator-combo strategy
"""

from pmbot.historical.binance import (
    BinanceAPIError,
    BinanceConfig,
    BinanceKlineFetcher,
    aggregate_candles,
)
from pmbot.historical.store import (
    CsvPriceStore,
    InMemoryPriceStore,
    MarketStats,
    MarketSummary,
    PriceHistoryStore,
    load_candles_csv,
)

__all__ = [
    # Market ticks
    "PriceHistoryStore",
    "InMemoryPriceStore",
    "CsvPriceStore",
    "MarketSummary",
    "MarketStats",
    # Candles (Binance)
    "BinanceConfig",
    "BinanceKlineFetcher",
    "BinanceAPIError",
    "aggregate_candles",
    "load_candles_csv",
]
