"""
pmbot - Strategy backtesting for binary-outcome prediction markets.

Layers (leaf first):
    core        -> PriceTick / Candle models and window timing
    indicators  -> pure math over candle sequences (VWAP, RSI, MACD, Heiken Ashi)
    engines     -> probability, edge and regime decisions built on indicators
    strategies  -> pluggable strategies driven by the tick-replay loop
    backtest    -> cost model, position ledger, metrics and the orchestrator
    historical  -> external data collaborators (price stores, candle fetcher)
"""

__version__ = "0.1.0"
