#!/usr/bin/env python3
"""
Run a prediction-market backtest.

Usage:
    python run_backtest.py --data prices.csv --market btc-up-15m --strategy mean_reversion
    python run_backtest.py --data prices.csv --market btc-up-15m --strategy arbitrage --costs
    python run_backtest.py --data prices.csv --market btc-up-15m --strategy momentum \\
        --config lookback=5 --config stop_loss=0.05
    python run_backtest.py --data prices.csv --market btc-up-15m --strategy indicator_combo \\
        --candles btc_1m.csv
    python run_backtest.py --data prices.csv --market btc-up-15m --strategy mean_reversion \\
        --sweep window_size=5,10,20
    python run_backtest.py --data prices.csv --list-markets
    python run_backtest.py --list-strategies

Modes:
    1. Single-position (default): one long at a time, size as a fraction of equity
    2. Multi-position (--multi-position): position ledger, size in contracts
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.table import Table

from pmbot.backtest import BacktestConfig, BacktestEngine, BacktestError, CostConfig
from pmbot.historical import CsvPriceStore, load_candles_csv
from pmbot.strategies import list_strategies

console = Console()


def parse_value(raw: str) -> Any:
    """Parse a CLI value as JSON (numbers, booleans, lists), else keep the string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_assignments(items: list[str]) -> dict[str, Any]:
    """Parse repeated key=value options."""
    result: dict[str, Any] = {}
    for item in items:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=value, got '{item}'")
        result[key.strip()] = parse_value(raw.strip())
    return result


def parse_sweep(items: list[str]) -> dict[str, list[Any]]:
    """Parse repeated key=v1,v2,... sweep options."""
    grid: dict[str, list[Any]] = {}
    for item in items:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=v1,v2,..., got '{item}'")
        grid[key.strip()] = [parse_value(v.strip()) for v in raw.split(",") if v.strip()]
    return grid


def build_cost_config(args: argparse.Namespace) -> CostConfig | None:
    """Cost model from CLI flags; None when costs are off."""
    overrides = {
        "taker_fee": args.taker_fee,
        "slippage_factor": args.slippage,
        "default_spread": args.spread,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if not args.costs and not overrides:
        return None
    return CostConfig(**overrides)


def print_strategies() -> None:
    table = Table(title="Strategies")
    table.add_column("Name", style="bold cyan")
    table.add_column("Description")
    for name, description in list_strategies():
        table.add_row(name, description)
    console.print(table)


def print_markets(engine: BacktestEngine) -> None:
    table = Table(title="Markets")
    table.add_column("Market", style="bold cyan")
    table.add_column("Data points", justify="right")
    table.add_column("First snapshot")
    table.add_column("Last snapshot")
    for market in engine.list_available_markets():
        table.add_row(
            market.market_id,
            str(market.data_points),
            market.first_snapshot.isoformat(),
            market.last_snapshot.isoformat(),
        )
    console.print(table)


def print_sweep(results: list, keys: list[str]) -> None:
    table = Table(title="Parameter sweep")
    for key in keys:
        table.add_column(key, style="cyan")
    table.add_column("Trades", justify="right")
    table.add_column("Total return", justify="right")
    table.add_column("Sharpe", justify="right")
    table.add_column("Final capital", justify="right")

    for result in results:
        m = result.metrics
        table.add_row(
            *(str(result.strategy_config.get(k)) for k in keys),
            str(m["total_trades"]),
            f"{m['total_return']:+.2%}",
            f"{m['sharpe_ratio']:.2f}",
            f"${result.final_capital:,.2f}",
        )
    console.print(table)


def main() -> int:
    parser = argparse.ArgumentParser(description="Backtest strategies on prediction-market history")
    parser.add_argument("--data", "-d", help="Path to price-history CSV (market_id, timestamp, ...)")
    parser.add_argument("--market", "-m", help="Market id to replay")
    parser.add_argument(
        "--strategy",
        "-s",
        choices=[name for name, _ in list_strategies()],
        help="Strategy to run",
    )
    parser.add_argument(
        "--config",
        "-c",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Strategy config override (repeatable)",
    )
    parser.add_argument(
        "--sweep",
        action="append",
        default=[],
        metavar="KEY=V1,V2",
        help="Sweep a strategy parameter over values (repeatable)",
    )
    parser.add_argument(
        "--capital",
        "-b",
        type=float,
        default=1000.0,
        help="Starting capital (default: 1000)",
    )
    parser.add_argument("--start", type=datetime.fromisoformat, help="Start date (ISO-8601)")
    parser.add_argument("--end", type=datetime.fromisoformat, help="End date (ISO-8601)")
    parser.add_argument("--costs", action="store_true", help="Enable the trading cost model")
    parser.add_argument("--taker-fee", type=float, help="Taker fee rate (implies --costs)")
    parser.add_argument("--slippage", type=float, help="Base slippage factor (implies --costs)")
    parser.add_argument("--spread", type=float, help="Default bid/ask spread (implies --costs)")
    parser.add_argument(
        "--multi-position",
        action="store_true",
        help="Track positions with the multi-position ledger",
    )
    parser.add_argument(
        "--validate-ticks",
        action="store_true",
        help="Reject data whose timestamps are not strictly increasing",
    )
    parser.add_argument("--candles", help="BTC candle CSV for the indicator_combo strategy")
    parser.add_argument("--json", action="store_true", help="Print the result record as JSON")
    parser.add_argument("--list-strategies", action="store_true", help="List strategies and exit")
    parser.add_argument("--list-markets", action="store_true", help="List markets in --data and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_strategies:
        print_strategies()
        return 0

    if not args.data:
        parser.error("--data is required")

    try:
        store = CsvPriceStore(args.data)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/]")
        return 1

    engine = BacktestEngine(store)

    if args.list_markets:
        print_markets(engine)
        return 0

    try:
        strategy_config = parse_assignments(args.config)
        grid = parse_sweep(args.sweep)
        if args.candles:
            strategy_config["candles"] = load_candles_csv(args.candles)

        config = BacktestConfig(
            market_id=args.market,
            strategy=args.strategy,
            strategy_config=strategy_config,
            start_date=args.start,
            end_date=args.end,
            initial_capital=args.capital,
            cost_config=build_cost_config(args),
            multi_position=args.multi_position,
            validate_ticks=args.validate_ticks,
        )

        if grid:
            results = engine.run_sweep(config, grid)
        else:
            results = [engine.run(config)]
    except (argparse.ArgumentTypeError, BacktestError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Backtest failed: {e}[/]")
        return 1

    if args.json:
        records = [r.to_dict() for r in results]
        print(json.dumps(records if grid else records[0], indent=2))
    elif grid:
        print_sweep(results, list(grid))
    else:
        results[0].print_summary(console)

    return 0


if __name__ == "__main__":
    sys.exit(main())
