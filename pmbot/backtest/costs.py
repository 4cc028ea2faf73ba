"""
Trading Cost Model - turns quoted mid-prices into realistic execution prices.

Three frictions are modeled:
- Slippage: price impact, linear in order size over available liquidity
- Spread: crossing half the bid-ask spread (buy at ask, sell at bid)
- Fees: taker fee on notional (Polymarket currently charges 0%)

Estimators (round trip, arbitrage) are read-only projections strategies use
before committing capital.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pmbot.core.models import PriceTick

MAX_SLIPPAGE_PCT = 0.10
MIN_EXECUTION_PRICE = 0.001
MAX_EXECUTION_PRICE = 0.999


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class CostConfig:
    """
    Trading cost configuration.

    slippage_factor is the base impact; with slippage_liquidity_scale it is
    multiplied by size / liquidity, using slippage_min_liquidity when the
    market reports none.
    """

    slippage_factor: float = 0.001
    slippage_liquidity_scale: bool = True
    slippage_min_liquidity: float = 1000.0
    maker_fee: float = 0.0
    taker_fee: float = 0.0
    spread_enabled: bool = True
    default_spread: float = 0.01
    spread_from_data: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.slippage_factor < 0:
            raise ValueError("slippage_factor cannot be negative")
        if self.maker_fee < 0 or self.taker_fee < 0:
            raise ValueError("fees cannot be negative")
        if self.default_spread < 0:
            raise ValueError("default_spread cannot be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CostConfig":
        """Create config from a dictionary, merged over the defaults."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown cost config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MarketContext:
    """
    Market conditions at fill time.

    spread/bid/ask describe the quoted side; the yes_*/no_* fields carry
    per-outcome book data for arbitrage legs.
    """

    liquidity: float | None = None
    volume: float | None = None
    spread: float | None = None
    bid: float | None = None
    ask: float | None = None
    yes_spread: float | None = None
    yes_bid: float | None = None
    yes_ask: float | None = None
    no_spread: float | None = None
    no_bid: float | None = None
    no_ask: float | None = None

    def for_leg(self, leg: str) -> "MarketContext":
        """Context for one outcome leg ("yes" or "no") with that leg's book."""
        if leg not in ("yes", "no"):
            raise ValueError(f"Unknown leg: {leg}")
        return replace(
            self,
            spread=getattr(self, f"{leg}_spread"),
            bid=getattr(self, f"{leg}_bid"),
            ask=getattr(self, f"{leg}_ask"),
        )


@dataclass(frozen=True)
class CostBreakdown:
    """Costs of a single fill."""

    base_price: float
    execution_price: float
    slippage_pct: float
    slippage_amount: float
    spread_cost: float
    fee_amount: float
    total_cost: float


@dataclass(frozen=True)
class RoundTripEstimate:
    entry_execution_price: float
    exit_execution_price: float
    entry_costs: CostBreakdown
    exit_costs: CostBreakdown
    total_cost: float
    effective_spread: float
    cost_as_pct_of_position: float

    @property
    def profitable(self) -> bool:
        """True if the exit fill still beats the entry fill."""
        return self.exit_execution_price > self.entry_execution_price


@dataclass(frozen=True)
class ArbitrageEstimate:
    yes_execution_price: float
    no_execution_price: float
    actual_entry_cost: float
    gross_spread: float
    net_spread: float
    spread_erosion: float
    total_cost: float
    yes_costs: CostBreakdown
    no_costs: CostBreakdown

    @property
    def profitable(self) -> bool:
        return self.net_spread > 0


def calculate_slippage(
    price: float,
    size: float,
    config: CostConfig,
    context: MarketContext,
) -> tuple[float, float]:
    """
    Linear impact model: slippage_pct = base_factor * size / liquidity.

    Returns:
        (slippage_pct, slippage_amount), pct clamped to [0, 0.10]
    """
    liquidity = context.liquidity if context.liquidity is not None else config.slippage_min_liquidity

    if config.slippage_liquidity_scale and liquidity > 0:
        slippage_pct = config.slippage_factor * (size / liquidity)
    else:
        slippage_pct = config.slippage_factor

    slippage_pct = max(0.0, min(slippage_pct, MAX_SLIPPAGE_PCT))
    return slippage_pct, price * slippage_pct


def calculate_spread_cost(price: float, config: CostConfig, context: MarketContext) -> float:
    """
    Half the effective spread, capped at half the price.

    Spread source priority: explicit context spread (if spread_from_data),
    then ask - bid, then the configured default.
    """
    if not config.spread_enabled:
        return 0.0

    if config.spread_from_data and context.spread is not None:
        spread = context.spread
    elif context.bid is not None and context.ask is not None:
        spread = context.ask - context.bid
    else:
        spread = config.default_spread

    return min(spread / 2, price * 0.5)


def calculate_fees(notional: float, config: CostConfig) -> float:
    """Taker fee on notional; every backtest fill crosses the book."""
    return notional * config.taker_fee


def apply_costs(
    price: float,
    side: OrderSide | str,
    size: float,
    config: CostConfig | None = None,
    context: MarketContext | None = None,
) -> tuple[float, CostBreakdown]:
    """
    Apply all trading costs to a quoted price.

    Buys fill above the quote, sells below it, by slippage + half spread.

    Args:
        price: Quoted mid-price (0-1)
        side: "buy" or "sell"
        size: Order size in dollars
        config: Cost configuration (defaults when None)
        context: Market liquidity/spread data

    Returns:
        (execution_price, CostBreakdown); execution clamped to [0.001, 0.999]
    """
    config = config or CostConfig()
    context = context or MarketContext()
    side = OrderSide(side)

    slippage_pct, slippage_amount = calculate_slippage(price, size, config, context)
    spread_cost = calculate_spread_cost(price, config, context)
    fee_amount = calculate_fees(price * size, config)

    if side == OrderSide.BUY:
        execution_price = price + slippage_amount + spread_cost
    else:
        execution_price = price - slippage_amount - spread_cost

    execution_price = max(MIN_EXECUTION_PRICE, min(MAX_EXECUTION_PRICE, execution_price))
    total_cost = abs(execution_price - price) * size + fee_amount

    return execution_price, CostBreakdown(
        base_price=price,
        execution_price=execution_price,
        slippage_pct=slippage_pct,
        slippage_amount=slippage_amount,
        spread_cost=spread_cost,
        fee_amount=fee_amount,
        total_cost=total_cost,
    )


def estimate_round_trip_costs(
    entry_price: float,
    exit_price: float,
    size: float,
    config: CostConfig | None = None,
    context: MarketContext | None = None,
) -> RoundTripEstimate:
    """Project the costs of buying at entry_price and selling at exit_price."""
    entry_exec, entry_costs = apply_costs(entry_price, OrderSide.BUY, size, config, context)
    exit_exec, exit_costs = apply_costs(exit_price, OrderSide.SELL, size, config, context)

    total_cost = entry_costs.total_cost + exit_costs.total_cost
    notional = entry_price * size

    return RoundTripEstimate(
        entry_execution_price=entry_exec,
        exit_execution_price=exit_exec,
        entry_costs=entry_costs,
        exit_costs=exit_costs,
        total_cost=total_cost,
        effective_spread=(entry_exec - entry_price) + (exit_price - exit_exec),
        cost_as_pct_of_position=total_cost / notional * 100 if notional > 0 else 0.0,
    )


def estimate_arbitrage_costs(
    yes_price: float,
    no_price: float,
    size: float,
    config: CostConfig | None = None,
    context: MarketContext | None = None,
) -> ArbitrageEstimate:
    """
    Project the costs of buying both outcome legs.

    Each leg is priced with its own book data. The net spread is what is
    left of 1.0 after paying both execution prices.
    """
    context = context or MarketContext()

    yes_exec, yes_costs = apply_costs(yes_price, OrderSide.BUY, size, config, context.for_leg("yes"))
    no_exec, no_costs = apply_costs(no_price, OrderSide.BUY, size, config, context.for_leg("no"))

    gross_spread = 1.0 - (yes_price + no_price)
    actual_entry_cost = yes_exec + no_exec
    net_spread = 1.0 - actual_entry_cost

    return ArbitrageEstimate(
        yes_execution_price=yes_exec,
        no_execution_price=no_exec,
        actual_entry_cost=actual_entry_cost,
        gross_spread=gross_spread,
        net_spread=net_spread,
        spread_erosion=gross_spread - net_spread,
        total_cost=yes_costs.total_cost + no_costs.total_cost,
        yes_costs=yes_costs,
        no_costs=no_costs,
    )


def context_from_tick(tick: "PriceTick") -> MarketContext:
    """Build a MarketContext from a PriceTick's optional book fields."""
    return MarketContext(
        liquidity=tick.liquidity,
        volume=tick.volume,
        spread=tick.spread,
        bid=tick.bid,
        ask=tick.ask,
    )
