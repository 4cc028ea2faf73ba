"""
Edge Engine - compare model probability with market-implied probability.

Edge = model probability - market probability, per side. The decision
thresholds tighten as the window approaches expiry:

| Phase | Remaining   | Edge threshold | Min probability |
|-------|-------------|----------------|-----------------|
| EARLY | > 10 min    | 5%             | 55%             |
| MID   | 5 - 10 min  | 10%            | 60%             |
| LATE  | <= 5 min    | 20%            | 65%             |
"""

from dataclasses import dataclass
from enum import Enum

from pmbot.core.timing import Phase, get_phase


class Side(str, Enum):
    """Outcome side of a binary market."""

    UP = "up"
    DOWN = "down"


class Action(str, Enum):
    ENTER = "enter"
    NO_TRADE = "no_trade"


class Strength(str, Enum):
    """How far the edge clears the bar."""

    STRONG = "strong"  # edge >= 0.20
    GOOD = "good"  # edge >= 0.10
    OPTIONAL = "optional"  # below 0.10


# (edge_threshold, min_probability) per phase
PHASE_THRESHOLDS: dict[Phase, tuple[float, float]] = {
    Phase.EARLY: (0.05, 0.55),
    Phase.MID: (0.10, 0.60),
    Phase.LATE: (0.20, 0.65),
}


@dataclass(frozen=True)
class EdgeResult:
    """Normalized market probabilities and per-side edge. None when quotes are unusable."""

    market_up: float | None = None
    market_down: float | None = None
    edge_up: float | None = None
    edge_down: float | None = None


@dataclass(frozen=True)
class Decision:
    """Trade verdict for one observation."""

    action: Action
    phase: Phase
    side: Side | None = None
    reason: str | None = None
    strength: Strength | None = None
    edge: float | None = None

    @property
    def should_enter(self) -> bool:
        return self.action == Action.ENTER


def compute_edge(
    model_up: float,
    model_down: float,
    market_yes: float | None,
    market_no: float | None,
) -> EdgeResult:
    """
    Compute the edge between model and market probabilities.

    Market quotes are normalized by their sum, since YES + NO rarely
    equals exactly 1.

    Args:
        model_up: Model probability of an up move
        model_down: Model probability of a down move
        market_yes: Raw YES quote
        market_no: Raw NO quote

    Returns:
        EdgeResult, all None if a quote is missing or the quotes sum to <= 0
    """
    if market_yes is None or market_no is None:
        return EdgeResult()

    total = market_yes + market_no
    if total <= 0:
        return EdgeResult()

    market_up = min(1.0, max(0.0, market_yes / total))
    market_down = min(1.0, max(0.0, market_no / total))

    return EdgeResult(
        market_up=market_up,
        market_down=market_down,
        edge_up=model_up - market_up,
        edge_down=model_down - market_down,
    )


def determine_strength(edge: float) -> Strength:
    if edge >= 0.20:
        return Strength.STRONG
    if edge >= 0.10:
        return Strength.GOOD
    return Strength.OPTIONAL


def decide(
    remaining_minutes: float,
    edge_up: float | None,
    edge_down: float | None,
    model_up: float | None = None,
    model_down: float | None = None,
) -> Decision:
    """
    Decide whether to enter, and on which side.

    The side with the larger edge is picked (down on a tie). The trade is
    skipped if that edge is under the phase threshold or, when a model
    probability is given, that probability is under the phase minimum.

    Args:
        remaining_minutes: Minutes until the window closes
        edge_up: Edge for the up side
        edge_down: Edge for the down side
        model_up: Model probability of up (optional)
        model_down: Model probability of down (optional)

    Returns:
        Decision
    """
    phase = get_phase(remaining_minutes)
    threshold, min_prob = PHASE_THRESHOLDS[phase]

    if edge_up is None or edge_down is None:
        return Decision(action=Action.NO_TRADE, phase=phase, reason="missing_market_data")

    if edge_up > edge_down:
        side, best_edge, best_model = Side.UP, edge_up, model_up
    else:
        side, best_edge, best_model = Side.DOWN, edge_down, model_down

    if best_edge < threshold:
        return Decision(action=Action.NO_TRADE, phase=phase, reason=f"edge_below_{threshold}")

    if best_model is not None and best_model < min_prob:
        return Decision(action=Action.NO_TRADE, phase=phase, reason=f"prob_below_{min_prob}")

    return Decision(
        action=Action.ENTER,
        phase=phase,
        side=side,
        strength=determine_strength(best_edge),
        edge=best_edge,
    )
