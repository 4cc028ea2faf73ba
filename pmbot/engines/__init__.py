"""
Decision Engines - turn indicator values into time-aware trade verdicts.

probability: weighted up/down scoring plus decay toward 50/50 near expiry
edge: model vs market probability and the phase-threshold decision
regime: trend / range / chop classification
"""

from .edge import (
    PHASE_THRESHOLDS,
    Action,
    Decision,
    EdgeResult,
    Side,
    Strength,
    compute_edge,
    decide,
    determine_strength,
)
from .probability import (
    DirectionScore,
    TimeAdjustedProbability,
    apply_time_awareness,
    score_direction,
)
from .regime import Bias, Regime, RegimeResult, detect_regime, is_tradeable, regime_bias

__all__ = [
    # Probability
    "DirectionScore",
    "TimeAdjustedProbability",
    "score_direction",
    "apply_time_awareness",
    # Edge
    "Action",
    "Side",
    "Strength",
    "EdgeResult",
    "Decision",
    "PHASE_THRESHOLDS",
    "compute_edge",
    "decide",
    "determine_strength",
    # Regime
    "Regime",
    "Bias",
    "RegimeResult",
    "detect_regime",
    "is_tradeable",
    "regime_bias",
]
