#!/usr/bin/env python3
"""
Dynamic Weight Allocator and Composite Scorer.

This module provides functionality to:
- Perturb the base signal weights for weak signals and market type
- Renormalize the final weight vector so it sums to 1
- Collapse a confidence breakdown into one composite score
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from data_collection.bet_records import MarketType
from analysis.confidence_estimator import SIGNALS, ConfidenceBreakdown, clamp_score

logger = logging.getLogger(__name__)

# Sums to 1.10 before normalization
BASE_WEIGHTS: Dict[str, float] = {
    "team": 0.20,
    "recent_form": 0.15,
    "momentum": 0.15,
    "league": 0.15,
    "odds": 0.15,
    "matchup": 0.15,
    "position": 0.10,
    "home_away": 0.05,
}

ANCHOR_SIGNALS = ("team", "league", "odds")

WEAK_SIGNAL_THRESHOLD = 30.0
VERY_WEAK_SIGNAL_THRESHOLD = 20.0
WEAK_SHRINK = 0.6
VERY_WEAK_SHRINK = 0.5

OVER_UNDER_MULTIPLIERS: Dict[str, float] = {
    "odds": 1.3,
    "league": 1.2,
    "team": 0.7,
}


@dataclass(frozen=True)
class WeightVector:
    """Normalized per-signal weights."""
    weights: Dict[str, float] = field(default_factory=dict)

    def __getitem__(self, signal: str) -> float:
        return self.weights.get(signal, 0.0)

    @property
    def total(self) -> float:
        return sum(self.weights.values())

    def to_dict(self) -> Dict[str, float]:
        return {s: round(self[s], 4) for s in SIGNALS}


def shrink_factor(score: float) -> float:
    """Multiplier applied to a signal's weight given its confidence."""
    if score < VERY_WEAK_SIGNAL_THRESHOLD:
        return VERY_WEAK_SHRINK
    if score < WEAK_SIGNAL_THRESHOLD:
        return WEAK_SHRINK
    return 1.0


class DynamicWeightAllocator:
    """
    Derives a weight vector for one candidate.

    Steps, in order:
    1. Every signal scoring below 30 has its weight shrunk (x0.6, or x0.5
       below 20). The removed mass is shared among the non-weak anchor
       signals (team, league, odds) in proportion to their weights.
    2. Over/Under wagers boost odds and league and damp team.
    3. Renormalize to sum to 1.
    """

    def __init__(self, base_weights: Dict[str, float] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.base_weights = dict(base_weights or BASE_WEIGHTS)

    def allocate(self, breakdown: ConfidenceBreakdown, market: MarketType) -> WeightVector:
        weights = dict(self.base_weights)
        scores = breakdown.scores()

        removed = 0.0
        weak = set()
        for signal, weight in weights.items():
            factor = shrink_factor(scores.get(signal, 50.0))
            if factor < 1.0:
                weak.add(signal)
                removed += weight * (1.0 - factor)
                weights[signal] = weight * factor

        recipients = [s for s in ANCHOR_SIGNALS if s not in weak and s in weights]
        recipient_mass = sum(weights[s] for s in recipients)
        if removed > 0 and recipient_mass > 0:
            for signal in recipients:
                weights[signal] += removed * weights[signal] / recipient_mass
        elif removed > 0:
            self.logger.debug("All anchor signals are weak; shrunk weight is not redistributed")

        if market == MarketType.OVER_UNDER:
            for signal, multiplier in OVER_UNDER_MULTIPLIERS.items():
                if signal in weights:
                    weights[signal] *= multiplier

        total = sum(weights.values())
        if total <= 0:
            self.logger.warning("Degenerate weight vector; falling back to uniform weights")
            weights = {s: 1.0 for s in weights}
            total = float(len(weights))

        return WeightVector(weights={s: w / total for s, w in weights.items()})


def composite_score(breakdown: ConfidenceBreakdown, weights: WeightVector) -> float:
    """
    Weighted sum of signal scores, rounded to one decimal and clamped to [10, 100].

    Example:
        >>> bd = ConfidenceBreakdown.from_scores({s: 50.0 for s in SIGNALS})
        >>> composite_score(bd, DynamicWeightAllocator().allocate(bd, MarketType.OTHER))
        50.0
    """
    total = sum(breakdown.score(s) * weights[s] for s in SIGNALS)
    return round(clamp_score(total), 1)
