#!/usr/bin/env python3
"""
Odds Analyzer Module for the Bet Tracker Confidence Engine.

This module provides functionality to:
- Calculate implied probabilities from decimal 1X2 odds
- Handle and remove bookmaker overround (vig/juice)
- Derive Poisson goal intensities and a scoreline distribution
- Summarise historical hit rates per decimal-odds band
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import math

import numpy as np

logger = logging.getLogger(__name__)

# Goals per game split between the two sides in proportion to their strength
TOTAL_GOAL_BUDGET = 2.5
MAX_GOALS = 5
TOP_SCORELINES = 5

ODDS_BANDS = [
    ("1.0-1.49", 1.0, 1.5),
    ("1.5-1.99", 1.5, 2.0),
    ("2.0-2.49", 2.0, 2.5),
    ("2.5-2.99", 2.5, 3.0),
    ("3.0-3.99", 3.0, 4.0),
    ("4.0-4.99", 4.0, 5.0),
    ("5.0-9.99", 5.0, 10.0),
    ("10.0+", 10.0, math.inf),
]


# ==========================================================================
# STANDALONE FUNCTIONS
# ==========================================================================

def decimal_to_probability(odds: float) -> float:
    """
    Convert decimal odds to implied probability.

    Decimal odds represent the total payout per unit staked, including the stake.
    The implied probability is calculated as 1 / odds.

    Args:
        odds: Decimal odds (must be > 0)

    Returns:
        Implied probability

    Raises:
        ValueError: If odds are not positive

    Example:
        >>> decimal_to_probability(2.0)
        0.5
    """
    if odds <= 0:
        raise ValueError(f"Decimal odds must be positive, got {odds}")
    return 1.0 / odds


def remove_overround(probabilities: List[float]) -> List[float]:
    """
    Normalize implied probabilities so they sum to 1.

    Args:
        probabilities: Implied probabilities (each non-negative)

    Returns:
        Normalized probabilities in the same order

    Raises:
        ValueError: If the list is empty, holds a negative entry, or sums to zero

    Example:
        >>> remove_overround([0.55, 0.55])
        [0.5, 0.5]
    """
    if not probabilities:
        raise ValueError("Probabilities list cannot be empty")

    for p in probabilities:
        if p < 0:
            raise ValueError(f"Each probability must be non-negative, got {p}")

    total = sum(probabilities)
    if total == 0:
        raise ValueError("Sum of probabilities cannot be zero")

    return [p / total for p in probabilities]


def poisson_pmf(lam: float, goals: np.ndarray) -> np.ndarray:
    """Poisson probability of each goal count under intensity lam."""
    goals = np.asarray(goals, dtype=float)
    factorials = np.array([math.factorial(int(k)) for k in goals], dtype=float)
    return np.power(lam, goals) * np.exp(-lam) / factorials


def _usable_odds(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        odds = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(odds) or odds <= 0:
        return None
    return odds


# ==========================================================================
# DATA CLASSES
# ==========================================================================

@dataclass(frozen=True)
class ScorelineProbability:
    """Probability of one exact final score."""
    home_goals: int
    away_goals: int
    probability: float  # percentage, 0-100

    @property
    def score(self) -> str:
        return f"{self.home_goals}-{self.away_goals}"

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "prob": round(self.probability, 1)}


@dataclass(frozen=True)
class OddsProbabilityModel:
    """Margin-free outcome probabilities plus the derived scoreline model."""
    home: float  # percentage
    draw: float
    away: float
    lambda_home: float
    lambda_away: float
    overround: float  # sum of implied probabilities, as a percentage
    top_scores: List[ScorelineProbability] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probs": {
                "home": round(self.home, 1),
                "draw": round(self.draw, 1),
                "away": round(self.away, 1),
            },
            "lambda": {
                "home": round(self.lambda_home, 2),
                "away": round(self.lambda_away, 2),
            },
            "topScores": [s.to_dict() for s in self.top_scores],
            "overround": round(self.overround, 1),
        }


@dataclass(frozen=True)
class OddsBandStats:
    """Historical hit rate for wagers priced inside one odds band."""
    band: str
    wins: int
    losses: int

    @property
    def total(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return (self.wins / self.total) * 100 if self.total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "band": self.band,
            "wins": self.wins,
            "losses": self.losses,
            "total": self.total,
            "win_rate": round(self.win_rate, 1),
        }


# ==========================================================================
# CONVERSION
# ==========================================================================

def calculate_probabilities(home_odds: Any, draw_odds: Any, away_odds: Any) -> Optional[OddsProbabilityModel]:
    """
    Convert 1X2 decimal odds into outcome probabilities and a scoreline model.

    The total goal budget is split between the sides in proportion to their
    margin-free win probabilities, and each side's goals are treated as an
    independent Poisson count over a 0-5 by 0-5 grid.

    Args:
        home_odds: Decimal odds for the home win
        draw_odds: Decimal odds for the draw
        away_odds: Decimal odds for the away win

    Returns:
        OddsProbabilityModel, or None when any price is missing, zero,
        negative or non-numeric. None means "no odds data", never zero.

    Example:
        >>> model = calculate_probabilities(3.0, 3.0, 3.0)
        >>> round(model.home, 1), round(model.draw, 1), round(model.away, 1)
        (33.3, 33.3, 33.3)
        >>> calculate_probabilities(0, 3.2, 2.1) is None
        True
    """
    prices = [_usable_odds(v) for v in (home_odds, draw_odds, away_odds)]
    if any(p is None for p in prices):
        logger.debug(f"No odds model for {home_odds}/{draw_odds}/{away_odds}")
        return None

    implied = [decimal_to_probability(p) for p in prices]
    overround = sum(implied)
    true_home, true_draw, true_away = remove_overround(implied)

    strength = true_home + true_away
    lambda_home = TOTAL_GOAL_BUDGET * (true_home / strength)
    lambda_away = TOTAL_GOAL_BUDGET * (true_away / strength)

    goals = np.arange(MAX_GOALS + 1)
    grid = np.outer(poisson_pmf(lambda_home, goals), poisson_pmf(lambda_away, goals))

    # Row-major flatten keeps "0-0, 0-1, ..." order, and the stable sort keeps it for ties
    flat = grid.ravel()
    order = np.argsort(-flat, kind="stable")[:TOP_SCORELINES]
    top_scores = [
        ScorelineProbability(
            home_goals=int(idx // (MAX_GOALS + 1)),
            away_goals=int(idx % (MAX_GOALS + 1)),
            probability=float(flat[idx] * 100),
        )
        for idx in order
    ]

    return OddsProbabilityModel(
        home=true_home * 100,
        draw=true_draw * 100,
        away=true_away * 100,
        lambda_home=lambda_home,
        lambda_away=lambda_away,
        overround=overround * 100,
        top_scores=top_scores,
    )


# ==========================================================================
# ODDS ANALYZER CLASS
# ==========================================================================

class OddsAnalyzer:
    """
    Analyzer for candidate odds and historical odds-band performance.
    """

    def __init__(self):
        """Initialize the OddsAnalyzer."""
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def calculate_overround(self, odds_list: Sequence[float]) -> float:
        """
        Calculate the bookmaker's overround as a percentage.

        Args:
            odds_list: Decimal odds for all outcomes of one market

        Returns:
            Overround percentage (e.g. 105.2 for a 5.2% margin)

        Raises:
            ValueError: If the list is empty or holds a non-positive price
        """
        if not odds_list:
            raise ValueError("Odds list cannot be empty")
        return sum(decimal_to_probability(o) for o in odds_list) * 100

    @staticmethod
    def band_for(odds: float) -> Optional[str]:
        """Return the band label for a decimal price, or None for no price."""
        if odds is None or odds < 1.0:
            return None
        for label, low, high in ODDS_BANDS:
            if low <= odds < high:
                return label
        return None

    def analyze_odds_bands(self, records: Sequence[Any]) -> List[OddsBandStats]:
        """
        Win rate of decided wagers grouped by the price of the backed side.

        Records without a usable price are skipped. Bands with no decided
        wagers are omitted. Output follows band order.
        """
        tallies: Dict[str, List[int]] = {label: [0, 0] for label, _, _ in ODDS_BANDS}
        skipped = 0
        for record in records:
            if not record.is_decided:
                continue
            label = self.band_for(record.bet_odds)
            if label is None:
                skipped += 1
                continue
            tallies[label][0 if record.is_win else 1] += 1

        if skipped:
            self.logger.debug(f"Skipped {skipped} decided records with no usable odds")

        return [
            OddsBandStats(band=label, wins=wins, losses=losses)
            for label, (wins, losses) in tallies.items()
            if wins + losses > 0
        ]

    def analyze_candidate(self, candidate: Any) -> Optional[OddsProbabilityModel]:
        """Odds model for a candidate wager; None when the 1X2 prices are incomplete."""
        model = calculate_probabilities(
            candidate.odds_home, candidate.odds_draw, candidate.odds_away
        )
        if model is None:
            self.logger.debug(
                f"No odds data for {candidate.home_team} vs {candidate.away_team}"
            )
        return model
