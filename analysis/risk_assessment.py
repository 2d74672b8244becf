#!/usr/bin/env python3
"""
Risk Assessment Module.

This module provides functionality to:
- Compute Wilson-score confidence intervals at 90/95/99% levels
- Test whether a historical win rate beats the break-even rate
- Simulate future profit with a seeded Monte Carlo run
- Fold the above into a Low/Medium/High risk level

The simulation uses a fixed seed so repeated runs on the same inputs give
identical output.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

import numpy as np

logger = logging.getLogger(__name__)

Z_SCORES = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
}

DEFAULT_SIMULATIONS = 2000
DEFAULT_SIMULATED_BETS = 100
DEFAULT_SEED = 20240501
DEFAULT_AVG_ODDS = 2.0


class RiskLevel(Enum):
    """Risk classification shared by market analyses and risk assessment."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ConfidenceInterval:
    """Wilson interval for a win rate (all values are proportions)."""
    win_rate: float
    lower_bound: float
    upper_bound: float
    margin: float
    confidence_level: float

    @property
    def width(self) -> float:
        return self.upper_bound - self.lower_bound

    def to_dict(self) -> Dict[str, float]:
        return {
            "win_rate": round(self.win_rate, 4),
            "lower_bound": round(self.lower_bound, 4),
            "upper_bound": round(self.upper_bound, 4),
            "margin": round(self.margin, 4),
            "confidence_level": self.confidence_level,
            "width": round(self.width, 4),
        }


@dataclass(frozen=True)
class SignificanceResult:
    """Two-tailed z-test of an observed win rate against an expected rate."""
    z_score: float
    p_value: float
    observed_win_rate: float
    expected_win_rate: float

    @property
    def is_significant(self) -> bool:
        return self.p_value < 0.05

    @property
    def significance(self) -> float:
        """Confidence that the difference is real, as a 0-100 percentage."""
        return max(0.0, min(100.0, (1 - self.p_value) * 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "z_score": round(self.z_score, 4),
            "p_value": round(self.p_value, 4),
            "significance": round(self.significance, 1),
            "is_significant": self.is_significant,
            "observed_win_rate": round(self.observed_win_rate, 4),
            "expected_win_rate": round(self.expected_win_rate, 4),
        }


@dataclass(frozen=True)
class MonteCarloResult:
    """Summary of a simulated betting run."""
    num_simulations: int
    num_bets: int
    win_rate: float
    avg_odds: float
    avg_roi: float
    median_roi: float
    profit_probability: float
    roi_p10: float
    roi_p90: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_simulations": self.num_simulations,
            "num_bets": self.num_bets,
            "win_rate": round(self.win_rate, 4),
            "avg_odds": round(self.avg_odds, 2),
            "avg_roi": round(self.avg_roi, 2),
            "median_roi": round(self.median_roi, 2),
            "profit_probability": round(self.profit_probability, 4),
            "roi_p10": round(self.roi_p10, 2),
            "roi_p90": round(self.roi_p90, 2),
        }


@dataclass(frozen=True)
class RiskAssessment:
    """Combined risk view for one candidate's historical record."""
    risk_level: RiskLevel
    risk_score: int
    sample_size: int
    interval: ConfidenceInterval
    significance: SignificanceResult
    monte_carlo: MonteCarloResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "risk_score": self.risk_score,
            "sample_size": self.sample_size,
            "confidence_interval": self.interval.to_dict(),
            "significance": self.significance.to_dict(),
            "monte_carlo": self.monte_carlo.to_dict(),
        }


# =============================================================================
# STATISTICS
# =============================================================================

def z_score_for(confidence_level: float) -> float:
    """
    Normal quantile for a supported two-sided confidence level.

    Raises:
        ValueError: If the level is not 0.90, 0.95 or 0.99
    """
    for level, z in Z_SCORES.items():
        if math.isclose(level, confidence_level):
            return z
    raise ValueError(
        f"Unsupported confidence level {confidence_level}; expected one of {sorted(Z_SCORES)}"
    )


def wilson_interval(wins: int, total: int, confidence_level: float = 0.95) -> ConfidenceInterval:
    """
    Wilson-score interval for a binomial proportion.

    Args:
        wins: Successful outcomes
        total: Decided outcomes
        confidence_level: 0.90, 0.95 or 0.99

    Returns:
        ConfidenceInterval; a zero-width interval at 0 when total is 0
    """
    z = z_score_for(confidence_level)
    if total <= 0:
        return ConfidenceInterval(0.0, 0.0, 0.0, 0.0, confidence_level)

    p = wins / total
    z2 = z * z
    denominator = 1 + z2 / total
    center = (p + z2 / (2 * total)) / denominator
    margin = z * math.sqrt(p * (1 - p) / total + z2 / (4 * total * total)) / denominator
    return ConfidenceInterval(
        win_rate=p,
        lower_bound=max(0.0, center - margin),
        upper_bound=min(1.0, center + margin),
        margin=margin,
        confidence_level=confidence_level,
    )


def normal_cdf(x: float) -> float:
    return 0.5 * (1 + math.erf(x / math.sqrt(2)))


def statistical_significance(wins: int, total: int, expected_win_rate: float = 0.5) -> SignificanceResult:
    """
    Two-tailed z-test of wins against an expected rate.

    No decided wagers, or a degenerate expected rate, yields p = 1.
    """
    if total <= 0 or not 0 < expected_win_rate < 1:
        return SignificanceResult(0.0, 1.0, 0.0, expected_win_rate)

    expected = total * expected_win_rate
    std_error = math.sqrt(total * expected_win_rate * (1 - expected_win_rate))
    z = (wins - expected) / std_error
    p_value = 2 * (1 - normal_cdf(abs(z)))
    return SignificanceResult(
        z_score=z,
        p_value=p_value,
        observed_win_rate=wins / total,
        expected_win_rate=expected_win_rate,
    )


def run_monte_carlo(
    win_rate: float,
    num_bets: int = DEFAULT_SIMULATED_BETS,
    num_simulations: int = DEFAULT_SIMULATIONS,
    avg_odds: float = DEFAULT_AVG_ODDS,
    seed: int = DEFAULT_SEED,
) -> MonteCarloResult:
    """
    Simulate unit-stake betting runs at a fixed win rate and price.

    Each simulation draws the number of wins from a binomial distribution.
    ROI is profit over stakes, as a percentage.
    """
    win_rate = min(1.0, max(0.0, win_rate))
    rng = np.random.default_rng(seed)
    wins = rng.binomial(num_bets, win_rate, size=num_simulations)
    profit = wins * (avg_odds - 1) - (num_bets - wins)
    rois = profit / num_bets * 100

    return MonteCarloResult(
        num_simulations=num_simulations,
        num_bets=num_bets,
        win_rate=win_rate,
        avg_odds=avg_odds,
        avg_roi=float(rois.mean()),
        median_roi=float(np.median(rois)),
        profit_probability=float((rois > 0).mean()),
        roi_p10=float(np.percentile(rois, 10)),
        roi_p90=float(np.percentile(rois, 90)),
    )


# =============================================================================
# ASSESSOR
# =============================================================================

class RiskAssessor:
    """
    Scores the risk of backing a record with a known win rate and price.

    Four factors each add or subtract points: interval width, sample size,
    significance against break-even, and simulated profit probability.
    A total of 4 or more is Low risk, 1-3 Medium, anything else High.
    """

    def __init__(self, num_simulations: int = DEFAULT_SIMULATIONS, seed: int = DEFAULT_SEED):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.num_simulations = num_simulations
        self.seed = seed

    def assess(self, wins: int, losses: int, avg_odds: float = DEFAULT_AVG_ODDS) -> RiskAssessment:
        total = wins + losses
        if avg_odds is None or avg_odds <= 1.0:
            avg_odds = DEFAULT_AVG_ODDS

        interval = wilson_interval(wins, total)
        significance = statistical_significance(wins, total, 1 / avg_odds)
        simulation = run_monte_carlo(
            interval.win_rate,
            avg_odds=avg_odds,
            num_simulations=self.num_simulations,
            seed=self.seed,
        )

        score = 0
        if total > 0:
            if interval.width < 0.1:
                score += 2
            elif interval.width < 0.2:
                score += 1
            elif interval.width > 0.4:
                score -= 2

        if total >= 50:
            score += 2
        elif total >= 20:
            score += 1
        elif total < 10:
            score -= 2

        # Only a record above break-even earns points for being significant
        if significance.z_score > 0:
            if significance.significance >= 90:
                score += 2
            elif significance.significance >= 70:
                score += 1
            elif significance.significance < 50:
                score -= 1
        elif significance.significance >= 90:
            score -= 2
        else:
            score -= 1

        if simulation.profit_probability >= 0.8:
            score += 2
        elif simulation.profit_probability >= 0.6:
            score += 1
        elif simulation.profit_probability < 0.4:
            score -= 2

        if score >= 4:
            level = RiskLevel.LOW
        elif score >= 1:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.HIGH

        self.logger.debug(f"Risk {level.value} (score {score}) for {wins}/{total} at {avg_odds:.2f}")
        return RiskAssessment(
            risk_level=level,
            risk_score=score,
            sample_size=total,
            interval=interval,
            significance=significance,
            monte_carlo=simulation,
        )
