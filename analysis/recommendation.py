#!/usr/bin/env python3
"""
Recommendation Classifier.

This module provides functionality to:
- Map a composite confidence score to a back / hedge / avoid call
- Phrase the call for the side of the fixture being backed
- Explain avoid calls from the individual weak signals
- Short-circuit blacklisted teams
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from data_collection.bet_records import BetRecord, Side
from analysis.confidence_estimator import ConfidenceBreakdown

logger = logging.getLogger(__name__)

BACK_THRESHOLD = 70.0
HEDGE_THRESHOLD = 40.0
WEAK_REASON_THRESHOLD = 40.0

AVOID = "Avoid"
AVOID_BLACKLISTED = "Avoid (Blacklisted)"
GENERIC_AVOID_REASON = "Overall confidence score too low for a safe bet"


# =============================================================================
# ENUMS
# =============================================================================

class RecommendationCall(Enum):
    """Categorical call for a candidate wager."""
    BACK = "back"
    HEDGE = "hedge"
    AVOID = "avoid"


class ConfidenceLevel(Enum):
    """Display label for a 0-100 confidence value."""
    VERY_HIGH = "Very High"
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        if score >= 80:
            return cls.VERY_HIGH
        if score >= 60:
            return cls.HIGH
        if score >= 40:
            return cls.MODERATE
        return cls.LOW


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one candidate."""
    call: RecommendationCall
    recommendation: str
    reasoning: str
    confidence_label: ConfidenceLevel

    @property
    def is_avoid(self) -> bool:
        return self.call == RecommendationCall.AVOID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "call": self.call.value,
            "recommendation": self.recommendation,
            "reasoning": self.reasoning,
            "confidence_label": self.confidence_label.value,
        }


# =============================================================================
# PHRASING HELPERS
# =============================================================================

def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def directional_pick(side: Side) -> str:
    if side == Side.HOME:
        return "Home Win"
    if side == Side.AWAY:
        return "Away Win"
    return "Win"


def hedge_pick(side: Side) -> str:
    if side == Side.HOME:
        return "Double Chance Home/Draw"
    if side == Side.AWAY:
        return "Double Chance Away/Draw"
    return "Double Chance"


def _record_clause(prefix: str, breakdown: ConfidenceBreakdown, signal: str, unit: str) -> str:
    ev = breakdown.evidence(signal)
    decided = ev.wins + ev.losses
    return f"{prefix}: {ev.win_rate:.1f}% win rate ({ev.wins}/{decided} {unit})"


def avoid_reasons(candidate: BetRecord, breakdown: ConfidenceBreakdown) -> List[str]:
    """
    One short clause per weak signal, in a fixed order.

    Args:
        candidate: The wager being classified
        breakdown: Its per-signal scores and evidence

    Returns:
        List of clauses; empty when no individual signal is weak
    """
    reasons = []

    def weak(signal: str) -> bool:
        return breakdown.score(signal) < WEAK_REASON_THRESHOLD

    if weak("team"):
        reasons.append(_record_clause("Poor team performance", breakdown, "team", "bets"))
    if weak("league"):
        reasons.append(_record_clause("Poor league performance", breakdown, "league", "bets"))
    if weak("odds"):
        reasons.append(
            _record_clause("Poor performance with similar odds", breakdown, "odds", "bets")
        )
    if weak("matchup"):
        reasons.append(
            _record_clause("Poor head-to-head performance", breakdown, "matchup", "matchups")
        )
    if weak("position"):
        if candidate.side == Side.HOME and candidate.home_position:
            reasons.append(
                f"Poor league position: home team in {ordinal(candidate.home_position)} place"
            )
        elif candidate.side == Side.AWAY and candidate.away_position:
            reasons.append(
                f"Poor league position: away team in {ordinal(candidate.away_position)} place"
            )
    if weak("home_away") and candidate.side != Side.UNKNOWN:
        reasons.append(
            _record_clause(
                f"Poor {candidate.side.value} performance", breakdown, "home_away", "bets"
            )
        )
    return reasons


def _strongest_signals(breakdown: ConfidenceBreakdown, count: int = 2) -> str:
    ranked = sorted(breakdown.scores().items(), key=lambda kv: kv[1], reverse=True)
    return ", ".join(f"{name} {score:.1f}" for name, score in ranked[:count])


# =============================================================================
# CLASSIFIER
# =============================================================================

def classify(
    score: float,
    candidate: BetRecord,
    breakdown: ConfidenceBreakdown,
    blacklisted: bool = False,
) -> Classification:
    """
    Map a composite score to a categorical recommendation.

    Args:
        score: Composite confidence on the 0-100 scale
        candidate: The wager being classified (its side drives the phrasing)
        breakdown: Per-signal scores used to explain avoid calls
        blacklisted: Force an avoid regardless of score

    Returns:
        Classification with call, phrasing, reasoning and label

    Example:
        >>> classify(75.0, CandidateBet(side=Side.HOME), ConfidenceBreakdown()).recommendation
        'Home Win'
    """
    label = ConfidenceLevel.from_score(score)

    if blacklisted:
        return Classification(
            call=RecommendationCall.AVOID,
            recommendation=AVOID_BLACKLISTED,
            reasoning=f"{candidate.team_included or 'Team'} is on the blacklist",
            confidence_label=label,
        )

    if score >= BACK_THRESHOLD:
        return Classification(
            call=RecommendationCall.BACK,
            recommendation=directional_pick(candidate.side),
            reasoning=(
                f"{label.value} confidence ({score:.1f}); strongest signals: "
                f"{_strongest_signals(breakdown)}"
            ),
            confidence_label=label,
        )

    if score >= HEDGE_THRESHOLD:
        return Classification(
            call=RecommendationCall.HEDGE,
            recommendation=hedge_pick(candidate.side),
            reasoning=(
                f"{label.value} confidence ({score:.1f}); covering the draw "
                f"instead of backing the outright win"
            ),
            confidence_label=label,
        )

    reasons = avoid_reasons(candidate, breakdown)
    return Classification(
        call=RecommendationCall.AVOID,
        recommendation=AVOID,
        reasoning="; ".join(reasons) if reasons else GENERIC_AVOID_REASON,
        confidence_label=label,
    )
