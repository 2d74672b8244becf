#!/usr/bin/env python3
"""
Triple-Market Ranker.

This module provides functionality to:
- Analyze a fixture independently in the Straight-Win, Double-Chance
  and Over/Under markets
- Risk-adjust each market's confidence
- Rank the three into primary / secondary / tertiary recommendations

Double-Chance confidence is never lower than Straight-Win confidence for
the same fixture, since it covers a superset of outcomes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from data_collection.bet_records import CandidateBet, MarketType
from analysis.confidence_estimator import SignalEstimator
from analysis.matchup import matchup_key
from analysis.recommendation import Classification
from analysis.risk_assessment import RiskLevel
from analysis.scoring_patterns import ScoringPatternAnalyzer

logger = logging.getLogger(__name__)

LEADER_MARGIN = 10.0
NEUTRAL_CONFIDENCE = 50.0
DEFAULT_DRAW_RATE = 15.0

GOAL_LINES = (1.5, 2.5, 3.5, 4.5)
GOAL_LINE_SCALE = 25.0
FULL_RELIABILITY_GAMES = 10
MIN_OVER_UNDER_CONFIDENCE = 60.0

# Straight-Win is left unadjusted: highest risk and highest reward
RISK_FACTORS: Dict[MarketType, float] = {
    MarketType.STRAIGHT_WIN: 1.0,
    MarketType.DOUBLE_CHANCE: 0.9,
    MarketType.OVER_UNDER: 0.95,
}

MARKET_RISK: Dict[MarketType, RiskLevel] = {
    MarketType.STRAIGHT_WIN: RiskLevel.HIGH,
    MarketType.DOUBLE_CHANCE: RiskLevel.LOW,
    MarketType.OVER_UNDER: RiskLevel.MEDIUM,
}


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class MarketAnalysis:
    """One market's independent call for a fixture."""
    market: MarketType
    bet: str
    confidence: float
    reasoning: str
    sample_size: int = 0

    @property
    def risk_level(self) -> RiskLevel:
        return MARKET_RISK.get(self.market, RiskLevel.HIGH)

    @property
    def adjusted_score(self) -> float:
        return round(self.confidence * RISK_FACTORS.get(self.market, 1.0), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market.value,
            "bet": self.bet,
            "confidence": round(self.confidence, 1),
            "reasoning": self.reasoning,
            "risk_level": self.risk_level.value,
            "adjusted_score": self.adjusted_score,
            "sample_size": self.sample_size,
        }


@dataclass(frozen=True)
class RecommendationTriplet:
    """Three market calls ordered by risk-adjusted score."""
    primary: MarketAnalysis
    secondary: MarketAnalysis
    tertiary: MarketAnalysis

    def ranked(self) -> List[MarketAnalysis]:
        return [self.primary, self.secondary, self.tertiary]

    def for_market(self, market: MarketType) -> Optional[MarketAnalysis]:
        for analysis in self.ranked():
            if analysis.market == market:
                return analysis
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.to_dict(),
            "secondary": self.secondary.to_dict(),
            "tertiary": self.tertiary.to_dict(),
        }


def rank_markets(analyses: Sequence[MarketAnalysis]) -> RecommendationTriplet:
    """
    Order three analyses by adjusted score, highest first.

    Raises:
        ValueError: If not given exactly three analyses
    """
    if len(analyses) != 3:
        raise ValueError(f"Expected 3 market analyses, got {len(analyses)}")
    # Stable: ties keep Straight-Win, Double-Chance, Over/Under order
    ordered = sorted(analyses, key=lambda a: a.adjusted_score, reverse=True)
    return RecommendationTriplet(*ordered)


# =============================================================================
# RANKER
# =============================================================================

class MarketRanker:
    """
    Runs the three market analyzers for a candidate and ranks the results.

    Args:
        estimator: Supplies the per-team win/loss records
        scoring: Supplies goal averages and head-to-head scorelines
    """

    def __init__(self, estimator: SignalEstimator, scoring: ScoringPatternAnalyzer):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.estimator = estimator
        self.scoring = scoring

    # -------------------------------------------------------------------------

    def _win_rate(self, team: str, country: str, league: str) -> tuple:
        records = self.estimator.team_records(team, country, league)
        wins = sum(1 for r in records if r.is_decided and r.is_win)
        decided = sum(1 for r in records if r.is_decided)
        rate = (wins / decided) * 100 if decided else 0.0
        return rate, decided

    def _draw_rate(self, candidate: CandidateBet) -> Optional[float]:
        target = matchup_key(
            candidate.home_team, candidate.away_team, candidate.country, candidate.league
        )
        meetings = [
            g for g in self.scoring.games
            if matchup_key(g.home_team, g.away_team, g.country, g.league) == target
        ]
        if not meetings:
            return None
        draws = sum(1 for g in meetings if g.home_score == g.away_score)
        return draws / len(meetings) * 100

    # -------------------------------------------------------------------------

    def analyze_straight_win(self, candidate: CandidateBet) -> MarketAnalysis:
        home_rate, home_n = self._win_rate(candidate.home_team, candidate.country, candidate.league)
        away_rate, away_n = self._win_rate(candidate.away_team, candidate.country, candidate.league)

        if home_rate > away_rate + LEADER_MARGIN:
            return MarketAnalysis(
                market=MarketType.STRAIGHT_WIN,
                bet=f"{candidate.home_team} Win",
                confidence=min(home_rate, 100.0),
                reasoning=f"{candidate.home_team} wins {home_rate:.1f}% vs {away_rate:.1f}%",
                sample_size=home_n,
            )
        if away_rate > home_rate + LEADER_MARGIN:
            return MarketAnalysis(
                market=MarketType.STRAIGHT_WIN,
                bet=f"{candidate.away_team} Win",
                confidence=min(away_rate, 100.0),
                reasoning=f"{candidate.away_team} wins {away_rate:.1f}% vs {home_rate:.1f}%",
                sample_size=away_n,
            )
        return MarketAnalysis(
            market=MarketType.STRAIGHT_WIN,
            bet="No clear winner",
            confidence=NEUTRAL_CONFIDENCE,
            reasoning=f"Win rates too close: {home_rate:.1f}% vs {away_rate:.1f}%",
            sample_size=home_n + away_n,
        )

    def analyze_double_chance(
        self, candidate: CandidateBet, straight_win: MarketAnalysis
    ) -> MarketAnalysis:
        """
        Leader's win rate plus the head-to-head draw rate.

        The higher-rated side is covered, home on ties. Confidence is
        floored at the Straight-Win confidence.
        """
        home_rate, home_n = self._win_rate(candidate.home_team, candidate.country, candidate.league)
        away_rate, away_n = self._win_rate(candidate.away_team, candidate.country, candidate.league)

        # The Straight-Win leader is always the higher-rated side
        if away_rate > home_rate:
            team, rate, sample = candidate.away_team, away_rate, away_n
        else:
            team, rate, sample = candidate.home_team, home_rate, home_n

        draw_rate = self._draw_rate(candidate)
        draw_note = "head-to-head draw rate"
        if draw_rate is None:
            draw_rate = DEFAULT_DRAW_RATE
            draw_note = "default draw rate"

        confidence = max(min(rate + draw_rate, 100.0), straight_win.confidence)
        return MarketAnalysis(
            market=MarketType.DOUBLE_CHANCE,
            bet=f"{team} or Draw",
            confidence=confidence,
            reasoning=f"{team} wins {rate:.1f}% plus {draw_rate:.1f}% {draw_note}",
            sample_size=sample,
        )

    def analyze_over_under(self, candidate: CandidateBet) -> MarketAnalysis:
        """
        Best goal line from the two teams' average total goals.

        Each line's OVER and UNDER confidence grows with the distance of the
        combined average from the line, scaled down for small samples. The
        best line/direction must reach 60 to be reported.
        """
        profiles = [
            p for p in (
                self.scoring.get_profile(candidate.home_team, candidate.country, candidate.league),
                self.scoring.get_profile(candidate.away_team, candidate.country, candidate.league),
            )
            if p is not None
        ]
        if not profiles:
            return MarketAnalysis(
                market=MarketType.OVER_UNDER,
                bet="No clear trend",
                confidence=NEUTRAL_CONFIDENCE,
                reasoning="No scoring data for either team",
            )

        combined = sum(p.avg_goals for p in profiles) / len(profiles)
        games = sum(p.total_games for p in profiles)
        reliability = min(1.0, games / FULL_RELIABILITY_GAMES)

        best_bet, best_conf = None, -1.0
        for line in GOAL_LINES:
            distance = combined - line
            for direction, signed in (("OVER", distance), ("UNDER", -distance)):
                conf = max(10.0, min(100.0, 50 + signed * GOAL_LINE_SCALE * reliability))
                if conf > best_conf:
                    best_bet, best_conf = f"{direction} {line}", conf

        reasoning = f"Combined average: {combined:.1f} goals per game over {games} games"
        if best_conf < MIN_OVER_UNDER_CONFIDENCE:
            return MarketAnalysis(
                market=MarketType.OVER_UNDER,
                bet="No clear trend",
                confidence=NEUTRAL_CONFIDENCE,
                reasoning=reasoning,
                sample_size=games,
            )
        return MarketAnalysis(
            market=MarketType.OVER_UNDER,
            bet=best_bet,
            confidence=round(best_conf, 1),
            reasoning=reasoning,
            sample_size=games,
        )

    # -------------------------------------------------------------------------

    def rank(
        self,
        candidate: CandidateBet,
        classification: Classification,
        composite: float,
    ) -> RecommendationTriplet:
        """
        Build the ranked triplet for a candidate.

        An avoid classification turns every market into an AVOID entry
        carrying the composite score and the avoid reasoning.
        """
        if classification.is_avoid:
            analyses = [
                MarketAnalysis(market, "AVOID", composite, classification.reasoning)
                for market in (MarketType.STRAIGHT_WIN, MarketType.DOUBLE_CHANCE, MarketType.OVER_UNDER)
            ]
            return rank_markets(analyses)

        straight_win = self.analyze_straight_win(candidate)
        double_chance = self.analyze_double_chance(candidate, straight_win)
        over_under = self.analyze_over_under(candidate)
        triplet = rank_markets([straight_win, double_chance, over_under])
        self.logger.debug(
            f"{candidate.home_team} vs {candidate.away_team}: primary "
            f"{triplet.primary.market.value} ({triplet.primary.bet})"
        )
        return triplet
