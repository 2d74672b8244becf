#!/usr/bin/env python3
"""
Confidence & Recommendation Engine.

This module provides functionality to:
- Run the per-candidate pipeline: estimate -> allocate -> score -> classify
- Attach the odds model, scoring recommendation, head-to-head history,
  ranked market triplet and risk assessment to each result
- Analyze a batch of candidates, optionally across a thread pool

Results are immutable and carry no timestamps, so the same corpus and
candidate always produce identical output.
"""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from data_collection.bet_records import CandidateBet, HistoricalRecord, parse_blacklist
from analysis.confidence_estimator import ConfidenceBreakdown, SignalEstimator
from analysis.market_ranker import MarketRanker, RecommendationTriplet
from analysis.matchup import dedupe_candidates, find_previous_matchups, game_id, normalize_name
from analysis.odds_analyzer import OddsAnalyzer, OddsProbabilityModel
from analysis.recommendation import Classification, classify
from analysis.risk_assessment import DEFAULT_SIMULATIONS, RiskAssessment, RiskAssessor
from analysis.scoring_patterns import ScoringPatternAnalyzer, ScoringRecommendation
from analysis.weighting import DynamicWeightAllocator, WeightVector, composite_score

logger = logging.getLogger(__name__)


# =============================================================================
# PIPELINE
# =============================================================================

@dataclass(frozen=True)
class PipelineOutcome:
    """Typed intermediate values of one candidate's pipeline run."""
    breakdown: ConfidenceBreakdown
    weights: WeightVector
    score: float
    classification: Classification


class AnalysisPipeline:
    """
    Ordered confidence pipeline for a single candidate.

    Each stage is a separate method so it can be exercised on its own; run()
    chains them in the only valid order.
    """

    def __init__(self, estimator: SignalEstimator, allocator: Optional[DynamicWeightAllocator] = None):
        self.estimator = estimator
        self.allocator = allocator or DynamicWeightAllocator()

    def estimate(self, candidate: CandidateBet) -> ConfidenceBreakdown:
        return self.estimator.estimate(candidate)

    def allocate(self, candidate: CandidateBet, breakdown: ConfidenceBreakdown) -> WeightVector:
        return self.allocator.allocate(breakdown, candidate.market)

    def score(self, breakdown: ConfidenceBreakdown, weights: WeightVector) -> float:
        return composite_score(breakdown, weights)

    def classify(
        self,
        candidate: CandidateBet,
        score: float,
        breakdown: ConfidenceBreakdown,
        blacklisted: bool = False,
    ) -> Classification:
        return classify(score, candidate, breakdown, blacklisted=blacklisted)

    def run(self, candidate: CandidateBet, blacklisted: bool = False) -> PipelineOutcome:
        breakdown = self.estimate(candidate)
        weights = self.allocate(candidate, breakdown)
        score = self.score(breakdown, weights)
        classification = self.classify(candidate, score, breakdown, blacklisted)
        return PipelineOutcome(breakdown, weights, score, classification)


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class Recommendation:
    """Everything the engine says about one candidate wager."""
    candidate: CandidateBet
    game_id: str
    confidence_score: float
    breakdown: ConfidenceBreakdown
    weights: WeightVector
    classification: Classification
    triplet: RecommendationTriplet
    probabilities: Optional[OddsProbabilityModel] = None
    scoring_recommendation: Optional[ScoringRecommendation] = None
    previous_matchups: List[HistoricalRecord] = field(default_factory=list)
    risk: Optional[RiskAssessment] = None
    odds_band: Optional[str] = None
    is_blacklisted: bool = False

    @property
    def recommendation(self) -> str:
        return self.classification.recommendation

    def to_dict(self, betslip_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Serializable view for storage.

        Args:
            betslip_id: Caller-supplied batch identifier

        Returns:
            Candidate fields plus every engine output
        """
        data = self.candidate.to_dict()
        data.update({
            "betslip_id": betslip_id,
            "game_id": self.game_id,
            "bet_odds": self.candidate.bet_odds,
            "odds_band": self.odds_band,
            "is_blacklisted": self.is_blacklisted,
            "confidence_score": self.confidence_score,
            "confidence_label": self.classification.confidence_label.value,
            "confidence_breakdown": self.breakdown.to_dict(),
            "confidence_evidence": {
                name: ev.to_dict() for name, ev in self.breakdown.estimates.items()
            },
            "weights": self.weights.to_dict(),
            "recommendation": self.classification.recommendation,
            "recommendation_call": self.classification.call.value,
            "recommendation_reasoning": self.classification.reasoning,
            "probabilities": self.probabilities.to_dict() if self.probabilities else None,
            "scoring_recommendation": (
                self.scoring_recommendation.to_dict() if self.scoring_recommendation else None
            ),
            "recommendation_triplet": self.triplet.to_dict(),
            "previous_matchups": [
                {
                    "date": m.date,
                    "home_team": m.home_team,
                    "away_team": m.away_team,
                    "team_included": m.team_included,
                    "result": m.result.value,
                    "home_score": m.home_score,
                    "away_score": m.away_score,
                }
                for m in self.previous_matchups
            ],
            "risk_assessment": self.risk.to_dict() if self.risk else None,
        })
        return data


# =============================================================================
# ENGINE
# =============================================================================

class RecommendationEngine:
    """
    Produces recommendations for candidate wagers against a fixed corpus.

    The corpus is indexed once on construction; analysis calls never modify
    engine state, so batch analysis can safely fan out across threads.

    Args:
        records: Historical wagers (settled and pending)
        blacklist: Team names, or tracker blacklist rows, to always avoid
        max_workers: Thread count for analyze_batch; None or 1 runs inline
        simulations: Monte Carlo runs per risk assessment

    Example:
        >>> engine = RecommendationEngine(parse_records(history_rows), blacklist=["Spurs"])
        >>> rec = engine.analyze(parse_candidate(new_bet_row))
        >>> rec.to_dict(betslip_id="slip-42")["recommendation"]
    """

    def __init__(
        self,
        records: Iterable[HistoricalRecord],
        blacklist: Iterable[Any] = (),
        max_workers: Optional[int] = None,
        simulations: int = DEFAULT_SIMULATIONS,
    ):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.records: List[HistoricalRecord] = list(records)
        self.blacklist = parse_blacklist(blacklist)
        self.max_workers = max_workers

        self.estimator = SignalEstimator(self.records)
        self.scoring = ScoringPatternAnalyzer(self.records)
        self.pipeline = AnalysisPipeline(self.estimator)
        self.ranker = MarketRanker(self.estimator, self.scoring)
        self.odds_analyzer = OddsAnalyzer()
        self.risk_assessor = RiskAssessor(num_simulations=simulations)

        if not self.records:
            self.logger.warning("Empty history corpus; every signal will use the neutral prior")

    def is_blacklisted(self, candidate: CandidateBet) -> bool:
        team = normalize_name(candidate.team_included)
        return bool(team) and team in self.blacklist

    def analyze(self, candidate: CandidateBet) -> Recommendation:
        """
        Analyze one candidate wager.

        Blacklisted teams are classified as avoid without consulting the
        composite score; the score is still reported.
        """
        blacklisted = self.is_blacklisted(candidate)
        outcome = self.pipeline.run(candidate, blacklisted=blacklisted)

        triplet = self.ranker.rank(candidate, outcome.classification, outcome.score)
        probabilities = self.odds_analyzer.analyze_candidate(candidate)
        scoring = self.scoring.scoring_recommendation(
            candidate.home_team, candidate.away_team, candidate.country, candidate.league
        )
        matchups = find_previous_matchups(
            self.estimator.records,
            candidate.home_team,
            candidate.away_team,
            candidate.country,
            candidate.league,
        )
        team_evidence = outcome.breakdown.evidence("team")
        risk = self.risk_assessor.assess(
            team_evidence.wins, team_evidence.losses, candidate.bet_odds
        )

        self.logger.info(
            f"{candidate.team_included or candidate.home_team}: "
            f"{outcome.score:.1f} -> {outcome.classification.recommendation}"
        )
        return Recommendation(
            candidate=candidate,
            game_id=game_id(candidate),
            confidence_score=outcome.score,
            breakdown=outcome.breakdown,
            weights=outcome.weights,
            classification=outcome.classification,
            triplet=triplet,
            probabilities=probabilities,
            scoring_recommendation=scoring,
            previous_matchups=matchups,
            risk=risk,
            odds_band=self.odds_analyzer.band_for(candidate.bet_odds),
            is_blacklisted=blacklisted,
        )

    def analyze_batch(self, candidates: Iterable[CandidateBet]) -> List[Recommendation]:
        """
        Analyze a batch of candidates.

        Duplicate candidates are dropped first. Output order always follows
        the order of first appearance, whether or not a thread pool is used.
        """
        unique = dedupe_candidates(candidates)
        if not unique:
            self.logger.info("No candidate bets to analyze")
            return []

        if self.max_workers and self.max_workers > 1 and len(unique) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(self.analyze, unique))
        else:
            results = [self.analyze(c) for c in unique]

        self.logger.info(f"Analyzed {len(results)} candidate bets")
        return results
