#!/usr/bin/env python3
"""
Unit tests for analysis/engine.py covering:
- The ordered estimate -> allocate -> score -> classify pipeline
- Full recommendations for a candidate, including the neutral prior
- Blacklist handling
- Batch analysis, duplicate candidates and the thread pool
- Determinism and serialisation of results
"""

import json
import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_collection.bet_records import BetResult, CandidateBet, HistoricalRecord, MarketType, Side
from analysis.confidence_estimator import SIGNALS
from analysis.engine import AnalysisPipeline, RecommendationEngine
from analysis.recommendation import RecommendationCall
from analysis.risk_assessment import RiskLevel


# =============================================================================
# FIXTURES
# =============================================================================

def history_record(day: int, result: BetResult, **overrides) -> HistoricalRecord:
    fields = {
        "date": f"2024-04-{day:02d}",
        "home_team": "Arsenal",
        "away_team": f"Opponent {day}",
        "country": "England",
        "league": "Premier League",
        "team_included": "Arsenal",
        "bet_type": "Straight Win",
        "bet_selection": "Home Win",
        "market": MarketType.STRAIGHT_WIN,
        "side": Side.HOME,
        "odds_home": 1.8,
        "odds_draw": 3.6,
        "odds_away": 4.5,
        "home_score": 2 if result == BetResult.WIN else 0,
        "away_score": 0 if result == BetResult.WIN else 1,
        "result": result,
    }
    fields.update(overrides)
    return HistoricalRecord(**fields)


@pytest.fixture
def strong_history():
    return [history_record(day, BetResult.WIN) for day in range(1, 21)]


@pytest.fixture
def candidate():
    return CandidateBet(
        date="2024-05-01",
        home_team="Arsenal",
        away_team="Spurs",
        country="England",
        league="Premier League",
        team_included="Arsenal",
        bet_type="Straight Win",
        bet_selection="Home Win",
        market=MarketType.STRAIGHT_WIN,
        side=Side.HOME,
        odds_home=1.85,
        odds_draw=3.6,
        odds_away=4.2,
        home_position=2,
        away_position=17,
        last_5_wins=5,
        last_5_draws=0,
        last_5_losses=0,
    )


# =============================================================================
# PIPELINE
# =============================================================================

class TestAnalysisPipeline:

    def test_run_chains_stages(self, strong_history, candidate):
        engine = RecommendationEngine(strong_history)
        pipeline = AnalysisPipeline(engine.estimator)
        outcome = pipeline.run(candidate)
        assert outcome.breakdown == pipeline.estimate(candidate)
        assert outcome.weights == pipeline.allocate(candidate, outcome.breakdown)
        assert outcome.score == pipeline.score(outcome.breakdown, outcome.weights)
        assert outcome.weights.total == pytest.approx(1.0)


# =============================================================================
# SINGLE CANDIDATE
# =============================================================================

class TestAnalyze:

    def test_strong_history_backs_the_team(self, strong_history, candidate):
        rec = RecommendationEngine(strong_history).analyze(candidate)
        assert rec.classification.call == RecommendationCall.BACK
        assert rec.recommendation == "Home Win"
        assert rec.confidence_score >= 70.0
        assert rec.game_id == "20240501_arsenal_spurs"
        assert rec.odds_band == "1.5-1.99"
        assert not rec.is_blacklisted

    def test_attached_analyses(self, strong_history, candidate):
        rec = RecommendationEngine(strong_history).analyze(candidate)
        assert rec.probabilities is not None
        assert rec.probabilities.home + rec.probabilities.draw + rec.probabilities.away == pytest.approx(100.0)
        assert rec.scoring_recommendation is not None
        assert rec.triplet.primary.adjusted_score >= rec.triplet.tertiary.adjusted_score
        assert rec.risk.sample_size == 20
        assert rec.previous_matchups == []

    def test_empty_corpus_is_neutral(self):
        bet = CandidateBet(home_team="Arsenal", away_team="Spurs", team_included="Arsenal", side=Side.HOME)
        rec = RecommendationEngine([]).analyze(bet)
        assert rec.breakdown.scores() == {s: 50.0 for s in SIGNALS}
        assert rec.confidence_score == 50.0
        assert rec.recommendation == "Double Chance Home/Draw"
        assert rec.probabilities is None
        assert rec.scoring_recommendation is None
        assert rec.risk.risk_level == RiskLevel.HIGH
        assert rec.triplet.primary.bet == "No clear winner"

    def test_poor_history_avoids(self, candidate):
        history = [history_record(day, BetResult.LOSS) for day in range(1, 21)]
        bet = replace(candidate, last_5_wins=0, last_5_losses=5, home_position=18, away_position=2)
        rec = RecommendationEngine(history).analyze(bet)
        assert rec.classification.is_avoid
        assert rec.recommendation == "Avoid"
        assert "Poor team performance" in rec.classification.reasoning
        assert {a.bet for a in rec.triplet.ranked()} == {"AVOID"}

    def test_blacklisted_team(self, strong_history, candidate):
        engine = RecommendationEngine(strong_history, blacklist=[{"TEAM_NAME": " arsenal "}])
        rec = engine.analyze(candidate)
        assert rec.is_blacklisted
        assert rec.recommendation == "Avoid (Blacklisted)"
        # The score is still reported for the record
        assert rec.confidence_score >= 70.0
        assert rec.triplet.primary.bet == "AVOID"

    def test_deterministic(self, strong_history, candidate):
        engine = RecommendationEngine(strong_history)
        assert engine.analyze(candidate).to_dict() == engine.analyze(candidate).to_dict()


# =============================================================================
# BATCH
# =============================================================================

class TestAnalyzeBatch:

    def _batch(self, candidate):
        other = replace(candidate, team_included="Spurs", side=Side.AWAY)
        third = replace(candidate, home_team="Chelsea", team_included="Chelsea")
        return [candidate, other, candidate, third]

    def test_duplicates_dropped_in_order(self, strong_history, candidate):
        results = RecommendationEngine(strong_history).analyze_batch(self._batch(candidate))
        assert [r.candidate.team_included for r in results] == ["Arsenal", "Spurs", "Chelsea"]

    def test_thread_pool_matches_inline(self, strong_history, candidate):
        inline = RecommendationEngine(strong_history).analyze_batch(self._batch(candidate))
        pooled = RecommendationEngine(strong_history, max_workers=4).analyze_batch(self._batch(candidate))
        assert [r.to_dict() for r in pooled] == [r.to_dict() for r in inline]

    def test_empty_batch(self, strong_history):
        assert RecommendationEngine(strong_history).analyze_batch([]) == []


# =============================================================================
# SERIALISATION
# =============================================================================

class TestToDict:

    def test_keys_and_json(self, strong_history, candidate):
        data = RecommendationEngine(strong_history).analyze(candidate).to_dict(betslip_id="slip-9")
        for key in (
            "betslip_id", "game_id", "home_team", "confidence_score", "confidence_label",
            "confidence_breakdown", "weights", "recommendation", "recommendation_triplet",
            "probabilities", "scoring_recommendation", "previous_matchups", "risk_assessment",
        ):
            assert key in data
        assert data["betslip_id"] == "slip-9"
        assert data["market"] == "Straight Win"
        assert "created_at" not in data
        json.dumps(data)
