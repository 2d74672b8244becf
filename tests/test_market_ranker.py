#!/usr/bin/env python3
"""
Unit tests for analysis/market_ranker.py covering:
- Straight-Win leader detection
- Double-Chance confidence and its Straight-Win floor
- Over/Under goal-line selection and reliability scaling
- Risk-adjusted ranking and the avoid override
"""

import sys
from pathlib import Path
from typing import List

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_collection.bet_records import BetResult, CandidateBet, HistoricalRecord, MarketType, Side
from analysis.confidence_estimator import ConfidenceBreakdown, SignalEstimator
from analysis.market_ranker import MarketAnalysis, MarketRanker, rank_markets
from analysis.recommendation import classify
from analysis.risk_assessment import RiskLevel
from analysis.scoring_patterns import ScoringPatternAnalyzer


# =============================================================================
# FIXTURES
# =============================================================================

def team_record(team: str, day: int, result: BetResult, **overrides) -> HistoricalRecord:
    fields = {
        "date": f"2024-01-{day:02d}",
        "home_team": team,
        "away_team": f"Opponent {day}",
        "country": "England",
        "league": "Premier League",
        "team_included": team,
        "bet_type": "Straight Win",
        "result": result,
    }
    fields.update(overrides)
    return HistoricalRecord(**fields)


def record_for(team: str, wins: int, losses: int) -> List[HistoricalRecord]:
    results = [BetResult.WIN] * wins + [BetResult.LOSS] * losses
    return [team_record(team, day, result) for day, result in enumerate(results, start=1)]


def head_to_head(scores) -> List[HistoricalRecord]:
    """Scored meetings with no backed team, so they feed only the draw rate."""
    return [
        HistoricalRecord(
            date=f"2023-0{i + 1}-01",
            home_team="Arsenal",
            away_team="Spurs",
            country="England",
            league="Premier League",
            result=BetResult.WIN,
            home_score=home,
            away_score=away,
        )
        for i, (home, away) in enumerate(scores)
    ]


def make_ranker(records) -> MarketRanker:
    return MarketRanker(SignalEstimator(records), ScoringPatternAnalyzer(records))


@pytest.fixture
def candidate():
    return CandidateBet(
        date="2024-05-01",
        home_team="Arsenal",
        away_team="Spurs",
        country="England",
        league="Premier League",
        team_included="Arsenal",
        market=MarketType.STRAIGHT_WIN,
        side=Side.HOME,
    )


# =============================================================================
# STRAIGHT WIN / DOUBLE CHANCE
# =============================================================================

class TestStraightWin:

    def test_clear_home_leader(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 8, 2) + record_for("Spurs", 3, 7))
        result = ranker.analyze_straight_win(candidate)
        assert result.bet == "Arsenal Win"
        assert result.confidence == pytest.approx(80.0)
        assert result.sample_size == 10

    def test_clear_away_leader(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 2, 8) + record_for("Spurs", 7, 3))
        assert ranker.analyze_straight_win(candidate).bet == "Spurs Win"

    def test_close_rates(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 6, 4) + record_for("Spurs", 5, 5))
        result = ranker.analyze_straight_win(candidate)
        assert result.bet == "No clear winner"
        assert result.confidence == 50.0


class TestDoubleChance:

    def test_default_draw_rate(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 6, 4) + record_for("Spurs", 3, 7))
        straight = ranker.analyze_straight_win(candidate)
        result = ranker.analyze_double_chance(candidate, straight)
        assert result.bet == "Arsenal or Draw"
        assert result.confidence == pytest.approx(75.0)
        assert "default draw rate" in result.reasoning

    def test_head_to_head_draw_rate(self, candidate):
        records = (
            record_for("Arsenal", 6, 4)
            + record_for("Spurs", 3, 7)
            + head_to_head([(1, 1), (2, 0), (0, 1), (3, 2)])
        )
        ranker = make_ranker(records)
        result = ranker.analyze_double_chance(candidate, ranker.analyze_straight_win(candidate))
        assert result.confidence == pytest.approx(85.0)
        assert "head-to-head draw rate" in result.reasoning

    def test_meetings_without_draws_add_nothing(self, candidate):
        records = (
            record_for("Arsenal", 6, 4)
            + record_for("Spurs", 3, 7)
            + head_to_head([(2, 0), (0, 1), (3, 2)])
        )
        ranker = make_ranker(records)
        straight = ranker.analyze_straight_win(candidate)
        result = ranker.analyze_double_chance(candidate, straight)
        assert result.confidence == pytest.approx(straight.confidence)
        assert "0.0% head-to-head draw rate" in result.reasoning

    def test_never_below_straight_win(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 5, 0))
        straight = ranker.analyze_straight_win(candidate)
        double = ranker.analyze_double_chance(candidate, straight)
        assert straight.confidence == 100.0
        assert double.confidence >= straight.confidence

    def test_floor_applies_without_leader(self, candidate):
        ranker = make_ranker([])
        straight = ranker.analyze_straight_win(candidate)
        double = ranker.analyze_double_chance(candidate, straight)
        assert double.confidence == straight.confidence == 50.0

    def test_tie_covers_home(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 5, 5) + record_for("Spurs", 5, 5))
        result = ranker.analyze_double_chance(candidate, ranker.analyze_straight_win(candidate))
        assert result.bet == "Arsenal or Draw"


# =============================================================================
# OVER / UNDER
# =============================================================================

class TestOverUnder:

    def test_no_scoring_data(self, candidate):
        result = make_ranker([]).analyze_over_under(candidate)
        assert result.bet == "No clear trend"
        assert result.confidence == 50.0

    def test_full_reliability(self, candidate):
        games = [
            HistoricalRecord(
                date=f"2024-02-{day:02d}", home_team=home, away_team=f"Rival {day}",
                country="England", league="Premier League", result=BetResult.WIN,
                home_score=4, away_score=2,
            )
            for day in range(1, 6)
            for home in ("Arsenal", "Spurs")
        ]
        result = make_ranker(games).analyze_over_under(candidate)
        # Average of 6 goals is furthest above the 1.5 line, so OVER 1.5 wins
        assert result.bet == "OVER 1.5"
        assert result.confidence == 100.0
        assert result.sample_size == 10

    def test_small_sample_is_scaled_down(self, candidate):
        games = [
            HistoricalRecord(
                date="2024-02-01", home_team="Arsenal", away_team="Spurs",
                country="England", league="Premier League", result=BetResult.WIN,
                home_score=2, away_score=1,
            )
        ]
        result = make_ranker(games).analyze_over_under(candidate)
        # Two profiles from one game: reliability 0.2 keeps every line under 60
        assert result.bet == "No clear trend"
        assert result.confidence == 50.0
        assert result.sample_size == 2

    def test_low_scoring_favours_under(self, candidate):
        games = [
            HistoricalRecord(
                date=f"2024-02-{day:02d}", home_team="Arsenal", away_team="Spurs",
                country="England", league="Premier League", result=BetResult.WIN,
                home_score=1, away_score=0,
            )
            for day in range(1, 6)
        ]
        result = make_ranker(games).analyze_over_under(candidate)
        assert result.bet.startswith("UNDER")
        assert result.confidence >= 60.0


# =============================================================================
# RANKING
# =============================================================================

class TestRanking:

    def test_rank_by_adjusted_score(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 8, 2) + record_for("Spurs", 3, 7))
        triplet = ranker.rank(candidate, classify(75.0, candidate, ConfidenceBreakdown()), 75.0)
        # DC 95 * 0.9 = 85.5 beats SW 80 * 1.0, OU 50 * 0.95 last
        assert triplet.primary.market == MarketType.DOUBLE_CHANCE
        assert triplet.secondary.market == MarketType.STRAIGHT_WIN
        assert triplet.tertiary.market == MarketType.OVER_UNDER
        assert triplet.primary.adjusted_score == pytest.approx(85.5)

    def test_avoid_overrides_every_market(self, candidate):
        ranker = make_ranker(record_for("Arsenal", 8, 2))
        classification = classify(30.0, candidate, ConfidenceBreakdown())
        triplet = ranker.rank(candidate, classification, 30.0)
        assert [a.bet for a in triplet.ranked()] == ["AVOID"] * 3
        assert all(a.confidence == 30.0 for a in triplet.ranked())
        assert [a.market for a in triplet.ranked()] == [
            MarketType.STRAIGHT_WIN, MarketType.OVER_UNDER, MarketType.DOUBLE_CHANCE,
        ]

    def test_ties_keep_market_order(self):
        analyses = [
            MarketAnalysis(MarketType.STRAIGHT_WIN, "x", 0.0, ""),
            MarketAnalysis(MarketType.DOUBLE_CHANCE, "y", 0.0, ""),
            MarketAnalysis(MarketType.OVER_UNDER, "z", 0.0, ""),
        ]
        assert [a.bet for a in rank_markets(analyses).ranked()] == ["x", "y", "z"]

    def test_requires_three(self):
        with pytest.raises(ValueError):
            rank_markets([MarketAnalysis(MarketType.STRAIGHT_WIN, "x", 50.0, "")])

    def test_risk_levels(self):
        assert MarketAnalysis(MarketType.STRAIGHT_WIN, "", 50.0, "").risk_level == RiskLevel.HIGH
        assert MarketAnalysis(MarketType.DOUBLE_CHANCE, "", 50.0, "").risk_level == RiskLevel.LOW
        assert MarketAnalysis(MarketType.OVER_UNDER, "", 50.0, "").risk_level == RiskLevel.MEDIUM

    def test_for_market_and_to_dict(self, candidate):
        triplet = make_ranker([]).rank(candidate, classify(55.0, candidate, ConfidenceBreakdown()), 55.0)
        assert triplet.for_market(MarketType.OVER_UNDER).bet == "No clear trend"
        data = triplet.to_dict()
        assert set(data) == {"primary", "secondary", "tertiary"}
        assert data["primary"]["market"] == "Straight Win"
