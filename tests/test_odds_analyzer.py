#!/usr/bin/env python3
"""
Unit tests for the odds_analyzer module.

Covers odds-to-probability conversion, overround removal, the Poisson
scoreline model and historical odds-band statistics.
"""

import pytest
import sys
import os

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analysis.odds_analyzer import (
    OddsAnalyzer,
    calculate_probabilities,
    decimal_to_probability,
    poisson_pmf,
    remove_overround,
)
from data_collection.bet_records import BetResult, CandidateBet, HistoricalRecord, Side


class TestStandaloneFunctions:
    """Tests for standalone utility functions."""

    def test_decimal_to_probability_basic(self):
        """Test basic decimal to probability conversion."""
        assert decimal_to_probability(2.0) == 0.5
        assert abs(decimal_to_probability(1.5) - 0.6666666666666666) < 1e-10
        assert decimal_to_probability(4.0) == 0.25

    def test_decimal_to_probability_invalid(self):
        """Test that non-positive odds raise ValueError."""
        with pytest.raises(ValueError):
            decimal_to_probability(0)
        with pytest.raises(ValueError):
            decimal_to_probability(-2.0)

    def test_remove_overround_basic(self):
        """Test that normalized probabilities sum to 1."""
        result = remove_overround([0.55, 0.55])
        assert result == pytest.approx([0.5, 0.5])

    def test_remove_overround_preserves_ratio(self):
        result = remove_overround([0.6, 0.3, 0.15])
        assert sum(result) == pytest.approx(1.0)
        assert result[0] / result[1] == pytest.approx(2.0)

    def test_remove_overround_invalid(self):
        with pytest.raises(ValueError):
            remove_overround([])
        with pytest.raises(ValueError):
            remove_overround([0.5, -0.1])
        with pytest.raises(ValueError):
            remove_overround([0.0, 0.0])

    def test_poisson_pmf_sums_to_one(self):
        pmf = poisson_pmf(1.5, np.arange(21))
        assert pmf.sum() == pytest.approx(1.0, abs=1e-9)
        assert pmf[0] == pytest.approx(np.exp(-1.5))


# =============================================================================
# PROBABILITY MODEL
# =============================================================================

class TestCalculateProbabilities:

    def test_equal_odds_equal_probabilities(self):
        model = calculate_probabilities(3.0, 3.0, 3.0)
        assert model.home == pytest.approx(100 / 3)
        assert model.draw == pytest.approx(100 / 3)
        assert model.away == pytest.approx(100 / 3)
        assert model.home + model.draw + model.away == pytest.approx(100.0)
        assert model.overround == pytest.approx(100.0)

    def test_goal_budget_split_by_strength(self):
        model = calculate_probabilities(3.0, 3.0, 3.0)
        assert model.lambda_home == pytest.approx(1.25)
        assert model.lambda_away == pytest.approx(1.25)

        favourite = calculate_probabilities(1.5, 4.0, 6.0)
        assert favourite.lambda_home > favourite.lambda_away
        assert favourite.lambda_home + favourite.lambda_away == pytest.approx(2.5)

    def test_top_scorelines(self):
        model = calculate_probabilities(3.0, 3.0, 3.0)
        scores = [s.score for s in model.top_scores]
        # Ties keep row-major grid order
        assert scores == ["1-1", "0-1", "1-0", "0-0", "1-2"]
        probs = [s.probability for s in model.top_scores]
        assert probs == sorted(probs, reverse=True)

    def test_overround_removed(self):
        model = calculate_probabilities(1.9, 3.5, 4.0)
        assert model.overround > 100
        assert model.home + model.draw + model.away == pytest.approx(100.0)

    @pytest.mark.parametrize("home,draw,away", [
        (0, 3.2, 2.1),
        (None, 3.2, 2.1),
        (2.0, -3.0, 2.1),
        ("abc", 3.2, 2.1),
        (2.0, float("nan"), 2.1),
    ])
    def test_missing_or_invalid_odds(self, home, draw, away):
        assert calculate_probabilities(home, draw, away) is None

    def test_to_dict_shape(self):
        data = calculate_probabilities(2.0, 3.4, 3.9).to_dict()
        assert set(data) == {"probs", "lambda", "topScores", "overround"}
        assert set(data["probs"]) == {"home", "draw", "away"}
        assert len(data["topScores"]) == 5
        assert set(data["topScores"][0]) == {"score", "prob"}


# =============================================================================
# ODDS ANALYZER CLASS
# =============================================================================

class TestOddsAnalyzer:

    @pytest.fixture
    def analyzer(self):
        return OddsAnalyzer()

    def test_calculate_overround(self, analyzer):
        assert analyzer.calculate_overround([2.0, 3.5, 4.0]) == pytest.approx(103.571, abs=1e-3)
        with pytest.raises(ValueError):
            analyzer.calculate_overround([])

    @pytest.mark.parametrize("odds,band", [
        (1.2, "1.0-1.49"),
        (1.5, "1.5-1.99"),
        (2.0, "2.0-2.49"),
        (3.99, "3.0-3.99"),
        (7.5, "5.0-9.99"),
        (12.0, "10.0+"),
        (0.0, None),
        (0.9, None),
    ])
    def test_band_for(self, analyzer, odds, band):
        assert analyzer.band_for(odds) == band

    def test_analyze_odds_bands(self, analyzer):
        records = [
            HistoricalRecord(side=Side.HOME, odds_home=1.8, result=BetResult.WIN),
            HistoricalRecord(side=Side.HOME, odds_home=1.6, result=BetResult.LOSS),
            HistoricalRecord(side=Side.AWAY, odds_away=3.2, result=BetResult.WIN),
            HistoricalRecord(side=Side.HOME, odds_home=1.7, result=BetResult.DRAW),
            HistoricalRecord(side=Side.HOME, odds_home=0.0, result=BetResult.WIN),
        ]
        stats = analyzer.analyze_odds_bands(records)
        assert [s.band for s in stats] == ["1.5-1.99", "3.0-3.99"]
        assert stats[0].wins == 1 and stats[0].losses == 1
        assert stats[0].win_rate == pytest.approx(50.0)
        assert stats[1].to_dict()["win_rate"] == 100.0

    def test_analyze_candidate(self, analyzer):
        priced = CandidateBet(odds_home=2.0, odds_draw=3.3, odds_away=3.8)
        assert analyzer.analyze_candidate(priced) is not None
        assert analyzer.analyze_candidate(CandidateBet(odds_home=2.0, odds_away=3.8)) is None
