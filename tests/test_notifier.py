#!/usr/bin/env python3
"""
Unit Tests for the Operator Notifier

Tests for reporting/notifier.py covering:
- NotifierConfig creation from the environment and validation
- Analysis and reconciliation message formatting
- Apprise delivery (mocked)
- Skipping empty or unconfigured notifications
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_collection.bet_records import CandidateBet, Side, parse_record
from analysis.engine import RecommendationEngine
from analysis.reconciliation import Reconciler, ReconciliationReport, StoredRecommendation
from reporting.notifier import NotifierConfig, ReconciliationNotifier


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def configured():
    return NotifierConfig(urls=["json://localhost/hook"], title_prefix="Tracker")


@pytest.fixture
def recommendations():
    engine = RecommendationEngine([])
    return engine.analyze_batch([
        CandidateBet(date="2024-05-01", home_team="Arsenal", away_team="Spurs",
                     team_included="Arsenal", side=Side.HOME),
        CandidateBet(date="2024-05-01", home_team="Chelsea", away_team="Fulham",
                     team_included="Fulham", side=Side.AWAY),
    ])


@pytest.fixture
def report():
    rows = [
        {"DATE": "2024-05-01", "HOME_TEAM": "Arsenal", "AWAY_TEAM": "Spurs", "TEAM_INCLUDED": "Arsenal",
         "BET_TYPE": "Straight Win", "BET_SELECTION": "Home Win", "RESULT": "Loss"},
        {"DATE": "2024-05-01", "HOME_TEAM": "Leeds", "AWAY_TEAM": "Burnley", "TEAM_INCLUDED": "Leeds",
         "BET_TYPE": "Straight Win", "BET_SELECTION": "Home Win", "RESULT": "Win"},
    ]
    stored = StoredRecommendation(
        game_id="20240501_arsenal_spurs", date="2024-05-01", home_team="Arsenal", away_team="Spurs",
        team_included="Arsenal", bet_type="Straight Win", bet_selection="Home Win",
        recommendation="Home Win", confidence_score=80.0,
        confidence_breakdown={"team": 85.0, "odds": 60.0},
    )
    return Reconciler([parse_record(r) for r in rows]).reconcile([stored])


# =============================================================================
# CONFIG
# =============================================================================

class TestNotifierConfig:

    def test_from_env(self):
        env = {"NOTIFY_URL": "json://a, mailto://b ,", "NOTIFY_TITLE_PREFIX": "Bets"}
        with patch.dict(os.environ, env, clear=True):
            config = NotifierConfig.from_env()
        assert config.urls == ["json://a", "mailto://b"]
        assert config.title_prefix == "Bets"

    def test_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            config = NotifierConfig.from_env()
        assert config.urls == []
        valid, reason = config.is_valid()
        assert not valid
        assert "NOTIFY_URL" in reason

    def test_valid(self, configured):
        assert configured.is_valid() == (True, "")


# =============================================================================
# FORMATTING
# =============================================================================

class TestFormatting:

    def test_analysis_summary(self, recommendations):
        body = ReconciliationNotifier.format_analysis_summary("slip-1", recommendations)
        lines = body.splitlines()
        assert lines[0] == "Betslip slip-1: 2 bets analyzed"
        assert lines[1] == "Back: 0 | Hedge: 2 | Avoid: 0"
        assert "- Arsenal vs Spurs: Double Chance Home/Draw (50.0)" in lines
        assert "- Chelsea vs Fulham: Double Chance Away/Draw (50.0)" in lines

    def test_reconciliation_summary(self, report):
        body = ReconciliationNotifier.format_reconciliation_summary("slip-1", report)
        assert "Betslip slip-1: 1 resolved, 0 pending, 0 without results" in body
        assert "System accuracy: 0.0%" in body
        assert "- Both Wrong: 1" in body
        assert "Most overconfident signals:" in body
        assert "- team: 1" in body
        assert "Results with no stored recommendation: 1" in body
        assert "- 2024-05-01 Leeds vs Burnley" in body


# =============================================================================
# DELIVERY
# =============================================================================

class TestDelivery:

    @patch("reporting.notifier.apprise.Apprise")
    def test_sends_through_apprise(self, mock_apprise, configured, recommendations):
        apobj = mock_apprise.return_value
        apobj.add.return_value = True
        apobj.notify.return_value = True

        assert ReconciliationNotifier(configured).notify_analysis("slip-1", recommendations)
        apobj.add.assert_called_once_with("json://localhost/hook")
        kwargs = apobj.notify.call_args[1]
        assert kwargs["title"] == "Tracker: 2 bets analyzed"
        assert kwargs["body"].startswith("Betslip slip-1")

    @patch("reporting.notifier.apprise.Apprise")
    def test_delivery_failure(self, mock_apprise, configured, report):
        mock_apprise.return_value.notify.return_value = False
        assert not ReconciliationNotifier(configured).notify_reconciliation("slip-1", report)

    @patch("reporting.notifier.apprise.Apprise")
    def test_reconciliation_title(self, mock_apprise, configured, report):
        mock_apprise.return_value.notify.return_value = True
        ReconciliationNotifier(configured).notify_reconciliation("slip-1", report)
        assert mock_apprise.return_value.notify.call_args[1]["title"] == "Tracker: Reconciliation 0% correct"

    @patch("reporting.notifier.apprise.Apprise")
    def test_unconfigured_skips(self, mock_apprise, recommendations):
        notifier = ReconciliationNotifier(NotifierConfig())
        assert not notifier.notify_analysis("slip-1", recommendations)
        mock_apprise.assert_not_called()

    @patch("reporting.notifier.apprise.Apprise")
    def test_nothing_to_send(self, mock_apprise, configured):
        notifier = ReconciliationNotifier(configured)
        assert not notifier.notify_analysis("slip-1", [])
        assert not notifier.notify_reconciliation("slip-1", ReconciliationReport())
        mock_apprise.assert_not_called()

    def test_default_config_from_env(self):
        with patch.dict(os.environ, {"NOTIFY_URL": "json://x"}, clear=True):
            notifier = ReconciliationNotifier()
        assert notifier.config.urls == ["json://x"]
