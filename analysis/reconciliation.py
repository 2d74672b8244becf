#!/usr/bin/env python3
"""
Outcome Reconciliation Module.

This module provides functionality to:
- Join stored recommendations to observed results by canonical game key
- Track each recommendation through Unmatched -> Pending -> Resolved
- Classify resolved outcomes from "did the user's bet win" and
  "did the system agree with the user's selection"
- Flag high-confidence signals on wrong calls so systematic
  overconfidence can be spotted
- Summarise accuracy per confidence band

Observed results with no stored recommendation are reported as unmatched
rather than treated as errors.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from data_collection.bet_records import (
    BetResult,
    HistoricalRecord,
    MarketType,
    Side,
    parse_record,
)
from analysis.confidence_estimator import SIGNALS, ConfidenceBreakdown
from analysis.matchup import game_id, game_key, normalize_name
from analysis.recommendation import AVOID, ConfidenceLevel

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 70.0

# Written back by OutcomeReconciliation.to_dict and read again on reload
RECONCILIATION_FIELDS = frozenset({
    "state", "actual_result", "analysis_type", "insight", "confidence_failures", "is_correct",
})

FAILURE_ISSUES = {
    "team": "High team confidence but team lost - possibly poor recent form not captured",
    "home_away": "High home/away confidence but advantage didn't matter",
    "league": "High league confidence but league trends didn't apply",
    "odds": "High odds confidence but market was wrong",
    "matchup": "High head-to-head confidence but past meetings didn't repeat",
    "position": "High position confidence but table standing didn't hold",
    "recent_form": "High recent form confidence but form didn't carry over",
    "momentum": "High momentum confidence but the run ended",
}


# =============================================================================
# ENUMS
# =============================================================================

class ReconciliationState(Enum):
    UNMATCHED = "unmatched"
    PENDING = "pending"
    RESOLVED = "resolved"


class AnalysisType(Enum):
    """Divergence between the user's bet and the system's call."""
    BOTH_CORRECT = "Both Correct"
    USER_WON_SYSTEM_WRONG = "You Won, System Wrong"
    SYSTEM_RIGHT_USER_LOST = "System Right, You Lost"
    BOTH_WRONG = "Both Wrong"

    @property
    def is_correct(self) -> bool:
        return self in (AnalysisType.BOTH_CORRECT, AnalysisType.SYSTEM_RIGHT_USER_LOST)

    @classmethod
    def classify(cls, user_won: bool, system_matched: bool) -> "AnalysisType":
        if user_won:
            return cls.BOTH_CORRECT if system_matched else cls.USER_WON_SYSTEM_WRONG
        return cls.BOTH_WRONG if system_matched else cls.SYSTEM_RIGHT_USER_LOST


INSIGHTS = {
    AnalysisType.BOTH_CORRECT: "System agreed with your selection and it won",
    AnalysisType.USER_WON_SYSTEM_WRONG: "Your selection won but the system recommended otherwise",
    AnalysisType.SYSTEM_RIGHT_USER_LOST: "System steered away from your selection and it lost",
    AnalysisType.BOTH_WRONG: "System agreed with your selection but it lost",
}


# =============================================================================
# MATCHING
# =============================================================================

def _recommended_market_side(recommendation: str) -> Tuple[Optional[MarketType], Optional[Side]]:
    text = normalize_name(recommendation)
    if not text or text.startswith(AVOID.lower()):
        return None, None
    if "double chance" in text:
        market = MarketType.DOUBLE_CHANCE
    elif "win" in text:
        market = MarketType.STRAIGHT_WIN
    else:
        return None, None
    if "home" in text:
        return market, Side.HOME
    if "away" in text:
        return market, Side.AWAY
    return market, None


def recommendation_matches(recommendation: str, record: HistoricalRecord) -> bool:
    """
    Whether the system's call agrees with what the user actually bet.

    An avoid call never agrees with any selection. Otherwise the call matches
    if it reads the same as the selection, or names the same market and side.
    """
    market, side = _recommended_market_side(recommendation)
    if market is None:
        return False
    selection = normalize_name(record.bet_selection)
    if selection and selection == normalize_name(recommendation):
        return True
    if record.market != market:
        return False
    return side is None or side == record.side


def confidence_failures(breakdown: Dict[str, float]) -> Dict[str, str]:
    """Issue text for every signal that was at or above 70."""
    failures = {}
    for signal in SIGNALS:
        score = breakdown.get(signal)
        if score is not None and score >= HIGH_CONFIDENCE:
            failures[signal] = FAILURE_ISSUES[signal]
    return failures


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class StoredRecommendation:
    """A recommendation as persisted by the tracker."""
    game_id: str
    date: str
    home_team: str
    away_team: str
    country: str = ""
    league: str = ""
    team_included: str = ""
    bet_type: str = ""
    bet_selection: str = ""
    recommendation: str = ""
    confidence_score: float = 50.0
    confidence_breakdown: Dict[str, float] = field(default_factory=dict)
    betslip_id: Optional[str] = None
    bet_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, ...]:
        return game_key(self)

    def _as_row(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "country": self.country,
            "league": self.league,
            "team_included": self.team_included,
            "bet_type": self.bet_type,
            "bet_selection": self.bet_selection,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredRecommendation":
        """
        Rebuild from a stored payload.

        Unknown fields are kept in ``extra`` so they survive a round trip
        back to storage.
        """
        known = {
            "game_id", "date", "home_team", "away_team", "country", "league",
            "team_included", "bet_type", "bet_selection", "recommendation",
            "confidence_score", "confidence_breakdown", "betslip_id", "bet_id",
        } | RECONCILIATION_FIELDS
        breakdown = ConfidenceBreakdown.from_scores(data.get("confidence_breakdown") or {})
        try:
            score = float(data.get("confidence_score", 50.0))
        except (TypeError, ValueError):
            score = 50.0
        record = parse_record(data)
        return cls(
            game_id=str(data.get("game_id") or game_id(record)),
            date=record.date,
            home_team=record.home_team,
            away_team=record.away_team,
            country=record.country,
            league=record.league,
            team_included=record.team_included,
            bet_type=record.bet_type,
            bet_selection=record.bet_selection,
            recommendation=str(data.get("recommendation") or ""),
            confidence_score=score,
            confidence_breakdown=breakdown.scores(),
            betslip_id=data.get("betslip_id"),
            bet_id=record.bet_id,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(self._as_row())
        data.update({
            "game_id": self.game_id,
            "betslip_id": self.betslip_id,
            "bet_id": self.bet_id,
            "recommendation": self.recommendation,
            "confidence_score": self.confidence_score,
            "confidence_breakdown": dict(self.confidence_breakdown),
        })
        return data


@dataclass(frozen=True)
class OutcomeReconciliation:
    """A stored recommendation joined to whatever result has been observed."""
    stored: StoredRecommendation
    state: ReconciliationState = ReconciliationState.UNMATCHED
    actual_result: Optional[BetResult] = None
    analysis_type: Optional[AnalysisType] = None
    insight: str = ""
    confidence_failures: Dict[str, str] = field(default_factory=dict)

    @property
    def is_correct(self) -> Optional[bool]:
        if self.analysis_type is None:
            return None
        return self.analysis_type.is_correct

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutcomeReconciliation":
        """
        Rebuild a reconciliation from a stored payload.

        Plain stored recommendations come back Unmatched. A payload written
        by ``to_dict`` keeps its state, so a resolved call stays resolved.
        A "resolved" state without a readable analysis type is not trusted
        and falls back to Unmatched.
        """
        stored = StoredRecommendation.from_dict(data)
        try:
            state = ReconciliationState(data.get("state") or ReconciliationState.UNMATCHED.value)
        except ValueError:
            state = ReconciliationState.UNMATCHED
        try:
            analysis_type = AnalysisType(data["analysis_type"]) if data.get("analysis_type") else None
        except ValueError:
            analysis_type = None
        actual = data.get("actual_result")
        actual_result = BetResult.parse(actual) if actual else None

        if state == ReconciliationState.RESOLVED and analysis_type is None:
            logger.warning(f"Stored resolution for {stored.game_id} has no analysis type; re-matching")
            return cls(stored=stored)
        if state == ReconciliationState.UNMATCHED:
            return cls(stored=stored)
        if state == ReconciliationState.PENDING:
            return cls(stored=stored, state=state, actual_result=actual_result)

        failures = data.get("confidence_failures")
        return cls(
            stored=stored,
            state=state,
            actual_result=actual_result,
            analysis_type=analysis_type,
            insight=str(data.get("insight") or INSIGHTS[analysis_type]),
            confidence_failures=dict(failures) if isinstance(failures, dict) else {},
        )

    def attach(self, record: HistoricalRecord) -> "OutcomeReconciliation":
        """
        Move to Pending or Resolved given an observed record.

        Returns a new reconciliation; a resolved one is returned unchanged.
        """
        if self.state == ReconciliationState.RESOLVED:
            return self
        if not record.is_settled:
            return replace(self, state=ReconciliationState.PENDING, actual_result=record.result)

        user_won = record.result == BetResult.WIN
        matched = recommendation_matches(self.stored.recommendation, record)
        analysis_type = AnalysisType.classify(user_won, matched)
        failures = {}
        if not analysis_type.is_correct:
            failures = confidence_failures(self.stored.confidence_breakdown)

        return replace(
            self,
            state=ReconciliationState.RESOLVED,
            actual_result=record.result,
            analysis_type=analysis_type,
            insight=INSIGHTS[analysis_type],
            confidence_failures=failures,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.stored.to_dict()
        data.update({
            "state": self.state.value,
            "actual_result": self.actual_result.value if self.actual_result else None,
            "analysis_type": self.analysis_type.value if self.analysis_type else None,
            "insight": self.insight,
            "confidence_failures": dict(self.confidence_failures),
            "is_correct": self.is_correct,
        })
        return data


@dataclass
class ReconciliationReport:
    """Outcome of reconciling one batch of stored recommendations."""
    reconciliations: List[OutcomeReconciliation] = field(default_factory=list)
    unmatched_results: List[HistoricalRecord] = field(default_factory=list)

    def _in_state(self, state: ReconciliationState) -> List[OutcomeReconciliation]:
        return [r for r in self.reconciliations if r.state == state]

    @property
    def resolved(self) -> List[OutcomeReconciliation]:
        return self._in_state(ReconciliationState.RESOLVED)

    @property
    def pending(self) -> List[OutcomeReconciliation]:
        return self._in_state(ReconciliationState.PENDING)

    @property
    def unmatched(self) -> List[OutcomeReconciliation]:
        return self._in_state(ReconciliationState.UNMATCHED)

    @property
    def accuracy(self) -> float:
        resolved = self.resolved
        if not resolved:
            return 0.0
        return sum(1 for r in resolved if r.is_correct) / len(resolved) * 100

    @property
    def failure_tally(self) -> Dict[str, int]:
        """How often each signal was high on a wrong call, most frequent first."""
        counts = Counter()
        for r in self.resolved:
            counts.update(r.confidence_failures.keys())
        return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))

    @property
    def analysis_counts(self) -> Dict[str, int]:
        counts = Counter(r.analysis_type.value for r in self.resolved)
        return {t.value: counts.get(t.value, 0) for t in AnalysisType}

    def accuracy_by_confidence(self) -> Dict[str, Dict[str, float]]:
        """Resolved accuracy grouped by the confidence label of the original call."""
        groups: Dict[str, List[OutcomeReconciliation]] = {
            level.value: [] for level in ConfidenceLevel
        }
        for r in self.resolved:
            groups[ConfidenceLevel.from_score(r.stored.confidence_score).value].append(r)
        summary = {}
        for label, items in groups.items():
            correct = sum(1 for r in items if r.is_correct)
            summary[label] = {
                "total": len(items),
                "correct": correct,
                "accuracy": round(correct / len(items) * 100, 1) if items else 0.0,
            }
        return summary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": len(self.reconciliations),
            "resolved": len(self.resolved),
            "pending": len(self.pending),
            "unmatched": len(self.unmatched),
            "accuracy": round(self.accuracy, 1),
            "analysis_counts": self.analysis_counts,
            "failure_tally": self.failure_tally,
            "accuracy_by_confidence": self.accuracy_by_confidence(),
            "unmatched_results": [
                {"game_id": game_id(r), "result": r.result.value}
                for r in self.unmatched_results
            ],
            "reconciliations": [r.to_dict() for r in self.reconciliations],
        }


# =============================================================================
# RECONCILER
# =============================================================================

class Reconciler:
    """
    Joins stored recommendations to the observed result corpus.

    When several observed tickets exist for one game, the one with the same
    team, bet type and selection as the stored recommendation wins; else
    the first settled ticket, else the first ticket.
    """

    def __init__(self, records: Iterable[HistoricalRecord]):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._by_game: Dict[Tuple[str, ...], List[HistoricalRecord]] = {}
        for record in records:
            self._by_game.setdefault(game_key(record), []).append(record)

    def _observed_for(self, stored: StoredRecommendation) -> Optional[HistoricalRecord]:
        tickets = self._by_game.get(stored.key)
        if not tickets:
            return None
        for ticket in tickets:
            if (
                normalize_name(ticket.team_included) == normalize_name(stored.team_included)
                and normalize_name(ticket.bet_type) == normalize_name(stored.bet_type)
                and normalize_name(ticket.bet_selection) == normalize_name(stored.bet_selection)
            ):
                return ticket
        for ticket in tickets:
            if ticket.is_settled:
                return ticket
        return tickets[0]

    def reconcile(
        self,
        stored: Iterable[Union[StoredRecommendation, OutcomeReconciliation]],
    ) -> ReconciliationReport:
        """
        Join a batch to the observed results.

        Items may be fresh stored recommendations or reconciliations loaded
        from an earlier run. States only move forward: a resolved item is
        kept as it is, and a pending item whose result row has gone missing
        stays pending.
        """
        report = ReconciliationReport()
        claimed = set()

        for item in stored:
            if isinstance(item, OutcomeReconciliation):
                reconciliation = item
            else:
                reconciliation = OutcomeReconciliation(stored=item)
            observed = self._observed_for(reconciliation.stored)
            if observed is not None:
                reconciliation = reconciliation.attach(observed)
            if observed is not None or reconciliation.state == ReconciliationState.RESOLVED:
                claimed.add(reconciliation.stored.key)
            report.reconciliations.append(reconciliation)

        # Only games played on a day covered by this batch can be missing from it
        batch_dates = {key[0] for key in claimed} | {
            normalize_name(r.stored.date) for r in report.reconciliations
        }
        for key, tickets in self._by_game.items():
            if key in claimed or key[0] not in batch_dates:
                continue
            settled = [t for t in tickets if t.is_settled]
            if settled:
                report.unmatched_results.append(settled[0])

        for item in report.unmatched:
            self.logger.warning(
                f"No observed result yet for {item.stored.game_id} ({item.stored.recommendation})"
            )
        if report.unmatched_results:
            self.logger.warning(
                f"{len(report.unmatched_results)} settled results have no stored recommendation"
            )
        self.logger.info(
            f"Reconciled {len(report.resolved)} of {len(report.reconciliations)} recommendations "
            f"({report.accuracy:.1f}% correct)"
        )
        return report
