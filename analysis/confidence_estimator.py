#!/usr/bin/env python3
"""
Statistical Confidence Estimator.

This module provides functionality to:
- Score a win/loss record with a conservative Wilson-score estimate
- Filter the historical corpus per signal (team, league, odds band,
  head-to-head, home/away split)
- Score recent form from rolling last-5 counts
- Score momentum with exponential recency weighting
- Score league-table position with opponent adjustment

Every signal lands in [10, 100]. A signal with no evidence at all scores
exactly 50.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from data_collection.bet_records import (
    BetResult,
    CandidateBet,
    HistoricalRecord,
    Side,
)
from analysis.matchup import dedupe_games, dedupe_tickets, find_previous_matchups, normalize_name

logger = logging.getLogger(__name__)

Z_SCORE = 1.96
NEUTRAL_SCORE = 50.0
MIN_SCORE = 10.0
MAX_SCORE = 100.0

ODDS_NEIGHBORHOOD = 0.5
FORM_GAMES = 5
FORM_MISSING_PENALTY = 5.0
MOMENTUM_GAMES = 10
MOMENTUM_DECAY = 0.8
OPPONENT_ADJUSTMENT = 10.0

SIGNALS = (
    "team",
    "recent_form",
    "momentum",
    "league",
    "odds",
    "matchup",
    "position",
    "home_away",
)


def clamp_score(value: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def wilson_confidence(wins: int, losses: int, z: float = Z_SCORE) -> float:
    """
    Conservative 0-100 estimate of a win rate from a finite record.

    Uses the lower Wilson bound, then subtracts half a standard error as an
    extra small-sample shrink.

    Args:
        wins: Number of winning wagers
        losses: Number of losing wagers
        z: Normal quantile for the interval

    Returns:
        Score in [10, 100]; exactly 50 when there are no decided wagers

    Example:
        >>> wilson_confidence(0, 0)
        50.0
        >>> wilson_confidence(10, 0)
        72.2
    """
    n = wins + losses
    if n <= 0:
        return NEUTRAL_SCORE

    p = wins / n
    z2 = z * z
    center = p + z2 / (2 * n) - z * math.sqrt((p * (1 - p) + z2 / (4 * n)) / n)
    center /= 1 + z2 / n
    estimate = center - 0.5 * math.sqrt(p * (1 - p) / n)
    return round(clamp_score(estimate * 100), 1)


def position_bucket(position: int) -> float:
    """League-table rank to a base score."""
    if position <= 3:
        return 80.0
    if position <= 6:
        return 70.0
    if position <= 10:
        return 60.0
    if position <= 15:
        return 40.0
    return 30.0


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SignalEstimate:
    """A single signal score with the evidence behind it."""
    score: float
    wins: int = 0
    losses: int = 0
    draws: int = 0

    @property
    def sample_size(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return (self.wins / decided) * 100 if decided else 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "score": self.score,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "win_rate": round(self.win_rate, 1),
        }


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Per-signal scores for one candidate, keyed by signal name."""
    estimates: Dict[str, SignalEstimate] = field(default_factory=dict)

    def __getitem__(self, signal: str) -> float:
        return self.score(signal)

    def score(self, signal: str) -> float:
        estimate = self.estimates.get(signal)
        return estimate.score if estimate else NEUTRAL_SCORE

    def evidence(self, signal: str) -> SignalEstimate:
        return self.estimates.get(signal, SignalEstimate(NEUTRAL_SCORE))

    def scores(self) -> Dict[str, float]:
        return {s: self.score(s) for s in SIGNALS}

    def to_dict(self) -> Dict[str, float]:
        return self.scores()

    @classmethod
    def from_scores(cls, scores: Dict[str, float]) -> "ConfidenceBreakdown":
        """Rebuild a breakdown from stored scores; evidence counts are not kept."""
        estimates = {}
        for signal in SIGNALS:
            try:
                value = float(scores.get(signal, NEUTRAL_SCORE))
            except (TypeError, ValueError):
                value = NEUTRAL_SCORE
            if math.isnan(value):
                value = NEUTRAL_SCORE
            estimates[signal] = SignalEstimate(clamp_score(value))
        return cls(estimates=estimates)


# =============================================================================
# ESTIMATOR
# =============================================================================

class SignalEstimator:
    """
    Computes every confidence signal for a candidate against one corpus.

    The corpus is deduplicated once on construction so repeated copies of
    the same ticket never inflate a record.
    """

    def __init__(self, records: Iterable[HistoricalRecord]):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.records: List[HistoricalRecord] = dedupe_tickets(records)
        self.logger.debug(f"Estimator corpus holds {len(self.records)} unique tickets")

    # -------------------------------------------------------------------------
    # corpus filters
    # -------------------------------------------------------------------------

    def _select(self, predicate: Callable[[HistoricalRecord], bool]) -> List[HistoricalRecord]:
        return [r for r in self.records if predicate(r)]

    def _same_competition(self, record: HistoricalRecord, candidate: CandidateBet) -> bool:
        return (
            normalize_name(record.country) == normalize_name(candidate.country)
            and normalize_name(record.league) == normalize_name(candidate.league)
        )

    def team_records(self, team: str, country: str, league: str) -> List[HistoricalRecord]:
        """Wagers on a team within one competition."""
        team_key = normalize_name(team)
        if not team_key:
            return []
        country_key, league_key = normalize_name(country), normalize_name(league)
        return self._select(
            lambda r: normalize_name(r.team_included) == team_key
            and normalize_name(r.country) == country_key
            and normalize_name(r.league) == league_key
        )

    @staticmethod
    def _record_estimate(records: Sequence[HistoricalRecord]) -> SignalEstimate:
        wins = sum(1 for r in records if r.result == BetResult.WIN)
        losses = sum(1 for r in records if r.result == BetResult.LOSS)
        return SignalEstimate(wilson_confidence(wins, losses), wins=wins, losses=losses)

    # -------------------------------------------------------------------------
    # Wilson-scored signals
    # -------------------------------------------------------------------------

    def team_signal(self, candidate: CandidateBet) -> SignalEstimate:
        return self._record_estimate(
            self.team_records(candidate.team_included, candidate.country, candidate.league)
        )

    def league_signal(self, candidate: CandidateBet) -> SignalEstimate:
        return self._record_estimate(
            self._select(lambda r: self._same_competition(r, candidate))
        )

    def odds_signal(self, candidate: CandidateBet) -> SignalEstimate:
        """Record of same-market wagers priced within half a point of the candidate."""
        price = candidate.bet_odds
        if price <= 0:
            return SignalEstimate(NEUTRAL_SCORE)
        return self._record_estimate(
            self._select(
                lambda r: r.market == candidate.market
                and r.bet_odds > 0
                and abs(r.bet_odds - price) <= ODDS_NEIGHBORHOOD
            )
        )

    def matchup_signal(self, candidate: CandidateBet) -> SignalEstimate:
        return self._record_estimate(
            find_previous_matchups(
                self.records,
                candidate.home_team,
                candidate.away_team,
                candidate.country,
                candidate.league,
            )
        )

    def home_away_signal(self, candidate: CandidateBet) -> SignalEstimate:
        """Team record restricted to wagers backing the same side of the fixture."""
        if candidate.side == Side.UNKNOWN:
            return SignalEstimate(NEUTRAL_SCORE)
        records = self.team_records(candidate.team_included, candidate.country, candidate.league)
        return self._record_estimate([r for r in records if r.side == candidate.side])

    # -------------------------------------------------------------------------
    # special-cased signals
    # -------------------------------------------------------------------------

    def recent_form_signal(self, candidate: CandidateBet) -> SignalEstimate:
        """
        Score the rolling last-5 form.

        (wins + half the draws) over games played, minus 5 points for every
        game short of five.
        """
        if not candidate.has_form:
            return SignalEstimate(NEUTRAL_SCORE)
        wins = candidate.last_5_wins or 0
        draws = candidate.last_5_draws or 0
        losses = candidate.last_5_losses or 0
        total = wins + draws + losses
        if total <= 0:
            return SignalEstimate(NEUTRAL_SCORE)

        score = (wins + 0.5 * draws) / total * 100
        score -= FORM_MISSING_PENALTY * max(0, FORM_GAMES - total)
        return SignalEstimate(
            round(clamp_score(score), 1), wins=wins, losses=losses, draws=draws
        )

    def momentum_signal(self, candidate: CandidateBet) -> SignalEstimate:
        """
        Recency-weighted trend over the team's last ten settled games.

        Games are ordered newest first and weighted 0.8**i. Wins add their
        weight, losses subtract it, draws add nothing. The signed sum is
        normalised by the total weight and mapped from [-1, 1] onto [10, 100].
        """
        team_key = normalize_name(candidate.team_included)
        if not team_key:
            return SignalEstimate(NEUTRAL_SCORE)

        settled = dedupe_games(
            r for r in self.records
            if r.is_settled and normalize_name(r.team_included) == team_key
        )
        if not settled:
            return SignalEstimate(NEUTRAL_SCORE)

        # sorted() is stable; same-day games keep corpus order
        recent = sorted(settled, key=lambda r: r.date, reverse=True)[:MOMENTUM_GAMES]
        signs = np.array(
            [1.0 if r.result == BetResult.WIN else -1.0 if r.result == BetResult.LOSS else 0.0
             for r in recent]
        )
        weights = MOMENTUM_DECAY ** np.arange(len(recent))
        normalized = float(np.dot(signs, weights) / weights.sum())
        score = (normalized + 1) * 45 + 10

        return SignalEstimate(
            round(clamp_score(score), 1),
            wins=int((signs > 0).sum()),
            losses=int((signs < 0).sum()),
            draws=int((signs == 0).sum()),
        )

    def position_signal(self, candidate: CandidateBet) -> SignalEstimate:
        """
        League-table strength of the backed team.

        The backed team's rank is bucketed, then moved down 10 against a
        top-three opponent or up 10 against an opponent ranked 15th or lower.
        Cup ties, unknown sides and missing positions are neutral.
        """
        if candidate.is_cup or candidate.side == Side.UNKNOWN:
            return SignalEstimate(NEUTRAL_SCORE)
        if candidate.home_position is None or candidate.away_position is None:
            return SignalEstimate(NEUTRAL_SCORE)
        if candidate.home_position <= 0 or candidate.away_position <= 0:
            return SignalEstimate(NEUTRAL_SCORE)

        if candidate.side == Side.HOME:
            own, opponent = candidate.home_position, candidate.away_position
        else:
            own, opponent = candidate.away_position, candidate.home_position

        score = position_bucket(own)
        if opponent <= 3:
            score = max(30.0, score - OPPONENT_ADJUSTMENT)
        elif opponent >= 15:
            score = min(MAX_SCORE, score + OPPONENT_ADJUSTMENT)
        return SignalEstimate(clamp_score(score))

    # -------------------------------------------------------------------------

    def estimate(self, candidate: CandidateBet) -> ConfidenceBreakdown:
        """
        Compute every signal for one candidate.

        Args:
            candidate: The prospective wager

        Returns:
            ConfidenceBreakdown with one SignalEstimate per signal name
        """
        estimates = {
            "team": self.team_signal(candidate),
            "recent_form": self.recent_form_signal(candidate),
            "momentum": self.momentum_signal(candidate),
            "league": self.league_signal(candidate),
            "odds": self.odds_signal(candidate),
            "matchup": self.matchup_signal(candidate),
            "position": self.position_signal(candidate),
            "home_away": self.home_away_signal(candidate),
        }
        self.logger.debug(
            f"Signals for {candidate.team_included or '?'}: "
            + ", ".join(f"{k}={v.score}" for k, v in estimates.items())
        )
        return ConfidenceBreakdown(estimates=estimates)
