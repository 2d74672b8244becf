#!/usr/bin/env python3
"""
Scoring-Pattern Analyzer.

This module provides functionality to:
- Aggregate goals per game for every team in every competition
- Derive over 1.5 / 2.5 / 3.5 rates and scored/conceded averages
- Split the averages by home and away role
- Fall back to league-wide averages for teams with no scored games
- Turn the over-2.5 rates of a fixture into a scoring recommendation

Tickets are collapsed to unique games before anything is counted.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional, Tuple

from data_collection.bet_records import HistoricalRecord
from analysis.matchup import dedupe_games, normalize_name

logger = logging.getLogger(__name__)

STRONG_OVER_RATE = 70.0
MODERATE_OVER_RATE = 55.0
CONSIDER_OVER_RATE = 40.0

ProfileKey = Tuple[str, str, str]


class ProfileSource(Enum):
    """Where a scoring profile's numbers come from."""
    TEAM = "team"
    LEAGUE_AVERAGE = "league_average"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ScoringProfile:
    """Goal statistics for one team in one competition."""
    team: str
    country: str
    league: str
    total_games: int
    home_games: int
    away_games: int
    avg_goals: float
    avg_goals_scored: float
    avg_goals_conceded: float
    home_avg_goals_scored: float
    home_avg_goals_conceded: float
    away_avg_goals_scored: float
    away_avg_goals_conceded: float
    over_1_5_rate: float
    over_2_5_rate: float
    over_3_5_rate: float
    source: ProfileSource = ProfileSource.TEAM

    @property
    def is_league_average(self) -> bool:
        return self.source == ProfileSource.LEAGUE_AVERAGE

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        for key, value in data.items():
            if isinstance(value, float):
                data[key] = round(value, 2)
        return data


@dataclass(frozen=True)
class ScoringRecommendation:
    """Goals call for a fixture derived from over-2.5 rates."""
    type: str
    confidence: str  # "high" / "medium" / "low", reflects data availability
    rate: float
    source: ProfileSource

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "confidence": self.confidence,
            "rate": round(self.rate, 1),
            "source": self.source.value,
        }


class _Tally:
    """Mutable accumulator used while walking the game list."""

    def __init__(self, team: str, country: str, league: str):
        self.team = team
        self.country = country
        self.league = league
        self.home_games = 0
        self.away_games = 0
        self.total_goals = 0
        self.home_scored = 0
        self.home_conceded = 0
        self.away_scored = 0
        self.away_conceded = 0
        self.over = {1: 0, 2: 0, 3: 0}

    def add(self, scored: int, conceded: int, at_home: bool) -> None:
        total = scored + conceded
        self.total_goals += total
        if at_home:
            self.home_games += 1
            self.home_scored += scored
            self.home_conceded += conceded
        else:
            self.away_games += 1
            self.away_scored += scored
            self.away_conceded += conceded
        for line in self.over:
            if total > line:
                self.over[line] += 1

    def to_profile(self) -> ScoringProfile:
        games = self.home_games + self.away_games

        def per(value: int, count: int) -> float:
            return value / count if count else 0.0

        return ScoringProfile(
            team=self.team,
            country=self.country,
            league=self.league,
            total_games=games,
            home_games=self.home_games,
            away_games=self.away_games,
            avg_goals=per(self.total_goals, games),
            avg_goals_scored=per(self.home_scored + self.away_scored, games),
            avg_goals_conceded=per(self.home_conceded + self.away_conceded, games),
            home_avg_goals_scored=per(self.home_scored, self.home_games),
            home_avg_goals_conceded=per(self.home_conceded, self.home_games),
            away_avg_goals_scored=per(self.away_scored, self.away_games),
            away_avg_goals_conceded=per(self.away_conceded, self.away_games),
            over_1_5_rate=per(self.over[1], games) * 100,
            over_2_5_rate=per(self.over[2], games) * 100,
            over_3_5_rate=per(self.over[3], games) * 100,
        )


def _rate_label(rate: float) -> str:
    if rate >= STRONG_OVER_RATE:
        return "Strong Over 1.5"
    if rate >= MODERATE_OVER_RATE:
        return "Moderate Over 1.5"
    if rate >= CONSIDER_OVER_RATE:
        return "Consider Over 0.5"
    return "Low Scoring Expected"


# =============================================================================
# ANALYZER
# =============================================================================

class ScoringPatternAnalyzer:
    """
    Builds per-team scoring profiles from the historical corpus.

    Only settled games with a full scoreline are used. Each unique game
    contributes once to the home side's profile and once to the away side's.
    """

    def __init__(self, records: Iterable[HistoricalRecord]):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.games = self._scored_games(records)
        self._profiles: Dict[ProfileKey, ScoringProfile] = self._build_profiles(self.games)
        self.logger.info(
            f"Built {len(self._profiles)} scoring profiles from {len(self.games)} unique games"
        )

    @staticmethod
    def _scored_games(records: Iterable[HistoricalRecord]) -> List[HistoricalRecord]:
        usable = [
            r for r in records
            if r.is_settled and r.has_score
            and r.home_score >= 0 and r.away_score >= 0
            and r.home_team and r.away_team and r.date
        ]
        return dedupe_games(usable)

    @staticmethod
    def _key(team: str, country: str, league: str) -> ProfileKey:
        return (normalize_name(team), normalize_name(country), normalize_name(league))

    def _build_profiles(self, games: List[HistoricalRecord]) -> Dict[ProfileKey, ScoringProfile]:
        tallies: Dict[ProfileKey, _Tally] = {}

        def tally_for(team: str, game: HistoricalRecord) -> _Tally:
            key = self._key(team, game.country, game.league)
            if key not in tallies:
                tallies[key] = _Tally(team, game.country, game.league)
            return tallies[key]

        for game in games:
            tally_for(game.home_team, game).add(game.home_score, game.away_score, at_home=True)
            tally_for(game.away_team, game).add(game.away_score, game.home_score, at_home=False)

        return {key: tally.to_profile() for key, tally in tallies.items()}

    # -------------------------------------------------------------------------

    def profiles(self) -> List[ScoringProfile]:
        """All team profiles, highest average goals first."""
        return sorted(self._profiles.values(), key=lambda p: p.avg_goals, reverse=True)

    def team_profile(self, team: str, country: str, league: str) -> Optional[ScoringProfile]:
        """Team-specific profile only; None when the team has no scored games."""
        return self._profiles.get(self._key(team, country, league))

    def league_games(self, country: str, league: str) -> List[HistoricalRecord]:
        country_key, league_key = normalize_name(country), normalize_name(league)
        return [
            g for g in self.games
            if normalize_name(g.country) == country_key and normalize_name(g.league) == league_key
        ]

    def league_average(self, team: str, country: str, league: str) -> Optional[ScoringProfile]:
        """
        League-wide mean of every team profile in the competition.

        Returns None when nobody in the league has scored games.
        """
        country_key, league_key = normalize_name(country), normalize_name(league)
        members = [
            p for key, p in self._profiles.items()
            if key[1] == country_key and key[2] == league_key
        ]
        if not members:
            return None

        return ScoringProfile(
            team=team,
            country=country,
            league=league,
            total_games=len(self.league_games(country, league)),
            home_games=0,
            away_games=0,
            avg_goals=mean(p.avg_goals for p in members),
            avg_goals_scored=mean(p.avg_goals_scored for p in members),
            avg_goals_conceded=mean(p.avg_goals_conceded for p in members),
            home_avg_goals_scored=mean(p.home_avg_goals_scored for p in members),
            home_avg_goals_conceded=mean(p.home_avg_goals_conceded for p in members),
            away_avg_goals_scored=mean(p.away_avg_goals_scored for p in members),
            away_avg_goals_conceded=mean(p.away_avg_goals_conceded for p in members),
            over_1_5_rate=mean(p.over_1_5_rate for p in members),
            over_2_5_rate=mean(p.over_2_5_rate for p in members),
            over_3_5_rate=mean(p.over_3_5_rate for p in members),
            source=ProfileSource.LEAGUE_AVERAGE,
        )

    def get_profile(self, team: str, country: str, league: str) -> Optional[ScoringProfile]:
        """Team profile, else the league average tagged as such, else None."""
        profile = self.team_profile(team, country, league)
        if profile is not None:
            return profile
        fallback = self.league_average(team, country, league)
        if fallback is not None:
            self.logger.debug(f"No scoring data for {team}; using {league} average")
        return fallback

    def scoring_recommendation(
        self, home_team: str, away_team: str, country: str, league: str
    ) -> Optional[ScoringRecommendation]:
        """
        Goals call for a fixture.

        Both teams known: the mean of their over-2.5 rates, and the data
        confidence follows the strength of the call. One team known: its
        rate averaged with the league average, at most medium confidence.
        Neither known: the league average at low confidence.

        Returns:
            ScoringRecommendation, or None when the league has no scored games
        """
        if not home_team or not away_team:
            return None

        home = self.team_profile(home_team, country, league)
        away = self.team_profile(away_team, country, league)
        league_avg = self.league_average(home_team, country, league)

        if home is not None and away is not None:
            rate = (home.over_2_5_rate + away.over_2_5_rate) / 2
            if rate >= STRONG_OVER_RATE:
                confidence = "high"
            elif rate >= MODERATE_OVER_RATE:
                confidence = "medium"
            else:
                confidence = "low"
            return ScoringRecommendation(_rate_label(rate), confidence, rate, ProfileSource.TEAM)

        if league_avg is None:
            return None

        known = home or away
        if known is not None:
            rate = (known.over_2_5_rate + league_avg.over_2_5_rate) / 2
            confidence = "medium" if rate >= MODERATE_OVER_RATE else "low"
            return ScoringRecommendation(_rate_label(rate), confidence, rate, ProfileSource.TEAM)

        rate = league_avg.over_2_5_rate
        return ScoringRecommendation(_rate_label(rate), "low", rate, ProfileSource.LEAGUE_AVERAGE)
