#!/usr/bin/env python3
"""
Bet Records Module for the Bet Tracker Confidence Engine.

This module provides functionality to:
- Model settled historical wagers and unsettled candidate wagers
- Parse raw tracker rows (sheet-style UPPER keys or API-style lower keys)
- Resolve which side of the fixture a wager backs, once, at ingestion
- Tolerate missing or malformed numeric fields without raising

Every downstream estimator works on these typed records, so all of the
default-on-missing behaviour lives here and nowhere else.
"""

import logging
import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class BetResult(Enum):
    """Settlement state of a wager."""
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"
    PENDING = "pending"

    @classmethod
    def parse(cls, value: Any) -> "BetResult":
        """
        Parse a free-text result string.

        Matching is case-insensitive and substring based, so "Win",
        "WON (cashout)" and "win" all map to WIN. Anything unrecognised is
        treated as still pending.
        """
        if value is None:
            return cls.PENDING
        text = str(value).strip().lower()
        if not text:
            return cls.PENDING
        if "win" in text or text.startswith("won"):
            return cls.WIN
        if "loss" in text or "lost" in text or "lose" in text:
            return cls.LOSS
        if "draw" in text or "push" in text:
            return cls.DRAW
        return cls.PENDING


class Side(Enum):
    """Which side of the fixture the wager backs."""
    HOME = "home"
    AWAY = "away"
    UNKNOWN = "unknown"

    @classmethod
    def resolve(cls, team_included: str, home_team: str, away_team: str) -> "Side":
        """
        Infer the backed side from team names.

        The backed team string is checked for containment of the home team
        name first, then the away team name. Empty names never match.
        """
        included = (team_included or "").strip().lower()
        home = (home_team or "").strip().lower()
        away = (away_team or "").strip().lower()
        if not included:
            return cls.UNKNOWN
        if home and home in included:
            return cls.HOME
        if away and away in included:
            return cls.AWAY
        return cls.UNKNOWN


class MarketType(Enum):
    """Wager market families the engine distinguishes."""
    STRAIGHT_WIN = "Straight Win"
    DOUBLE_CHANCE = "Double Chance"
    OVER_UNDER = "Over/Under"
    OTHER = "Other"

    @classmethod
    def parse(cls, bet_type: Any) -> "MarketType":
        text = str(bet_type or "").strip().lower()
        if not text:
            return cls.OTHER
        if "double" in text or text in ("1x", "x2", "12"):
            return cls.DOUBLE_CHANCE
        if "over" in text or "under" in text or "o/u" in text or "goals" in text:
            return cls.OVER_UNDER
        if "win" in text or "1x2" in text or "result" in text or "moneyline" in text:
            return cls.STRAIGHT_WIN
        return cls.OTHER


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _safe_float(value: Any) -> Optional[float]:
    """Parse a float, returning None for blanks, garbage and NaN."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def _safe_int(value: Any) -> Optional[int]:
    """Parse an integer count/position, returning None when absent or malformed."""
    parsed = _safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def _safe_odds(value: Any) -> float:
    """Odds default to 0.0, which every consumer treats as 'no price'."""
    parsed = _safe_float(value)
    if parsed is None or parsed < 0:
        return 0.0
    return parsed


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _pick(row: Dict[str, Any], *keys: str) -> Any:
    """
    Return the first non-blank value among candidate keys.

    Each key is tried verbatim, then upper-cased, then lower-cased, which
    covers both the sheet export and the JSON API spellings.
    """
    for key in keys:
        for variant in (key, key.upper(), key.lower()):
            if variant in row:
                value = row[variant]
                if value is not None and value != "":
                    return value
    return None


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class BetRecord:
    """Fields shared by settled and prospective wagers."""
    bet_id: Optional[str] = None
    date: str = ""
    home_team: str = ""
    away_team: str = ""
    country: str = ""
    league: str = ""
    team_included: str = ""
    bet_type: str = ""
    bet_selection: str = ""
    market: MarketType = MarketType.OTHER
    side: Side = Side.UNKNOWN
    odds_home: float = 0.0
    odds_draw: float = 0.0
    odds_away: float = 0.0
    home_position: Optional[int] = None
    away_position: Optional[int] = None
    total_teams: Optional[int] = None
    home_games_played: Optional[int] = None
    away_games_played: Optional[int] = None
    last_5_wins: Optional[int] = None
    last_5_draws: Optional[int] = None
    last_5_losses: Optional[int] = None

    @property
    def bet_odds(self) -> float:
        """Price on the backed side; the larger price when the side is unknown."""
        if self.side == Side.HOME:
            return self.odds_home
        if self.side == Side.AWAY:
            return self.odds_away
        return max(self.odds_home, self.odds_away)

    @property
    def is_cup(self) -> bool:
        return self.league.strip().upper() == "CUP"

    @property
    def opponent(self) -> str:
        if self.side == Side.HOME:
            return self.away_team
        if self.side == Side.AWAY:
            return self.home_team
        return ""

    @property
    def has_form(self) -> bool:
        return any(
            v is not None
            for v in (self.last_5_wins, self.last_5_draws, self.last_5_losses)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["market"] = self.market.value
        data["side"] = self.side.value
        return data


@dataclass(frozen=True)
class HistoricalRecord(BetRecord):
    """A wager from the tracker history, settled or still pending."""
    result: BetResult = BetResult.PENDING
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @property
    def is_settled(self) -> bool:
        return self.result != BetResult.PENDING

    @property
    def is_decided(self) -> bool:
        """True for wins and losses; draws/pushes count for neither side."""
        return self.result in (BetResult.WIN, BetResult.LOSS)

    @property
    def is_win(self) -> bool:
        return self.result == BetResult.WIN

    @property
    def has_score(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    @property
    def total_goals(self) -> Optional[int]:
        if not self.has_score:
            return None
        return self.home_score + self.away_score

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["result"] = self.result.value
        return data


@dataclass(frozen=True)
class CandidateBet(BetRecord):
    """An unsettled prospective wager submitted for analysis."""
    pass


# =============================================================================
# ROW PARSING
# =============================================================================

def _common_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    home_team = _text(_pick(row, "HOME_TEAM"))
    away_team = _text(_pick(row, "AWAY_TEAM"))
    team_included = _text(_pick(row, "TEAM_INCLUDED", "TEAM_BET"))
    bet_type = _text(_pick(row, "BET_TYPE"))
    bet_id = _pick(row, "BET_ID", "ID")

    return {
        "bet_id": _text(bet_id) or None,
        "date": _text(_pick(row, "DATE"))[:10],
        "home_team": home_team,
        "away_team": away_team,
        "country": _text(_pick(row, "COUNTRY")),
        "league": _text(_pick(row, "LEAGUE")),
        "team_included": team_included,
        "bet_type": bet_type,
        "bet_selection": _text(_pick(row, "BET_SELECTION")),
        "market": MarketType.parse(bet_type),
        "side": Side.resolve(team_included, home_team, away_team),
        "odds_home": _safe_odds(_pick(row, "ODDS1", "ODDS_1")),
        "odds_draw": _safe_odds(_pick(row, "ODDSX", "ODDS_X")),
        "odds_away": _safe_odds(_pick(row, "ODDS2", "ODDS_2")),
        "home_position": _safe_int(
            _pick(row, "HOME_TEAM_POSITION_NUMBER", "HOME_TEAM_POSITION")
        ),
        "away_position": _safe_int(
            _pick(row, "AWAY_TEAM_POSITION_NUMBER", "AWAY_TEAM_POSITION")
        ),
        "total_teams": _safe_int(_pick(row, "TOTAL_TEAMS_IN_LEAGUE", "TOTAL_TEAMS")),
        "home_games_played": _safe_int(_pick(row, "HOME_TEAM_GAMES_PLAYED")),
        "away_games_played": _safe_int(_pick(row, "AWAY_TEAM_GAMES_PLAYED")),
        "last_5_wins": _safe_int(_pick(row, "LAST_5_WINS")),
        "last_5_draws": _safe_int(_pick(row, "LAST_5_DRAWS")),
        "last_5_losses": _safe_int(_pick(row, "LAST_5_LOSSES")),
    }


def parse_record(row: Dict[str, Any]) -> HistoricalRecord:
    """
    Build a HistoricalRecord from a raw tracker row.

    Args:
        row: Dictionary from the tracker API or a sheet export

    Returns:
        Immutable HistoricalRecord with absent optional fields set to None

    Example:
        >>> rec = parse_record({"HOME_TEAM": "Arsenal", "AWAY_TEAM": "Spurs",
        ...                     "TEAM_INCLUDED": "Arsenal", "RESULT": "Win"})
        >>> rec.side, rec.result
        (<Side.HOME: 'home'>, <BetResult.WIN: 'win'>)
    """
    return HistoricalRecord(
        **_common_fields(row),
        result=BetResult.parse(_pick(row, "RESULT")),
        home_score=_safe_int(_pick(row, "HOME_SCORE")),
        away_score=_safe_int(_pick(row, "AWAY_SCORE")),
    )


def parse_candidate(row: Dict[str, Any]) -> CandidateBet:
    """Build a CandidateBet from a raw tracker row. Result fields are ignored."""
    return CandidateBet(**_common_fields(row))


def parse_records(rows: Iterable[Dict[str, Any]]) -> List[HistoricalRecord]:
    """Parse a batch of history rows, skipping entries that are not mappings."""
    records = []
    skipped = 0
    for row in rows or []:
        if not isinstance(row, dict):
            skipped += 1
            continue
        records.append(parse_record(row))
    if skipped:
        logger.warning(f"Skipped {skipped} malformed history rows")
    logger.debug(f"Parsed {len(records)} historical records")
    return records


def parse_candidates(rows: Iterable[Dict[str, Any]]) -> List[CandidateBet]:
    """Parse a batch of candidate rows, skipping entries that are not mappings."""
    return [parse_candidate(row) for row in rows or [] if isinstance(row, dict)]


def parse_blacklist(rows: Iterable[Any]) -> frozenset:
    """
    Normalise blacklist entries to a set of lower-cased team names.

    Accepts plain strings or dicts carrying TEAM_NAME/team_name.
    """
    names = set()
    for row in rows or []:
        if isinstance(row, dict):
            name = _text(_pick(row, "TEAM_NAME"))
        else:
            name = _text(row)
        if name:
            names.add(" ".join(name.lower().split()))
    return frozenset(names)
