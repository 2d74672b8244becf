#!/usr/bin/env python3
"""
Matchup and Deduplication Resolver.

This module provides functionality to:
- Build canonical game keys from date, teams, country and league
- Build order-independent matchup keys for head-to-head lookups
- Collapse multiple tickets on the same real-world game
- Extract the settled head-to-head history between two teams
"""

import logging
from typing import Iterable, List, Sequence, Tuple, TypeVar

from data_collection.bet_records import BetRecord, CandidateBet, HistoricalRecord

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BetRecord)


def normalize_name(name: str) -> str:
    """Lower-case and collapse internal whitespace."""
    return " ".join((name or "").lower().split())


def game_key(record: BetRecord) -> Tuple[str, str, str, str, str]:
    """
    Canonical identity of a real-world game.

    Example:
        >>> game_key(HistoricalRecord(date="2024-05-01", home_team=" TeamA ",
        ...                           away_team="teamb", country="ENG", league="Premier"))
        ('2024-05-01', 'teama', 'teamb', 'eng', 'premier')
    """
    return (
        normalize_name(record.date),
        normalize_name(record.home_team),
        normalize_name(record.away_team),
        normalize_name(record.country),
        normalize_name(record.league),
    )


def matchup_key(home_team: str, away_team: str, country: str, league: str) -> Tuple[str, str, str, str]:
    """Head-to-head key: alphabetically sorted team pair scoped to country and league."""
    first, second = sorted((normalize_name(home_team), normalize_name(away_team)))
    return (first, second, normalize_name(country), normalize_name(league))


def game_id(record: BetRecord) -> str:
    """
    Per-game identifier used when persisting recommendations.

    Example:
        >>> game_id(CandidateBet(date="2024-05-01", home_team="Team A", away_team="Team B"))
        '20240501_team_a_team_b'
    """
    date_part = normalize_name(record.date).replace("-", "").replace("/", "")
    home = normalize_name(record.home_team).replace(" ", "_")
    away = normalize_name(record.away_team).replace(" ", "_")
    return f"{date_part}_{home}_{away}"


def _ticket_key(record: BetRecord) -> Tuple[str, ...]:
    return game_key(record) + (
        normalize_name(record.bet_type),
        normalize_name(record.bet_selection),
        normalize_name(record.team_included),
    )


def _first_by_key(records: Iterable[R], key_fn) -> List[R]:
    seen = set()
    unique = []
    for record in records:
        key = key_fn(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def dedupe_games(records: Iterable[HistoricalRecord]) -> List[HistoricalRecord]:
    """Keep the first ticket per real-world game. Input order is preserved."""
    records = list(records)
    unique = _first_by_key(records, game_key)
    if len(unique) != len(records):
        logger.debug(f"Collapsed {len(records) - len(unique)} duplicate game tickets")
    return unique


def dedupe_tickets(records: Iterable[HistoricalRecord]) -> List[HistoricalRecord]:
    """
    Drop repeated copies of the same wager.

    Two tickets on the same game but on different selections are distinct
    wagers and both survive.
    """
    return _first_by_key(records, _ticket_key)


def dedupe_candidates(candidates: Iterable[CandidateBet]) -> List[CandidateBet]:
    """Drop candidate wagers submitted more than once in one batch."""
    candidates = list(candidates)
    unique = _first_by_key(candidates, _ticket_key)
    if len(unique) != len(candidates):
        logger.info(f"Dropped {len(candidates) - len(unique)} duplicate candidate bets")
    return unique


def find_previous_matchups(
    records: Sequence[HistoricalRecord],
    home_team: str,
    away_team: str,
    country: str,
    league: str,
) -> List[HistoricalRecord]:
    """
    Head-to-head history between two teams.

    Only decided (win/loss) records in the same country and league count.
    Each real-world game appears once, oldest first.

    Args:
        records: Historical corpus
        home_team: One side of the fixture
        away_team: The other side of the fixture
        country: Country scope
        league: League scope

    Returns:
        Ordered list of prior records between the two teams
    """
    if not normalize_name(home_team) or not normalize_name(away_team):
        return []
    target = matchup_key(home_team, away_team, country, league)
    matches = [
        r for r in dedupe_games(r for r in records if r.is_decided)
        if matchup_key(r.home_team, r.away_team, r.country, r.league) == target
    ]
    # sorted() is stable, so same-day entries keep corpus order
    return sorted(matches, key=lambda r: r.date)
