"""
Bet Tracker Confidence Engine - Data Collection Module

This module provides typed bet records parsed from tracker rows and the
client used to read from and write to the bet tracker API.
"""

from .bet_records import (
    BetResult,
    Side,
    MarketType,
    BetRecord,
    HistoricalRecord,
    CandidateBet,
    parse_record,
    parse_candidate,
    parse_records,
    parse_candidates,
    parse_blacklist,
)
from .tracker_client import TrackerClient, APIError, RateLimitError

__all__ = [
    'BetResult',
    'Side',
    'MarketType',
    'BetRecord',
    'HistoricalRecord',
    'CandidateBet',
    'parse_record',
    'parse_candidate',
    'parse_records',
    'parse_candidates',
    'parse_blacklist',
    # Tracker API client
    'TrackerClient',
    'APIError',
    'RateLimitError',
]
