#!/usr/bin/env python3
"""
Unit Tests for the Bet Tracker API Client

Tests for data_collection/tracker_client.py covering:
- Base URL and timeout configuration from the environment
- Endpoint reads for history, new bets, blacklist and attached predictions
- Upserting recommendations and reconciliations
- Mapping HTTP and transport failures onto APIError
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_collection.tracker_client import (
    APIError,
    DEFAULT_BASE_URL,
    RateLimitError,
    TrackerClient,
)


# =============================================================================
# FIXTURES
# =============================================================================

def make_response(status_code=200, payload=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def client():
    with patch.dict(os.environ, {}, clear=True):
        tracker = TrackerClient(base_url="http://tracker.test/")
    tracker.session = MagicMock()
    return tracker


# =============================================================================
# CONFIGURATION
# =============================================================================

class TestConfiguration:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            tracker = TrackerClient()
        assert tracker.base_url == DEFAULT_BASE_URL
        assert tracker.timeout == 30.0

    def test_environment(self):
        env = {"TRACKER_API_URL": "https://bets.example.com/", "TRACKER_TIMEOUT": "5"}
        with patch.dict(os.environ, env, clear=True):
            tracker = TrackerClient()
        assert tracker.base_url == "https://bets.example.com"
        assert tracker.timeout == 5.0

    def test_arguments_override_environment(self):
        with patch.dict(os.environ, {"TRACKER_API_URL": "https://env.example.com"}, clear=True):
            tracker = TrackerClient(base_url="http://arg.example.com", timeout=2)
        assert tracker.base_url == "http://arg.example.com"
        assert tracker.timeout == 2.0

    def test_bad_environment_timeout(self):
        with patch.dict(os.environ, {"TRACKER_TIMEOUT": "soon"}, clear=True):
            tracker = TrackerClient()
        assert tracker.timeout == 30.0


# =============================================================================
# READS
# =============================================================================

class TestReads:

    def test_fetch_history(self, client):
        client.session.request.return_value = make_response(payload=[{"ID": 1}, {"ID": 2}])
        assert client.fetch_history() == [{"ID": 1}, {"ID": 2}]
        method, url = client.session.request.call_args[0]
        assert method == "GET"
        assert url == "http://tracker.test/api/bets"
        assert client.session.request.call_args[1]["timeout"] == client.timeout

    def test_fetch_candidates_and_blacklist(self, client):
        client.session.request.return_value = make_response(payload=[])
        client.fetch_candidates()
        assert client.session.request.call_args[0][1].endswith("/api/new-bets")
        client.fetch_blacklist()
        assert client.session.request.call_args[0][1].endswith("/api/blacklisted-teams")

    def test_non_list_payload(self, client):
        client.session.request.return_value = make_response(payload={"bets": []})
        with pytest.raises(APIError, match="Expected a list"):
            client.fetch_history()

    def test_fetch_recommendations_filters_betslip(self, client):
        client.session.request.return_value = make_response(payload=[
            {"betslipId": "slip-1", "predictions": [{"game_id": "a"}]},
            {"betslipId": "slip-2", "predictions": [{"game_id": "b"}, {"game_id": "c"}]},
        ])
        assert client.fetch_recommendations("slip-2") == [{"game_id": "b"}, {"game_id": "c"}]
        assert client.fetch_recommendations("slip-3") == []


# =============================================================================
# WRITES
# =============================================================================

class TestWrites:

    def test_store_recommendations(self, client):
        client.session.request.return_value = make_response(payload={"success": True})
        result = client.store_recommendations("slip-1", [{"game_id": "a"}])
        assert result == {"success": True}
        args, kwargs = client.session.request.call_args
        assert args == ("POST", "http://tracker.test/api/attached-predictions")
        assert kwargs["json"] == {"betslipId": "slip-1", "predictions": [{"game_id": "a"}]}

    def test_store_reconciliations(self, client):
        client.session.request.return_value = make_response(payload={"success": True})
        client.store_reconciliations("slip-1", [{"state": "resolved"}])
        assert client.session.request.call_args[1]["json"]["predictions"] == [{"state": "resolved"}]


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestErrors:

    def test_rate_limited(self, client):
        client.session.request.return_value = make_response(429, headers={"Retry-After": "12"})
        with pytest.raises(RateLimitError, match="12 seconds"):
            client.fetch_history()

    def test_not_found(self, client):
        client.session.request.return_value = make_response(404)
        with pytest.raises(APIError, match="not found"):
            client.fetch_history()

    def test_server_error_detail(self, client):
        client.session.request.return_value = make_response(500, payload={"error": "sheet unavailable"})
        with pytest.raises(APIError, match="sheet unavailable"):
            client.fetch_history()

    @pytest.mark.parametrize("exc,message", [
        (requests.exceptions.Timeout(), "timeout"),
        (requests.exceptions.ConnectionError(), "Connection error"),
        (requests.exceptions.RequestException("boom"), "Request failed"),
    ])
    def test_transport_failures(self, client, exc, message):
        client.session.request.side_effect = exc
        with pytest.raises(APIError, match=message):
            client.fetch_history()

    def test_invalid_json(self, client):
        response = make_response()
        response.json.side_effect = ValueError("Expecting value")
        client.session.request.return_value = response
        with pytest.raises(APIError, match="Invalid JSON"):
            client.fetch_history()

    def test_rate_limit_is_api_error(self):
        assert issubclass(RateLimitError, APIError)
