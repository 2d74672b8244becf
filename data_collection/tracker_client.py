#!/usr/bin/env python3
"""
Bet Tracker API Client

This module talks to the bet tracker's small CRUD API to load the inputs
the confidence engine needs and to store what it produces.

Features:
- Fetch settled/pending bet history, new candidate bets and the blacklist
- Fetch recommendations previously attached to a betslip
- Store recommendations and reconciliations against a betslip

Env: TRACKER_API_URL, TRACKER_TIMEOUT
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TIMEOUT = 30


class APIError(Exception):
    """Custom exception for tracker API errors."""
    pass


class RateLimitError(APIError):
    """Exception raised when the tracker API throttles requests."""
    pass


class TrackerClient:
    """
    Client for the bet tracker API.

    All transport and HTTP failures surface as APIError; callers decide
    whether a failed phase is fatal.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize the client.

        Args:
            base_url: API root. Falls back to TRACKER_API_URL, then localhost.
            timeout: Per-request timeout in seconds. Falls back to TRACKER_TIMEOUT.
        """
        self.base_url = (base_url or os.environ.get("TRACKER_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        timeout = timeout or os.environ.get("TRACKER_TIMEOUT") or DEFAULT_TIMEOUT
        try:
            self.timeout = float(timeout)
        except ValueError:
            logger.warning(f"Invalid tracker timeout {timeout!r}; using {DEFAULT_TIMEOUT}s")
            self.timeout = float(DEFAULT_TIMEOUT)
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        payload: Optional[Any] = None,
    ) -> Any:
        """
        Make an API request and decode the JSON body.

        Raises:
            RateLimitError: If the API answers 429
            APIError: For any other HTTP or transport failure
        """
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method, url, params=params, json=payload, timeout=self.timeout
            )

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After", 60)
                raise RateLimitError(
                    f"Rate limit exceeded. Retry after {retry_after} seconds."
                )

            if response.status_code == 404:
                raise APIError(f"Resource not found: {endpoint}")

            if response.status_code >= 500:
                detail = ""
                try:
                    detail = response.json().get("error", "")
                except ValueError:
                    detail = response.text[:200]
                raise APIError(f"Tracker server error {response.status_code} for {endpoint}: {detail}")

            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout:
            raise APIError(f"Request timeout for {endpoint}")
        except requests.exceptions.ConnectionError:
            raise APIError(f"Connection error for {endpoint}")
        except ValueError as e:
            # requests' JSONDecodeError is also a RequestException
            raise APIError(f"Invalid JSON from {endpoint}: {e}")
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request failed: {e}")

    def _get_list(self, endpoint: str, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        data = self._request("GET", endpoint, params=params)
        if not isinstance(data, list):
            raise APIError(f"Expected a list from {endpoint}, got {type(data).__name__}")
        return data

    # -------------------------------------------------------------------------

    def fetch_history(self) -> List[Dict[str, Any]]:
        """All recorded bets, newest first."""
        rows = self._get_list("/api/bets")
        logger.info(f"Fetched {len(rows)} historical bets")
        return rows

    def fetch_candidates(self) -> List[Dict[str, Any]]:
        """New bets awaiting analysis."""
        rows = self._get_list("/api/new-bets")
        logger.info(f"Fetched {len(rows)} new bets")
        return rows

    def fetch_blacklist(self) -> List[Dict[str, Any]]:
        rows = self._get_list("/api/blacklisted-teams")
        logger.info(f"Fetched {len(rows)} blacklisted teams")
        return rows

    def fetch_recommendations(self, betslip_id: str) -> List[Dict[str, Any]]:
        """
        Predictions previously attached to one betslip.

        Returns an empty list when nothing has been stored for it.
        """
        for entry in self._get_list("/api/attached-predictions"):
            if str(entry.get("betslipId")) == str(betslip_id):
                predictions = entry.get("predictions") or []
                logger.info(f"Fetched {len(predictions)} stored recommendations for {betslip_id}")
                return list(predictions)
        logger.info(f"No stored recommendations for betslip {betslip_id}")
        return []

    def store_recommendations(self, betslip_id: str, recommendations: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Attach recommendations to a betslip, replacing any stored earlier."""
        result = self._request(
            "POST",
            "/api/attached-predictions",
            payload={"betslipId": betslip_id, "predictions": recommendations},
        )
        logger.info(f"Stored {len(recommendations)} recommendations for betslip {betslip_id}")
        return result

    def store_reconciliations(self, betslip_id: str, reconciliations: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Write reconciled recommendations back against the same betslip."""
        result = self._request(
            "POST",
            "/api/attached-predictions",
            payload={"betslipId": betslip_id, "predictions": reconciliations},
        )
        logger.info(f"Stored {len(reconciliations)} reconciliations for betslip {betslip_id}")
        return result
