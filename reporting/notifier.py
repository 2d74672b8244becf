#!/usr/bin/env python3
"""
Operator Notifier for the Bet Tracker Confidence Engine

This module sends short operator notifications through Apprise for:
- Completed analysis batches (recommendation mix per betslip)
- Reconciliation summaries (accuracy and analysis-type counts)
- Results that could not be matched to a stored recommendation
- Signals that were confidently wrong most often

Environment Variables:
    NOTIFY_URL - Apprise URL(s), comma separated (notifications are skipped when unset)
    NOTIFY_TITLE_PREFIX - Optional prefix for notification titles
"""

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import apprise

from analysis.engine import Recommendation
from analysis.reconciliation import ReconciliationReport

logger = logging.getLogger(__name__)

MAX_LISTED_ITEMS = 5


@dataclass
class NotifierConfig:
    """Configuration for operator notifications."""
    urls: List[str] = field(default_factory=list)
    title_prefix: str = "Bet Tracker"

    @classmethod
    def from_env(cls) -> 'NotifierConfig':
        """Create NotifierConfig from environment variables."""
        raw = os.environ.get("NOTIFY_URL", "")
        urls = [u.strip() for u in raw.split(",") if u.strip()]
        return cls(
            urls=urls,
            title_prefix=os.environ.get("NOTIFY_TITLE_PREFIX", "Bet Tracker"),
        )

    def is_valid(self) -> Tuple[bool, str]:
        """Check whether notifications can be sent."""
        if not self.urls:
            return False, "NOTIFY_URL is not set"
        return True, ""


class ReconciliationNotifier:
    """
    Formats engine results into plain-text operator messages.

    Every send method returns False instead of raising when delivery is not
    configured or fails, so notification problems never break a run.
    """

    def __init__(self, config: Optional[NotifierConfig] = None):
        self.config = config or NotifierConfig.from_env()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _send(self, title: str, body: str) -> bool:
        valid, reason = self.config.is_valid()
        if not valid:
            self.logger.info(f"Notification skipped: {reason}")
            return False

        apobj = apprise.Apprise()
        for url in self.config.urls:
            if not apobj.add(url):
                self.logger.warning("Ignoring unsupported notification URL")

        success = apobj.notify(title=f"{self.config.title_prefix}: {title}", body=body)
        if success:
            self.logger.info(f"Notification sent: {title}")
        else:
            self.logger.error(f"Notification failed: {title}")
        return bool(success)

    # -------------------------------------------------------------------------
    # message builders
    # -------------------------------------------------------------------------

    @staticmethod
    def format_analysis_summary(betslip_id: str, recommendations: Sequence[Recommendation]) -> str:
        calls = Counter(r.classification.call.value for r in recommendations)
        lines = [
            f"Betslip {betslip_id}: {len(recommendations)} bets analyzed",
            f"Back: {calls.get('back', 0)} | Hedge: {calls.get('hedge', 0)} | Avoid: {calls.get('avoid', 0)}",
        ]
        best = sorted(recommendations, key=lambda r: r.confidence_score, reverse=True)
        for rec in best[:MAX_LISTED_ITEMS]:
            c = rec.candidate
            lines.append(
                f"- {c.home_team} vs {c.away_team}: {rec.recommendation} ({rec.confidence_score:.1f})"
            )
        return "\n".join(lines)

    @staticmethod
    def format_reconciliation_summary(betslip_id: str, report: ReconciliationReport) -> str:
        lines = [
            f"Betslip {betslip_id}: {len(report.resolved)} resolved, "
            f"{len(report.pending)} pending, {len(report.unmatched)} without results",
            f"System accuracy: {report.accuracy:.1f}%",
        ]
        for analysis_type, count in report.analysis_counts.items():
            if count:
                lines.append(f"- {analysis_type}: {count}")

        tally = report.failure_tally
        if tally:
            lines.append("Most overconfident signals:")
            for signal, count in list(tally.items())[:MAX_LISTED_ITEMS]:
                lines.append(f"- {signal}: {count}")

        if report.unmatched_results:
            lines.append(f"Results with no stored recommendation: {len(report.unmatched_results)}")
            for record in report.unmatched_results[:MAX_LISTED_ITEMS]:
                lines.append(f"- {record.date} {record.home_team} vs {record.away_team}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # senders
    # -------------------------------------------------------------------------

    def notify_analysis(self, betslip_id: str, recommendations: Sequence[Recommendation]) -> bool:
        if not recommendations:
            return False
        return self._send(
            f"{len(recommendations)} bets analyzed",
            self.format_analysis_summary(betslip_id, recommendations),
        )

    def notify_reconciliation(self, betslip_id: str, report: ReconciliationReport) -> bool:
        if not report.reconciliations and not report.unmatched_results:
            return False
        return self._send(
            f"Reconciliation {report.accuracy:.0f}% correct",
            self.format_reconciliation_summary(betslip_id, report),
        )
