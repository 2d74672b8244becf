#!/usr/bin/env python3
"""
Bet Tracker Confidence Engine Orchestrator

This module runs the engine against the bet tracker API:

1. Analyze:
   - Fetch bet history, new candidate bets and the team blacklist
   - Score, classify and rank every candidate
   - Attach the recommendations to a betslip
   - Send an operator summary

2. Reconcile:
   - Fetch the recommendations attached to a betslip
   - Join them to the observed results in the bet history
   - Store the reconciled recommendations back on the betslip
   - Send an accuracy summary

Usage:
    # Analyze new bets and attach the recommendations to a betslip
    python orchestrator.py analyze --betslip-id slip-42

    # Preview without writing anything back
    python orchestrator.py analyze --betslip-id slip-42 --dry-run --output slip-42.json

    # Reconcile a betslip once its games have been played
    python orchestrator.py reconcile --betslip-id slip-42

    # Environment variables:
    # TRACKER_API_URL - Bet tracker API root (default: http://localhost:5000)
    # TRACKER_TIMEOUT - Request timeout in seconds (default: 30)
    # NOTIFY_URL - Apprise URL(s) for operator notifications
    # USER_TIMEZONE - Timezone for created_at stamps (default: America/New_York)
    # ENGINE_WORKERS - Threads used to analyze a batch (default: 1)
"""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytz

from analysis.engine import Recommendation, RecommendationEngine
from analysis.reconciliation import (
    OutcomeReconciliation,
    Reconciler,
    ReconciliationReport,
    ReconciliationState,
)
from data_collection.bet_records import parse_candidates, parse_records
from data_collection.tracker_client import APIError, TrackerClient
from reporting.notifier import NotifierConfig, ReconciliationNotifier

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"


def now_in(timezone_name: str) -> str:
    """Current time as an ISO string in the named timezone."""
    return datetime.now(pytz.timezone(timezone_name)).isoformat()


def utc_now() -> str:
    return datetime.now(pytz.utc).isoformat()


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class PipelineConfig:
    """Configuration for the orchestrator pipeline."""
    command: str = "analyze"
    betslip_id: str = ""

    # Tracker API
    tracker_url: Optional[str] = None
    timeout: Optional[float] = None

    # Engine
    workers: int = 1
    user_timezone: str = DEFAULT_TIMEZONE

    # Output options
    dry_run: bool = False
    output: Optional[Path] = None

    # Notification
    notify_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_env_and_args(cls, args: argparse.Namespace) -> 'PipelineConfig':
        """Create config from environment variables and command-line args."""
        workers = getattr(args, 'workers', None)
        if workers is None:
            try:
                workers = int(os.environ.get("ENGINE_WORKERS", "1"))
            except ValueError:
                logger.warning("ENGINE_WORKERS is not an integer; analyzing on one thread")
                workers = 1

        timeout = os.environ.get("TRACKER_TIMEOUT")
        if timeout:
            try:
                timeout = float(timeout)
            except ValueError:
                logger.warning("TRACKER_TIMEOUT is not a number; using the client default")
                timeout = None
        output = getattr(args, 'output', None)

        return cls(
            command=args.command,
            betslip_id=args.betslip_id,
            tracker_url=getattr(args, 'tracker_url', None) or os.environ.get("TRACKER_API_URL"),
            timeout=timeout or None,
            workers=max(1, workers),
            user_timezone=os.environ.get("USER_TIMEZONE", DEFAULT_TIMEZONE),
            dry_run=getattr(args, 'dry_run', False),
            output=Path(output) if output else None,
            notify_urls=NotifierConfig.from_env().urls,
        )

    def validate(self) -> Tuple[bool, str]:
        """Check the configuration before any request is made."""
        if not self.betslip_id:
            return False, "A betslip id is required"
        if self.user_timezone not in pytz.all_timezones_set:
            return False, f"Unknown USER_TIMEZONE: {self.user_timezone}"
        return True, ""


# =============================================================================
# PIPELINE RESULTS
# =============================================================================

@dataclass
class PhaseResult:
    """Result of a pipeline phase."""
    phase_name: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0
    critical: bool = True
    timestamp: str = field(default_factory=utc_now)


@dataclass
class PipelineResult:
    """Complete result of one orchestrator run."""
    command: str
    betslip_id: str
    config: PipelineConfig
    phases: List[PhaseResult] = field(default_factory=list)
    output_path: Optional[str] = None
    notified: bool = False
    total_duration_seconds: float = 0.0
    success: bool = True
    timestamp: str = field(default_factory=utc_now)

    def add_phase(self, phase: PhaseResult):
        """Add a phase result. Only critical failures fail the run."""
        self.phases.append(phase)
        if not phase.success and phase.critical:
            self.success = False

    def get_phase(self, name: str) -> Optional[PhaseResult]:
        """Get a phase result by name."""
        for phase in self.phases:
            if phase.phase_name == name:
                return phase
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'command': self.command,
            'betslip_id': self.betslip_id,
            'timestamp': self.timestamp,
            'success': self.success,
            'dry_run': self.config.dry_run,
            'notified': self.notified,
            'total_duration_seconds': self.total_duration_seconds,
            'phases': {
                phase.phase_name: {
                    'success': phase.success,
                    'duration_seconds': phase.duration_seconds,
                    'error': phase.error,
                    'data': phase.data,
                }
                for phase in self.phases
            },
        }


def _timed(phase_name: str, fn, *args, critical: bool = True, **kwargs) -> PhaseResult:
    """Run one phase, turning tracker API failures into a failed PhaseResult."""
    start = time.monotonic()
    try:
        data = fn(*args, **kwargs)
        return PhaseResult(
            phase_name=phase_name,
            success=True,
            data=data,
            duration_seconds=time.monotonic() - start,
            critical=critical,
        )
    except APIError as e:
        logger.error(f"{phase_name} failed: {e}")
        return PhaseResult(
            phase_name=phase_name,
            success=False,
            error=str(e),
            duration_seconds=time.monotonic() - start,
            critical=critical,
        )


# =============================================================================
# DATA COLLECTION PHASE
# =============================================================================

class DataCollector:
    """Handles all tracker API reads."""

    def __init__(self, config: PipelineConfig, client: TrackerClient):
        self.config = config
        self.client = client
        self.logger = logging.getLogger(f"{__name__}.DataCollector")

    def fetch_history(self) -> PhaseResult:
        self.logger.info("Fetching bet history...")
        return _timed("history_collection", self.client.fetch_history)

    def fetch_candidates(self) -> PhaseResult:
        self.logger.info("Fetching new bets...")
        return _timed("candidate_collection", self.client.fetch_candidates)

    def fetch_blacklist(self) -> PhaseResult:
        """A missing blacklist is not fatal; analysis continues without one."""
        self.logger.info("Fetching blacklisted teams...")
        return _timed("blacklist_collection", self.client.fetch_blacklist, critical=False)

    def fetch_stored(self) -> PhaseResult:
        self.logger.info(f"Fetching recommendations attached to {self.config.betslip_id}...")
        return _timed(
            "stored_collection", self.client.fetch_recommendations, self.config.betslip_id
        )


# =============================================================================
# ANALYSIS PHASE
# =============================================================================

class Analyzer:
    """Runs the engine and the reconciler on collected data."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.Analyzer")

    def run_analysis(
        self,
        history_rows: List[Dict[str, Any]],
        candidate_rows: List[Dict[str, Any]],
        blacklist_rows: Optional[List[Dict[str, Any]]] = None,
    ) -> Tuple[PhaseResult, List[Recommendation]]:
        """Score every candidate and stamp the serialized results."""
        start = time.monotonic()
        engine = RecommendationEngine(
            parse_records(history_rows),
            blacklist=blacklist_rows or [],
            max_workers=self.config.workers,
        )
        recommendations = engine.analyze_batch(parse_candidates(candidate_rows))

        created_at = now_in(self.config.user_timezone)
        payload = []
        for rec in recommendations:
            data = rec.to_dict(betslip_id=self.config.betslip_id)
            data['created_at'] = created_at
            payload.append(data)

        return PhaseResult(
            phase_name="analysis",
            success=True,
            data=payload,
            duration_seconds=time.monotonic() - start,
        ), recommendations

    def run_reconciliation(
        self,
        history_rows: List[Dict[str, Any]],
        stored_rows: List[Dict[str, Any]],
    ) -> Tuple[PhaseResult, ReconciliationReport]:
        """Join stored recommendations to observed results."""
        start = time.monotonic()
        loaded = [
            OutcomeReconciliation.from_dict(row) for row in stored_rows if isinstance(row, dict)
        ]
        report = Reconciler(parse_records(history_rows)).reconcile(loaded)

        # Items resolved on an earlier run keep their original stamp
        reconciled_at = now_in(self.config.user_timezone)
        data = report.to_dict()
        for before, item in zip(loaded, data['reconciliations']):
            if before.state != ReconciliationState.RESOLVED or not item.get('reconciled_at'):
                item['reconciled_at'] = reconciled_at

        return PhaseResult(
            phase_name="reconciliation",
            success=True,
            data=data,
            duration_seconds=time.monotonic() - start,
        ), report


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class BetTrackerOrchestrator:
    """
    Main orchestrator for the confidence engine.

    Coordinates the analyze and reconcile runs:
    collect -> analyze/reconcile -> store -> notify
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[TrackerClient] = None,
        notifier: Optional[ReconciliationNotifier] = None,
    ):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.Orchestrator")

        self.client = client or TrackerClient(base_url=config.tracker_url, timeout=config.timeout)
        self.collector = DataCollector(config, self.client)
        self.analyzer = Analyzer(config)
        self.notifier = notifier or ReconciliationNotifier(NotifierConfig(urls=config.notify_urls))

    def run(self) -> PipelineResult:
        """Run the configured command."""
        start = time.monotonic()

        self.logger.info("=" * 60)
        self.logger.info(f"Bet Tracker Confidence Engine: {self.config.command}")
        self.logger.info("=" * 60)
        self.logger.info(f"Betslip: {self.config.betslip_id}")
        if self.config.dry_run:
            self.logger.info("Dry run: nothing will be stored")
        self.logger.info("=" * 60)

        result = PipelineResult(
            command=self.config.command,
            betslip_id=self.config.betslip_id,
            config=self.config,
        )

        if self.config.command == "reconcile":
            self._reconcile(result)
        else:
            self._analyze(result)

        return self._finalize_result(result, start)

    def _analyze(self, result: PipelineResult) -> None:
        # =============================================================
        # PHASE 1: DATA COLLECTION
        # =============================================================
        self.logger.info("\n[PHASE 1] DATA COLLECTION")
        self.logger.info("-" * 40)

        history = self.collector.fetch_history()
        result.add_phase(history)
        candidates = self.collector.fetch_candidates()
        result.add_phase(candidates)
        if not history.success or not candidates.success:
            return

        blacklist = self.collector.fetch_blacklist()
        result.add_phase(blacklist)

        # =============================================================
        # PHASE 2: ANALYSIS
        # =============================================================
        self.logger.info("\n[PHASE 2] ANALYSIS")
        self.logger.info("-" * 40)

        analysis, recommendations = self.analyzer.run_analysis(
            history.data,
            candidates.data,
            blacklist.data if blacklist.success else None,
        )
        result.add_phase(analysis)

        # =============================================================
        # PHASE 3: STORAGE
        # =============================================================
        if analysis.data and not self.config.dry_run:
            self.logger.info("\n[PHASE 3] STORAGE")
            self.logger.info("-" * 40)
            result.add_phase(_timed(
                "storage",
                self.client.store_recommendations,
                self.config.betslip_id,
                analysis.data,
            ))

        # =============================================================
        # PHASE 4: NOTIFICATION
        # =============================================================
        if not self.config.dry_run:
            result.notified = self.notifier.notify_analysis(self.config.betslip_id, recommendations)

    def _reconcile(self, result: PipelineResult) -> None:
        self.logger.info("\n[PHASE 1] DATA COLLECTION")
        self.logger.info("-" * 40)

        stored = self.collector.fetch_stored()
        result.add_phase(stored)
        history = self.collector.fetch_history()
        result.add_phase(history)
        if not stored.success or not history.success:
            return
        if not stored.data:
            self.logger.warning(f"Nothing attached to betslip {self.config.betslip_id}")

        self.logger.info("\n[PHASE 2] RECONCILIATION")
        self.logger.info("-" * 40)

        reconciliation, report = self.analyzer.run_reconciliation(history.data, stored.data)
        result.add_phase(reconciliation)

        reconciled = reconciliation.data['reconciliations']
        if reconciled and not self.config.dry_run:
            self.logger.info("\n[PHASE 3] STORAGE")
            self.logger.info("-" * 40)
            result.add_phase(_timed(
                "storage",
                self.client.store_reconciliations,
                self.config.betslip_id,
                reconciled,
            ))

        if not self.config.dry_run:
            result.notified = self.notifier.notify_reconciliation(self.config.betslip_id, report)

    def _finalize_result(self, result: PipelineResult, start: float) -> PipelineResult:
        """Finalize the pipeline result."""
        result.total_duration_seconds = time.monotonic() - start

        if self.config.output:
            result.output_path = self.save_json_report(result)

        # Log summary
        self.logger.info("\n" + "=" * 60)
        self.logger.info("PIPELINE COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"Status: {'SUCCESS' if result.success else 'FAILURE'}")
        self.logger.info(f"Duration: {result.total_duration_seconds:.2f}s")
        for phase in result.phases:
            if not phase.success:
                self.logger.info(f"Failed phase: {phase.phase_name} ({phase.error})")
        if result.output_path:
            self.logger.info(f"Output: {result.output_path}")
        self.logger.info("=" * 60)

        return result

    def save_json_report(self, result: PipelineResult) -> str:
        """Save the run summary, including every payload, to the output file."""
        path = self.config.output
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        self.logger.info(f"JSON report saved to {path}")
        return str(path)


# =============================================================================
# COMMAND LINE INTERFACE
# =============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Bet Tracker Confidence Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python orchestrator.py analyze --betslip-id slip-42
  python orchestrator.py analyze --betslip-id slip-42 --dry-run --output slip-42.json
  python orchestrator.py reconcile --betslip-id slip-42

Environment Variables:
  TRACKER_API_URL  - Bet tracker API root (default: http://localhost:5000)
  TRACKER_TIMEOUT  - Request timeout in seconds (default: 30)
  NOTIFY_URL       - Comma-separated Apprise URLs for operator notifications
  USER_TIMEZONE    - Timezone for created_at stamps (default: America/New_York)
  ENGINE_WORKERS   - Threads used to analyze a batch (default: 1)
        """
    )
    parser.add_argument(
        '--verbose', '-V',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--tracker-url',
        help='Bet tracker API root (overrides TRACKER_API_URL)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Score new bets and attach recommendations')
    analyze.add_argument('--betslip-id', '-b', required=True, help='Betslip to attach results to')
    analyze.add_argument('--dry-run', action='store_true', help='Do not store or notify')
    analyze.add_argument('--output', '-o', help='Write the run summary to this JSON file')
    analyze.add_argument(
        '--workers', '-w',
        type=int,
        help='Threads used to analyze the batch (overrides ENGINE_WORKERS)'
    )

    reconcile = subparsers.add_parser('reconcile', help='Reconcile a betslip against results')
    reconcile.add_argument('--betslip-id', '-b', required=True, help='Betslip to reconcile')
    reconcile.add_argument('--dry-run', action='store_true', help='Do not store or notify')
    reconcile.add_argument('--output', '-o', help='Write the run summary to this JSON file')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = PipelineConfig.from_env_and_args(args)

    valid, reason = config.validate()
    if not valid:
        logger.error(reason)
        sys.exit(1)

    orchestrator = BetTrackerOrchestrator(config)
    result = orchestrator.run()

    # Exit code
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
