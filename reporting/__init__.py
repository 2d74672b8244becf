#!/usr/bin/env python3
"""
Reporting Module for the Bet Tracker Confidence Engine

This module provides operator notifications:
- ReconciliationNotifier: Apprise summaries of analysis and reconciliation runs
- NotifierConfig: Notification targets read from the environment

Usage:
    from reporting import ReconciliationNotifier

    notifier = ReconciliationNotifier()
    notifier.notify_analysis("slip-42", recommendations)
    notifier.notify_reconciliation("slip-42", report)
"""

from .notifier import (
    NotifierConfig,
    ReconciliationNotifier,
)

__all__ = [
    'NotifierConfig',
    'ReconciliationNotifier',
]

__version__ = '1.0.0'
