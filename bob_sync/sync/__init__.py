"""Sync module for BOB to Reminders reconciliation."""

from .context import ContextBuilder, SyncContext, collect_references, first_present
from .engine import ReconciliationEngine
from .metadata import ReminderMetadata, ValidationIssue, theme_name, validate_note
from .titles import normalize_title

__all__ = [
    'ContextBuilder',
    'SyncContext',
    'collect_references',
    'first_present',
    'ReconciliationEngine',
    'ReminderMetadata',
    'ValidationIssue',
    'theme_name',
    'validate_note',
    'normalize_title',
]
