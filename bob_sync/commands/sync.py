"""Sync command - run one full BOB <-> Reminders pass."""

import asyncio
from typing import Optional
import logging

from ..core.config import require_owner
from ..core.exceptions import ConfigurationError
from ..core.models import SyncConfig
from ..firestore.store import DocumentStore, FirestoreStore
from ..reminders.gateway import ReminderStore, RemindersGateway
from ..sync.engine import ReconciliationEngine

SUMMARY_LABELS = (
    ("reminders_created", "Reminders created"),
    ("reminders_updated", "Reminders updated"),
    ("mappings_written", "Reminder links saved"),
    ("tasks_updated", "Tasks updated from Reminders"),
    ("stories_updated", "Stories updated from Reminders"),
    ("tasks_skipped", "Tasks without a story"),
    ("write_failures", "Failed writes"),
)


def build_engine(
    config: SyncConfig,
    document_store: Optional[DocumentStore] = None,
    reminder_store: Optional[ReminderStore] = None,
    logger: Optional[logging.Logger] = None,
) -> ReconciliationEngine:
    """Engine wired to Firestore and EventKit unless stores are given."""
    if document_store is None:
        document_store = FirestoreStore(
            project_id=config.project_id, database=config.database, logger=logger
        )
    if reminder_store is None:
        reminder_store = RemindersGateway(logger=logger)
    return ReconciliationEngine.from_config(
        config, document_store, reminder_store, logger=logger
    )


class SyncCommand:
    """Command for synchronizing BOB tasks and stories with Reminders."""

    def __init__(
        self,
        config: SyncConfig,
        verbose: bool = False,
        document_store: Optional[DocumentStore] = None,
        reminder_store: Optional[ReminderStore] = None,
    ):
        self.config = config
        self.verbose = verbose
        self.document_store = document_store
        self.reminder_store = reminder_store
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, owner: Optional[str] = None) -> bool:
        """Run the sync command."""
        try:
            owner_uid = require_owner(self.config, owner)
        except ConfigurationError as e:
            print(str(e))
            return False

        engine = build_engine(
            self.config, self.document_store, self.reminder_store, self.logger
        )
        results = asyncio.run(engine.sync(owner_uid))

        if not results["success"]:
            print(f"Sync failed: {results.get('error', 'unknown error')}")
            return False

        self._print_summary(results["changes"])
        return True

    def _print_summary(self, changes: dict) -> None:
        lines = [
            f"  {label}: {changes[key]}"
            for key, label in SUMMARY_LABELS
            if changes.get(key)
        ]
        if not lines:
            print("\nNo changes needed - everything is in sync!")
            return
        print("\nSync Complete:")
        for line in lines:
            print(line)
