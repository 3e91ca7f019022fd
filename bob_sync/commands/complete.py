"""Complete command - push one reminder's completion state to BOB."""

import asyncio
from typing import Optional
import logging

from ..core.config import require_owner
from ..core.exceptions import BobSyncError
from ..core.models import SyncConfig
from ..firestore.store import DocumentStore
from ..reminders.gateway import ReminderStore
from .sync import build_engine


class CompleteCommand:
    """Report a reminder's completion state to the task or story it is linked to."""

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

    def run(self, reminder_id: str, owner: Optional[str] = None) -> bool:
        try:
            owner_uid = require_owner(self.config, owner)
            engine = build_engine(
                self.config, self.document_store, self.reminder_store, self.logger
            )
            reminder = engine.reminder_store.get_reminder(reminder_id)
        except BobSyncError as e:
            print(str(e))
            return False

        if reminder is None:
            print(f"Reminder not found: {reminder_id}")
            return False

        updated = asyncio.run(engine.report_completion(reminder, owner_uid))
        if updated:
            state = "completed" if reminder.completed else "open"
            print(f"Marked linked BOB item as {state}.")
        else:
            print("No BOB task or story is linked to this reminder.")
        return True
