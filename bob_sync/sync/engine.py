"""Main sync engine reconciling BOB tasks/stories with Apple Reminders."""

from copy import deepcopy
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from ..core.exceptions import BobSyncError
from ..core.models import (
    EntityType,
    ReminderDate,
    ReminderItem,
    RemindersList,
    StoryEntity,
    StoryStatus,
    SyncConfig,
    TaskEntity,
    TaskStatus,
    Theme,
)
from ..firestore.store import STORIES, TASKS, DocumentStore
from ..reminders.gateway import ReminderStore
from ..utils.date import dates_equal, resolve_timezone, to_epoch_millis
from ..utils.text import clean_text
from .context import ContextBuilder, SyncContext, first_present
from .metadata import ReminderMetadata, has_marker, theme_name, validate_note
from .titles import normalize_title

Update = Tuple[str, Dict[str, Any]]


def _present(theme: Optional[Theme]) -> Optional[Theme]:
    if theme is None or theme.is_absent:
        return None
    return theme


def _new_counters() -> Dict[str, int]:
    return {
        "reminders_created": 0,
        "reminders_updated": 0,
        "reminders_unchanged": 0,
        "tasks_skipped": 0,
        "mappings_written": 0,
        "tasks_updated": 0,
        "stories_updated": 0,
        "inbound_skipped": 0,
        "write_failures": 0,
    }


class ReconciliationEngine:
    """
    Two-pass sync between the BOB Firestore collections and Apple Reminders.

    The outbound pass writes one reminder per live task (and per story with
    no tasks), each carrying a metadata block in its note. The inbound pass
    reads those blocks back and folds reminder-side edits (title, description,
    due date) into the documents they point at. BOB owns completion: ticks
    made in Reminders reach it through report_completion.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        reminder_store: ReminderStore,
        tz: tzinfo = timezone.utc,
        default_list_id: Optional[str] = None,
        inbound_list_ids: Optional[Sequence[str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.document_store = document_store
        self.reminder_store = reminder_store
        self.tz = tz
        self.default_list_id = default_list_id
        self.inbound_list_ids = list(inbound_list_ids or [])
        self.logger = logger or logging.getLogger(__name__)

        self.changes = _new_counters()

        # reminderId values written back during the current run
        self._linked_tasks: Dict[str, str] = {}
        self._linked_stories: Dict[str, str] = {}

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        document_store: DocumentStore,
        reminder_store: ReminderStore,
        logger: Optional[logging.Logger] = None,
    ) -> "ReconciliationEngine":
        return cls(
            document_store,
            reminder_store,
            tz=resolve_timezone(config.timezone),
            default_list_id=config.default_list_id,
            inbound_list_ids=config.inbound_list_ids,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def sync(self, owner_uid: str) -> Dict[str, Any]:
        """
        Run one full pass: load, outbound, persist mappings, inbound.

        Store failures end the run early; they are logged and reported in
        the returned dict rather than raised.
        """
        self.logger.info(f"Starting sync for {owner_uid}")
        self.changes = _new_counters()
        self._linked_tasks = {}
        self._linked_stories = {}

        try:
            context = await ContextBuilder(
                self.document_store, self.tz, self.logger
            ).load(owner_uid)

            if context.is_empty:
                self.logger.info("No tasks or stories found, nothing to sync")
                return self._result(True)

            target_list = self.resolve_default_list()
            if target_list is None:
                self.logger.warning("No reminders list available, skipping sync")
                return self._result(False, "No reminders list available")

            task_updates, story_updates = self.sync_outbound(context, target_list)
            await self.persist_reminder_mappings(task_updates, story_updates)
            await self.sync_inbound(context)

        except BobSyncError as e:
            self.logger.error(f"Sync failed: {e}")
            return self._result(False, str(e))

        self.logger.info(f"Sync complete: {self.changes}")
        return self._result(True)

    def _result(self, success: bool, error: Optional[str] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": success, "changes": dict(self.changes)}
        if error:
            result["error"] = error
        return result

    def resolve_default_list(self) -> Optional[RemindersList]:
        """Configured list if it exists, else the store default, else the first list."""
        lists = self.reminder_store.get_lists()
        if self.default_list_id:
            for reminders_list in lists:
                if reminders_list.identifier == self.default_list_id:
                    return reminders_list
            self.logger.warning(
                f"Configured list {self.default_list_id} not found, using default list"
            )

        default_list = self.reminder_store.get_default_list()
        if default_list is not None:
            return default_list
        return lists[0] if lists else None

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    def sync_outbound(
        self, context: SyncContext, target_list: RemindersList
    ) -> Tuple[List[Update], List[Update]]:
        """Write reminders for every live task and every story without tasks."""
        task_mappings: List[Update] = []
        story_mappings: List[Update] = []

        for task in context.tasks:
            if task.is_deleted:
                continue
            story = context.story_for_task(task)
            if story is None:
                self.changes["tasks_skipped"] += 1
                self.logger.debug(f"Task {task.id} has no resolvable story, skipping")
                continue
            identifier = self.upsert_task_reminder(task, story, context, target_list)
            if identifier and identifier != task.reminder_id:
                task_mappings.append((task.id, {"reminderId": identifier}))

        for story in context.stories:
            if context.task_count(story.id) > 0:
                continue
            identifier = self.upsert_story_reminder(story, context, target_list)
            if identifier and identifier != story.reminder_id:
                story_mappings.append((story.id, {"reminderId": identifier}))

        return task_mappings, story_mappings

    def task_metadata(
        self, task: TaskEntity, story: StoryEntity, context: SyncContext
    ) -> ReminderMetadata:
        goal = context.goal_for_task(task, story)
        sprint = context.sprint_for_task(task, story)
        theme = first_present(
            _present(task.theme),
            _present(goal.theme) if goal else None,
            _present(story.theme),
        )
        return ReminderMetadata(
            entity_type=EntityType.TASK,
            entity_id=task.id,
            task_title=task.title,
            task_description=task.description,
            story_title=story.title,
            story_ref=story.ref,
            goal_title=goal.title if goal else None,
            theme_name=theme_name(theme) if theme else None,
            start_date=first_present(
                task.start_date,
                story.start_date,
                sprint.start_date if sprint else None,
            ),
            end_date=first_present(
                task.due_date,
                story.due_or_end,
                sprint.end_date if sprint else None,
            ),
            sprint_name=sprint.name if sprint else None,
        )

    def story_metadata(self, story: StoryEntity, context: SyncContext) -> ReminderMetadata:
        goal = context.goal_for_story(story)
        sprint = context.sprint_for_story(story)
        theme = first_present(
            _present(story.theme),
            _present(goal.theme) if goal else None,
        )
        return ReminderMetadata(
            entity_type=EntityType.STORY,
            entity_id=story.id,
            story_title=story.title,
            story_ref=story.ref,
            goal_title=goal.title if goal else None,
            theme_name=theme_name(theme) if theme else None,
            start_date=first_present(
                story.start_date, sprint.start_date if sprint else None
            ),
            end_date=first_present(
                story.due_or_end, sprint.end_date if sprint else None
            ),
            sprint_name=sprint.name if sprint else None,
        )

    def upsert_task_reminder(
        self,
        task: TaskEntity,
        story: StoryEntity,
        context: SyncContext,
        target_list: RemindersList,
    ) -> Optional[str]:
        metadata = self.task_metadata(task, story, context)
        return self._upsert(task.reminder_id, metadata, task.is_completed, target_list)

    def upsert_story_reminder(
        self, story: StoryEntity, context: SyncContext, target_list: RemindersList
    ) -> Optional[str]:
        metadata = self.story_metadata(story, context)
        return self._upsert(story.reminder_id, metadata, story.is_completed, target_list)

    def _upsert(
        self,
        reminder_id: Optional[str],
        metadata: ReminderMetadata,
        completed: bool,
        target_list: RemindersList,
    ) -> Optional[str]:
        """Create or update one reminder; returns its identifier."""
        item = self.reminder_store.get_reminder(reminder_id) if reminder_id else None
        before = deepcopy(item) if item is not None else None
        if item is None:
            if reminder_id:
                self.logger.debug(
                    f"Reminder {reminder_id} for {metadata.bob_identifier} not found, recreating"
                )
            item = ReminderItem(
                identifier=None,
                list_id=target_list.identifier,
                list_name=target_list.name,
            )

        preferred_title = None
        if before is None or not self.title_edited_in_reminders(item):
            preferred_title = metadata.title

        # BOB owns completion; ticks made in Reminders arrive via report_completion.
        item.completed = completed
        item.start = self._reminder_date(metadata.start_date)
        item.due = self._reminder_date(metadata.end_date)
        metadata.apply(item, preferred_title=preferred_title, tz=self.tz)

        for issue in validate_note(item.notes):
            self.logger.warning(f"{metadata.bob_identifier}: {issue}")

        if before is not None and item == before:
            self.changes["reminders_unchanged"] += 1
            return item.identifier

        identifier = self.reminder_store.save_reminder(item)
        if before is None:
            self.changes["reminders_created"] += 1
            self.logger.debug(f"Created reminder {identifier} for {metadata.bob_identifier}")
        else:
            self.changes["reminders_updated"] += 1
            self.logger.debug(f"Updated reminder {identifier} for {metadata.bob_identifier}")
        return identifier

    def title_edited_in_reminders(self, item: ReminderItem) -> bool:
        """
        True when the reminder's title no longer matches the title recorded
        in its metadata block, or when it never carried a block.
        """
        previous = ReminderMetadata.parse(item.notes, self.tz)
        if previous is None:
            return True
        recorded = clean_text(previous.title)
        return bool(recorded) and normalize_title(item.title) != recorded

    def _reminder_date(self, value: Optional[datetime]) -> Optional[ReminderDate]:
        if value is None:
            return None
        return ReminderDate.from_datetime(value, self.tz)

    async def persist_reminder_mappings(
        self, task_updates: List[Update], story_updates: List[Update]
    ) -> None:
        """Write new reminderId values back, one batch per collection."""
        for collection, updates, linked in (
            (TASKS, task_updates, self._linked_tasks),
            (STORIES, story_updates, self._linked_stories),
        ):
            if not updates:
                continue
            payloads = [
                (doc_id, {**payload, "updatedAt": self.document_store.server_timestamp})
                for doc_id, payload in updates
            ]
            await self.document_store.batch_merge_write(collection, payloads)
            for doc_id, payload in updates:
                linked[doc_id] = payload["reminderId"]
            self.changes["mappings_written"] += len(updates)
            self.logger.info(f"Linked {len(updates)} {collection} to reminders")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    async def sync_inbound(self, context: SyncContext) -> None:
        """Fold reminder-side edits back into the tasks and stories they carry."""
        reminders = self.reminder_store.get_reminders(self.inbound_list_ids or None)
        task_updates: List[Update] = []
        story_updates: List[Update] = []

        for reminder in reminders:
            metadata = ReminderMetadata.parse(reminder.notes, self.tz)
            if metadata is None:
                if has_marker(reminder.notes):
                    self.logger.warning(
                        f"Reminder {reminder.identifier} has a sync marker but no "
                        f"readable metadata, skipping"
                    )
                continue

            if metadata.is_story:
                story = context.story(metadata.entity_id)
                if story is None:
                    self._skip_orphan(reminder, metadata)
                    continue
                update = self.build_inbound_story_update(reminder, metadata, story)
                if update:
                    story_updates.append((story.id, update))
            else:
                task = context.task(metadata.entity_id)
                if task is None:
                    self._skip_orphan(reminder, metadata)
                    continue
                update = self.build_inbound_task_update(reminder, metadata, task)
                if update:
                    task_updates.append((task.id, update))

        self.changes["tasks_updated"] += await self._write_each(TASKS, task_updates)
        self.changes["stories_updated"] += await self._write_each(STORIES, story_updates)

    def _skip_orphan(self, reminder: ReminderItem, metadata: ReminderMetadata) -> None:
        self.changes["inbound_skipped"] += 1
        self.logger.debug(
            f"Reminder {reminder.identifier} points at unknown "
            f"{metadata.bob_identifier}, skipping"
        )

    async def _write_each(self, collection: str, updates: List[Update]) -> int:
        written = 0
        for doc_id, payload in updates:
            try:
                await self.document_store.merge_write(collection, doc_id, payload)
                written += 1
            except BobSyncError as e:
                self.changes["write_failures"] += 1
                self.logger.error(f"Failed to update {collection}/{doc_id}: {e}")
        return written

    def resolved_inbound_title(
        self, recorded_title: Optional[str], reminder_title: str, stored_title: str
    ) -> Optional[str]:
        """
        New title for a document, or None when it should stay as is.

        The title recorded in the metadata block wins when it differs from
        the stored one; otherwise the reminder title with its sprint and
        story tags removed is used.
        """
        recorded = clean_text(recorded_title)
        if recorded and recorded != stored_title:
            return recorded
        normalized = normalize_title(reminder_title)
        if normalized and normalized != stored_title:
            return normalized
        return None

    def _inbound_due(self, reminder: ReminderItem, metadata: ReminderMetadata) -> Optional[datetime]:
        if metadata.end_date is not None:
            return metadata.end_date
        if reminder.due is not None:
            return reminder.due.to_datetime(self.tz)
        return None

    def _apply_due(
        self,
        update: Dict[str, Any],
        new_due: Optional[datetime],
        stored_due: Optional[datetime],
    ) -> None:
        if dates_equal(new_due, stored_due):
            return
        if new_due is None:
            update["dueDate"] = self.document_store.delete_field
        else:
            update["dueDate"] = to_epoch_millis(new_due)

    def _stamp(self, update: Dict[str, Any]) -> Dict[str, Any]:
        if update:
            update["updatedAt"] = self.document_store.server_timestamp
        return update

    def build_inbound_task_update(
        self, reminder: ReminderItem, metadata: ReminderMetadata, task: TaskEntity
    ) -> Dict[str, Any]:
        update: Dict[str, Any] = {}

        title = self.resolved_inbound_title(metadata.task_title, reminder.title, task.title)
        if title:
            update["title"] = title

        # A block without a Description line leaves the stored one alone.
        description = metadata.task_description
        if description is not None and description != (task.description or ""):
            update["description"] = description

        linked = self._linked_tasks.get(task.id, task.reminder_id)
        if reminder.identifier and reminder.identifier != linked:
            update["reminderId"] = reminder.identifier

        self._apply_due(update, self._inbound_due(reminder, metadata), task.due_date)

        if reminder.completed and not task.is_completed:
            update["status"] = int(TaskStatus.DONE)

        return self._stamp(update)

    def build_inbound_story_update(
        self, reminder: ReminderItem, metadata: ReminderMetadata, story: StoryEntity
    ) -> Dict[str, Any]:
        update: Dict[str, Any] = {}

        title = self.resolved_inbound_title(metadata.story_title, reminder.title, story.title)
        if title:
            update["title"] = title

        linked = self._linked_stories.get(story.id, story.reminder_id)
        if reminder.identifier and reminder.identifier != linked:
            update["reminderId"] = reminder.identifier

        self._apply_due(update, self._inbound_due(reminder, metadata), story.due_or_end)

        if reminder.completed and not story.is_completed:
            update["status"] = int(StoryStatus.DONE)

        return self._stamp(update)

    # ------------------------------------------------------------------
    # Completion report
    # ------------------------------------------------------------------
    async def report_completion(self, reminder: ReminderItem, owner_uid: str) -> bool:
        """
        Mirror one reminder's completion state onto its task or story.

        Returns True when a document was updated. Failures are logged.
        """
        if not reminder.identifier:
            return False
        filters = {"reminderId": reminder.identifier}
        try:
            tasks = await self.document_store.query(TASKS, owner_uid, filters, limit=1)
            if tasks:
                status = TaskStatus.DONE if reminder.completed else TaskStatus.TODO
                await self._write_status(TASKS, tasks[0][0], int(status))
                return True

            stories = await self.document_store.query(STORIES, owner_uid, filters, limit=1)
            if stories:
                status = StoryStatus.DONE if reminder.completed else StoryStatus.ACTIVE
                await self._write_status(STORIES, stories[0][0], int(status))
                return True
        except BobSyncError as e:
            self.logger.error(
                f"Failed to report completion for reminder {reminder.identifier}: {e}"
            )
            return False

        self.logger.debug(f"No task or story linked to reminder {reminder.identifier}")
        return False

    async def _write_status(self, collection: str, doc_id: str, status: int) -> None:
        await self.document_store.merge_write(
            collection,
            doc_id,
            {"status": status, "updatedAt": self.document_store.server_timestamp},
        )
        self.logger.info(f"Set {collection}/{doc_id} status to {status}")
