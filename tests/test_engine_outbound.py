"""
Tests for the outbound pass of ReconciliationEngine (BOB -> Reminders).
"""

import asyncio

from bob_sync.core.models import ReminderDate, ReminderItem, RemindersList
from bob_sync.sync.engine import ReconciliationEngine
from tests.fakes import SERVER_TIMESTAMP, FakeDocumentStore, FakeRemindersGateway, owned, utc

WRITE_REPORT_NOTE = "\n".join([
    "Task: Write report",
    "Story: Q3 Launch",
    "Story-Name: Q3 Launch",
    "Goal: Ship v2",
    "Theme: Growth",
    "Start: 2025-05-28",
    "End: 2025-06-04",
    "Sprint: Sprint 12",
    "BOB-ID: task:t1",
    "------",
    "[Auto-synced from BOB]",
])


def run_sync(document_store, reminder_store, owner_uid, **kwargs):
    engine = ReconciliationEngine(document_store, reminder_store, **kwargs)
    return engine, asyncio.run(engine.sync(owner_uid))


class TestOutboundPass:
    """Test suite for creating and updating reminders from BOB data."""

    def test_task_reminder_from_example_plan(self, document_store, reminder_store, owner_uid):
        """Own due date beats the sprint end; sprint name tags the title."""
        _, result = run_sync(document_store, reminder_store, owner_uid)

        assert result["success"]
        [reminder] = reminder_store.by_bob_id("task:t1")
        assert reminder.title == "[Sprint 12] Write report"
        assert reminder.notes == WRITE_REPORT_NOTE
        assert reminder.due == ReminderDate(2025, 6, 4)
        assert reminder.start == ReminderDate(2025, 5, 28)
        assert reminder.list_id == "inbox"
        assert not reminder.completed

    def test_childless_story_gets_reminder(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)

        [reminder] = reminder_store.by_bob_id("story:s2")
        assert reminder.title == "#story Plan offsite"
        assert "Story: ST-7\nStory-Name: Plan offsite\n" in reminder.notes
        assert "Task:" not in reminder.notes
        assert reminder.due == ReminderDate(2025, 6, 20)
        assert reminder.start is None

    def test_story_with_tasks_gets_no_reminder(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)

        assert reminder_store.by_bob_id("story:s1") == []
        assert len(reminder_store.reminders) == 2

    def test_reminder_ids_written_back_in_one_batch_per_collection(
        self, document_store, reminder_store, owner_uid
    ):
        _, result = run_sync(document_store, reminder_store, owner_uid)

        task_reminder = reminder_store.by_bob_id("task:t1")[0]
        story_reminder = reminder_store.by_bob_id("story:s2")[0]
        assert document_store.batches == [
            ("tasks", [("t1", {"reminderId": task_reminder.identifier, "updatedAt": SERVER_TIMESTAMP})]),
            ("stories", [("s2", {"reminderId": story_reminder.identifier, "updatedAt": SERVER_TIMESTAMP})]),
        ]
        assert document_store.writes == []
        assert result["changes"]["reminders_created"] == 2
        assert result["changes"]["mappings_written"] == 2

    def test_second_pass_writes_nothing(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)
        saves, writes = reminder_store.saves, document_store.write_count

        _, result = run_sync(document_store, reminder_store, owner_uid)

        assert result["success"]
        assert reminder_store.saves == saves
        assert document_store.write_count == writes
        assert result["changes"]["reminders_unchanged"] == 2
        assert len(reminder_store.reminders) == 2

    def test_deleted_and_orphan_tasks_are_skipped(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {
                "t1": owned(owner_uid, {"title": "Gone", "storyId": "s1", "deleted": True}),
                "t2": owned(owner_uid, {"title": "No story"}),
                "t3": owned(owner_uid, {"title": "Dangling", "storyId": "missing"}),
            },
            "stories": {"s1": owned(owner_uid, {"title": "Parent"})},
        })
        gateway = FakeRemindersGateway()

        _, result = run_sync(store, gateway, owner_uid)

        assert gateway.reminders == {}
        assert result["changes"]["tasks_skipped"] == 2

    def test_legacy_parent_link_resolves_story(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {
                "title": "Legacy", "parentType": "story", "parentId": "s1",
            })},
            "stories": {"s1": owned(owner_uid, {"title": "Parent", "ref": "ST-1"})},
        })
        gateway = FakeRemindersGateway()

        run_sync(store, gateway, owner_uid)

        [reminder] = gateway.by_bob_id("task:t1")
        assert "Story: ST-1\n" in reminder.notes

    def test_existing_reminder_keeps_title_and_foreign_text(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {
                "title": "Write report", "storyId": "s1", "reminderId": "rem-9",
                "description": "Two\nlines",
            })},
            "stories": {"s1": owned(owner_uid, {"title": "Q3 Launch"})},
        })
        gateway = FakeRemindersGateway()
        gateway.add(ReminderItem(
            identifier="rem-9", title="My own wording",
            notes="Bring the printouts", list_id="work",
        ))

        _, result = run_sync(store, gateway, owner_uid)

        reminder = gateway.reminders["rem-9"]
        assert reminder.title == "My own wording"
        assert reminder.notes.startswith("Task: Write report\nDescription: Two\\nlines\n")
        assert reminder.notes.endswith("[Auto-synced from BOB]\n\nBring the printouts")
        assert reminder.list_id == "work"
        assert result["changes"]["reminders_updated"] == 1
        assert store.batches == []

    def test_missing_linked_reminder_is_recreated(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {
                "title": "Write report", "storyId": "s1", "reminderId": "deleted-rem",
            })},
            "stories": {"s1": owned(owner_uid, {"title": "Q3 Launch"})},
        })
        gateway = FakeRemindersGateway()

        run_sync(store, gateway, owner_uid)

        [reminder] = gateway.by_bob_id("task:t1")
        assert store.document("tasks", "t1")["reminderId"] == reminder.identifier

    def test_theme_precedence_task_goal_story(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {
                "t1": owned(owner_uid, {"title": "A", "storyId": "s1", "theme": "tribe", "goalId": "g1"}),
                "t2": owned(owner_uid, {"title": "B", "storyId": "s1", "goalId": "g1"}),
                "t3": owned(owner_uid, {"title": "C", "storyId": "s1"}),
            },
            "stories": {"s1": owned(owner_uid, {"title": "Parent", "theme": 5})},
            "goals": {"g1": owned(owner_uid, {"title": "Goal", "theme": 1})},
        })
        gateway = FakeRemindersGateway()

        run_sync(store, gateway, owner_uid)

        assert "Theme: Tribe\n" in gateway.by_bob_id("task:t1")[0].notes
        assert "Theme: Health\n" in gateway.by_bob_id("task:t2")[0].notes
        assert "Theme: Home\n" in gateway.by_bob_id("task:t3")[0].notes

    def test_due_time_of_day_is_kept(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {
                "title": "Call", "storyId": "s1", "dueDate": utc(2025, 6, 4, 15, 30),
            })},
            "stories": {"s1": owned(owner_uid, {"title": "Parent"})},
        })
        gateway = FakeRemindersGateway()

        run_sync(store, gateway, owner_uid)

        [reminder] = gateway.by_bob_id("task:t1")
        assert reminder.due == ReminderDate(2025, 6, 4, 15, 30)
        assert "End: 2025-06-04\n" in reminder.notes

    def test_completed_task_completes_reminder(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {"title": "Done", "storyId": "s1", "status": 2})},
            "stories": {"s1": owned(owner_uid, {"title": "Parent"})},
        })
        gateway = FakeRemindersGateway()

        run_sync(store, gateway, owner_uid)

        assert gateway.by_bob_id("task:t1")[0].completed

    def test_reopened_task_unticks_reminder(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {"title": "Done", "storyId": "s1", "status": 2})},
            "stories": {"s1": owned(owner_uid, {"title": "Parent"})},
        })
        gateway = FakeRemindersGateway()
        run_sync(store, gateway, owner_uid)
        store.document("tasks", "t1")["status"] = 0

        run_sync(store, gateway, owner_uid)

        assert store.document("tasks", "t1")["status"] == 0
        assert not gateway.by_bob_id("task:t1")[0].completed

    def test_reopened_story_unticks_reminder(self, owner_uid):
        store = FakeDocumentStore({
            "stories": {"s1": owned(owner_uid, {"title": "Offsite", "status": 4})},
        })
        gateway = FakeRemindersGateway()
        run_sync(store, gateway, owner_uid)
        store.document("stories", "s1")["status"] = 1

        run_sync(store, gateway, owner_uid)

        assert store.document("stories", "s1")["status"] == 1
        assert not gateway.by_bob_id("story:s1")[0].completed


class TestTitleUpdates:
    """Test suite for keeping reminder titles in step with BOB."""

    def test_task_renamed_in_bob(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)
        document_store.document("tasks", "t1")["title"] = "Write summary"

        run_sync(document_store, reminder_store, owner_uid)

        [reminder] = reminder_store.by_bob_id("task:t1")
        assert reminder.title == "[Sprint 12] Write summary"
        assert reminder.notes.startswith("Task: Write summary\n")
        assert document_store.document("tasks", "t1")["title"] == "Write summary"

    def test_sprint_renamed_in_bob(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)
        document_store.document("sprints", "sp1")["name"] = "Sprint 13"

        run_sync(document_store, reminder_store, owner_uid)

        [reminder] = reminder_store.by_bob_id("task:t1")
        assert reminder.title == "[Sprint 13] Write report"
        assert "Sprint: Sprint 13\n" in reminder.notes

    def test_story_renamed_in_bob(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)
        document_store.document("stories", "s2")["title"] = "Team offsite"

        run_sync(document_store, reminder_store, owner_uid)

        [reminder] = reminder_store.by_bob_id("story:s2")
        assert reminder.title == "#story Team offsite"
        assert document_store.document("stories", "s2")["title"] == "Team offsite"

    def test_title_edited_in_reminders_is_kept(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid)
        [item] = reminder_store.by_bob_id("task:t1")
        item.title = "[Sprint 12] Write final report"
        reminder_store.add(item)

        run_sync(document_store, reminder_store, owner_uid)

        assert reminder_store.reminders[item.identifier].title == "[Sprint 12] Write final report"
        assert document_store.document("tasks", "t1")["title"] == "Write final report"


class TestDefaultList:
    """Test suite for picking the list new reminders go to."""

    def test_configured_list_wins(self, document_store, reminder_store, owner_uid):
        run_sync(document_store, reminder_store, owner_uid, default_list_id="work")

        assert {r.list_id for r in reminder_store.reminders.values()} == {"work"}

    def test_unknown_configured_list_falls_back_to_store_default(
        self, document_store, reminder_store, owner_uid
    ):
        run_sync(document_store, reminder_store, owner_uid, default_list_id="nope")

        assert {r.list_id for r in reminder_store.reminders.values()} == {"inbox"}

    def test_first_list_when_store_has_no_default(self, document_store, owner_uid):
        gateway = FakeRemindersGateway(
            lists=[RemindersList(name="Errands", identifier="errands")],
            default_list_id=None,
        )

        run_sync(document_store, gateway, owner_uid)

        assert {r.list_id for r in gateway.reminders.values()} == {"errands"}

    def test_no_lists_ends_run(self, document_store, owner_uid):
        gateway = FakeRemindersGateway(lists=[], default_list_id=None)

        _, result = run_sync(document_store, gateway, owner_uid)

        assert not result["success"]
        assert gateway.reminders == {}
        assert document_store.write_count == 0


class TestSyncEntryPoint:
    """Test suite for ReconciliationEngine.sync error handling."""

    def test_empty_owner_is_a_noop(self, reminder_store):
        store = FakeDocumentStore()

        _, result = run_sync(store, reminder_store, "nobody")

        assert result["success"]
        assert reminder_store.saves == 0

    def test_store_failure_is_reported_not_raised(self, document_store, reminder_store, owner_uid):
        document_store.fail_queries = True

        _, result = run_sync(document_store, reminder_store, owner_uid)

        assert result["success"] is False
        assert "Failed to query tasks" in result["error"]

    def test_reminders_failure_is_reported_not_raised(self, document_store, reminder_store, owner_uid):
        reminder_store.fail_lists = True

        _, result = run_sync(document_store, reminder_store, owner_uid)

        assert result["success"] is False
        assert "reminder lists" in result["error"]

    def test_non_finite_numbers_do_not_abort_the_run(self, owner_uid):
        store = FakeDocumentStore({
            "tasks": {"t1": owned(owner_uid, {
                "title": "Odd", "storyId": "s1", "status": float("nan"), "theme": float("inf"),
            })},
            "stories": {"s1": owned(owner_uid, {"title": "Parent"})},
        })
        gateway = FakeRemindersGateway()

        _, result = run_sync(store, gateway, owner_uid)

        assert result["success"]
        [reminder] = gateway.by_bob_id("task:t1")
        assert not reminder.completed
        assert "Theme: -\n" in reminder.notes
