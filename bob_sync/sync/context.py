"""Per-run snapshot of an owner's BOB data with relational lookups."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, TypeVar
import logging

from ..core.models import GoalEntity, SprintEntity, StoryEntity, TaskEntity
from ..firestore.decoder import (
    decode_goal,
    decode_many,
    decode_sprint,
    decode_story,
    decode_task,
)
from ..firestore.store import GOALS, SPRINTS, STORIES, TASKS, DocumentStore

T = TypeVar("T")


def first_present(*values: Optional[T]) -> Optional[T]:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def collect_references(
    tasks: Iterable[TaskEntity],
    stories_by_id: Mapping[str, StoryEntity],
) -> Tuple[Set[str], Set[str]]:
    """
    Goal and sprint ids reachable from the given tasks and stories.

    A task contributes its own references and those of its resolved story;
    every story contributes its own.
    """
    goal_ids: Set[str] = set()
    sprint_ids: Set[str] = set()

    for task in tasks:
        story = stories_by_id.get(task.resolved_story_id or "")
        for goal_id in (task.goal_id, story.goal_id if story else None):
            if goal_id:
                goal_ids.add(goal_id)
        for sprint_id in (task.sprint_id, story.sprint_id if story else None):
            if sprint_id:
                sprint_ids.add(sprint_id)

    for story in stories_by_id.values():
        if story.goal_id:
            goal_ids.add(story.goal_id)
        if story.sprint_id:
            sprint_ids.add(story.sprint_id)

    return goal_ids, sprint_ids


@dataclass
class SyncContext:
    """Everything the engine needs to resolve effective task/story attributes."""

    tasks: List[TaskEntity] = field(default_factory=list)
    stories: List[StoryEntity] = field(default_factory=list)
    tasks_by_id: Dict[str, TaskEntity] = field(default_factory=dict)
    stories_by_id: Dict[str, StoryEntity] = field(default_factory=dict)
    goals_by_id: Dict[str, GoalEntity] = field(default_factory=dict)
    sprints_by_id: Dict[str, SprintEntity] = field(default_factory=dict)
    story_task_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        tasks: Iterable[TaskEntity],
        stories: Iterable[StoryEntity],
        goals: Iterable[GoalEntity] = (),
        sprints: Iterable[SprintEntity] = (),
    ) -> "SyncContext":
        tasks = list(tasks)
        stories = list(stories)
        counts = Counter(
            task.resolved_story_id for task in tasks if task.resolved_story_id
        )
        return cls(
            tasks=tasks,
            stories=stories,
            tasks_by_id={task.id: task for task in tasks},
            stories_by_id={story.id: story for story in stories},
            goals_by_id={goal.id: goal for goal in goals},
            sprints_by_id={sprint.id: sprint for sprint in sprints},
            story_task_counts=dict(counts),
        )

    @property
    def is_empty(self) -> bool:
        return not self.tasks and not self.stories

    def task(self, task_id: str) -> Optional[TaskEntity]:
        return self.tasks_by_id.get(task_id)

    def story(self, story_id: Optional[str]) -> Optional[StoryEntity]:
        if not story_id:
            return None
        return self.stories_by_id.get(story_id)

    def story_for_task(self, task: TaskEntity) -> Optional[StoryEntity]:
        return self.story(task.resolved_story_id)

    def task_count(self, story_id: str) -> int:
        return self.story_task_counts.get(story_id, 0)

    def goal_for_task(
        self, task: TaskEntity, story: Optional[StoryEntity] = None
    ) -> Optional[GoalEntity]:
        return first_present(
            self.goals_by_id.get(task.goal_id or ""),
            self.goals_by_id.get(story.goal_id or "") if story else None,
        )

    def sprint_for_task(
        self, task: TaskEntity, story: Optional[StoryEntity] = None
    ) -> Optional[SprintEntity]:
        return first_present(
            self.sprints_by_id.get(task.sprint_id or ""),
            self.sprints_by_id.get(story.sprint_id or "") if story else None,
        )

    def goal_for_story(self, story: StoryEntity) -> Optional[GoalEntity]:
        return self.goals_by_id.get(story.goal_id or "")

    def sprint_for_story(self, story: StoryEntity) -> Optional[SprintEntity]:
        return self.sprints_by_id.get(story.sprint_id or "")


class ContextBuilder:
    """Loads an owner's tasks, stories and referenced goals/sprints."""

    def __init__(
        self,
        store: DocumentStore,
        tz: tzinfo = timezone.utc,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)

    async def load(self, owner_uid: str) -> SyncContext:
        task_docs = await self.store.query(TASKS, owner_uid)
        story_docs = await self.store.query(STORIES, owner_uid)

        tasks = decode_many(decode_task, task_docs, self.tz)
        stories = decode_many(decode_story, story_docs, self.tz)
        self._log_skipped("tasks", len(task_docs), len(tasks))
        self._log_skipped("stories", len(story_docs), len(stories))

        stories_by_id = {story.id: story for story in stories}
        goal_ids, sprint_ids = collect_references(tasks, stories_by_id)

        goals: List[GoalEntity] = []
        if goal_ids:
            goal_docs = await self.store.query(GOALS, owner_uid)
            goals = [
                goal
                for goal in decode_many(decode_goal, goal_docs, self.tz)
                if goal.id in goal_ids
            ]

        sprints: List[SprintEntity] = []
        if sprint_ids:
            sprint_docs = await self.store.query(SPRINTS, owner_uid)
            sprints = [
                sprint
                for sprint in decode_many(decode_sprint, sprint_docs, self.tz)
                if sprint.id in sprint_ids
            ]

        self.logger.info(
            f"Loaded {len(tasks)} tasks, {len(stories)} stories, "
            f"{len(goals)} goals, {len(sprints)} sprints for {owner_uid}"
        )
        return SyncContext.build(tasks, stories, goals, sprints)

    def _log_skipped(self, label: str, raw: int, decoded: int) -> None:
        if raw > decoded:
            self.logger.debug(f"Skipped {raw - decoded} {label} without a title")
