"""
Domain models for bob-sync.

This module contains the core data structures shared by the decoder, the
sync engine and the two store adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional
import os
import json
import math

from ..utils.date import has_time_of_day, localize


def _normalize_path(path: str) -> str:
    """Expand user and convert to absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


class EntityType(Enum):
    """Kind of BOB record a reminder stands for."""

    TASK = "task"
    STORY = "story"


class TaskStatus(IntEnum):
    """Task status codes as stored in Firestore."""

    TODO = 0
    IN_PROGRESS = 1
    DONE = 2


class StoryStatus(IntEnum):
    """Story status codes used by the sync. Anything >= DONE counts as complete."""

    BACKLOG = 0
    ACTIVE = 1
    DONE = 4


@dataclass(frozen=True)
class Theme:
    """Loosely typed theme value: a name, a numeric code, or nothing."""

    name: Optional[str] = None
    code: Optional[int] = None

    @classmethod
    def named(cls, name: str) -> Theme:
        return cls(name=name)

    @classmethod
    def coded(cls, code: int) -> Theme:
        return cls(code=code)

    @classmethod
    def absent(cls) -> Theme:
        return cls()

    @classmethod
    def from_raw(cls, value: Any) -> Theme:
        if isinstance(value, bool):
            return cls.absent()
        if isinstance(value, str):
            return cls.named(value) if value.strip() else cls.absent()
        if isinstance(value, int):
            return cls.coded(value)
        if isinstance(value, float) and math.isfinite(value):
            return cls.coded(int(value))
        return cls.absent()

    @property
    def is_absent(self) -> bool:
        return self.name is None and self.code is None


@dataclass(frozen=True)
class TaskEntity:
    """A BOB task document."""

    id: str
    title: str
    description: Optional[str] = None
    status: int = TaskStatus.TODO
    reminder_id: Optional[str] = None
    story_id: Optional[str] = None
    parent_type: Optional[str] = None
    parent_id: Optional[str] = None
    goal_id: Optional[str] = None
    sprint_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    theme: Theme = field(default_factory=Theme)
    is_deleted: bool = False

    @property
    def resolved_story_id(self) -> Optional[str]:
        if self.story_id:
            return self.story_id
        if self.parent_type == "story" and self.parent_id:
            return self.parent_id
        return None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.DONE


@dataclass(frozen=True)
class StoryEntity:
    """A BOB story document; groups zero or more tasks."""

    id: str
    title: str
    ref: Optional[str] = None
    description: Optional[str] = None
    goal_id: Optional[str] = None
    sprint_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    reminder_id: Optional[str] = None
    status: int = StoryStatus.BACKLOG
    theme: Theme = field(default_factory=Theme)

    @property
    def due_or_end(self) -> Optional[datetime]:
        return self.due_date if self.due_date is not None else self.end_date

    @property
    def is_completed(self) -> bool:
        return self.status >= StoryStatus.DONE


@dataclass(frozen=True)
class GoalEntity:
    """A BOB goal document."""

    id: str
    title: str
    theme: Theme = field(default_factory=Theme)


@dataclass(frozen=True)
class SprintEntity:
    """A BOB sprint document."""

    id: str
    name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class RemindersList:
    """Represents an Apple Reminders list."""

    name: str
    identifier: str
    source_name: Optional[str] = None
    allows_modification: bool = True


@dataclass
class ReminderDate:
    """Date components of a reminder's start or due field.

    ``hour`` and ``minute`` are None for date-only (all-day) values.
    """

    year: int
    month: int
    day: int
    hour: Optional[int] = None
    minute: Optional[int] = None

    @property
    def has_time(self) -> bool:
        return self.hour is not None

    @classmethod
    def from_datetime(cls, value: datetime, tz: tzinfo = timezone.utc) -> ReminderDate:
        local = localize(value, tz)
        if has_time_of_day(local, tz):
            return cls(local.year, local.month, local.day, local.hour, local.minute)
        return cls(local.year, local.month, local.day)

    def to_datetime(self, tz: tzinfo = timezone.utc) -> datetime:
        return datetime(
            self.year, self.month, self.day,
            self.hour or 0, self.minute or 0,
            tzinfo=tz,
        )


@dataclass
class ReminderItem:
    """Store-neutral snapshot of a reminder.

    ``identifier`` is None until the reminder has been saved once.
    """

    identifier: Optional[str]
    title: str = ""
    completed: bool = False
    notes: Optional[str] = None
    start: Optional[ReminderDate] = None
    due: Optional[ReminderDate] = None
    list_id: Optional[str] = None
    list_name: Optional[str] = None


@dataclass
class SyncConfig:
    """Configuration for sync operations."""

    owner_uid: Optional[str] = None
    project_id: Optional[str] = None
    database: Optional[str] = None
    default_list_id: Optional[str] = None
    inbound_list_ids: List[str] = field(default_factory=list)
    timezone: Optional[str] = None

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    @classmethod
    def load_from_file(cls, config_path: str) -> SyncConfig:
        config_path = _normalize_path(config_path)
        if not os.path.exists(config_path):
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return cls()

        if not isinstance(data, dict):
            return cls()

        firestore = _section(data, "firestore")
        reminders = _section(data, "reminders")
        inbound = reminders.get("inbound_list_ids", data.get("inbound_list_ids"))
        if not isinstance(inbound, list):
            inbound = []

        return cls(
            owner_uid=data.get("owner_uid"),
            project_id=firestore.get("project_id", data.get("project_id")),
            database=firestore.get("database", data.get("database")),
            default_list_id=reminders.get(
                "default_list_id", data.get("default_list_id")
            ),
            inbound_list_ids=[str(list_id) for list_id in inbound],
            timezone=data.get("timezone"),
        )

    def save_to_file(self, config_path: str) -> None:
        config_path = _normalize_path(config_path)
        os.makedirs(os.path.dirname(config_path), exist_ok=True)

        data: Dict[str, Any] = {
            "owner_uid": self.owner_uid,
            "timezone": self.timezone,
            "firestore": {
                "project_id": self.project_id,
                "database": self.database,
            },
            "reminders": {
                "default_list_id": self.default_list_id,
                "inbound_list_ids": self.inbound_list_ids,
            },
        }

        with open(config_path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
