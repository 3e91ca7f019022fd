"""
Decoding of raw Firestore documents into typed BOB entities.

Each entity has a field table listing every accepted alias for a field; the
first alias that yields a usable value wins. Documents whose required
title/name is blank are rejected (None), never raised on.
"""

from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar
import math

from ..core.models import (
    GoalEntity,
    SprintEntity,
    StoryEntity,
    TaskEntity,
    Theme,
)
from ..utils.date import coerce_datetime
from ..utils.text import clean_text

T = TypeVar("T")


def coerce_int(value: Any) -> Optional[int]:
    """Accept ints, floats and numeric strings; reject bools."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def coerce_id(value: Any) -> Optional[str]:
    """Document references are plain non-empty strings."""
    if isinstance(value, str) and value:
        return value
    return None


def coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    return None


def coerce_theme(value: Any) -> Optional[Theme]:
    theme = Theme.from_raw(value)
    return None if theme.is_absent else theme


@dataclass(frozen=True)
class FieldSpec:
    """Where a field lives in a document and how to read it."""

    aliases: Tuple[str, ...]
    coerce: Callable[[Any], Any]
    takes_tz: bool = False

    def read(self, data: Mapping[str, Any], tz: tzinfo) -> Any:
        for alias in self.aliases:
            raw = data.get(alias)
            value = self.coerce(raw, tz) if self.takes_tz else self.coerce(raw)
            if value is not None:
                return value
        return None


def _text(*aliases: str) -> FieldSpec:
    return FieldSpec(aliases, clean_text)


def _ref(*aliases: str) -> FieldSpec:
    return FieldSpec(aliases, coerce_id)


def _date(*aliases: str) -> FieldSpec:
    return FieldSpec(aliases, coerce_datetime, takes_tz=True)


TASK_FIELDS: Dict[str, FieldSpec] = {
    "title": _text("title"),
    "description": _text("description"),
    "status": FieldSpec(("status",), coerce_int),
    "reminder_id": _ref("reminderId"),
    "story_id": _ref("storyId", "parentId"),
    "parent_type": _ref("parentType"),
    "parent_id": _ref("parentId"),
    "goal_id": _ref("goalId"),
    "sprint_id": _ref("sprintId"),
    "start_date": _date("startDate", "start"),
    "due_date": _date("dueDate", "dueAt"),
    "theme": FieldSpec(("theme",), coerce_theme),
    "is_deleted": FieldSpec(("deleted",), coerce_bool),
}

STORY_FIELDS: Dict[str, FieldSpec] = {
    "title": _text("title"),
    "ref": _ref("ref"),
    "description": _text("description"),
    "goal_id": _ref("goalId"),
    "sprint_id": _ref("sprintId"),
    "start_date": _date("startDate", "start"),
    "end_date": _date("endDate", "end"),
    "due_date": _date("dueDate"),
    "reminder_id": _ref("reminderId"),
    "status": FieldSpec(("status",), coerce_int),
    "theme": FieldSpec(("theme",), coerce_theme),
}

GOAL_FIELDS: Dict[str, FieldSpec] = {
    "title": _text("title"),
    "theme": FieldSpec(("theme", "themeId"), coerce_theme),
}

SPRINT_FIELDS: Dict[str, FieldSpec] = {
    "name": _text("name"),
    "start_date": _date("startDate", "planningDate"),
    "end_date": _date("endDate", "retroDate"),
}


def _read_fields(
    fields: Mapping[str, FieldSpec], data: Mapping[str, Any], tz: tzinfo
) -> Dict[str, Any]:
    values = {}
    for name, spec in fields.items():
        value = spec.read(data, tz)
        if value is not None:
            values[name] = value
    return values


def decode_task(
    doc_id: str, data: Mapping[str, Any], tz: tzinfo = timezone.utc
) -> Optional[TaskEntity]:
    values = _read_fields(TASK_FIELDS, data, tz)
    if "title" not in values:
        return None
    return TaskEntity(id=doc_id, **values)


def decode_story(
    doc_id: str, data: Mapping[str, Any], tz: tzinfo = timezone.utc
) -> Optional[StoryEntity]:
    values = _read_fields(STORY_FIELDS, data, tz)
    if "title" not in values:
        return None
    return StoryEntity(id=doc_id, **values)


def decode_goal(
    doc_id: str, data: Mapping[str, Any], tz: tzinfo = timezone.utc
) -> Optional[GoalEntity]:
    values = _read_fields(GOAL_FIELDS, data, tz)
    if "title" not in values:
        return None
    return GoalEntity(id=doc_id, **values)


def decode_sprint(
    doc_id: str, data: Mapping[str, Any], tz: tzinfo = timezone.utc
) -> Optional[SprintEntity]:
    values = _read_fields(SPRINT_FIELDS, data, tz)
    if "name" not in values:
        return None
    return SprintEntity(id=doc_id, **values)


def decode_many(
    decoder: Callable[..., Optional[T]],
    documents: Iterable[Tuple[str, Mapping[str, Any]]],
    tz: tzinfo = timezone.utc,
) -> List[T]:
    """Decode a batch, dropping documents the decoder rejects."""
    entities = []
    for doc_id, data in documents:
        entity = decoder(doc_id, data or {}, tz)
        if entity is not None:
            entities.append(entity)
    return entities
