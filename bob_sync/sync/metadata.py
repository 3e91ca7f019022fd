"""
Structured metadata embedded in reminder notes.

A synced reminder's note starts with a block such as::

    Task: Write report
    Story: ST-12
    Story-Name: Q3 Launch
    Goal: Ship v2
    Theme: Growth
    Start: 2025-06-01
    End: 2025-06-04
    Sprint: Sprint 12
    BOB-ID: task:abc123
    ------
    [Auto-synced from BOB]

The layout is a durable contract: the inbound pass reads it back to find the
BOB record a reminder belongs to, and any note carrying the marker line is
owned by bob-sync. Text a user keeps in the note lives below the marker and
is carried over on every rewrite.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
import re
from typing import Dict, List, Optional, Tuple

from ..core.models import EntityType, ReminderItem, Theme
from ..utils.date import format_date, parse_date
from ..utils.text import (
    PLACEHOLDER,
    clean_field,
    clean_text,
    escape_line,
    or_placeholder,
    unescape_line,
)
from .titles import STORY_TAG, ensure_story_tag, prepend_sprint_tag

DIVIDER_LINE = "------"
SYNC_MARKER = "[Auto-synced from BOB]"

METADATA_KEYS = (
    "Task", "Description", "Story", "Story-Name", "Goal",
    "Theme", "Start", "End", "Sprint", "BOB-ID",
)
REQUIRED_KEYS = ("Goal", "Theme", "Start", "End", "Sprint", "BOB-ID")

THEME_NAMES = {
    1: "Health",
    2: "Growth",
    3: "Wealth",
    4: "Tribe",
    5: "Home",
}

LINE_RE = re.compile(r'^([A-Za-z][A-Za-z-]*):(.*)$')
BOB_ID_RE = re.compile(r'^(task|story):(.+)$')


def theme_name(theme: Theme) -> Optional[str]:
    """
    Display name for a theme.

    Codes 1-5 map to the fixed names, other codes render as ``Theme #<n>``.
    Names are trimmed and title-cased, then mapped through the same codes,
    so ``"2"`` and ``"growth"`` both give ``Growth``.
    """
    if theme.code is not None:
        return THEME_NAMES.get(theme.code, f"Theme #{theme.code}")
    if theme.name is None:
        return None
    normalized = theme.name.strip().title()
    if not normalized:
        return None
    if normalized.isdigit() and int(normalized) in THEME_NAMES:
        return THEME_NAMES[int(normalized)]
    return normalized


def parse_bob_id(value: Optional[str]) -> Optional[Tuple[EntityType, str]]:
    """Split ``task:<id>`` / ``story:<id>``; None when malformed."""
    if not value:
        return None
    match = BOB_ID_RE.match(value.strip())
    if not match:
        return None
    return EntityType(match.group(1)), match.group(2)


def _split_lines(note: str) -> Dict[str, str]:
    """Collect recognized ``Key: value`` lines; the first occurrence wins."""
    values: Dict[str, str] = {}
    for line in note.splitlines():
        if line in (DIVIDER_LINE, SYNC_MARKER):
            continue
        match = LINE_RE.match(line)
        if not match:
            continue
        key = match.group(1)
        if key in METADATA_KEYS and key not in values:
            values[key] = match.group(2).strip()
    return values


@dataclass
class ValidationIssue:
    """A problem found in a metadata block. Logged, never raised."""

    key: str
    value: Optional[str] = None

    @property
    def is_malformed(self) -> bool:
        return self.value is not None

    def __str__(self) -> str:
        if self.is_malformed:
            return f"Malformed value for {self.key}: {self.value}"
        return f"Missing metadata line for {self.key}"


def validate_note(note: Optional[str]) -> List[ValidationIssue]:
    """Report missing required keys and a malformed BOB-ID."""
    if not note:
        return [ValidationIssue("BOB-ID")]
    present = _split_lines(note)
    issues = [ValidationIssue(key) for key in REQUIRED_KEYS if key not in present]
    bob_id = present.get("BOB-ID")
    if bob_id is not None and parse_bob_id(bob_id) is None:
        issues.append(ValidationIssue("BOB-ID", bob_id))
    return issues


def has_marker(note: Optional[str]) -> bool:
    return bool(note) and SYNC_MARKER in note


def foreign_text(note: Optional[str]) -> str:
    """Text in a note that bob-sync did not write."""
    if not note:
        return ""
    if SYNC_MARKER not in note:
        return note.strip()
    return note.split(SYNC_MARKER, 1)[1].strip()


@dataclass
class ReminderMetadata:
    """Denormalized snapshot of a task or story, as written into a note."""

    entity_type: EntityType
    entity_id: str
    task_title: Optional[str] = None
    task_description: Optional[str] = None
    story_title: Optional[str] = None
    story_ref: Optional[str] = None
    goal_title: Optional[str] = None
    theme_name: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sprint_name: Optional[str] = None

    @property
    def is_story(self) -> bool:
        return self.entity_type == EntityType.STORY

    @property
    def bob_identifier(self) -> str:
        return f"{self.entity_type.value}:{self.entity_id}"

    @property
    def title(self) -> Optional[str]:
        """Recorded title of the entity this block stands for."""
        return self.story_title if self.is_story else self.task_title

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def build_note(self, tz: tzinfo = timezone.utc) -> str:
        lines = []
        if not self.is_story:
            lines.append(f"Task: {or_placeholder(self.task_title)}")
            description = clean_text(self.task_description)
            if description:
                lines.append(f"Description: {escape_line(description)}")

        story_line = (
            clean_text(self.story_ref)
            or clean_text(self.story_title)
            or PLACEHOLDER
        )
        lines.append(f"Story: {story_line}")

        story_name = clean_text(self.story_title)
        if story_name:
            lines.append(f"Story-Name: {story_name}")

        lines.append(f"Goal: {or_placeholder(self.goal_title)}")
        lines.append(f"Theme: {or_placeholder(self.theme_name)}")
        lines.append(f"Start: {format_date(self.start_date, tz) or PLACEHOLDER}")
        lines.append(f"End: {format_date(self.end_date, tz) or PLACEHOLDER}")
        lines.append(f"Sprint: {or_placeholder(self.sprint_name)}")
        lines.append(f"BOB-ID: {self.bob_identifier}")
        lines.append(DIVIDER_LINE)
        lines.append(SYNC_MARKER)
        return "\n".join(lines)

    def merge_into_note(self, existing: Optional[str], tz: tzinfo = timezone.utc) -> str:
        """Block first, then whatever foreign text the note already held."""
        block = self.build_note(tz)
        extra = foreign_text(existing)
        if extra:
            return f"{block}\n\n{extra}"
        return block

    def compose_title(self, existing: Optional[str]) -> str:
        if existing:
            title = existing
        elif self.is_story:
            title = f"#story {self.story_title or 'BOB Story'}"
        else:
            title = self.task_title or "BOB Task"

        title = prepend_sprint_tag(title, clean_text(self.sprint_name))
        if self.is_story:
            title = ensure_story_tag(title)
        return title

    def apply(
        self,
        item: ReminderItem,
        preferred_title: Optional[str] = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        """
        Write the decorated title and the metadata note into ``item``.

        ``preferred_title`` is an undecorated title that replaces the
        reminder's current one; without it the current title is kept and
        only gains missing tags.
        """
        preferred = clean_text(preferred_title)
        if preferred:
            base = f"{STORY_TAG} {preferred}" if self.is_story else preferred
            item.title = self.compose_title(base)
        else:
            item.title = self.compose_title(item.title)
        item.notes = self.merge_into_note(item.notes, tz)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    @classmethod
    def parse(cls, note: Optional[str], tz: tzinfo = timezone.utc) -> Optional[ReminderMetadata]:
        """Parse a note; None unless it holds a well-formed BOB-ID line."""
        if not note or not note.strip():
            return None
        values = _split_lines(note)
        entity = parse_bob_id(values.get("BOB-ID"))
        if entity is None:
            return None
        entity_type, entity_id = entity

        story_ref = clean_field(values.get("Story"))
        description = clean_field(values.get("Description"))
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            task_title=clean_field(values.get("Task")),
            task_description=unescape_line(description) if description else None,
            story_title=clean_field(values.get("Story-Name")) or story_ref,
            story_ref=story_ref,
            goal_title=clean_field(values.get("Goal")),
            theme_name=clean_field(values.get("Theme")),
            start_date=parse_date(clean_field(values.get("Start")), tz),
            end_date=parse_date(clean_field(values.get("End")), tz),
            sprint_name=clean_field(values.get("Sprint")),
        )
