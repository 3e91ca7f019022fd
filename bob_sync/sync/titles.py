"""Reminder title decoration: sprint tags and story tags."""

import re
from typing import Optional

STORY_TAG = "#story"

# "[Sprint 12] rest of title"
BRACKET_TAG_RE = re.compile(r'^\[[^\]]*\] ')


def has_bracket_tag(title: str) -> bool:
    """True when the title already starts with a ``[tag] `` prefix."""
    return bool(BRACKET_TAG_RE.match(title.strip()))


def prepend_sprint_tag(title: str, sprint_name: Optional[str]) -> str:
    """Prefix ``[sprint] `` unless the title already carries a bracket tag."""
    trimmed = title.strip()
    if not sprint_name or has_bracket_tag(trimmed):
        return trimmed
    return f"[{sprint_name}] {trimmed}"


def ensure_story_tag(title: str) -> str:
    if STORY_TAG in title:
        return title
    return f"{STORY_TAG} {title}"


def _strip_once(title: str) -> str:
    if title.startswith("["):
        closing = title.find("]")
        if closing != -1:
            title = title[closing + 1:]
            if title.startswith(" "):
                title = title[1:]
    if title.startswith(f"{STORY_TAG} "):
        title = title[len(STORY_TAG) + 1:]
    return title.strip()


def normalize_title(title: Optional[str]) -> str:
    """
    Remove the decoration added when writing a reminder title.

    Strips a leading ``[...]`` segment (plus one space) and a leading
    ``#story `` tag, repeating until nothing changes, so both
    ``[Sprint] #story Title`` and ``#story [Sprint] Title`` reduce to
    ``Title`` and normalizing twice is the same as normalizing once.
    """
    current = (title or "").strip()
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return current
        current = stripped
