"""
Text cleanup helpers shared by the decoder and the metadata codec.
"""

from typing import Any, Optional

PLACEHOLDER = "-"


def clean_text(value: Any) -> Optional[str]:
    """
    Trim a string value.

    Args:
        value: Raw value, usually from a document or a note line

    Returns:
        The stripped string, or None for non-strings and blank strings
    """
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def clean_field(value: Any) -> Optional[str]:
    """Like clean_text, but also treats the ``-`` placeholder as absent."""
    text = clean_text(value)
    if text == PLACEHOLDER:
        return None
    return text


def or_placeholder(value: Optional[str]) -> str:
    """Render a value for a note line, using ``-`` when blank."""
    return clean_text(value) or PLACEHOLDER


def escape_line(value: str) -> str:
    """Fold a multi-line value onto one line (``\\n`` escapes)."""
    return value.replace("\\", "\\\\").replace("\r\n", "\n").replace("\n", "\\n")


def unescape_line(value: str) -> str:
    """Reverse escape_line."""
    result = []
    chars = iter(value)
    for char in chars:
        if char != "\\":
            result.append(char)
            continue
        following = next(chars, "")
        if following == "n":
            result.append("\n")
        elif following == "\\":
            result.append("\\")
        else:
            result.append(char + following)
    return "".join(result)
