"""Shared validation functions for task fields.

Pure functions with no SQLite, filesystem or Click dependencies. Each validator
returns the normalized value or raises :class:`tick.errors.ValidationError`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from tick.errors import ValidationError

MAX_TITLE_LENGTH = 500
MAX_NOTE_LENGTH = 500
MAX_TAG_LENGTH = 30
MAX_TAGS_PER_TASK = 10
MIN_PRIORITY = 0
MAX_PRIORITY = 4
DEFAULT_PRIORITY = 2

VALID_STATUSES: frozenset[str] = frozenset({"open", "in_progress", "done", "cancelled"})
VALID_TYPES: frozenset[str] = frozenset({"bug", "feature", "task", "chore"})

_TAG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def validate_title(title: str) -> str:
    """Trim *title* and check it is non-empty, single-line and at most 500 chars."""
    if not isinstance(title, str):
        msg = "title must be a string"
        raise ValidationError(msg)
    cleaned = title.strip()
    if not cleaned:
        msg = "Title is required and cannot be empty"
        raise ValidationError(msg)
    if "\n" in cleaned or "\r" in cleaned:
        msg = "Title cannot contain newlines"
        raise ValidationError(msg)
    if len(cleaned) > MAX_TITLE_LENGTH:
        msg = f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters"
        raise ValidationError(msg)
    return cleaned


def validate_priority(priority: object) -> int:
    # bool is an int subclass; True must not sneak in as priority 1
    if isinstance(priority, bool) or not isinstance(priority, int):
        msg = f"Priority must be an integer, got {priority!r}"
        raise ValidationError(msg)
    if not (MIN_PRIORITY <= priority <= MAX_PRIORITY):
        msg = f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}"
        raise ValidationError(msg)
    return priority


def validate_status(status: str) -> str:
    if status not in VALID_STATUSES:
        valid = ", ".join(sorted(VALID_STATUSES))
        msg = f"Invalid status '{status}'. Valid statuses: {valid}"
        raise ValidationError(msg)
    return status


def validate_type(task_type: str) -> str:
    """Normalize *task_type* (trim + lowercase) and check it is a known type."""
    normalized = task_type.strip().lower()
    if not normalized:
        msg = "Type cannot be empty"
        raise ValidationError(msg)
    if normalized not in VALID_TYPES:
        valid = ", ".join(sorted(VALID_TYPES))
        msg = f"Unknown type '{normalized}'. Valid types: {valid}"
        raise ValidationError(msg)
    return normalized


def normalize_tag(tag: str) -> str:
    return tag.strip().lower()


def validate_tag(tag: str) -> str:
    normalized = normalize_tag(tag)
    if not normalized:
        msg = "Tag cannot be empty"
        raise ValidationError(msg)
    if len(normalized) > MAX_TAG_LENGTH:
        msg = f"Tag '{normalized}' exceeds maximum length of {MAX_TAG_LENGTH} characters"
        raise ValidationError(msg)
    if not _TAG_PATTERN.match(normalized):
        msg = f"Tag '{normalized}' must be kebab-case (lowercase alphanumeric segments separated by single hyphens)"
        raise ValidationError(msg)
    return normalized


def dedupe_tags(tags: Iterable[str]) -> list[str]:
    """Normalize tags, drop empties, and keep the first occurrence of each."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        normalized = normalize_tag(tag)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def validate_tags(tags: Iterable[str]) -> list[str]:
    """Normalize, de-duplicate and validate a tag list (at most 10 tags)."""
    deduped = dedupe_tags(tags)
    for tag in deduped:
        validate_tag(tag)
    if len(deduped) > MAX_TAGS_PER_TASK:
        msg = f"Too many tags: {len(deduped)} exceeds maximum of {MAX_TAGS_PER_TASK} per task"
        raise ValidationError(msg)
    return deduped


def validate_note_text(text: str) -> str:
    cleaned = text.strip()
    if not cleaned:
        msg = "Note text is required and cannot be empty"
        raise ValidationError(msg)
    if len(cleaned) > MAX_NOTE_LENGTH:
        msg = f"Note text exceeds maximum length of {MAX_NOTE_LENGTH} characters"
        raise ValidationError(msg)
    return cleaned


def split_csv(value: str) -> list[str]:
    """Split a comma-separated argument, trimming parts and dropping blanks."""
    return [part.strip() for part in value.split(",") if part.strip()]
