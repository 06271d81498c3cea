"""Resolve full task ids and unambiguous id prefixes to full ids."""

from __future__ import annotations

from collections.abc import Iterable

from tick.errors import AmbiguousIDError, TaskNotFoundError, ValidationError
from tick.models import normalize_id
from tick.validation import split_csv

MIN_PREFIX_LENGTH = 3


def _suffix(task_id: str) -> str:
    return task_id.split("-", 1)[-1]


def resolve_id(ids: Iterable[str], raw: str, prefix: str = "tick") -> str:
    """Map *raw* to exactly one id from *ids*.

    An exact (case-insensitive) match wins. Otherwise an optional
    ``<prefix>-`` is stripped and the remainder must prefix-match the hex
    part of exactly one id.
    """
    known = [normalize_id(i) for i in ids]
    needle = normalize_id(raw)
    if not needle:
        msg = "Task ID is required"
        raise ValidationError(msg)
    if needle in known:
        return needle

    head = f"{prefix.lower()}-"
    partial = needle[len(head) :] if needle.startswith(head) else needle
    if len(partial) < MIN_PREFIX_LENGTH:
        msg = f"Partial ID '{raw.strip()}' must be at least {MIN_PREFIX_LENGTH} characters"
        raise ValidationError(msg)

    matches = sorted({i for i in known if _suffix(i).startswith(partial)})
    if not matches:
        raise TaskNotFoundError(needle)
    if len(matches) > 1:
        raise AmbiguousIDError(needle, matches)
    return matches[0]


def resolve_many(ids: Iterable[str], raw: str | Iterable[str], prefix: str = "tick") -> list[str]:
    """Resolve a comma-separated string (or list of strings) of ids, de-duplicated in input order."""
    known = list(ids)
    parts = split_csv(raw) if isinstance(raw, str) else [p for item in raw for p in split_csv(item)]
    resolved: list[str] = []
    for part in parts:
        task_id = resolve_id(known, part, prefix)
        if task_id not in resolved:
            resolved.append(task_id)
    return resolved
