"""Foundational TypedDicts for dataclass to_dict() returns and config."""

from __future__ import annotations

from typing import TypedDict


class ProjectConfig(TypedDict, total=False):
    """Shape of .tick/config.json."""

    prefix: str
    version: int


class NoteDict(TypedDict):
    text: str
    created: str


class TaskDict(TypedDict):
    id: str
    title: str
    status: str
    priority: int
    type: str
    tags: list[str]
    description: str
    blocked_by: list[str]
    parent: str | None
    notes: list[NoteDict]
    created: str
    updated: str
    closed: str | None
