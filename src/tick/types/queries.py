"""TypedDicts for db_queries.py return types."""

from __future__ import annotations

from typing import TypedDict

from tick.types.core import NoteDict


class RelatedTask(TypedDict):
    """A blocker, child or other task referenced from a detail view."""

    id: str
    title: str
    status: str


class TaskSummary(TypedDict):
    """Row returned by list/ready/blocked queries."""

    id: str
    title: str
    status: str
    priority: int
    type: str
    parent: str | None
    created: str


class TaskDetail(TypedDict):
    """Single task with its related tasks, returned by ``get_detail()``."""

    id: str
    title: str
    status: str
    priority: int
    type: str
    tags: list[str]
    description: str
    parent: str | None
    parent_title: str | None
    created: str
    updated: str
    closed: str | None
    blocked_by: list[RelatedTask]
    children: list[RelatedTask]
    notes: list[NoteDict]


class StatsResult(TypedDict):
    """Aggregate counts returned by ``get_stats()``."""

    total: int
    by_status: dict[str, int]
    by_priority: dict[int, int]
    ready: int
    blocked: int
