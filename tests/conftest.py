"""Shared pytest fixtures for tick tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from tick.core import TASKS_FILENAME, TickStore, init_project
from tick.models import Task


@pytest.fixture
def tick_dir(tmp_path: Path) -> Path:
    """An initialized, empty .tick/ directory under tmp_path."""
    return init_project(tmp_path)


@pytest.fixture
def store(tick_dir: Path) -> Generator[TickStore, None, None]:
    """Fresh TickStore for each test."""
    with TickStore(tick_dir) as s:
        yield s


@pytest.fixture
def populated_store(store: TickStore) -> TickStore:
    """TickStore pre-populated with a representative task set.

    Creates:
    - Epic E (P1) with children A and B
    - A (P1, tags api+auth) blocked by C
    - B (P2) ready
    - C (P3) open, no blockers
    - D (P2) done
    """
    epic = store.create_task("Epic E", priority=1, task_type="feature")
    c = store.create_task("Task C", priority=3)
    a = store.create_task("Task A", priority=1, tags=["api", "auth"], parent=epic.id, blocked_by=c.id)
    b = store.create_task("Task B", priority=2, parent=epic.id)
    d = store.create_task("Task D", priority=2)
    store.transition(d.id, "done")
    store._test_ids = {"epic": epic.id, "a": a.id, "b": b.id, "c": c.id, "d": d.id}  # type: ignore[attr-defined]
    return store


@pytest.fixture
def write_records(tick_dir: Path) -> Callable[[list[dict[str, Any]]], Path]:
    """Write raw records to tasks.jsonl, bypassing validation. Returns the log path."""

    def write(records: list[dict[str, Any]]) -> Path:
        path = tick_dir / TASKS_FILENAME
        path.write_text("".join(json.dumps(r) + "\n" for r in records), encoding="utf-8")
        return path

    return write


def make_task(task_id: str, **kwargs: Any) -> Task:
    defaults: dict[str, Any] = {
        "title": f"Task {task_id}",
        "created": "2026-01-19T10:00:00Z",
        "updated": "2026-01-19T10:00:00Z",
    }
    defaults.update(kwargs)
    return Task(id=task_id, **defaults)


@pytest.fixture
def task_factory() -> Callable[..., Task]:
    """``task_factory("tick-aaaaaa", blocked_by=[...])`` builds a valid in-memory Task."""
    return make_task


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
