"""Tests for the write-side operations on TickStore."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from tick.core import TASKS_FILENAME, TickStore, init_project
from tick.errors import TaskNotFoundError, TransitionError, ValidationError
from tick.models import Task


def _log_bytes(store: TickStore) -> bytes:
    return (store.tick_dir / TASKS_FILENAME).read_bytes()


def _by_id(store: TickStore) -> dict[str, Task]:
    return {t.id: t for t in store.load()}


class TestCreate:
    def test_defaults(self, store: TickStore) -> None:
        task = store.create_task("  Write docs  ")
        assert task.title == "Write docs"
        assert task.status == "open"
        assert task.priority == 2
        assert task.id.startswith("tick-")
        assert task.created == task.updated
        assert task.closed is None
        assert [t.id for t in store.load()] == [task.id]

    def test_all_fields(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        blocker = store.create_task("Blocker")
        task = store.create_task(
            "Child",
            priority=0,
            description="  details  ",
            task_type="Bug",
            tags=["API", "api", "auth"],
            parent=parent.id,
            blocked_by=blocker.id,
        )
        assert task.priority == 0
        assert task.description == "details"
        assert task.type == "bug"
        assert task.tags == ["api", "auth"]
        assert task.parent == parent.id
        assert task.blocked_by == [blocker.id]

    def test_blocks_updates_targets(self, store: TickStore) -> None:
        target = store.create_task("Target")
        gate = store.create_task("Gate", blocks=target.id)
        assert _by_id(store)[target.id].blocked_by == [gate.id]

    def test_partial_ids_resolved(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        child = store.create_task("Child", parent=parent.id.split("-")[1][:6])
        assert child.parent == parent.id

    def test_unknown_parent_names_option(self, store: TickStore) -> None:
        with pytest.raises(TaskNotFoundError, match="--parent"):
            store.create_task("Orphan", parent="tick-ffffff")
        assert _log_bytes(store) == b""

    def test_unknown_blocker(self, store: TickStore) -> None:
        with pytest.raises(TaskNotFoundError, match="--blocked-by"):
            store.create_task("Waiting", blocked_by="tick-ffffff")

    def test_blocked_by_parent_rejected(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        before = _log_bytes(store)
        with pytest.raises(ValidationError, match="blocked by its parent"):
            store.create_task("Child", parent=parent.id, blocked_by=parent.id)
        assert _log_bytes(store) == before

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"title": ""}, "Title is required"),
            ({"title": "a\nb"}, "newlines"),
            ({"title": "ok", "priority": 5}, "between 0 and 4"),
            ({"title": "ok", "task_type": "epic"}, "Unknown type"),
            ({"title": "ok", "tags": ["Not Kebab"]}, "kebab-case"),
        ],
    )
    def test_invalid_fields_write_nothing(self, store: TickStore, kwargs: dict[str, Any], match: str) -> None:
        with pytest.raises(ValidationError, match=match):
            store.create_task(**kwargs)
        assert _log_bytes(store) == b""


class TestUpdate:
    def test_requires_a_field(self, store: TickStore) -> None:
        task = store.create_task("Task")
        with pytest.raises(ValidationError, match="At least one field is required"):
            store.update_task(task.id)

    def test_changes_fields_and_touches(self, store: TickStore) -> None:
        task = store.create_task("Old", tags=["x"])
        updated = store.update_task(task.id, title="New", priority=4, task_type="chore", tags=["y", "z"])
        assert (updated.title, updated.priority, updated.type, updated.tags) == ("New", 4, "chore", ["y", "z"])
        assert updated.updated >= task.updated
        assert updated.created == task.created

    def test_empty_values_clear(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        task = store.create_task("Task", description="text", task_type="bug", tags=["a"], parent=parent.id)
        updated = store.update_task(task.id, description="", task_type="", tags=[], parent="")
        assert updated.description == ""
        assert updated.type == ""
        assert updated.tags == []
        assert updated.parent is None

    def test_parent_loop_rejected(self, store: TickStore) -> None:
        root = store.create_task("Root")
        child = store.create_task("Child", parent=root.id)
        with pytest.raises(ValidationError, match="descendant"):
            store.update_task(root.id, parent=child.id)

    def test_blocks(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        store.update_task(a.id, blocks=b.id)
        assert _by_id(store)[b.id].blocked_by == [a.id]

    def test_unknown_task(self, store: TickStore) -> None:
        with pytest.raises(TaskNotFoundError):
            store.update_task("tick-ffffff", title="x")


class TestTransitions:
    def test_done_sets_closed(self, store: TickStore) -> None:
        task = store.create_task("Task")
        done, result = store.transition(task.id, "done")
        assert (result.old_status, result.new_status) == ("open", "done")
        assert done.closed is not None

    def test_reopen_clears_closed(self, store: TickStore) -> None:
        task = store.create_task("Task")
        store.transition(task.id, "cancel")
        reopened, _ = store.transition(task.id, "reopen")
        assert reopened.status == "open"
        assert reopened.closed is None

    def test_invalid_transition_writes_nothing(self, store: TickStore) -> None:
        task = store.create_task("Task")
        before = _log_bytes(store)
        with pytest.raises(TransitionError, match="Cannot reopen"):
            store.transition(task.id, "reopen")
        assert _log_bytes(store) == before

    def test_start_then_done(self, store: TickStore) -> None:
        task = store.create_task("Task")
        store.transition(task.id, "start")
        _, result = store.transition(task.id, "done")
        assert result.old_status == "in_progress"

    def test_cancel_from_done_rejected(self, store: TickStore) -> None:
        task = store.create_task("Task")
        store.transition(task.id, "done")
        before = _log_bytes(store)
        with pytest.raises(TransitionError, match="Cannot cancel"):
            store.transition(task.id, "cancel")
        assert _log_bytes(store) == before

    def test_many_applies_to_every_task(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        outcome = store.transition_many([a.id, b.id, a.id], "done")
        assert [(t.id, r.new_status) for t, r in outcome] == [(a.id, "done"), (b.id, "done")]
        assert {t.status for t in store.load()} == {"done"}

    def test_many_is_all_or_nothing(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        store.transition(b.id, "done")
        before = _log_bytes(store)
        with pytest.raises(TransitionError, match=f"Cannot start task {b.id}"):
            store.transition_many([a.id, b.id], "start")
        assert _log_bytes(store) == before
        assert _by_id(store)[a.id].status == "open"

    def test_many_unknown_id_writes_nothing(self, store: TickStore) -> None:
        a = store.create_task("A")
        before = _log_bytes(store)
        with pytest.raises(TaskNotFoundError):
            store.transition_many([a.id, "tick-zzzzzz"], "start")
        assert _log_bytes(store) == before

    def test_many_requires_ids(self, store: TickStore) -> None:
        with pytest.raises(ValidationError, match="At least one task ID"):
            store.transition_many([], "done")


class TestDependencies:
    def test_add_and_remove(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        c = store.create_task("C")
        assert store.add_dependency(a.id, f"{b.id}, {c.id}") == [b.id, c.id]
        assert _by_id(store)[a.id].blocked_by == [b.id, c.id]
        assert store.remove_dependency(a.id, b.id) == [b.id]
        assert _by_id(store)[a.id].blocked_by == [c.id]

    def test_duplicate_rejected(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B", blocks=a.id)
        with pytest.raises(ValidationError, match="Dependency already exists"):
            store.add_dependency(a.id, b.id)

    def test_cycle_rejected_and_nothing_written(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B", blocked_by=a.id)
        c = store.create_task("C", blocked_by=b.id)
        before = _log_bytes(store)
        with pytest.raises(ValidationError, match="creates cycle") as exc:
            store.add_dependency(a.id, c.id)
        assert f"{a.id} → {c.id} → {b.id} → {a.id}" in str(exc.value)
        assert _log_bytes(store) == before
        assert _by_id(store)[a.id].blocked_by == []

    def test_self_dependency_rejected(self, store: TickStore) -> None:
        a = store.create_task("A")
        with pytest.raises(ValidationError, match="creates cycle"):
            store.add_dependency(a.id, a.id)

    def test_all_or_nothing(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        with pytest.raises(TaskNotFoundError):
            store.add_dependency(a.id, f"{b.id},tick-ffffff")
        assert _by_id(store)[a.id].blocked_by == []

    def test_parent_child_rejected(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        child = store.create_task("Child", parent=parent.id)
        with pytest.raises(ValidationError, match="its own child"):
            store.add_dependency(parent.id, child.id)
        with pytest.raises(ValidationError, match="its parent"):
            store.add_dependency(child.id, parent.id)

    def test_remove_missing_dependency(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B")
        with pytest.raises(ValidationError, match="is not a dependency of"):
            store.remove_dependency(a.id, b.id)

    def test_empty_blocker_list(self, store: TickStore) -> None:
        a = store.create_task("A")
        with pytest.raises(ValidationError, match="At least one blocker ID"):
            store.add_dependency(a.id, " , ")


class TestNotes:
    def test_add_and_remove(self, store: TickStore) -> None:
        task = store.create_task("Task")
        store.add_note(task.id, "first")
        store.add_note(task.id, "  second  ")
        assert [n.text for n in _by_id(store)[task.id].notes] == ["first", "second"]
        removed = store.remove_note(task.id, 1)
        assert removed.text == "first"
        assert [n.text for n in _by_id(store)[task.id].notes] == ["second"]

    def test_empty_note_rejected(self, store: TickStore) -> None:
        task = store.create_task("Task")
        with pytest.raises(ValidationError, match="Note text is required"):
            store.add_note(task.id, "   ")

    def test_remove_from_task_without_notes(self, store: TickStore) -> None:
        task = store.create_task("Task")
        with pytest.raises(ValidationError, match="has no notes"):
            store.remove_note(task.id, 1)

    @pytest.mark.parametrize(("index", "match"), [(0, "Index must be >= 1"), (3, "out of range")])
    def test_bad_index(self, store: TickStore, index: int, match: str) -> None:
        task = store.create_task("Task")
        store.add_note(task.id, "only")
        with pytest.raises(ValidationError, match=match):
            store.remove_note(task.id, index)


class TestRemoval:
    def test_strips_blocked_by_only(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        child = store.create_task("Child", parent=parent.id)
        waiting = store.create_task("Waiting", blocked_by=parent.id)
        result = store.remove_tasks([parent.id])
        assert [r["id"] for r in result.removed] == [parent.id]
        assert result.deps_updated == [waiting.id]
        tasks = _by_id(store)
        assert parent.id not in tasks
        assert tasks[waiting.id].blocked_by == []
        # Parent links are left for doctor to report.
        assert tasks[child.id].parent == parent.id

    def test_later_writes_tolerate_dangling_parent(self, store: TickStore) -> None:
        parent = store.create_task("Parent")
        child = store.create_task("Child", parent=parent.id)
        store.remove_tasks(parent.id)
        store.update_task(child.id, title="Still editable")
        assert _by_id(store)[child.id].title == "Still editable"

    def test_removes_several(self, store: TickStore) -> None:
        a = store.create_task("A")
        b = store.create_task("B", blocked_by=a.id)
        c = store.create_task("C", blocked_by=b.id)
        result = store.remove_tasks(f"{a.id},{b.id}")
        assert {r["id"] for r in result.removed} == {a.id, b.id}
        assert result.deps_updated == [c.id]
        assert list(_by_id(store)) == [c.id]

    def test_unknown_id_removes_nothing(self, store: TickStore) -> None:
        a = store.create_task("A")
        with pytest.raises(TaskNotFoundError):
            store.remove_tasks([a.id, "tick-ffffff"])
        assert list(_by_id(store)) == [a.id]


class TestImport:
    def test_closed_status_gets_closed_timestamp(self, store: TickStore) -> None:
        task = store.import_task(
            "Imported",
            status="done",
            priority=1,
            created="2025-06-01T09:00:00Z",
            updated="2025-06-02T09:00:00Z",
        )
        assert task.created == "2025-06-01T09:00:00Z"
        assert task.closed == "2025-06-02T09:00:00Z"

    def test_open_task_has_no_closed(self, store: TickStore) -> None:
        task = store.import_task("Imported", closed="2025-06-02T09:00:00Z")
        assert task.closed is None

    def test_invalid_timestamp(self, store: TickStore) -> None:
        with pytest.raises(ValidationError, match="Invalid created timestamp"):
            store.import_task("Imported", created="yesterday")


class TestPrefix:
    def test_custom_prefix(self, tmp_path: Path) -> None:
        tick_dir = init_project(tmp_path, prefix="proj")
        store = TickStore.from_project(tmp_path)
        task = store.create_task("Task")
        assert task.id.startswith("proj-")
        assert store.resolve_id(task.id.split("-")[1][:4]) == task.id
        assert store.tick_dir == tick_dir
