"""Tests for dependency graph validation in tick.graph."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from tick.errors import TaskNotFoundError, ValidationError
from tick.graph import (
    find_cycles,
    validate_dependencies,
    validate_dependency,
    validate_parent,
    validate_task_set,
)
from tick.models import Task

TaskFactory = Callable[..., Task]


class TestValidateDependency:
    def test_accepts_unrelated_tasks(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa"), task_factory("tick-bbbbbb")]
        validate_dependency(tasks, "tick-aaaaaa", "tick-bbbbbb")

    def test_self_reference_is_a_cycle(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa")]
        with pytest.raises(ValidationError, match="creates cycle: tick-aaaaaa → tick-aaaaaa"):
            validate_dependency(tasks, "tick-aaaaaa", "tick-aaaaaa")

    def test_direct_cycle(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]), task_factory("tick-bbbbbb")]
        with pytest.raises(ValidationError, match="creates cycle: tick-bbbbbb → tick-aaaaaa → tick-bbbbbb"):
            validate_dependency(tasks, "tick-bbbbbb", "tick-aaaaaa")

    def test_transitive_cycle_names_full_path(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]),
            task_factory("tick-bbbbbb", blocked_by=["tick-cccccc"]),
            task_factory("tick-cccccc"),
        ]
        with pytest.raises(ValidationError) as exc:
            validate_dependency(tasks, "tick-cccccc", "tick-aaaaaa")
        assert str(exc.value) == (
            "Cannot add dependency - creates cycle: tick-cccccc → tick-aaaaaa → tick-bbbbbb → tick-cccccc"
        )

    def test_child_blocked_by_parent_rejected(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa"), task_factory("tick-bbbbbb", parent="tick-aaaaaa")]
        with pytest.raises(ValidationError, match="cannot be blocked by its parent"):
            validate_dependency(tasks, "tick-bbbbbb", "tick-aaaaaa")

    def test_parent_blocked_by_own_child_rejected(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa"), task_factory("tick-bbbbbb", parent="tick-aaaaaa")]
        with pytest.raises(ValidationError, match="cannot be blocked by its own child"):
            validate_dependency(tasks, "tick-aaaaaa", "tick-bbbbbb")

    def test_sibling_dependency_allowed(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-eeeeee"),
            task_factory("tick-aaaaaa", parent="tick-eeeeee"),
            task_factory("tick-bbbbbb", parent="tick-eeeeee"),
        ]
        validate_dependency(tasks, "tick-bbbbbb", "tick-aaaaaa")

    def test_batch_stops_at_first_failure(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa"),
            task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"]),
            task_factory("tick-cccccc"),
        ]
        with pytest.raises(ValidationError, match="cycle"):
            validate_dependencies(tasks, "tick-aaaaaa", ["tick-cccccc", "tick-bbbbbb"])


class TestValidateParent:
    def test_own_parent(self, task_factory: TaskFactory) -> None:
        with pytest.raises(ValidationError, match="cannot be its own parent"):
            validate_parent([task_factory("tick-aaaaaa")], "tick-aaaaaa", "tick-aaaaaa")

    def test_descendant_as_parent(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa"),
            task_factory("tick-bbbbbb", parent="tick-aaaaaa"),
            task_factory("tick-cccccc", parent="tick-bbbbbb"),
        ]
        with pytest.raises(ValidationError, match="descendant"):
            validate_parent(tasks, "tick-aaaaaa", "tick-cccccc")

    def test_parent_that_blocks_task(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa"), task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"])]
        with pytest.raises(ValidationError, match="tick-bbbbbb is blocked by tick-aaaaaa"):
            validate_parent(tasks, "tick-bbbbbb", "tick-aaaaaa")


class TestFindCycles:
    def test_no_cycles(self, task_factory: TaskFactory) -> None:
        tasks = [task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]), task_factory("tick-bbbbbb")]
        assert find_cycles(tasks) == []

    def test_cycle_reported_once_from_smallest_id(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-cccccc", blocked_by=["tick-aaaaaa"]),
            task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]),
            task_factory("tick-bbbbbb", blocked_by=["tick-cccccc"]),
        ]
        assert find_cycles(tasks) == [["tick-aaaaaa", "tick-bbbbbb", "tick-cccccc", "tick-aaaaaa"]]

    def test_two_separate_cycles(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]),
            task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"]),
            task_factory("tick-cccccc", blocked_by=["tick-dddddd"]),
            task_factory("tick-dddddd", blocked_by=["tick-cccccc"]),
        ]
        assert len(find_cycles(tasks)) == 2

    def test_dangling_blocker_ignored(self, task_factory: TaskFactory) -> None:
        assert find_cycles([task_factory("tick-aaaaaa", blocked_by=["tick-ffffff"])]) == []


class TestValidateTaskSet:
    def test_valid_set(self, task_factory: TaskFactory) -> None:
        validate_task_set(
            [
                task_factory("tick-aaaaaa"),
                task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"]),
                task_factory("tick-cccccc", parent="tick-aaaaaa"),
            ]
        )

    def test_duplicate_ids(self, task_factory: TaskFactory) -> None:
        with pytest.raises(ValidationError, match="Duplicate task ID tick-aaaaaa"):
            validate_task_set([task_factory("tick-aaaaaa"), task_factory("TICK-AAAAAA")])

    def test_unknown_blocker(self, task_factory: TaskFactory) -> None:
        with pytest.raises(TaskNotFoundError, match="tick-ffffff"):
            validate_task_set([task_factory("tick-aaaaaa", blocked_by=["tick-ffffff"])])

    def test_unknown_parent(self, task_factory: TaskFactory) -> None:
        with pytest.raises(TaskNotFoundError, match="parent of tick-aaaaaa"):
            validate_task_set([task_factory("tick-aaaaaa", parent="tick-ffffff")])

    def test_self_dependency(self, task_factory: TaskFactory) -> None:
        with pytest.raises(ValidationError, match="cycle"):
            validate_task_set([task_factory("tick-aaaaaa", blocked_by=["tick-aaaaaa"])])

    def test_new_cycle_rejected(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]),
            task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"]),
        ]
        with pytest.raises(ValidationError, match="creates cycle"):
            validate_task_set(tasks)

    def test_parent_loop_rejected(self, task_factory: TaskFactory) -> None:
        tasks = [
            task_factory("tick-aaaaaa", parent="tick-bbbbbb"),
            task_factory("tick-bbbbbb", parent="tick-aaaaaa"),
        ]
        with pytest.raises(ValidationError, match="loops back"):
            validate_task_set(tasks)

    def test_preexisting_dangling_parent_tolerated(self, task_factory: TaskFactory) -> None:
        before = [task_factory("tick-aaaaaa", parent="tick-ffffff")]
        after = [task_factory("tick-aaaaaa", parent="tick-ffffff", title="Renamed")]
        validate_task_set(after, before=before)

    def test_preexisting_cycle_tolerated_but_new_one_rejected(self, task_factory: TaskFactory) -> None:
        before = [
            task_factory("tick-aaaaaa", blocked_by=["tick-bbbbbb"]),
            task_factory("tick-bbbbbb", blocked_by=["tick-aaaaaa"]),
            task_factory("tick-cccccc"),
            task_factory("tick-dddddd"),
        ]
        validate_task_set(before, before=before)
        after = [
            *before[:2],
            task_factory("tick-cccccc", blocked_by=["tick-dddddd"]),
            task_factory("tick-dddddd", blocked_by=["tick-cccccc"]),
        ]
        with pytest.raises(ValidationError, match="tick-cccccc → tick-dddddd → tick-cccccc"):
            validate_task_set(after, before=before)
