"""Dependency graph checks over an in-memory task set.

``blocked_by`` edges point from a task to the tasks that must finish first.
All functions here are pure: they take a task list and either return or
raise :class:`~tick.errors.ValidationError`.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence

from tick.errors import TaskNotFoundError, ValidationError
from tick.models import Task, normalize_id

ARROW = " → "


def _index(tasks: Iterable[Task]) -> dict[str, Task]:
    return {normalize_id(t.id): t for t in tasks}


def _blocker_path(by_id: dict[str, Task], start: str, target: str) -> list[str] | None:
    """BFS from *start* over blocked_by edges; return the path to *target* if reachable."""
    visited: set[str] = set()
    queue: deque[list[str]] = deque([[start]])
    while queue:
        path = queue.popleft()
        current = path[-1]
        if current == target:
            return path
        if current in visited:
            continue
        visited.add(current)
        task = by_id.get(current)
        if task is None:
            continue
        for blocker in task.blocked_by:
            nxt = normalize_id(blocker)
            if nxt not in visited:
                queue.append([*path, nxt])
    return None


def validate_dependency(tasks: Sequence[Task], task_id: str, blocker_id: str) -> None:
    """Check that adding *blocker_id* to *task_id*'s blocked_by keeps the graph valid."""
    task_key = normalize_id(task_id)
    blocker_key = normalize_id(blocker_id)
    if task_key == blocker_key:
        msg = f"Cannot add dependency - creates cycle: {task_key}{ARROW}{task_key}"
        raise ValidationError(msg)

    by_id = _index(tasks)
    task = by_id.get(task_key)
    blocker = by_id.get(blocker_key)
    if task is not None and task.parent and normalize_id(task.parent) == blocker_key:
        msg = f"Cannot add dependency - {task_key} cannot be blocked by its parent {blocker_key}"
        raise ValidationError(msg)
    if blocker is not None and blocker.parent and normalize_id(blocker.parent) == task_key:
        msg = f"Cannot add dependency - {task_key} cannot be blocked by its own child {blocker_key}"
        raise ValidationError(msg)

    path = _blocker_path(by_id, blocker_key, task_key)
    if path is not None:
        msg = f"Cannot add dependency - creates cycle: {ARROW.join([task_key, *path])}"
        raise ValidationError(msg)


def validate_dependencies(tasks: Sequence[Task], task_id: str, blocker_ids: Iterable[str]) -> None:
    """Validate several new blockers; the first failure is raised."""
    for blocker_id in blocker_ids:
        validate_dependency(tasks, task_id, blocker_id)


def validate_parent(tasks: Sequence[Task], task_id: str, parent_id: str) -> None:
    """Check that *parent_id* can become *task_id*'s parent."""
    task_key = normalize_id(task_id)
    parent_key = normalize_id(parent_id)
    if task_key == parent_key:
        msg = f"Task {task_key} cannot be its own parent"
        raise ValidationError(msg)
    by_id = _index(tasks)
    # Walk up from the proposed parent; meeting the task means a loop.
    seen: set[str] = set()
    current: str | None = parent_key
    while current is not None and current not in seen:
        if current == task_key:
            msg = f"Cannot set parent - {parent_key} is a descendant of {task_key}"
            raise ValidationError(msg)
        seen.add(current)
        node = by_id.get(current)
        current = normalize_id(node.parent) if node is not None and node.parent else None
    task = by_id.get(task_key)
    if task is not None and parent_key in {normalize_id(b) for b in task.blocked_by}:
        msg = f"Cannot set parent - {task_key} is blocked by {parent_key}"
        raise ValidationError(msg)
    parent = by_id.get(parent_key)
    if parent is not None and task_key in {normalize_id(b) for b in parent.blocked_by}:
        msg = f"Cannot set parent - {parent_key} is blocked by {task_key}"
        raise ValidationError(msg)


def find_cycles(tasks: Iterable[Task]) -> list[list[str]]:
    """Return every distinct dependency cycle as a closed path ``[a, b, ..., a]``.

    Each cycle is reported once, rotated to start at its smallest id.
    """
    by_id = _index(tasks)
    cycles: list[list[str]] = []
    seen_keys: set[tuple[str, ...]] = set()
    done: set[str] = set()

    for root in sorted(by_id):
        if root in done:
            continue
        # Iterative DFS keeping the current path for cycle extraction.
        stack: list[tuple[str, list[str]]] = [(root, sorted({normalize_id(b) for b in by_id[root].blocked_by}))]
        path = [root]
        on_path = {root}
        while stack:
            node, pending = stack[-1]
            if not pending:
                stack.pop()
                path.pop()
                on_path.discard(node)
                done.add(node)
                continue
            nxt = pending.pop(0)
            if nxt in on_path:
                cycle = path[path.index(nxt) :]
                pivot = cycle.index(min(cycle))
                rotated = cycle[pivot:] + cycle[:pivot]
                key = tuple(rotated)
                if key not in seen_keys:
                    seen_keys.add(key)
                    cycles.append([*rotated, rotated[0]])
                continue
            if nxt in done or nxt not in by_id:
                continue
            stack.append((nxt, sorted({normalize_id(b) for b in by_id[nxt].blocked_by})))
            path.append(nxt)
            on_path.add(nxt)
    return cycles


def validate_task_set(tasks: Sequence[Task], before: Sequence[Task] | None = None) -> None:
    """Check whole-set invariants before a task list is written to the log.

    When *before* is given, dangling references and cycles that already
    existed in it unchanged are tolerated: a removal leaves children
    pointing at a missing parent, and a hand-edited log may already be
    damaged. Those are reported by ``tick doctor`` instead of blocking
    every later write.
    """
    seen: set[str] = set()
    for task in tasks:
        key = normalize_id(task.id)
        if key in seen:
            msg = f"Duplicate task ID {key}"
            raise ValidationError(msg)
        seen.add(key)

    by_id = _index(tasks)
    prior = _index(before) if before is not None else {}
    for task in tasks:
        key = normalize_id(task.id)
        old = prior.get(key)
        old_blockers = {normalize_id(b) for b in old.blocked_by} if old is not None else set()
        old_parent = normalize_id(old.parent) if old is not None and old.parent else None
        blockers = {normalize_id(b) for b in task.blocked_by}
        for blocker_key in blockers:
            if blocker_key == key:
                msg = f"Cannot add dependency - creates cycle: {key}{ARROW}{key}"
                raise ValidationError(msg)
            if blocker_key not in by_id and blocker_key not in old_blockers:
                raise TaskNotFoundError(blocker_key, context=f"blocked_by of {key}")
        if task.parent:
            parent_key = normalize_id(task.parent)
            if parent_key == key:
                msg = f"Task {key} cannot be its own parent"
                raise ValidationError(msg)
            if parent_key not in by_id:
                if parent_key != old_parent:
                    raise TaskNotFoundError(parent_key, context=f"parent of {key}")
                continue
            if parent_key in blockers:
                msg = f"Cannot add dependency - {key} cannot be blocked by its parent {parent_key}"
                raise ValidationError(msg)
            if key in {normalize_id(b) for b in by_id[parent_key].blocked_by}:
                msg = f"Cannot add dependency - {parent_key} cannot be blocked by its own child {key}"
                raise ValidationError(msg)

    for task in tasks:
        chain: set[str] = set()
        current: str | None = normalize_id(task.id)
        while current is not None:
            if current in chain:
                msg = f"Parent chain of {normalize_id(task.id)} loops back to {current}"
                raise ValidationError(msg)
            chain.add(current)
            node = by_id.get(current)
            current = normalize_id(node.parent) if node is not None and node.parent else None

    existing = {tuple(c) for c in find_cycles(before)} if before is not None else set()
    for cycle in find_cycles(tasks):
        if tuple(cycle) not in existing:
            msg = f"Cannot add dependency - creates cycle: {ARROW.join(cycle)}"
            raise ValidationError(msg)
