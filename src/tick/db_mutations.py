"""Write-side mixin: every concrete mutation, each built on ``self.mutate()``.

Field values are validated before the lock is taken. Id arguments are
resolved inside the mutation against the task list read under the
exclusive lock, so a prefix always resolves against the state being changed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from tick.db_base import StoreMixinProtocol
from tick.errors import TaskNotFoundError, ValidationError
from tick.graph import validate_dependencies, validate_dependency, validate_parent
from tick.models import Note, Task, generate_id, normalize_id, now_timestamp, parse_timestamp
from tick.resolver import resolve_id
from tick.types.queries import RelatedTask
from tick.validation import (
    DEFAULT_PRIORITY,
    split_csv,
    validate_note_text,
    validate_priority,
    validate_status,
    validate_tags,
    validate_title,
    validate_type,
)
from tick.workflow import TransitionResult, apply_transition


@dataclass
class RemovalResult:
    removed: list[RelatedTask] = field(default_factory=list)
    deps_updated: list[str] = field(default_factory=list)


def _find(tasks: list[Task], task_id: str) -> Task:
    for task in tasks:
        if task.id == task_id:
            return task
    raise TaskNotFoundError(task_id)


def _csv(values: str | Iterable[str] | None) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return split_csv(values)
    return [part for value in values for part in split_csv(value)]


class MutationsMixin(StoreMixinProtocol):
    """Task mutations. Mixed into TickStore."""

    def _resolve(self, tasks: list[Task], raw: str, context: str = "") -> str:
        try:
            return resolve_id([t.id for t in tasks], raw, self.prefix)
        except TaskNotFoundError as e:
            if not context:
                raise
            raise TaskNotFoundError(e.task_id, context=context) from None

    def _resolve_all(self, tasks: list[Task], raw: str | Iterable[str] | None, context: str = "") -> list[str]:
        resolved: list[str] = []
        for part in _csv(raw):
            task_id = self._resolve(tasks, part, context)
            if task_id not in resolved:
                resolved.append(task_id)
        return resolved

    def _add_blocks(self, tasks: list[Task], source_id: str, targets: list[str], now: str) -> None:
        """Add *source_id* to each target's blocked_by (the ``--blocks`` option)."""
        for target_id in targets:
            validate_dependency(tasks, target_id, source_id)
            target = _find(tasks, target_id)
            if source_id not in target.blocked_by:
                target.blocked_by.append(source_id)
                target.touch(now)

    # -- Create / update -------------------------------------------------------

    def create_task(
        self,
        title: str,
        *,
        priority: int | None = None,
        description: str = "",
        task_type: str = "",
        tags: Iterable[str] | None = None,
        parent: str | None = None,
        blocked_by: str | Iterable[str] | None = None,
        blocks: str | Iterable[str] | None = None,
    ) -> Task:
        clean_title = validate_title(title)
        clean_priority = validate_priority(priority) if priority is not None else DEFAULT_PRIORITY
        clean_type = validate_type(task_type) if task_type else ""
        clean_tags = validate_tags(tags or [])
        created: list[Task] = []

        def apply(tasks: list[Task]) -> list[Task]:
            parent_id = self._resolve(tasks, parent, "--parent") if parent else None
            blocker_ids = self._resolve_all(tasks, blocked_by, "--blocked-by")
            block_ids = self._resolve_all(tasks, blocks, "--blocks")
            known = {t.id for t in tasks}
            now = now_timestamp()
            task = Task(
                id=generate_id(self.prefix, known.__contains__),
                title=clean_title,
                priority=clean_priority,
                type=clean_type,
                tags=clean_tags,
                description=description.strip(),
                parent=parent_id,
                created=now,
                updated=now,
            )
            tasks.append(task)
            if parent_id is not None:
                validate_parent(tasks, task.id, parent_id)
            validate_dependencies(tasks, task.id, blocker_ids)
            task.blocked_by = blocker_ids
            self._add_blocks(tasks, task.id, block_ids, now)
            created.append(task)
            return tasks

        self.mutate(apply, op="create")
        return created[0]

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        priority: int | None = None,
        task_type: str | None = None,
        tags: Iterable[str] | None = None,
        parent: str | None = None,
        blocks: str | Iterable[str] | None = None,
    ) -> Task:
        """Change fields of one task.

        ``None`` leaves a field alone. An empty string clears ``description``,
        ``task_type`` and ``parent``; an empty list clears ``tags``.
        """
        if all(v is None for v in (title, description, priority, task_type, tags, parent, blocks)):
            msg = "At least one field is required: title, description, priority, type, tags, parent, blocks"
            raise ValidationError(msg)
        clean_title = validate_title(title) if title is not None else None
        clean_priority = validate_priority(priority) if priority is not None else None
        clean_type = (validate_type(task_type) if task_type.strip() else "") if task_type is not None else None
        clean_tags = validate_tags(tags) if tags is not None else None
        result: list[Task] = []

        def apply(tasks: list[Task]) -> list[Task]:
            target = _find(tasks, self._resolve(tasks, task_id))
            now = now_timestamp()
            if clean_title is not None:
                target.title = clean_title
            if description is not None:
                target.description = description.strip()
            if clean_priority is not None:
                target.priority = clean_priority
            if clean_type is not None:
                target.type = clean_type
            if clean_tags is not None:
                target.tags = clean_tags
            if parent is not None:
                if parent.strip():
                    parent_id = self._resolve(tasks, parent, "--parent")
                    validate_parent(tasks, target.id, parent_id)
                    target.parent = parent_id
                else:
                    target.parent = None
            if blocks is not None:
                self._add_blocks(tasks, target.id, self._resolve_all(tasks, blocks, "--blocks"), now)
            target.touch(now)
            result.append(target)
            return tasks

        self.mutate(apply, op="update")
        return result[0]

    # -- Status ----------------------------------------------------------------

    def transition(self, task_id: str, command: str) -> tuple[Task, TransitionResult]:
        """Apply start/done/cancel/reopen to one task."""
        return self.transition_many([task_id], command)[0]

    def transition_many(self, task_ids: Iterable[str], command: str) -> list[tuple[Task, TransitionResult]]:
        """Apply one command to several tasks in a single mutation.

        If any id fails to resolve or any transition is not allowed, nothing
        is written.
        """
        ids = list(task_ids)
        if not ids:
            msg = "At least one task ID is required"
            raise ValidationError(msg)
        outcome: list[tuple[Task, TransitionResult]] = []

        def apply(tasks: list[Task]) -> list[Task]:
            now = now_timestamp()
            seen: set[str] = set()
            for raw in ids:
                resolved = self._resolve(tasks, raw)
                if resolved in seen:
                    continue
                seen.add(resolved)
                target = _find(tasks, resolved)
                outcome.append((target, apply_transition(target, command, now=now)))
            return tasks

        self.mutate(apply, op=command)
        return outcome

    # -- Dependencies ----------------------------------------------------------

    def add_dependency(self, task_id: str, blocker_ids: str | Iterable[str]) -> list[str]:
        """Make *task_id* blocked by each of *blocker_ids*. All or nothing."""
        added: list[str] = []

        def apply(tasks: list[Task]) -> list[Task]:
            target = _find(tasks, self._resolve(tasks, task_id))
            blockers = self._resolve_all(tasks, blocker_ids)
            if not blockers:
                msg = "At least one blocker ID is required"
                raise ValidationError(msg)
            for blocker_id in blockers:
                if blocker_id in target.blocked_by:
                    msg = f"Dependency already exists: {target.id} is already blocked by {blocker_id}"
                    raise ValidationError(msg)
            validate_dependencies(tasks, target.id, blockers)
            target.blocked_by.extend(blockers)
            target.touch()
            added.extend(blockers)
            return tasks

        self.mutate(apply, op="dep_add")
        return added

    def remove_dependency(self, task_id: str, blocker_ids: str | Iterable[str]) -> list[str]:
        removed: list[str] = []

        def apply(tasks: list[Task]) -> list[Task]:
            target = _find(tasks, self._resolve(tasks, task_id))
            for raw in _csv(blocker_ids):
                # A blocker that no longer exists can still be named by its full id.
                exact = normalize_id(raw)
                blocker_id = exact if exact in target.blocked_by else self._resolve(tasks, raw)
                if blocker_id not in target.blocked_by:
                    msg = f"{blocker_id} is not a dependency of {target.id}"
                    raise ValidationError(msg)
                target.blocked_by.remove(blocker_id)
                removed.append(blocker_id)
            if not removed:
                msg = "At least one blocker ID is required"
                raise ValidationError(msg)
            target.touch()
            return tasks

        self.mutate(apply, op="dep_rm")
        return removed

    # -- Notes -----------------------------------------------------------------

    def add_note(self, task_id: str, text: str) -> Note:
        clean = validate_note_text(text)
        notes: list[Note] = []

        def apply(tasks: list[Task]) -> list[Task]:
            target = _find(tasks, self._resolve(tasks, task_id))
            now = now_timestamp()
            note = Note(text=clean, created=now)
            target.notes.append(note)
            target.touch(now)
            notes.append(note)
            return tasks

        self.mutate(apply, op="note_add")
        return notes[0]

    def remove_note(self, task_id: str, index: int) -> Note:
        """Remove the note at 1-based *index*."""
        if isinstance(index, bool) or not isinstance(index, int) or index < 1:
            msg = f"Index must be >= 1, got {index}"
            raise ValidationError(msg)
        notes: list[Note] = []

        def apply(tasks: list[Task]) -> list[Task]:
            target = _find(tasks, self._resolve(tasks, task_id))
            if not target.notes:
                msg = f"Task {target.id} has no notes to remove"
                raise ValidationError(msg)
            if index > len(target.notes):
                msg = f"Index {index} out of range: task has {len(target.notes)} note(s)"
                raise ValidationError(msg)
            notes.append(target.notes.pop(index - 1))
            target.touch()
            return tasks

        self.mutate(apply, op="note_rm")
        return notes[0]

    # -- Removal ---------------------------------------------------------------

    def remove_tasks(self, task_ids: str | Iterable[str]) -> RemovalResult:
        """Delete tasks and strip their ids from every surviving task's blocked_by."""
        result = RemovalResult()

        def apply(tasks: list[Task]) -> list[Task]:
            doomed = self._resolve_all(tasks, task_ids)
            if not doomed:
                msg = "At least one task ID is required"
                raise ValidationError(msg)
            gone = set(doomed)
            result.removed = [
                RelatedTask(id=t.id, title=t.title, status=t.status) for t in tasks if t.id in gone
            ]
            survivors = [t for t in tasks if t.id not in gone]
            for task in survivors:
                cleaned = [b for b in task.blocked_by if b not in gone]
                if len(cleaned) != len(task.blocked_by):
                    task.blocked_by = cleaned
                    result.deps_updated.append(task.id)
            return survivors

        self.mutate(apply, op="remove")
        return result

    # -- Import ----------------------------------------------------------------

    def import_task(
        self,
        title: str,
        *,
        status: str = "open",
        priority: int | None = None,
        description: str = "",
        task_type: str = "",
        tags: Iterable[str] | None = None,
        created: str | None = None,
        updated: str | None = None,
        closed: str | None = None,
    ) -> Task:
        """Insert one task with caller-supplied status and timestamps (used by migration)."""
        clean_title = validate_title(title)
        clean_status = validate_status(status)
        clean_priority = validate_priority(priority) if priority is not None else DEFAULT_PRIORITY
        clean_type = validate_type(task_type) if task_type else ""
        clean_tags = validate_tags(tags or [])
        for name, value in (("created", created), ("updated", updated), ("closed", closed)):
            if value is not None:
                try:
                    parse_timestamp(value)
                except ValueError:
                    msg = f"Invalid {name} timestamp '{value}'"
                    raise ValidationError(msg) from None
        imported: list[Task] = []

        def apply(tasks: list[Task]) -> list[Task]:
            now = now_timestamp()
            stamp = created or now
            is_closed = clean_status in ("done", "cancelled")
            task = Task(
                id=generate_id(self.prefix, {t.id for t in tasks}.__contains__),
                title=clean_title,
                status=clean_status,
                priority=clean_priority,
                type=clean_type,
                tags=clean_tags,
                description=description.strip(),
                created=stamp,
                updated=updated or stamp,
                closed=(closed or updated or stamp) if is_closed else None,
            )
            tasks.append(task)
            imported.append(task)
            return tasks

        self.mutate(apply, op="import")
        return imported[0]
