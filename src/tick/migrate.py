"""Import tasks from other trackers.

A provider reads a foreign format and yields :class:`MigratedTask` records.
The engine validates each one and hands it to a creator: one store mutation
per record, so a bad record is reported and skipped without affecting the
rest. Only the beads JSONL format is supported today.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from tick.errors import TickError, ValidationError
from tick.models import TIMESTAMP_FORMAT
from tick.validation import MAX_PRIORITY, MIN_PRIORITY, VALID_STATUSES, VALID_TYPES
from tick.workflow import CLOSED_STATUSES

if TYPE_CHECKING:
    from tick.core import TickStore

logger = logging.getLogger(__name__)

UNTITLED = "(untitled)"
MALFORMED_TITLE = "(malformed entry)"
_INVALID_STATUS = "(invalid)"


class MigrationError(TickError):
    """A provider could not read its source at all."""


class UnknownProviderError(MigrationError):
    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = sorted(available)
        listing = "".join(f"\n  - {p}" for p in self.available)
        super().__init__(f"Unknown provider '{name}'\n\nAvailable providers:{listing}")


@dataclass
class MigratedTask:
    """A provider-neutral task awaiting import. ``None`` fields take tick defaults."""

    title: str
    status: str = ""
    priority: int | None = None
    description: str = ""
    task_type: str = ""
    created: str | None = None
    updated: str | None = None
    closed: str | None = None

    def validate(self) -> None:
        if not self.title.strip():
            msg = "title is required and cannot be empty"
            raise ValidationError(msg)
        if self.status and self.status not in VALID_STATUSES:
            msg = f"invalid status '{self.status}': must be open, in_progress, done, or cancelled"
            raise ValidationError(msg)
        if self.priority is not None and not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            msg = f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {self.priority}"
            raise ValidationError(msg)


@dataclass(frozen=True)
class MigrationResult:
    title: str
    success: bool
    error: str = ""


class Provider(Protocol):
    name: str

    def tasks(self) -> list[MigratedTask]: ...


class TaskCreator(Protocol):
    def create(self, task: MigratedTask) -> str: ...


class StoreCreator:
    """Creates each migrated task through the store's import mutation."""

    def __init__(self, store: TickStore) -> None:
        self.store = store

    def create(self, task: MigratedTask) -> str:
        created = self.store.import_task(
            task.title,
            status=task.status or "open",
            priority=task.priority,
            description=task.description,
            task_type=task.task_type,
            created=task.created,
            updated=task.updated,
            closed=task.closed,
        )
        return created.id


class DryRunCreator:
    """Accepts every task without writing anything."""

    def create(self, task: MigratedTask) -> str:
        return ""


class MigrationEngine:
    def __init__(self, creator: TaskCreator, *, pending_only: bool = False) -> None:
        self.creator = creator
        self.pending_only = pending_only

    def run(self, provider: Provider) -> list[MigrationResult]:
        """Import every task the provider yields. Failures are recorded per task, never raised.

        With ``pending_only``, tasks already done or cancelled are left out
        entirely and do not appear in the results.
        """
        results: list[MigrationResult] = []
        for task in provider.tasks():
            if self.pending_only and task.status in CLOSED_STATUSES:
                continue
            title = task.title if task.title.strip() else UNTITLED
            try:
                task.validate()
                self.creator.create(task)
            except TickError as e:
                logger.info("Skipped %r from %s: %s", title, provider.name, e)
                results.append(MigrationResult(title=title, success=False, error=str(e)))
                continue
            results.append(MigrationResult(title=task.title, success=True))
        return results


# ---------------------------------------------------------------------------
# beads
# ---------------------------------------------------------------------------

BEADS_STATUS_MAP = {
    "pending": "open",
    "in_progress": "in_progress",
    "closed": "done",
}


def _beads_timestamp(value: object) -> str | None:
    """Convert an RFC 3339 timestamp to tick's format. Unparseable values become None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def _beads_task(issue: dict[str, Any]) -> MigratedTask:
    priority = issue.get("priority")
    issue_type = issue.get("issue_type")
    return MigratedTask(
        title=str(issue.get("title") or ""),
        description=str(issue.get("description") or ""),
        # Unknown statuses map to "" and import as open.
        status=BEADS_STATUS_MAP.get(str(issue.get("status") or ""), ""),
        priority=priority if isinstance(priority, int) and not isinstance(priority, bool) else None,
        task_type=issue_type if isinstance(issue_type, str) and issue_type in VALID_TYPES else "",
        created=_beads_timestamp(issue.get("created_at")),
        updated=_beads_timestamp(issue.get("updated_at")),
        closed=_beads_timestamp(issue.get("closed_at")),
    )


class BeadsProvider:
    """Reads ``.beads/issues.jsonl`` under a project root."""

    name = "beads"

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def tasks(self) -> list[MigratedTask]:
        beads_dir = self.base_dir / ".beads"
        if not beads_dir.is_dir():
            msg = f".beads directory not found in {self.base_dir}"
            raise MigrationError(msg)
        path = beads_dir / "issues.jsonl"
        if not path.is_file():
            msg = f"issues.jsonl not found in {beads_dir}"
            raise MigrationError(msg)

        tasks: list[MigratedTask] = []
        with path.open(encoding="utf-8", errors="replace") as f:
            for raw in f:
                line = raw.strip()
                if not line:
                    continue
                try:
                    issue = json.loads(line)
                except json.JSONDecodeError:
                    issue = None
                if not isinstance(issue, dict):
                    # Kept as a failing entry so the summary counts it.
                    tasks.append(MigratedTask(title=MALFORMED_TITLE, status=_INVALID_STATUS))
                    continue
                tasks.append(_beads_task(issue))
        return tasks


PROVIDERS: dict[str, Callable[[Path], Provider]] = {
    "beads": BeadsProvider,
}


def get_provider(name: str, base_dir: Path) -> Provider:
    try:
        factory = PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(name, list(PROVIDERS)) from None
    return factory(base_dir)
