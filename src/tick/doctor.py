"""Read-only health checks for a .tick/ directory.

Checks read tasks.jsonl directly and never go through the strict loader, so a
damaged log can still be inspected. Nothing here writes to disk. Every check
runs regardless of earlier failures; errors affect the exit code, warnings
do not.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from tick.cache import HASH_KEY, compute_hash
from tick.core import CACHE_FILENAME, DEFAULT_PREFIX, TASKS_FILENAME, read_config
from tick.graph import ARROW, find_cycles
from tick.jsonl import parse_tasks
from tick.models import ID_HEX_LENGTH, Task
from tick.validation import MAX_PRIORITY, MIN_PRIORITY, VALID_STATUSES

logger = logging.getLogger(__name__)

Severity = Literal["error", "warning"]

_MANUAL_FIX = "Manual fix required"
_MISSING_LOG_HINT = "Run tick init or verify .tick directory"


@dataclass(frozen=True)
class CheckResult:
    """Result of a single doctor check."""

    name: str
    passed: bool
    severity: Severity = "error"
    details: str = ""
    suggestion: str = ""

    @property
    def icon(self) -> str:
        if self.passed:
            return "OK"
        return "!!" if self.severity == "error" else "??"


@dataclass
class DiagnosticReport:
    results: list[CheckResult] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "warning")


@dataclass(frozen=True)
class _Relation:
    """The relationship fields of one log line that decoded to a JSON object with a string id."""

    id: str
    line: int
    parent: str
    blocked_by: tuple[str, ...]
    status: str


@dataclass
class _LogView:
    tick_dir: Path
    prefix: str
    data: bytes
    records: list[tuple[int, dict[str, Any]]]

    def relations(self) -> list[_Relation]:
        result: list[_Relation] = []
        for line, record in self.records:
            task_id = record.get("id")
            if not isinstance(task_id, str) or not task_id:
                continue
            parent = record.get("parent")
            blocked = record.get("blocked_by")
            status = record.get("status")
            result.append(
                _Relation(
                    id=task_id.lower(),
                    line=line,
                    parent=parent.lower() if isinstance(parent, str) else "",
                    blocked_by=tuple(b.lower() for b in blocked if isinstance(b, str))
                    if isinstance(blocked, list)
                    else (),
                    status=status if isinstance(status, str) else "",
                )
            )
        return result


def _scan(data: bytes) -> list[tuple[int, dict[str, Any]]]:
    """Line number and decoded object for every line that is a JSON object."""
    records: list[tuple[int, dict[str, Any]]] = []
    for lineno, raw in enumerate(data.split(b"\n"), start=1):
        if not raw.strip():
            continue
        try:
            obj = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            continue
        if isinstance(obj, dict):
            records.append((lineno, obj))
    return records


def _passed(name: str) -> list[CheckResult]:
    return [CheckResult(name=name, passed=True)]


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_cache(view: _LogView) -> list[CheckResult]:
    name = "Cache"
    hint = "Run `tick rebuild` to refresh cache"
    cache_path = view.tick_dir / CACHE_FILENAME
    if not cache_path.exists():
        return [CheckResult(name, False, details="cache.db not found: cache has not been built", suggestion=hint)]
    stored: str | None = None
    try:
        conn = sqlite3.connect(f"file:{cache_path}?mode=ro", uri=True)
        try:
            row = conn.execute("SELECT value FROM metadata WHERE key = ?", (HASH_KEY,)).fetchone()
            stored = row[0] if row is not None else None
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.debug("Cache unreadable during doctor: %s", e)
    if stored != compute_hash(view.data):
        return [
            CheckResult(name, False, details="cache.db is stale: hash mismatch between tasks.jsonl and cache", suggestion=hint)
        ]
    return _passed(name)


def check_jsonl_syntax(view: _LogView) -> list[CheckResult]:
    name = "JSONL syntax"
    _, issues = parse_tasks(view.data)
    if not issues:
        return _passed(name)
    return [CheckResult(name, False, details=f"Line {i.line}: {i.message}", suggestion=_MANUAL_FIX) for i in issues]


def check_id_format(view: _LogView) -> list[CheckResult]:
    name = "ID format"
    pattern = re.compile(rf"^{re.escape(view.prefix)}-[0-9a-f]{{{ID_HEX_LENGTH}}}$")
    expected = f"{view.prefix}-{{{ID_HEX_LENGTH} hex}}"
    failures: list[CheckResult] = []
    for line, record in view.records:
        if "id" not in record:
            failures.append(CheckResult(name, False, details=f"Line {line}: missing id field", suggestion=_MANUAL_FIX))
            continue
        value = record["id"]
        if not isinstance(value, str) or not pattern.match(value):
            shown = value if isinstance(value, str) else json.dumps(value)
            failures.append(
                CheckResult(
                    name,
                    False,
                    details=f"Line {line}: invalid ID '{shown}', expected format {expected}",
                    suggestion=_MANUAL_FIX,
                )
            )
    return failures or _passed(name)


def check_field_values(view: _LogView) -> list[CheckResult]:
    name = "Field values"
    # Wrong types are reported by the syntax check.
    failures: list[CheckResult] = []
    for line, record in view.records:
        status = record.get("status")
        if isinstance(status, str) and status and status not in VALID_STATUSES:
            failures.append(
                CheckResult(name, False, details=f"Line {line}: invalid status '{status}'", suggestion=_MANUAL_FIX)
            )
        priority = record.get("priority")
        is_int = isinstance(priority, int) and not isinstance(priority, bool)
        if is_int and not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            failures.append(
                CheckResult(
                    name,
                    False,
                    details=f"Line {line}: priority {priority} out of range {MIN_PRIORITY}-{MAX_PRIORITY}",
                    suggestion=_MANUAL_FIX,
                )
            )
    return failures or _passed(name)


def check_duplicate_ids(view: _LogView) -> list[CheckResult]:
    name = "ID uniqueness"
    groups: dict[str, list[tuple[str, int]]] = {}
    for line, record in view.records:
        value = record.get("id")
        if isinstance(value, str) and value:
            groups.setdefault(value.lower(), []).append((value, line))
    failures = [
        CheckResult(
            name,
            False,
            details=f"Duplicate ID {key}: " + ", ".join(f"{orig} (line {line})" for orig, line in occurrences),
            suggestion=_MANUAL_FIX,
        )
        for key, occurrences in groups.items()
        if len(occurrences) > 1
    ]
    return failures or _passed(name)


def check_orphaned_parents(view: _LogView) -> list[CheckResult]:
    name = "Orphaned parents"
    relations = view.relations()
    known = {r.id for r in relations}
    failures = [
        CheckResult(name, False, details=f"{r.id} references non-existent parent {r.parent}", suggestion=_MANUAL_FIX)
        for r in relations
        if r.parent and r.parent not in known
    ]
    return failures or _passed(name)


def check_orphaned_dependencies(view: _LogView) -> list[CheckResult]:
    name = "Orphaned dependencies"
    relations = view.relations()
    known = {r.id for r in relations}
    failures = [
        CheckResult(name, False, details=f"{r.id} depends on non-existent task {dep}", suggestion=_MANUAL_FIX)
        for r in relations
        for dep in r.blocked_by
        if dep not in known
    ]
    return failures or _passed(name)


def check_self_dependencies(view: _LogView) -> list[CheckResult]:
    name = "Self-referential dependencies"
    failures = [
        CheckResult(name, False, details=f"{r.id} depends on itself", suggestion=_MANUAL_FIX)
        for r in view.relations()
        if r.id in r.blocked_by
    ]
    return failures or _passed(name)


def check_dependency_cycles(view: _LogView) -> list[CheckResult]:
    name = "Dependency cycles"
    # Self-references are reported by their own check.
    graph = [
        Task(id=r.id, title=r.id, blocked_by=[b for b in r.blocked_by if b != r.id]) for r in view.relations()
    ]
    failures = [
        CheckResult(name, False, details=f"Dependency cycle: {ARROW.join(cycle)}", suggestion=_MANUAL_FIX)
        for cycle in find_cycles(graph)
    ]
    return failures or _passed(name)


def check_child_blocked_by_parent(view: _LogView) -> list[CheckResult]:
    name = "Child blocked by parent"
    hint = f"{_MANUAL_FIX}: a child blocked by its parent can never become ready"
    relations = view.relations()
    by_id = {r.id: r for r in relations}
    failures: list[CheckResult] = []
    for r in relations:
        if not r.parent:
            continue
        if r.parent in r.blocked_by:
            failures.append(CheckResult(name, False, details=f"{r.id} is blocked by its parent {r.parent}", suggestion=hint))
        parent = by_id.get(r.parent)
        if parent is not None and r.id in parent.blocked_by:
            failures.append(
                CheckResult(name, False, details=f"{parent.id} is blocked by its own child {r.id}", suggestion=hint)
            )
    return failures or _passed(name)


def check_parent_done_open_children(view: _LogView) -> list[CheckResult]:
    name = "Parent done with open children"
    relations = view.relations()
    by_id = {r.id: r for r in relations}
    failures = [
        CheckResult(
            name,
            False,
            severity="warning",
            details=f"{r.parent} is done but has open child {r.id}",
            suggestion="Review whether parent was completed prematurely",
        )
        for r in relations
        if r.parent
        and r.status in ("open", "in_progress")
        and (parent := by_id.get(r.parent)) is not None
        and parent.status == "done"
    ]
    return failures or _passed(name)


CHECKS: tuple[Callable[[_LogView], list[CheckResult]], ...] = (
    check_cache,
    check_jsonl_syntax,
    check_id_format,
    check_field_values,
    check_duplicate_ids,
    check_orphaned_parents,
    check_orphaned_dependencies,
    check_self_dependencies,
    check_dependency_cycles,
    check_child_blocked_by_parent,
    check_parent_done_open_children,
)

_CHECK_NAMES = (
    "Cache",
    "JSONL syntax",
    "ID format",
    "Field values",
    "ID uniqueness",
    "Orphaned parents",
    "Orphaned dependencies",
    "Self-referential dependencies",
    "Dependency cycles",
    "Child blocked by parent",
    "Parent done with open children",
)


def run_diagnostics(tick_dir: Path) -> DiagnosticReport:
    """Run every check against *tick_dir* and collect the results in order."""
    try:
        data = (tick_dir / TASKS_FILENAME).read_bytes()
    except OSError as e:
        logger.warning("Cannot read %s: %s", tick_dir / TASKS_FILENAME, e)
        return DiagnosticReport(
            [
                CheckResult(name, False, details=f"{TASKS_FILENAME} not found or unreadable", suggestion=_MISSING_LOG_HINT)
                for name in _CHECK_NAMES
            ]
        )
    prefix = read_config(tick_dir).get("prefix", DEFAULT_PREFIX)
    view = _LogView(tick_dir=tick_dir, prefix=prefix, data=data, records=_scan(data))
    report = DiagnosticReport()
    for check in CHECKS:
        report.results.extend(check(view))
    return report
