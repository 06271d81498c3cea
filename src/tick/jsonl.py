"""Task log storage: one JSON object per line in .tick/tasks.jsonl.

The log is the source of truth. Reads are tolerant (malformed lines are
collected as :class:`ParseIssue` entries instead of aborting) so diagnostics
can report every problem in one pass. Writes always replace the whole file
atomically via a temp file + ``os.replace()``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from tick.errors import LogParseError
from tick.models import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseIssue:
    """A log line that could not be turned into a Task."""

    line: int
    message: str
    raw: str = ""


def serialize_tasks(tasks: Iterable[Task]) -> bytes:
    """Serialize tasks to JSONL bytes, one compact record per line, in list order."""
    lines = [json.dumps(t.to_record(), ensure_ascii=False, separators=(",", ":")) + "\n" for t in tasks]
    return "".join(lines).encode("utf-8")


def parse_tasks(data: bytes) -> tuple[list[Task], list[ParseIssue]]:
    """Parse JSONL bytes. Blank lines are skipped; bad lines become ParseIssues."""
    tasks: list[Task] = []
    issues: list[ParseIssue] = []
    for lineno, raw_line in enumerate(data.split(b"\n"), start=1):
        try:
            line = raw_line.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            issues.append(ParseIssue(lineno, f"invalid UTF-8: {exc.reason}"))
            continue
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            issues.append(ParseIssue(lineno, f"invalid JSON: {exc.msg}", line))
            continue
        try:
            tasks.append(Task.from_record(record))
        except ValueError as exc:
            issues.append(ParseIssue(lineno, str(exc), line))
    return tasks, issues


def read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def read_all(path: Path) -> tuple[list[Task], list[ParseIssue]]:
    """Read every task in the log plus the issues found on unparseable lines."""
    return parse_tasks(read_bytes(path))


def load_tasks(path: Path, data: bytes | None = None) -> list[Task]:
    """Strict read used by the store: any malformed line raises LogParseError.

    Writing back a log whose bad lines were skipped would silently drop
    records, so mutations and queries refuse to run on a damaged log.
    """
    tasks, issues = parse_tasks(read_bytes(path) if data is None else data)
    if issues:
        raise LogParseError(str(path), issues)
    return tasks


def write_all(path: Path, tasks: Iterable[Task]) -> bytes:
    """Atomically replace *path* with the serialized tasks. Returns the bytes written."""
    data = serialize_tasks(tasks)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    logger.debug("Wrote %d bytes to %s", len(data), path)
    return data
