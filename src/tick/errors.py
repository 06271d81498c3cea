"""Error taxonomy shared by the store, the query layer, and the CLI.

Each error also derives from the builtin the rest of the code base would
naturally raise (``KeyError`` for lookups, ``ValueError`` for bad input,
``OSError`` for lock failures) so callers can catch either form.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tick.jsonl import ParseIssue


class TickError(Exception):
    """Base class for every error raised by tick."""

    def __str__(self) -> str:
        # KeyError.__str__ wraps the message in quotes; keep messages verbatim.
        return str(self.args[0]) if self.args else ""


class TaskNotFoundError(TickError, KeyError):
    """An id or id prefix matched no task."""

    def __init__(self, task_id: str, *, context: str = "") -> None:
        self.task_id = task_id
        suffix = f" (referenced in {context})" if context else ""
        super().__init__(f"Task '{task_id}' not found{suffix}")


class AmbiguousIDError(TickError, ValueError):
    """An id prefix matched more than one task."""

    def __init__(self, prefix: str, candidates: list[str]) -> None:
        self.prefix = prefix
        self.candidates = sorted(candidates)
        super().__init__(f"Ambiguous ID '{prefix}' matches {len(self.candidates)} tasks: {', '.join(self.candidates)}")


class ValidationError(TickError, ValueError):
    """A field value or a graph invariant was rejected."""


class TransitionError(ValidationError):
    """A status transition is not allowed from the task's current status."""


class LogParseError(TickError, ValueError):
    """The task log contains lines that cannot be parsed."""

    def __init__(self, path: str, issues: list[ParseIssue]) -> None:
        self.path = path
        self.issues = issues
        first = issues[0] if issues else None
        detail = f": line {first.line}: {first.message}" if first is not None else ""
        more = f" (and {len(issues) - 1} more)" if len(issues) > 1 else ""
        super().__init__(f"Cannot parse {path}{detail}{more}. Run 'tick doctor' for details.")


class LockError(TickError, OSError):
    """The project lock file could not be opened or locked."""


class LockTimeoutError(LockError):
    """The project lock was not acquired within the requested timeout."""


class ProjectNotFoundError(TickError, FileNotFoundError):
    """No .tick/ directory was found."""
