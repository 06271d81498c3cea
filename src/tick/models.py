"""Task and Note data classes, id generation and timestamp helpers."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tick.errors import TickError
from tick.types.core import NoteDict, TaskDict

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
ID_HEX_LENGTH = 6
_MAX_ID_ATTEMPTS = 5

# Key order of a serialized log record. Optional keys are omitted when unset.
RECORD_KEYS = (
    "id",
    "title",
    "status",
    "priority",
    "type",
    "tags",
    "description",
    "blocked_by",
    "parent",
    "notes",
    "created",
    "updated",
    "closed",
)


def now_timestamp() -> str:
    """Current UTC time truncated to seconds, in log format."""
    return datetime.now(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a log timestamp. Raises ValueError when malformed."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def normalize_id(task_id: str) -> str:
    return task_id.strip().lower()


def generate_id(prefix: str, exists: Callable[[str], bool]) -> str:
    """Generate ``<prefix>-<6 hex>`` that *exists* reports as unused."""
    for _ in range(_MAX_ID_ATTEMPTS):
        candidate = f"{prefix}-{uuid.uuid4().hex[:ID_HEX_LENGTH]}"
        if not exists(candidate):
            return candidate
    msg = f"Failed to generate unique ID after {_MAX_ID_ATTEMPTS} attempts - task list may be too large"
    raise TickError(msg)


@dataclass
class Note:
    text: str
    created: str

    def to_dict(self) -> NoteDict:
        return {"text": self.text, "created": self.created}


@dataclass
class Task:
    id: str
    title: str
    status: str = "open"
    priority: int = 2
    type: str = ""
    tags: list[str] = field(default_factory=list)
    description: str = ""
    blocked_by: list[str] = field(default_factory=list)
    parent: str | None = None
    notes: list[Note] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    closed: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status in ("done", "cancelled")

    def touch(self, now: str | None = None) -> None:
        self.updated = now or now_timestamp()

    def to_dict(self) -> TaskDict:
        """Full representation; unset optional fields are present as empty values."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "tags": list(self.tags),
            "description": self.description,
            "blocked_by": list(self.blocked_by),
            "parent": self.parent,
            "notes": [n.to_dict() for n in self.notes],
            "created": self.created,
            "updated": self.updated,
            "closed": self.closed,
        }

    def to_record(self) -> dict[str, Any]:
        """Log representation: key order fixed, optional keys omitted when unset."""
        full: dict[str, Any] = dict(self.to_dict())
        return {key: full[key] for key in RECORD_KEYS if full[key] not in (None, "", [])}

    @classmethod
    def from_record(cls, record: object) -> Task:
        """Build a Task from a decoded log record. Raises ValueError describing the first problem."""
        if not isinstance(record, dict):
            msg = f"expected a JSON object, got {type(record).__name__}"
            raise ValueError(msg)  # noqa: TRY004
        for key in ("id", "title", "status", "created", "updated"):
            value = record.get(key)
            if not isinstance(value, str) or not value:
                msg = f"missing or invalid required field '{key}'"
                raise ValueError(msg)
        priority = record.get("priority", 2)
        if isinstance(priority, bool) or not isinstance(priority, int):
            msg = f"invalid priority {priority!r}"
            raise ValueError(msg)
        for key in ("created", "updated", "closed"):
            if record.get(key) is not None:
                _check_timestamp(record[key], key)

        notes: list[Note] = []
        for raw in record.get("notes") or []:
            if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
                msg = "invalid note entry"
                raise ValueError(msg)
            _check_timestamp(raw.get("created"), "note created")
            notes.append(Note(text=raw["text"], created=raw["created"]))

        return cls(
            id=record["id"],
            title=record["title"],
            status=record["status"],
            priority=priority,
            type=_optional_str(record, "type"),
            tags=_str_list(record, "tags"),
            description=_optional_str(record, "description"),
            blocked_by=_str_list(record, "blocked_by"),
            parent=_optional_str(record, "parent") or None,
            notes=notes,
            created=record["created"],
            updated=record["updated"],
            closed=record.get("closed") or None,
        )


def _check_timestamp(value: object, name: str) -> None:
    if not isinstance(value, str):
        msg = f"invalid {name} timestamp {value!r}"
        raise ValueError(msg)  # noqa: TRY004
    try:
        parse_timestamp(value)
    except ValueError:
        msg = f"invalid {name} timestamp {value!r}"
        raise ValueError(msg) from None


def _optional_str(record: dict[str, Any], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        msg = f"field '{key}' must be a string"
        raise ValueError(msg)  # noqa: TRY004
    return value


def _str_list(record: dict[str, Any], key: str) -> list[str]:
    value = record.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(i, str) for i in value):
        msg = f"field '{key}' must be a list of strings"
        raise ValueError(msg)
    return list(value)
