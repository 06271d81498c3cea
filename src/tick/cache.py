"""SQLite query cache derived from the task log.

The cache is a disposable projection of tasks.jsonl. A ``jsonl_hash``
watermark in the ``metadata`` table records the SHA-256 of the log bytes the
cache was built from; any mismatch means the cache is stale and must be
rebuilt before it is read. A cache file SQLite cannot read is deleted and
recreated.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path

from tick.models import Task

logger = logging.getLogger(__name__)

HASH_KEY = "jsonl_hash"

TASK_TABLES = ("tasks", "dependencies", "task_tags", "task_notes")

SCHEMA_SQL = """\
CREATE TABLE tasks (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    status      TEXT NOT NULL,
    priority    INTEGER NOT NULL,
    type        TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    parent      TEXT,
    created     TEXT NOT NULL,
    updated     TEXT NOT NULL,
    closed      TEXT
);

CREATE INDEX idx_tasks_parent ON tasks(parent);
CREATE INDEX idx_tasks_status_priority ON tasks(status, priority, created);

CREATE TABLE dependencies (
    task_id    TEXT NOT NULL,
    blocked_by TEXT NOT NULL,
    PRIMARY KEY (task_id, blocked_by)
);

CREATE INDEX idx_deps_blocked_by ON dependencies(blocked_by);

CREATE TABLE task_tags (
    task_id TEXT NOT NULL,
    tag     TEXT NOT NULL,
    PRIMARY KEY (task_id, tag)
);

CREATE INDEX idx_tags_tag ON task_tags(tag);

CREATE TABLE task_notes (
    task_id  TEXT NOT NULL,
    position INTEGER NOT NULL,
    text     TEXT NOT NULL,
    created  TEXT NOT NULL,
    PRIMARY KEY (task_id, position)
);
"""

_METADATA_SQL = "CREATE TABLE IF NOT EXISTS metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL)"


def compute_hash(log_bytes: bytes) -> str:
    return hashlib.sha256(log_bytes).hexdigest()


class TaskCache:
    """Connection wrapper around .tick/cache.db.

    Use :meth:`open` rather than the constructor: it checks the file and
    replaces it when SQLite reports it as corrupt.
    """

    def __init__(self, path: Path, conn: sqlite3.Connection) -> None:
        self.path = path
        self.conn = conn

    @classmethod
    def open(cls, path: Path, *, recover: bool = True) -> TaskCache:
        """Connect to the cache. With *recover*, an unreadable file is deleted and recreated.

        Recovery writes to disk, so callers holding only the shared lock pass
        ``recover=False`` and treat the resulting DatabaseError as staleness.
        """
        try:
            return cls(path, _connect(path, verify=True))
        except sqlite3.DatabaseError as e:
            if not recover:
                raise
            logger.warning("Cache %s is unreadable (%s); recreating it", path, e)
            remove_cache_files(path)
            return cls(path, _connect(path, verify=False))

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> TaskCache:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def stored_hash(self) -> str | None:
        """Watermark the cache was built from, or None when it has never been built."""
        has_tables = self.conn.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name IN (?, ?, ?, ?, ?)",
            (*TASK_TABLES, "metadata"),
        ).fetchone()[0]
        if has_tables != len(TASK_TABLES) + 1:
            return None
        row = self.conn.execute("SELECT value FROM metadata WHERE key = ?", (HASH_KEY,)).fetchone()
        return row[0] if row is not None else None

    def is_fresh(self, log_bytes: bytes) -> bool:
        return self.stored_hash() == compute_hash(log_bytes)

    def rebuild(self, tasks: Iterable[Task], log_bytes: bytes) -> None:
        """Drop and repopulate every task table plus the watermark in one transaction."""
        tasks = list(tasks)
        conn = self.conn
        conn.execute("BEGIN IMMEDIATE")
        try:
            for table in TASK_TABLES:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.execute(_METADATA_SQL)
            for statement in SCHEMA_SQL.split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.executemany(
                "INSERT INTO tasks (id, title, status, priority, type, description, parent, created, updated, closed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (t.id, t.title, t.status, t.priority, t.type, t.description, t.parent, t.created, t.updated, t.closed)
                    for t in tasks
                ],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO dependencies (task_id, blocked_by) VALUES (?, ?)",
                [(t.id, blocker) for t in tasks for blocker in t.blocked_by],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO task_tags (task_id, tag) VALUES (?, ?)",
                [(t.id, tag) for t in tasks for tag in t.tags],
            )
            conn.executemany(
                "INSERT INTO task_notes (task_id, position, text, created) VALUES (?, ?, ?, ?)",
                [(t.id, pos, note.text, note.created) for t in tasks for pos, note in enumerate(t.notes, start=1)],
            )
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (HASH_KEY, compute_hash(log_bytes)),
            )
        except BaseException:
            conn.rollback()
            raise
        conn.commit()
        logger.debug("Rebuilt cache %s with %d tasks", self.path, len(tasks))

    def ensure_fresh(self, log_bytes: bytes, load: Callable[[], list[Task]]) -> bool:
        """Rebuild from ``load()`` when the watermark does not match. Returns True if rebuilt.

        The caller must hold the exclusive project lock.
        """
        if self.is_fresh(log_bytes):
            return False
        self.rebuild(load(), log_bytes)
        return True


def _connect(path: Path, *, verify: bool) -> sqlite3.Connection:
    # Autocommit mode; rebuild() manages its own transaction.
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    if verify:
        try:
            conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
        except sqlite3.DatabaseError:
            conn.close()
            raise
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def remove_cache_files(path: Path) -> None:
    """Delete the cache database and any journal left next to it."""
    for candidate in (path, path.with_name(path.name + "-journal")):
        with contextlib.suppress(FileNotFoundError):
            candidate.unlink()
