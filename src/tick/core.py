"""Project discovery and the TickStore read/write pipeline.

Convention-based discovery: each project has a ``.tick/`` directory containing
``tasks.jsonl`` (the task log, source of truth), ``cache.db`` (disposable
SQLite query cache), ``lock`` (advisory lock file), ``config.json`` (project
prefix, version) and ``tick.log``.

Every read goes through :meth:`TickStore.query` and every write through
:meth:`TickStore.mutate`. Both are safe to call from many processes at once.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from tick.cache import TaskCache, remove_cache_files
from tick.db_mutations import MutationsMixin
from tick.db_queries import QueryMixin, all_task_ids
from tick.errors import ProjectNotFoundError, TickError
from tick.graph import validate_task_set
from tick.jsonl import load_tasks, read_bytes, write_all
from tick.locking import ProjectLock
from tick.models import Task
from tick.resolver import resolve_id, resolve_many
from tick.types.core import ProjectConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

TICK_DIR_NAME = ".tick"
TASKS_FILENAME = "tasks.jsonl"
CACHE_FILENAME = "cache.db"
LOCK_FILENAME = "lock"
CONFIG_FILENAME = "config.json"
DEFAULT_PREFIX = "tick"
CONFIG_VERSION = 1


def find_tick_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for a .tick/ directory.

    Returns the .tick/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / TICK_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {TICK_DIR_NAME}/ directory found in {current} or any parent. Run 'tick init' first."
    raise ProjectNotFoundError(msg)


def read_config(tick_dir: Path) -> ProjectConfig:
    """Read .tick/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(prefix=DEFAULT_PREFIX, version=CONFIG_VERSION)
    config_path = tick_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        loaded = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    result: ProjectConfig = {**defaults, **loaded}  # type: ignore[typeddict-item]
    return result


def write_config(tick_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .tick/config.json."""
    config_path = tick_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def init_project(project_root: Path, *, prefix: str = DEFAULT_PREFIX) -> Path:
    """Create ``.tick/`` with an empty task log and config. Returns the .tick/ path."""
    prefix = prefix.strip().lower()
    if not prefix or not prefix.replace("_", "").isalnum():
        msg = f"Invalid prefix '{prefix}': use letters, digits and underscores"
        raise TickError(msg)
    tick_dir = project_root.resolve() / TICK_DIR_NAME
    if tick_dir.exists():
        msg = f"Tick already initialized in {project_root.resolve()}"
        raise TickError(msg)
    tick_dir.mkdir(parents=True)
    (tick_dir / TASKS_FILENAME).write_bytes(b"")
    write_config(tick_dir, ProjectConfig(prefix=prefix, version=CONFIG_VERSION))
    logger.info("Initialized tick project in %s", tick_dir)
    return tick_dir


# ---------------------------------------------------------------------------
# TickStore: the read and write pipeline
# ---------------------------------------------------------------------------


class TickStore(QueryMixin, MutationsMixin):
    """Lock-coordinated access to one project's task log and query cache.

    No daemon and no long-lived connections: each ``query``/``mutate`` call
    takes the lock, opens the cache, and releases both before returning.
    """

    def __init__(self, tick_dir: str | Path, *, prefix: str = DEFAULT_PREFIX, lock_timeout: float | None = None) -> None:
        self.tick_dir = Path(tick_dir)
        self.prefix = prefix
        self.tasks_path = self.tick_dir / TASKS_FILENAME
        self.cache_path = self.tick_dir / CACHE_FILENAME
        self.lock = ProjectLock(self.tick_dir / LOCK_FILENAME, timeout=lock_timeout)

    @classmethod
    def from_project(cls, project_path: Path | None = None, *, lock_timeout: float | None = None) -> TickStore:
        """Create a TickStore by discovering .tick/ from project_path (or cwd)."""
        tick_dir = find_tick_root(project_path)
        config = read_config(tick_dir)
        return cls(tick_dir, prefix=config.get("prefix", DEFAULT_PREFIX), lock_timeout=lock_timeout)

    def __enter__(self) -> TickStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Nothing is held between calls; kept for context-manager symmetry with callers."""

    # -- Pipeline ------------------------------------------------------------

    def _read_log(self) -> bytes:
        try:
            return read_bytes(self.tasks_path)
        except FileNotFoundError:
            msg = f"{self.tasks_path} not found. Run 'tick init' first."
            raise ProjectNotFoundError(msg) from None

    def _open_if_fresh(self, data: bytes) -> TaskCache | None:
        """Open the cache for the shared-lock path. None when it is missing, unreadable or stale."""
        if not self.cache_path.exists():
            return None
        cache: TaskCache | None = None
        try:
            cache = TaskCache.open(self.cache_path, recover=False)
            if cache.is_fresh(data):
                return cache
        except sqlite3.DatabaseError as e:
            logger.debug("Cache unreadable under shared lock: %s", e)
        if cache is not None:
            cache.close()
        return None

    def query(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run *fn* against a cache connection that matches the log.

        Runs under the shared lock when the cache is already fresh. Otherwise
        the shared lock is dropped, the exclusive lock taken, freshness
        re-checked, the cache rebuilt, and *fn* run under the exclusive lock.
        """
        with self.lock.shared():
            data = self._read_log()
            cache = self._open_if_fresh(data)
            if cache is not None:
                with cache:
                    return fn(cache.conn)

        with self.lock.exclusive():
            data = self._read_log()
            with TaskCache.open(self.cache_path) as cache:
                if cache.ensure_fresh(data, lambda: load_tasks(self.tasks_path, data)):
                    logger.info("Rebuilt stale cache %s", self.cache_path)
                return fn(cache.conn)

    def mutate(self, fn: Callable[[list[Task]], list[Task]], *, op: str = "mutate") -> list[Task]:
        """Apply *fn* to the full task list and persist the result.

        *fn* receives deep copies and returns the next task list. Anything it
        raises aborts the mutation with nothing written. The new list is
        validated as a whole, written atomically, then mirrored into the cache.
        A cache failure after the log write only logs a warning: the next
        call sees a stale watermark and rebuilds.
        """
        t0 = time.monotonic()
        with self.lock.exclusive():
            data = self._read_log()
            current = load_tasks(self.tasks_path, data)
            with TaskCache.open(self.cache_path) as cache:
                cache.ensure_fresh(data, lambda: current)
                updated = fn(copy.deepcopy(current))
                validate_task_set(updated, before=current)
                written = write_all(self.tasks_path, updated)
                try:
                    cache.rebuild(updated, written)
                except sqlite3.Error as e:
                    logger.warning("Cache update failed after write; it will be rebuilt on next access: %s", e)
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        logger.info("mutation", extra={"op": op, "args_data": {"tasks": len(updated)}, "duration_ms": duration_ms})
        return updated

    def rebuild(self) -> int:
        """Delete the cache and rebuild it from the log. Returns the number of tasks cached."""
        with self.lock.exclusive():
            data = self._read_log()
            tasks = load_tasks(self.tasks_path, data)
            remove_cache_files(self.cache_path)
            with TaskCache.open(self.cache_path) as cache:
                cache.rebuild(tasks, data)
        logger.info("Rebuilt cache %s with %d tasks", self.cache_path, len(tasks))
        return len(tasks)

    def load(self) -> list[Task]:
        """Full task list straight from the log, under the shared lock."""
        with self.lock.shared():
            return load_tasks(self.tasks_path, self._read_log())

    # -- Identifier resolution -----------------------------------------------

    def resolve_id(self, raw: str) -> str:
        return self.query(lambda conn: resolve_id(all_task_ids(conn), raw, self.prefix))

    def resolve_ids(self, raw: str | list[str]) -> list[str]:
        return self.query(lambda conn: resolve_many(all_task_ids(conn), raw, self.prefix))
