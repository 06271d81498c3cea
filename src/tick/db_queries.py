"""Read-side mixin: list, detail, stats, and ready/blocked classification.

Every method runs inside ``self.query()``, which holds the shared lock and
guarantees the cache matches the log. The SQL conditions that define
"ready" and "blocked" live here once and are reused by list, stats, and the
dedicated ready/blocked queries.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

from tick.db_base import StoreMixinProtocol
from tick.errors import ValidationError
from tick.resolver import resolve_id
from tick.types.queries import RelatedTask, StatsResult, TaskDetail, TaskSummary
from tick.validation import MAX_PRIORITY, MIN_PRIORITY, normalize_tag, validate_priority, validate_status

# (task_id, ancestor) for every ancestor in each task's parent chain.
# UNION (not UNION ALL) keeps the walk finite even on a looping chain.
LINEAGE_CTE = """\
WITH RECURSIVE lineage(task_id, ancestor) AS (
    SELECT id, parent FROM tasks WHERE parent IS NOT NULL
    UNION
    SELECT l.task_id, p.parent FROM lineage l
    JOIN tasks p ON p.id = l.ancestor
    WHERE p.parent IS NOT NULL
)
"""

_UNCLOSED_BLOCKER = """EXISTS (
    SELECT 1 FROM dependencies d
    JOIN tasks blocker ON blocker.id = d.blocked_by
    WHERE d.task_id = t.id AND blocker.status NOT IN ('done', 'cancelled')
)"""

_OPEN_CHILD = """EXISTS (
    SELECT 1 FROM tasks child
    WHERE child.parent = t.id AND child.status IN ('open', 'in_progress')
)"""

_ANCESTOR_BLOCKED = """EXISTS (
    SELECT 1 FROM lineage l
    JOIN dependencies d ON d.task_id = l.ancestor
    JOIN tasks blocker ON blocker.id = d.blocked_by
    WHERE l.task_id = t.id AND blocker.status NOT IN ('done', 'cancelled')
)"""

# All fragments assume the outer query aliases tasks as "t" and is prefixed by LINEAGE_CTE.
READY_CONDITIONS: tuple[str, ...] = (
    "t.status = 'open'",
    f"NOT {_UNCLOSED_BLOCKER}",
    f"NOT {_OPEN_CHILD}",
    f"NOT {_ANCESTOR_BLOCKED}",
)

BLOCKED_CONDITIONS: tuple[str, ...] = (
    "t.status = 'open'",
    f"({_UNCLOSED_BLOCKER} OR {_OPEN_CHILD} OR {_ANCESTOR_BLOCKED})",
)

_ORDER_BY = "ORDER BY t.priority ASC, t.created ASC, t.id ASC"
_SUMMARY_COLUMNS = "t.id, t.title, t.status, t.priority, t.type, t.parent, t.created"


def _where(conditions: Sequence[str]) -> str:
    return f"WHERE {' AND '.join(conditions)}" if conditions else ""


def _summary(row: sqlite3.Row) -> TaskSummary:
    return TaskSummary(
        id=row["id"],
        title=row["title"],
        status=row["status"],
        priority=row["priority"],
        type=row["type"],
        parent=row["parent"],
        created=row["created"],
    )


def _related(rows: list[sqlite3.Row]) -> list[RelatedTask]:
    return [RelatedTask(id=r["id"], title=r["title"], status=r["status"]) for r in rows]


def all_task_ids(conn: sqlite3.Connection) -> list[str]:
    return [r["id"] for r in conn.execute("SELECT id FROM tasks").fetchall()]


def _tag_group_condition(groups: Sequence[Sequence[str]], params: list[Any]) -> str | None:
    """AND within a group, OR across groups."""
    clauses: list[str] = []
    for group in groups:
        tags = sorted({normalize_tag(t) for t in group if t.strip()})
        if not tags:
            continue
        placeholders = ",".join("?" * len(tags))
        clauses.append(
            f"(SELECT COUNT(DISTINCT tt.tag) FROM task_tags tt WHERE tt.task_id = t.id AND tt.tag IN ({placeholders})) = ?"
        )
        params.extend([*tags, len(tags)])
    if not clauses:
        return None
    return "(" + " OR ".join(clauses) + ")"


class QueryMixin(StoreMixinProtocol):
    """Read-only queries over the task cache. Mixed into TickStore."""

    def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: int | None = None,
        task_type: str | None = None,
        parent: str | None = None,
        tag_groups: Sequence[Sequence[str]] | None = None,
        ready: bool = False,
        blocked: bool = False,
    ) -> list[TaskSummary]:
        """Filter tasks. ``parent`` scopes to all descendants of that task, excluding itself."""
        if ready and blocked:
            msg = "--ready and --blocked are mutually exclusive"
            raise ValidationError(msg)
        if status is not None:
            validate_status(status)
        if priority is not None:
            validate_priority(priority)

        def run(conn: sqlite3.Connection) -> list[TaskSummary]:
            conditions: list[str] = []
            params: list[Any] = []
            if ready:
                conditions.extend(READY_CONDITIONS)
            if blocked:
                conditions.extend(BLOCKED_CONDITIONS)
            if status is not None:
                conditions.append("t.status = ?")
                params.append(status)
            if priority is not None:
                conditions.append("t.priority = ?")
                params.append(priority)
            if task_type:
                conditions.append("t.type = ?")
                params.append(task_type.strip().lower())
            if parent is not None:
                scope = resolve_id(all_task_ids(conn), parent, self.prefix)
                conditions.append("t.id IN (SELECT task_id FROM lineage WHERE ancestor = ?)")
                params.append(scope)
            if tag_groups:
                tag_clause = _tag_group_condition(tag_groups, params)
                if tag_clause is not None:
                    conditions.append(tag_clause)
            sql = f"{LINEAGE_CTE}SELECT {_SUMMARY_COLUMNS} FROM tasks t {_where(conditions)} {_ORDER_BY}"
            return [_summary(r) for r in conn.execute(sql, params).fetchall()]

        return self.query(run)

    def get_ready(self) -> list[TaskSummary]:
        """Open tasks that can be worked on now."""
        return self.list_tasks(ready=True)

    def get_blocked(self) -> list[TaskSummary]:
        """Open tasks waiting on a blocker, an open child, or a blocked ancestor."""
        return self.list_tasks(blocked=True)

    def get_detail(self, task_id: str) -> TaskDetail:
        def run(conn: sqlite3.Connection) -> TaskDetail:
            resolved = resolve_id(all_task_ids(conn), task_id, self.prefix)
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (resolved,)).fetchone()
            blockers = conn.execute(
                "SELECT t.id, t.title, t.status FROM dependencies d JOIN tasks t ON t.id = d.blocked_by "
                "WHERE d.task_id = ? ORDER BY t.id",
                (resolved,),
            ).fetchall()
            children = conn.execute(
                f"SELECT t.id, t.title, t.status FROM tasks t WHERE t.parent = ? {_ORDER_BY}",
                (resolved,),
            ).fetchall()
            tags = conn.execute("SELECT tag FROM task_tags WHERE task_id = ? ORDER BY rowid", (resolved,)).fetchall()
            notes = conn.execute(
                "SELECT text, created FROM task_notes WHERE task_id = ? ORDER BY position",
                (resolved,),
            ).fetchall()
            parent_title = None
            if row["parent"]:
                parent_row = conn.execute("SELECT title FROM tasks WHERE id = ?", (row["parent"],)).fetchone()
                parent_title = parent_row["title"] if parent_row is not None else None
            return TaskDetail(
                id=row["id"],
                title=row["title"],
                status=row["status"],
                priority=row["priority"],
                type=row["type"],
                tags=[r["tag"] for r in tags],
                description=row["description"],
                parent=row["parent"],
                parent_title=parent_title,
                created=row["created"],
                updated=row["updated"],
                closed=row["closed"],
                blocked_by=_related(blockers),
                children=_related(children),
                notes=[{"text": r["text"], "created": r["created"]} for r in notes],
            )

        return self.query(run)

    def get_stats(self) -> StatsResult:
        def run(conn: sqlite3.Connection) -> StatsResult:
            by_status = dict.fromkeys(("open", "in_progress", "done", "cancelled"), 0)
            # Hand-edited values outside the known sets are left to `tick doctor`.
            for r in conn.execute("SELECT status, COUNT(*) AS n FROM tasks GROUP BY status").fetchall():
                if r["status"] in by_status:
                    by_status[r["status"]] = r["n"]
            by_priority = dict.fromkeys(range(MIN_PRIORITY, MAX_PRIORITY + 1), 0)
            for r in conn.execute("SELECT priority, COUNT(*) AS n FROM tasks GROUP BY priority").fetchall():
                if r["priority"] in by_priority:
                    by_priority[r["priority"]] = r["n"]
            total = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0]
            ready = conn.execute(
                f"{LINEAGE_CTE}SELECT COUNT(*) FROM tasks t {_where(READY_CONDITIONS)}"
            ).fetchone()[0]
            blocked = conn.execute(
                f"{LINEAGE_CTE}SELECT COUNT(*) FROM tasks t {_where(BLOCKED_CONDITIONS)}"
            ).fetchone()[0]
            return StatsResult(
                total=total,
                by_status=by_status,
                by_priority=by_priority,
                ready=ready,
                blocked=blocked,
            )

        return self.query(run)
