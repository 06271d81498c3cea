"""CLI commands for task CRUD: create, show, list, update, start/done/cancel/reopen, remove, note."""

from __future__ import annotations

import sys

import click

from tick.cli_common import dump_json, get_store, is_quiet, reporting_errors
from tick.types.queries import TaskDetail, TaskSummary
from tick.validation import split_csv

_ARROW = "→"


def _split_tags(values: tuple[str, ...]) -> list[str]:
    return [tag for value in values for tag in split_csv(value)]


def echo_summaries(tasks: list[TaskSummary], *, empty: str = "No tasks found.") -> None:
    if not tasks:
        click.echo(empty)
        return
    for t in tasks:
        kind = f" [{t['type']}]" if t["type"] else ""
        click.echo(f"P{t['priority']} {t['id']}{kind} {t['status']:<12} {t['title']}")


def _echo_detail(d: TaskDetail) -> None:
    click.echo(f"ID:       {d['id']}")
    click.echo(f"Title:    {d['title']}")
    click.echo(f"Status:   {d['status']}")
    click.echo(f"Priority: P{d['priority']}")
    if d["type"]:
        click.echo(f"Type:     {d['type']}")
    if d["tags"]:
        click.echo(f"Tags:     {', '.join(d['tags'])}")
    if d["parent"]:
        title = f"  {d['parent_title']}" if d["parent_title"] else ""
        click.echo(f"Parent:   {d['parent']}{title}")
    click.echo(f"Created:  {d['created']}")
    click.echo(f"Updated:  {d['updated']}")
    if d["closed"]:
        click.echo(f"Closed:   {d['closed']}")
    if d["blocked_by"]:
        click.echo("\nBlocked by:")
        for r in d["blocked_by"]:
            click.echo(f"  {r['id']}  {r['title']} ({r['status']})")
    if d["children"]:
        click.echo("\nChildren:")
        for r in d["children"]:
            click.echo(f"  {r['id']}  {r['title']} ({r['status']})")
    if d["description"]:
        click.echo("\nDescription:")
        for line in d["description"].splitlines():
            click.echo(f"  {line}")
    if d["notes"]:
        click.echo("\nNotes:")
        for i, note in enumerate(d["notes"], start=1):
            click.echo(f"  {i}. [{note['created']}] {note['text']}")


@click.command()
@click.argument("title")
@click.option("--priority", "-p", default=None, type=int, help="Priority 0-4 (0=critical, default 2)")
@click.option("--description", "-d", default="", help="Description")
@click.option("--type", "task_type", default="", help="Task type (bug, feature, task, chore)")
@click.option("--tag", "-t", "tags", multiple=True, help="Tags (repeatable or comma-separated)")
@click.option("--parent", default=None, help="Parent task ID")
@click.option("--blocked-by", default=None, help="Comma-separated IDs that block this task")
@click.option("--blocks", default=None, help="Comma-separated IDs this task blocks")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def create(
    title: str,
    priority: int | None,
    description: str,
    task_type: str,
    tags: tuple[str, ...],
    parent: str | None,
    blocked_by: str | None,
    blocks: str | None,
    as_json: bool,
) -> None:
    """Create a task."""
    with get_store(as_json) as store, reporting_errors(as_json):
        task = store.create_task(
            title,
            priority=priority,
            description=description,
            task_type=task_type,
            tags=_split_tags(tags),
            parent=parent,
            blocked_by=blocked_by,
            blocks=blocks,
        )
    if as_json:
        dump_json(task.to_dict())
    elif is_quiet():
        click.echo(task.id)
    else:
        click.echo(f"Created {task.id}: {task.title}")


@click.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(task_id: str, as_json: bool) -> None:
    """Show task details."""
    with get_store(as_json) as store, reporting_errors(as_json):
        detail = store.get_detail(task_id)
    if as_json:
        dump_json(detail)
        return
    _echo_detail(detail)


@click.command("list")
@click.option("--status", default=None, help="Filter by status")
@click.option("--priority", "-p", default=None, type=int, help="Filter by priority")
@click.option("--type", "task_type", default=None, help="Filter by type")
@click.option("--parent", default=None, help="Only descendants of this task")
@click.option(
    "--tag",
    "-t",
    "tag_groups",
    multiple=True,
    help="Tags a task must all have (comma-separated); repeat to OR groups",
)
@click.option("--ready", is_flag=True, help="Only tasks ready to work on")
@click.option("--blocked", is_flag=True, help="Only blocked tasks")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_tasks(
    status: str | None,
    priority: int | None,
    task_type: str | None,
    parent: str | None,
    tag_groups: tuple[str, ...],
    ready: bool,
    blocked: bool,
    as_json: bool,
) -> None:
    """List tasks with optional filters."""
    with get_store(as_json) as store, reporting_errors(as_json):
        tasks = store.list_tasks(
            status=status,
            priority=priority,
            task_type=task_type,
            parent=parent,
            tag_groups=[split_csv(g) for g in tag_groups],
            ready=ready,
            blocked=blocked,
        )
    if as_json:
        dump_json(tasks)
        return
    if is_quiet():
        for t in tasks:
            click.echo(t["id"])
        return
    echo_summaries(tasks)


@click.command()
@click.argument("task_id")
@click.option("--title", default=None, help="New title")
@click.option("--description", "-d", default=None, help="New description (empty string to clear)")
@click.option("--priority", "-p", default=None, type=int, help="New priority")
@click.option("--type", "task_type", default=None, help="New type (empty string to clear)")
@click.option("--tags", default=None, help="Replace tags, comma-separated (empty string to clear)")
@click.option("--parent", default=None, help="New parent ID (empty string to clear)")
@click.option("--blocks", default=None, help="Comma-separated IDs this task should block")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def update(
    task_id: str,
    title: str | None,
    description: str | None,
    priority: int | None,
    task_type: str | None,
    tags: str | None,
    parent: str | None,
    blocks: str | None,
    as_json: bool,
) -> None:
    """Update a task."""
    with get_store(as_json) as store, reporting_errors(as_json):
        task = store.update_task(
            task_id,
            title=title,
            description=description,
            priority=priority,
            task_type=task_type,
            tags=split_csv(tags) if tags is not None else None,
            parent=parent,
            blocks=blocks,
        )
    if as_json:
        dump_json(task.to_dict())
    elif not is_quiet():
        click.echo(f"Updated {task.id}: {task.title} [{task.status}]")


def _transition_command(command: str, help_text: str) -> click.Command:
    @click.command(command, help=help_text)
    @click.argument("task_ids", nargs=-1, required=True)
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON")
    def run(task_ids: tuple[str, ...], as_json: bool) -> None:
        with get_store(as_json) as store, reporting_errors(as_json):
            outcome = store.transition_many(task_ids, command)
        if as_json:
            dump_json(
                [
                    {"id": task.id, "title": task.title, "from": result.old_status, "to": result.new_status}
                    for task, result in outcome
                ]
            )
        elif not is_quiet():
            for task, result in outcome:
                click.echo(f"{task.id}: {result.old_status} {_ARROW} {result.new_status}")

    return run


start = _transition_command("start", "Mark open tasks as in progress.")
done = _transition_command("done", "Mark tasks as done.")
cancel = _transition_command("cancel", "Cancel tasks.")
reopen = _transition_command("reopen", "Reopen done or cancelled tasks.")

TRANSITION_COMMANDS = [start, done, cancel, reopen]


@click.command()
@click.argument("task_ids", nargs=-1, required=True)
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def remove(task_ids: tuple[str, ...], force: bool, as_json: bool) -> None:
    """Delete tasks and drop them from other tasks' dependencies."""
    with get_store(as_json) as store, reporting_errors(as_json):
        if not force:
            for task_id in task_ids:
                detail = store.get_detail(task_id)
                if not click.confirm(f'Remove task {detail["id"]} "{detail["title"]}"?', err=True):
                    click.echo("Aborted.", err=True)
                    sys.exit(1)
        result = store.remove_tasks(list(task_ids))
    if as_json:
        dump_json({"removed": result.removed, "deps_updated": result.deps_updated})
        return
    if is_quiet():
        return
    for r in result.removed:
        click.echo(f"Removed {r['id']}: {r['title']}")
    if result.deps_updated:
        click.echo(f"Updated dependencies on: {', '.join(result.deps_updated)}")


@click.group()
def note() -> None:
    """Add or remove task notes."""


@note.command("add")
@click.argument("task_id")
@click.argument("text", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def note_add(task_id: str, text: tuple[str, ...], as_json: bool) -> None:
    """Append a note to a task."""
    with get_store(as_json) as store, reporting_errors(as_json):
        added = store.add_note(task_id, " ".join(text))
        resolved = store.resolve_id(task_id)
    if as_json:
        dump_json({"id": resolved, "note": added.to_dict()})
    elif not is_quiet():
        click.echo(f"Note added to {resolved}")


@note.command("remove")
@click.argument("task_id")
@click.argument("index", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def note_remove(task_id: str, index: int, as_json: bool) -> None:
    """Remove a note by its 1-based position."""
    with get_store(as_json) as store, reporting_errors(as_json):
        removed = store.remove_note(task_id, index)
        resolved = store.resolve_id(task_id)
    if as_json:
        dump_json({"id": resolved, "removed": removed.to_dict()})
    elif not is_quiet():
        click.echo(f"Note {index} removed from {resolved}")
