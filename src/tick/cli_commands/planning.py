"""CLI commands for planning: ready, blocked, dep add/rm, stats."""

from __future__ import annotations

import click

from tick.cli_commands.tasks import echo_summaries
from tick.cli_common import dump_json, get_store, is_quiet, reporting_errors
from tick.types.queries import TaskSummary

PRIORITY_LABELS = {
    0: "P0 (critical)",
    1: "P1 (high)",
    2: "P2 (medium)",
    3: "P3 (low)",
    4: "P4 (backlog)",
}


def _echo_list(tasks: list[TaskSummary], as_json: bool, label: str) -> None:
    if as_json:
        dump_json(tasks)
        return
    if is_quiet():
        for t in tasks:
            click.echo(t["id"])
        return
    echo_summaries(tasks)
    if tasks:
        click.echo(f"\n{len(tasks)} {label}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def ready(as_json: bool) -> None:
    """Show tasks ready to work on (no open blockers, no open children)."""
    with get_store(as_json) as store, reporting_errors(as_json):
        tasks = store.get_ready()
    _echo_list(tasks, as_json, "ready")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def blocked(as_json: bool) -> None:
    """Show open tasks that are waiting on something."""
    with get_store(as_json) as store, reporting_errors(as_json):
        tasks = store.get_blocked()
    _echo_list(tasks, as_json, "blocked")


@click.group()
def dep() -> None:
    """Manage blocked-by dependencies."""


@dep.command("add")
@click.argument("task_id")
@click.argument("blocker_ids")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def dep_add(task_id: str, blocker_ids: str, as_json: bool) -> None:
    """Make TASK_ID blocked by BLOCKER_IDS (comma-separated)."""
    with get_store(as_json) as store, reporting_errors(as_json):
        resolved = store.resolve_id(task_id)
        added = store.add_dependency(resolved, blocker_ids)
    if as_json:
        dump_json({"id": resolved, "added": added})
    elif not is_quiet():
        for blocker_id in added:
            click.echo(f"Dependency added: {resolved} blocked by {blocker_id}")


@dep.command("rm")
@click.argument("task_id")
@click.argument("blocker_ids")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def dep_rm(task_id: str, blocker_ids: str, as_json: bool) -> None:
    """Stop TASK_ID being blocked by BLOCKER_IDS (comma-separated)."""
    with get_store(as_json) as store, reporting_errors(as_json):
        resolved = store.resolve_id(task_id)
        removed = store.remove_dependency(resolved, blocker_ids)
    if as_json:
        dump_json({"id": resolved, "removed": removed})
    elif not is_quiet():
        for blocker_id in removed:
            click.echo(f"Dependency removed: {resolved} no longer blocked by {blocker_id}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(as_json: bool) -> None:
    """Show project statistics."""
    with get_store(as_json) as store, reporting_errors(as_json):
        s = store.get_stats()
    if as_json:
        dump_json(s)
        return
    by_status = s["by_status"]
    click.echo(f"Total:          {s['total']}")
    click.echo("\nStatus:")
    click.echo(f"  Open:         {by_status['open']}")
    click.echo(f"  In Progress:  {by_status['in_progress']}")
    click.echo(f"  Done:         {by_status['done']}")
    click.echo(f"  Cancelled:    {by_status['cancelled']}")
    click.echo("\nWorkflow:")
    click.echo(f"  Ready:        {s['ready']}")
    click.echo(f"  Blocked:      {s['blocked']}")
    click.echo("\nPriority:")
    for level, label in PRIORITY_LABELS.items():
        click.echo(f"  {label + ':':<16}{s['by_priority'][level]}")
