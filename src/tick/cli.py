"""CLI for the tick task tracker.

Convention-based: discovers .tick/ by walking up from cwd.

Usage:
    tick init                                    # Initialize .tick/ in cwd
    tick create "Fix the bug" --type=bug -p 1    # Create task
    tick show <id>                               # Show task details
    tick list --status=open --tag=api,auth       # List tasks
    tick update <id> --priority=0                # Update task
    tick start|done|cancel|reopen <id>           # Change status
    tick ready                                   # Tasks ready to work on
    tick blocked                                 # Tasks waiting on something
    tick dep add <id> <blocker>                  # Add dependency
    tick note add <id> "text"                    # Add note
    tick remove <id>                             # Delete task
    tick stats                                   # Project statistics
    tick rebuild                                 # Rebuild query cache
    tick doctor                                  # Health check
    tick migrate --from beads                    # Import from beads

Partial IDs work anywhere an ID is expected: ``a3f`` or ``tick-a3f`` resolve
to ``tick-a3f1b2`` when unambiguous.
"""

from __future__ import annotations

import click

from tick import __version__
from tick.cli_commands import admin, planning, tasks


@click.group()
@click.version_option(version=__version__, prog_name="tick")
@click.option("--verbose", "-v", is_flag=True, help="Log debug detail to stderr")
@click.option("--quiet", "-q", is_flag=True, help="Print only IDs, or nothing, on success")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """tick: file-based task tracker for agents and humans."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


for _command in (
    tasks.create,
    tasks.show,
    tasks.list_tasks,
    tasks.update,
    *tasks.TRANSITION_COMMANDS,
    tasks.remove,
    tasks.note,
    planning.ready,
    planning.blocked,
    planning.dep,
    planning.stats,
    admin.init,
    admin.rebuild,
    admin.doctor,
    admin.migrate,
):
    cli.add_command(_command)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
