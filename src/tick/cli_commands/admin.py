"""CLI commands for project administration: init, rebuild, doctor, migrate."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from tick.cli_common import dump_json, fail, get_store, is_quiet, is_verbose, reporting_errors
from tick.core import DEFAULT_PREFIX, find_tick_root, init_project
from tick.doctor import run_diagnostics
from tick.errors import ProjectNotFoundError
from tick.logging import setup_logging
from tick.migrate import (
    PROVIDERS,
    DryRunCreator,
    MigrationEngine,
    MigrationResult,
    StoreCreator,
    TaskCreator,
    get_provider,
)


@click.command()
@click.option("--prefix", default=DEFAULT_PREFIX, show_default=True, help="ID prefix for tasks")
def init(prefix: str) -> None:
    """Initialize .tick/ in the current directory."""
    with reporting_errors():
        tick_dir = init_project(Path.cwd(), prefix=prefix)
    setup_logging(tick_dir, verbose=is_verbose())
    if not is_quiet():
        click.echo(f"Initialized tick in {tick_dir}/")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rebuild(as_json: bool) -> None:
    """Delete the query cache and rebuild it from tasks.jsonl."""
    with get_store(as_json) as store, reporting_errors(as_json):
        count = store.rebuild()
    if as_json:
        dump_json({"tasks": count})
    elif not is_quiet():
        click.echo(f"Rebuilt cache: {count} tasks")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def doctor(as_json: bool) -> None:
    """Run read-only health checks on the task log and cache.

    Exits 1 when any error-level check fails. Warnings are reported only.
    """
    try:
        tick_dir = find_tick_root()
    except ProjectNotFoundError:
        fail("Not a tick project (no .tick directory found)", as_json=as_json)
    setup_logging(tick_dir, verbose=is_verbose())
    report = run_diagnostics(tick_dir)

    if as_json:
        dump_json(
            {
                "ok": not report.has_errors,
                "errors": report.error_count,
                "warnings": report.warning_count,
                "checks": [
                    {
                        "name": r.name,
                        "passed": r.passed,
                        "severity": r.severity,
                        "details": r.details,
                        "suggestion": r.suggestion,
                    }
                    for r in report.results
                ],
            }
        )
    else:
        for r in report.results:
            if r.passed:
                click.echo(f"  {r.icon}  {r.name}")
                continue
            click.echo(f"  {r.icon}  {r.name}: {r.details}")
            if r.suggestion:
                click.echo(f"       -> {r.suggestion}")
        issues = report.error_count + report.warning_count
        click.echo()
        if issues == 0:
            click.echo("No issues found.")
        else:
            click.echo(f"{issues} issue{'s' if issues != 1 else ''} found.")

    if report.has_errors:
        sys.exit(1)


def _present(provider_name: str, dry_run: bool, results: list[MigrationResult]) -> None:
    suffix = " [dry-run]" if dry_run else ""
    click.echo(f"Importing from {provider_name}...{suffix}")
    for r in results:
        if r.success:
            click.echo(f"  ✓ Task: {r.title}")
        else:
            click.echo(f"  ✗ Task: {r.title} (skipped: {r.error})")
    failures = [r for r in results if not r.success]
    click.echo(f"\nDone: {len(results) - len(failures)} imported, {len(failures)} failed")
    if failures:
        click.echo("\nFailures:")
        for r in failures:
            click.echo(f'- Task "{r.title}": {r.error}')


@click.command()
@click.option(
    "--from",
    "provider_name",
    required=True,
    help=f"Source tracker ({', '.join(sorted(PROVIDERS))})",
)
@click.option("--dry-run", is_flag=True, help="Validate and report without writing")
@click.option("--pending-only", is_flag=True, help="Skip tasks that are already done or cancelled")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def migrate(provider_name: str, dry_run: bool, pending_only: bool, as_json: bool) -> None:
    """Import tasks from another tracker."""
    with get_store(as_json) as store, reporting_errors(as_json):
        provider = get_provider(provider_name, store.tick_dir.parent)
        creator: TaskCreator = DryRunCreator() if dry_run else StoreCreator(store)
        results = MigrationEngine(creator, pending_only=pending_only).run(provider)

    if as_json:
        dump_json(
            {
                "provider": provider.name,
                "dry_run": dry_run,
                "imported": sum(1 for r in results if r.success),
                "failed": sum(1 for r in results if not r.success),
                "results": [{"title": r.title, "success": r.success, "error": r.error} for r in results],
            }
        )
        return
    _present(provider.name, dry_run, results)
