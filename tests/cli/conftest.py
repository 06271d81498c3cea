"""Fixtures for CLI interface tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from tick.cli import cli


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a tick project in tmp_path and return (runner, project_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)


@pytest.fixture
def create(cli_in_project: tuple[CliRunner, Path]) -> Callable[..., str]:
    """``create("Title", "-p", "1")`` runs ``tick -q create`` and returns the new id."""
    runner, _ = cli_in_project

    def run(*args: str) -> str:
        result = runner.invoke(cli, ["-q", "create", *args])
        assert result.exit_code == 0, result.output
        return result.stdout.strip()

    return run
