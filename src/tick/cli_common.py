"""Shared CLI helpers used by ``cli.py`` and the ``cli_commands/*.py`` modules.

Provides ``get_store()`` and the error reporting every command shares, so the
command modules can import them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

import click

from tick.core import TickStore, find_tick_root
from tick.errors import AmbiguousIDError, LogParseError, ProjectNotFoundError, TickError
from tick.logging import setup_logging

logger = logging.getLogger(__name__)


def _options() -> dict[str, Any]:
    ctx = click.get_current_context(silent=True)
    if ctx is None:
        return {}
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, dict) else {}


def is_verbose() -> bool:
    return bool(_options().get("verbose"))


def is_quiet() -> bool:
    return bool(_options().get("quiet"))


def get_store(as_json: bool = False) -> TickStore:
    """Discover .tick/, set up logging for it, and return a TickStore."""
    try:
        tick_dir = find_tick_root()
    except ProjectNotFoundError as e:
        fail(str(e), as_json=as_json)
    setup_logging(tick_dir, verbose=is_verbose())
    logger.debug("Using project %s", tick_dir)
    return TickStore.from_project(tick_dir.parent)


def dump_json(data: object) -> None:
    click.echo(json_mod.dumps(data, indent=2, default=str, ensure_ascii=False))


def fail(message: str, *, as_json: bool = False) -> NoReturn:
    """Report *message* and exit 1. JSON mode writes ``{"error": ...}`` to stdout."""
    if as_json:
        dump_json({"error": message})
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@contextmanager
def reporting_errors(as_json: bool = False) -> Iterator[None]:
    """Turn TickError into an error message and exit code 1."""
    try:
        yield
    except AmbiguousIDError as e:
        if as_json:
            dump_json({"error": str(e), "candidates": e.candidates})
            sys.exit(1)
        fail(str(e))
    except LogParseError as e:
        logger.warning("Refused to operate on malformed log: %s", e)
        fail(str(e), as_json=as_json)
    except TickError as e:
        logger.debug("Command failed: %s", e)
        fail(str(e), as_json=as_json)


