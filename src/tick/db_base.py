"""Shared Protocol for TickStore mixins."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from tick.locking import ProjectLock
    from tick.models import Task

T = TypeVar("T")


class StoreMixinProtocol(Protocol):
    """Attributes and methods the query and mutation mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.query(),
    self.mutate(), etc. Implementations are provided by TickStore.
    """

    tick_dir: Path
    prefix: str
    tasks_path: Path
    cache_path: Path
    lock: ProjectLock

    def query(self, fn: Callable[[sqlite3.Connection], T]) -> T: ...

    def mutate(self, fn: Callable[[list[Task]], list[Task]], *, op: str = ...) -> list[Task]: ...
