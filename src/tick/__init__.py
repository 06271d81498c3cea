"""tick: a file-based task tracker with a JSONL log and a SQLite query cache."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tick")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from tick.core import TickStore
from tick.models import Note, Task

__all__ = ["Note", "Task", "TickStore", "__version__"]
