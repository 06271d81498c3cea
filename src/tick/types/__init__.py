# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, models.py, or any mixin: that creates circular imports.
"""Typed return-value contracts for the tick store and query layer."""

from __future__ import annotations

from tick.types.core import NoteDict, ProjectConfig, TaskDict
from tick.types.queries import RelatedTask, StatsResult, TaskDetail, TaskSummary

__all__ = [
    "NoteDict",
    "ProjectConfig",
    "RelatedTask",
    "StatsResult",
    "TaskDetail",
    "TaskDict",
    "TaskSummary",
]
