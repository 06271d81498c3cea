"""Structured JSON logging for tick.

Writes JSONL to .tick/tick.log with rotation (5MB, 3 backups).
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "tick.log"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "op"):
            entry["op"] = record.op
        if hasattr(record, "args_data"):
            entry["args"] = record.args_data
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms
        if hasattr(record, "error"):
            entry["error"] = record.error
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


class _StderrHandler(logging.Handler):
    """Verbose-mode handler. Looks up sys.stderr on each emit so captured streams are honoured."""

    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.setFormatter(logging.Formatter("tick: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            sys.stderr.write(self.format(record) + "\n")
        except Exception:  # noqa: BLE001
            self.handleError(record)


def setup_logging(tick_dir: Path, *, verbose: bool = False) -> logging.Logger:
    """Set up structured JSON logging to .tick/tick.log.

    Idempotent per log path. With *verbose*, DEBUG records are also written
    to stderr as plain text.
    """
    logger = logging.getLogger("tick")
    log_path = tick_dir / LOG_FILENAME
    target_filename = os.path.abspath(str(log_path))

    with _setup_lock:
        have_file = False
        for h in logger.handlers[:]:
            if isinstance(h, RotatingFileHandler):
                if h.baseFilename == target_filename:
                    have_file = True
                    continue
                # Different path: drop the stale handler.
                logger.removeHandler(h)
                h.close()
            elif isinstance(h, _StderrHandler) and not verbose:
                logger.removeHandler(h)

        if not have_file:
            handler = RotatingFileHandler(
                str(log_path),
                maxBytes=_MAX_BYTES,
                backupCount=_BACKUP_COUNT,
            )
            handler.setFormatter(_JsonFormatter())
            handler.setLevel(logging.INFO)
            logger.addHandler(handler)

        if verbose and not any(isinstance(h, _StderrHandler) for h in logger.handlers):
            logger.addHandler(_StderrHandler())
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
