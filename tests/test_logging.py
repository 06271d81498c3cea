"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import threading
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from tick.core import TickStore
from tick.logging import LOG_FILENAME, setup_logging


@pytest.fixture(autouse=True)
def _reset_tick_logger() -> Generator[None, None, None]:
    yield
    logger = logging.getLogger("tick")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def _records(tmp_path: Path) -> list[dict[str, Any]]:
    for handler in logging.getLogger("tick").handlers:
        handler.flush()
    return [json.loads(line) for line in (tmp_path / LOG_FILENAME).read_text().splitlines()]


class TestSetupLogging:
    def test_creates_log_file(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        logger.info("test_message", extra={"op": "create", "args_data": {"key": "val"}})
        [record] = _records(tmp_path)
        assert record["msg"] == "test_message"
        assert record["level"] == "INFO"
        assert record["op"] == "create"
        assert record["args"] == {"key": "val"}

    def test_duration_and_error_fields(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        logger.warning("failed", extra={"duration_ms": 42.5, "error": "boom"})
        record = _records(tmp_path)[-1]
        assert record["duration_ms"] == 42.5
        assert record["error"] == "boom"

    def test_debug_not_written_by_default(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        logger.debug("hidden")
        logger.info("shown")
        assert [r["msg"] for r in _records(tmp_path)] == ["shown"]

    def test_idempotent_setup(self, tmp_path: Path) -> None:
        logger1 = setup_logging(tmp_path)
        logger2 = setup_logging(tmp_path)
        assert logger1 is logger2
        assert len(logger1.handlers) == 1

    def test_new_path_replaces_handler(self, tmp_path: Path) -> None:
        first = tmp_path / "one"
        second = tmp_path / "two"
        first.mkdir()
        second.mkdir()
        setup_logging(first)
        logger = setup_logging(second)
        [handler] = logger.handlers
        assert isinstance(handler, logging.handlers.RotatingFileHandler)
        assert handler.baseFilename == os.path.abspath(str(second / LOG_FILENAME))

    def test_no_duplicate_handlers_under_concurrency(self, tmp_path: Path) -> None:
        results: list[logging.Logger] = []
        barrier = threading.Barrier(4)

        def call_setup() -> None:
            barrier.wait()
            results.append(setup_logging(tmp_path))

        threads = [threading.Thread(target=call_setup) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 4
        assert len(logging.getLogger("tick").handlers) == 1


class TestVerbose:
    def test_debug_goes_to_stderr(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        logger = setup_logging(tmp_path, verbose=True)
        logger.debug("details here")
        assert "tick: details here" in capsys.readouterr().err

    def test_verbose_off_removes_stderr_handler(self, tmp_path: Path) -> None:
        setup_logging(tmp_path, verbose=True)
        logger = setup_logging(tmp_path)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO


class TestMutationLogging:
    def test_each_mutation_logged(self, tick_dir: Path) -> None:
        setup_logging(tick_dir)
        with TickStore(tick_dir) as store:
            task = store.create_task("Logged")
            store.transition(task.id, "done")
        mutations = [r for r in _records(tick_dir) if r["msg"] == "mutation"]
        assert [r["op"] for r in mutations] == ["create", "done"]
        assert all("duration_ms" in r for r in mutations)
        assert mutations[-1]["args"] == {"tasks": 1}
