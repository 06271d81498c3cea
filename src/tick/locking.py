"""Cross-process advisory locking on .tick/lock.

Readers take a shared lock, writers and cache rebuilds take an exclusive
one. Locks are ``fcntl.flock`` locks on a dedicated lock file, so they are
released by the kernel if the holding process dies.
"""

from __future__ import annotations

import fcntl
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from tick.errors import LockError, LockTimeoutError

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05


class ProjectLock:
    """Shared/exclusive lock handle for one project.

    Each acquisition opens its own file descriptor, so a handle can be
    released and re-acquired in a different mode (shared -> exclusive) without
    the two modes interfering. ``timeout=None`` blocks until the lock is free.
    """

    def __init__(self, lock_path: Path, *, timeout: float | None = None) -> None:
        self.lock_path = lock_path
        self.timeout = timeout

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._held(fcntl.LOCK_SH, "shared"):
            yield

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._held(fcntl.LOCK_EX, "exclusive"):
            yield

    @contextmanager
    def _held(self, mode: int, label: str) -> Iterator[None]:
        try:
            fd = open(self.lock_path, "a")  # noqa: SIM115
        except OSError as e:
            msg = f"Cannot open lock file {self.lock_path}: {e}"
            raise LockError(msg) from e
        try:
            self._acquire(fd, mode, label)
            logger.debug("Acquired %s lock on %s", label, self.lock_path)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("Released %s lock on %s", label, self.lock_path)
        finally:
            fd.close()

    def _acquire(self, fd: IO[str], mode: int, label: str) -> None:
        if self.timeout is None:
            try:
                fcntl.flock(fd, mode)
            except OSError as e:
                msg = f"Cannot acquire {label} lock on {self.lock_path}: {e}"
                raise LockError(msg) from e
            return

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, mode | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    msg = f"Timed out after {self.timeout:g}s waiting for {label} lock on {self.lock_path}"
                    raise LockTimeoutError(msg) from None
                time.sleep(_POLL_INTERVAL)
            except OSError as e:
                msg = f"Cannot acquire {label} lock on {self.lock_path}: {e}"
                raise LockError(msg) from e
