"""Single-sampler enforcement through an advisory lock on a pid file."""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class ExclusivityController:
    """Holds an exclusive ``flock`` on the lock marker while a sampler runs.

    The kernel drops the lock when the holding process exits for any reason,
    so a crashed sampler never leaves a stale lock behind. The pid written
    into the file is for humans only.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._fh = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def owns_lock(self) -> bool:
        """True if this controller itself holds the lock."""
        return self._fh is not None

    def try_acquire(self, write_pid: bool = True) -> bool:
        """Try to take the lock without blocking.

        Returns False if another process holds it.
        """
        if self._fh is not None:
            return True
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(self._path, "a+")  # noqa: SIM115
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fh.close()
            return False
        except OSError:
            fh.close()
            raise
        if write_pid:
            fh.seek(0)
            fh.truncate()
            fh.write(f"{os.getpid()}\n")
            fh.flush()
        self._fh = fh
        logger.debug("Acquired %s", self._path)
        return True

    def release(self) -> None:
        if self._fh is None:
            return
        try:
            fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        finally:
            self._fh.close()
            self._fh = None
        logger.debug("Released %s", self._path)

    def is_held(self) -> bool:
        """Return True if any process, this one included, holds the lock.

        Probes by taking the lock and dropping it again right away.
        """
        if self._fh is not None:
            return True
        if not self.try_acquire(write_pid=False):
            return True
        self.release()
        return False

    def __enter__(self) -> ExclusivityController:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
