"""File-backed cache handed from the sampler to munin-node.

The sampler appends every tick to the live cache file. A reader claims
everything written so far by renaming the live file to a private name and
streaming it, after which the sampler's next append creates a fresh file.

Both sides take an exclusive ``flock`` on the live file and check that the
inode they opened is still the one at the live path. Holding that lock, the
reader cannot rename the file in the middle of an append, and the sampler
cannot append to a file that has already been claimed.
"""

from __future__ import annotations

import fcntl
import logging
import os
import shutil
import time
from pathlib import Path
from typing import BinaryIO

from ..errors import CacheIoError, NoData

logger = logging.getLogger(__name__)

# A rename can only race an open a handful of times in a row.
_MAX_ATTEMPTS = 5


def _is_live(fh: BinaryIO, path: Path) -> bool:
    """Return True if *fh* is still the file found at *path*."""
    try:
        current = os.stat(path)
    except FileNotFoundError:
        return False
    opened = os.fstat(fh.fileno())
    return (opened.st_dev, opened.st_ino) == (current.st_dev, current.st_ino)


class CacheStore:
    """Append-only log of formatted delta records with an atomic claim."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def append(self, data: bytes) -> None:
        """Append *data* to the live file as a single write.

        Raises :class:`CacheIoError` if the file cannot be opened or written.
        """
        if not data:
            return
        try:
            for _ in range(_MAX_ATTEMPTS):
                with open(self._path, "ab") as fh:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                    if not _is_live(fh, self._path):
                        # claimed between open and lock, start a new file
                        continue
                    fh.write(data)
                    fh.flush()
                    return
        except OSError as exc:
            raise CacheIoError(f"cannot append to {self._path}: {exc}") from exc
        raise CacheIoError(f"{self._path} kept being claimed while appending")

    def _claim_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.{os.getpid()}.{time.monotonic_ns()}")

    def fetch(self, out: BinaryIO, chunk_size: int = 65535) -> int:
        """Claim the live file, copy it to *out* and delete it.

        Returns the number of bytes copied. Raises :class:`NoData` when there
        is nothing to claim and :class:`CacheIoError` when the claim fails.
        Data handed over here is gone from the cache for good.
        """
        for _ in range(_MAX_ATTEMPTS):
            try:
                fh = open(self._path, "rb")
            except FileNotFoundError:
                raise NoData(f"no cached data at {self._path}") from None
            except OSError as exc:
                raise CacheIoError(f"cannot open {self._path}: {exc}") from exc

            with fh:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                    if not _is_live(fh, self._path):
                        # another reader claimed it first
                        continue
                    claimed = self._claim_path()
                    os.rename(self._path, claimed)
                except OSError as exc:
                    raise CacheIoError(f"cannot claim {self._path}: {exc}") from exc

                try:
                    logger.debug("Claimed %s as %s", self._path, claimed)
                    shutil.copyfileobj(fh, out, chunk_size)
                    out.flush()
                    return os.fstat(fh.fileno()).st_size
                finally:
                    try:
                        os.unlink(claimed)
                    except OSError:
                        logger.warning("Could not remove claimed cache %s", claimed, exc_info=True)
        raise NoData(f"{self._path} was claimed by another reader")
