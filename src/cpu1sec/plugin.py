"""The munin plugin: describe graphs, report values, run the sampler.

munin-node runs the plugin once per collection interval. Reporting starts a
detached sampler when none holds the lock, then claims whatever the sampler
has cached since the last report.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from typing import BinaryIO, Callable, TextIO

from .collector.base import CounterSource
from .collector.cpu import CpuTimesSource
from .collector.manager import Sampler
from .config import PluginConfig
from .errors import NoData
from .exporter.cache import CacheStore
from .exporter.munin import write_config
from .lock import ExclusivityController

logger = logging.getLogger(__name__)

# How often a reader checks for the first data of a freshly started sampler.
_WARMUP_POLL = 0.1
# A sampler retries the lock this often before deciding another one runs,
# so a reader's probe does not turn it away.
_ACQUIRE_ATTEMPTS = 3
_ACQUIRE_RETRY_DELAY = 0.1


def spawn_sampler(config: PluginConfig) -> subprocess.Popen:
    """Start ``cpu1sec acquire`` in its own session, detached from munin-node."""
    cmd = [sys.executable, "-m", "cpu1sec", "acquire"]
    env = dict(os.environ)
    env["MUNIN_PLUGSTATE"] = config.state_dir
    logger.info("Starting sampler: %s", " ".join(cmd))
    return subprocess.Popen(
        cmd,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        close_fds=True,
        start_new_session=True,
    )


class CpuPlugin:
    """Wires the configuration to the source, cache, lock and sampler.

    Every collaborator can be injected, which is how the tests replace the
    kernel counters, the process spawner and the clock.
    """

    def __init__(
        self,
        config: PluginConfig,
        *,
        source: CounterSource | None = None,
        store: CacheStore | None = None,
        lock: ExclusivityController | None = None,
        spawn: Callable[[PluginConfig], object] = spawn_sampler,
        sleep: Callable[[float], object] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._source = source
        self._store = store if store is not None else CacheStore(config.cache_path)
        self._lock = lock if lock is not None else ExclusivityController(config.lock_path)
        self._spawn = spawn
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def config(self) -> PluginConfig:
        return self._config

    @property
    def source(self) -> CounterSource:
        if self._source is None:
            self._source = CpuTimesSource(cpudetail=self._config.cpudetail)
        return self._source

    def describe(self, out: TextIO) -> None:
        """Write the munin graph configuration."""
        write_config(out, self.source.num_cores(), multigraph=self._config.cpudetail)

    def ensure_sampler(self) -> bool:
        """Start a sampler if none is running.

        Returns True if one was started, after giving it up to
        ``warmup_seconds`` to write its first data.
        """
        if self._lock.is_held():
            return False
        self._spawn(self._config)
        deadline = self._monotonic() + self._config.warmup_seconds
        while not self._store.exists() and self._monotonic() < deadline:
            self._sleep(_WARMUP_POLL)
        return True

    def report(self, out: BinaryIO) -> int:
        """Write all values cached since the last report to *out*.

        Returns the number of bytes written; 0 if nothing was cached yet.
        """
        self.ensure_sampler()
        try:
            return self._store.fetch(out, self._config.fetch_size)
        except NoData:
            logger.info("No cached values in %s yet", self._store.path)
            return 0

    def _acquire_lock(self) -> bool:
        for attempt in range(_ACQUIRE_ATTEMPTS):
            if self._lock.try_acquire():
                return True
            if attempt + 1 < _ACQUIRE_ATTEMPTS:
                self._sleep(_ACQUIRE_RETRY_DELAY)
        return False

    def make_sampler(self) -> Sampler:
        return Sampler(self.source, self._store, multigraph=self._config.cpudetail)

    def run_sampler(self, sampler: Sampler | None = None) -> bool:
        """Hold the lock and sample until SIGTERM or SIGINT.

        Returns False without sampling if another sampler holds the lock.
        The lock is released however the loop ends.
        """
        if not self._acquire_lock():
            logger.info("Sampler already running (%s is locked)", self._lock.path)
            return False

        try:
            if sampler is None:
                sampler = self.make_sampler()

            def _handle_signal(_sig: int, _frame: object) -> None:
                sampler.stop()

            signal.signal(signal.SIGTERM, _handle_signal)
            signal.signal(signal.SIGINT, _handle_signal)
            sampler.run()
        finally:
            self._lock.release()
        return True
