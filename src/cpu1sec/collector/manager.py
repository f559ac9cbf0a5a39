"""Sampling loop: snapshot, diff and append once per interval."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..errors import SourceUnavailable
from ..exporter.cache import CacheStore
from ..exporter.munin import format_records
from .base import CounterSnapshot, CounterSource
from .delta import compute_deltas

logger = logging.getLogger(__name__)

# Longest single sleep, so a stop request is noticed quickly.
_SLEEP_STEP = 0.1
# Wall clock and monotonic clock disagreeing by more than this means the
# wall clock was stepped and timestamps are re-anchored.
_WALL_STEP_TOLERANCE = 1.0


class Sampler:
    """Runs a :class:`CounterSource` on a fixed cadence into a :class:`CacheStore`.

    Ticks are scheduled against the monotonic clock, so time spent taking a
    sample is subtracted from the following sleep and the average period stays
    at *interval* seconds. Records are stamped with their scheduled slot, not
    the moment the tick happened to run, so a late tick never shares a second
    with the one after it. Wall clock, monotonic clock and sleep can be
    replaced for testing.

    A failed sample is logged and retried on the next tick. Errors from the
    cache store are not caught: a sampler that cannot write has to exit so the
    lock is released and the next reader starts a fresh one.

    :meth:`stop` only sets a flag, so it is safe to call from a signal handler.
    """

    def __init__(
        self,
        source: CounterSource,
        store: CacheStore,
        *,
        interval: float = 1.0,
        multigraph: bool = False,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"sampling interval must be positive, got {interval}")
        self._source = source
        self._store = store
        self._interval = interval
        self._multigraph = multigraph
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep if sleep is not None else self._sleep_unless_stopped
        self._stopped = False
        self._last_timestamp: int | None = None
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    def stop(self) -> None:
        """Make :meth:`run` return after the current tick or sleep."""
        self._stopped = True

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _sleep_unless_stopped(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stopped:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(remaining, _SLEEP_STEP))

    def seed(self) -> dict[int, CounterSnapshot]:
        """Take the first snapshot every later tick is diffed against."""
        while not self._stopped:
            try:
                snapshots = self._source.snapshot(int(self._clock()))
            except SourceUnavailable as exc:
                logger.warning("Initial %s sample failed, retrying: %s", self._source.name, exc)
                self._sleep(self._interval)
                continue
            return {s.entity: s for s in snapshots}
        return {}

    def tick(
        self,
        previous: dict[int, CounterSnapshot],
        timestamp: int | None = None,
    ) -> dict[int, CounterSnapshot]:
        """Sample once, append the deltas and return the new previous map.

        A *timestamp* not later than the last one written is skipped; its
        ticks are counted in the next record instead.
        """
        if timestamp is None:
            timestamp = int(self._clock())
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            logger.debug("Second %d already written, sampling next tick", timestamp)
            return previous
        try:
            snapshots = self._source.snapshot(timestamp)
        except SourceUnavailable as exc:
            logger.warning("Sampling %s failed, retrying next tick: %s", self._source.name, exc)
            return previous

        records, latest = compute_deltas(previous, snapshots)
        if records:
            self._store.append(format_records(records, self._multigraph).encode("ascii"))
        self._last_timestamp = timestamp
        self.ticks += 1
        return latest

    def run(self) -> None:
        """Sample until :meth:`stop` is called."""
        logger.info(
            "Sampler started (source=%s, interval=%.1fs, cache=%s)",
            self._source.name, self._interval, self._store.path,
        )
        previous = self.seed()
        next_tick = self._monotonic()
        mono_anchor, wall_anchor = next_tick, self._clock()
        while not self._stopped:
            wall_now, mono_now = self._clock(), self._monotonic()
            if abs((wall_now - wall_anchor) - (mono_now - mono_anchor)) > _WALL_STEP_TOLERANCE:
                logger.warning("Wall clock stepped, re-anchoring timestamps")
                mono_anchor, wall_anchor = next_tick, wall_now - (mono_now - next_tick)

            previous = self.tick(previous, timestamp=int(wall_anchor + (next_tick - mono_anchor)))
            next_tick += self._interval
            now = self._monotonic()
            delay = next_tick - now
            if delay < 0:
                if -delay > self._interval:
                    logger.warning("Sampler is %.1fs behind schedule, skipping ahead", -delay)
                    next_tick = now
                delay = 0.0
            self._sleep(delay)
        logger.info("Sampler stopped after %d ticks", self.ticks)
