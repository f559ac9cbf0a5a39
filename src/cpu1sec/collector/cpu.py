"""CPU time-in-state counter source."""

from __future__ import annotations

import logging
import os

import psutil

from ..errors import SourceUnavailable
from .base import FIELDS, TOTAL, CounterSnapshot, CounterSource, now_epoch

logger = logging.getLogger(__name__)


def clock_ticks() -> int:
    """Return USER_HZ, the unit of the kernel's CPU time counters."""
    try:
        return os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError):
        return 100


class CpuTimesSource(CounterSource):
    """Reads per-state CPU ticks for the total and, optionally, every core.

    psutil reports the counters of ``/proc/stat`` in seconds; they are
    converted back to ticks so deltas stay exact integers. Fields the running
    kernel does not report are zero, which is decided once here rather than
    on every sample.
    """

    def __init__(self, cpudetail: bool = False) -> None:
        self._cpudetail = cpudetail
        self._hz = clock_ticks()
        try:
            available = set(psutil.cpu_times()._fields)
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"cannot read cpu times: {exc}") from exc
        self._supported = tuple(f for f in FIELDS if f in available)
        missing = [f for f in FIELDS if f not in available]
        if missing:
            logger.info("CPU fields not reported by this kernel, using 0: %s", ", ".join(missing))

    @property
    def name(self) -> str:
        return "cpu"

    @property
    def supported_fields(self) -> tuple[str, ...]:
        return self._supported

    def _to_ticks(self, times: object) -> tuple[int, ...]:
        return tuple(
            round(getattr(times, f) * self._hz) if f in self._supported else 0
            for f in FIELDS
        )

    def snapshot(self, timestamp: int | None = None) -> list[CounterSnapshot]:
        if timestamp is None:
            timestamp = now_epoch()
        try:
            per_cpu = psutil.cpu_times(percpu=True) if self._cpudetail else []
            total = psutil.cpu_times()
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"cannot read cpu times: {exc}") from exc

        snapshots = [
            CounterSnapshot(entity=idx, timestamp=timestamp, fields=self._to_ticks(times))
            for idx, times in enumerate(per_cpu)
        ]
        snapshots.append(CounterSnapshot(entity=TOTAL, timestamp=timestamp, fields=self._to_ticks(total)))
        return snapshots

    def num_cores(self) -> int:
        return psutil.cpu_count() or 1
