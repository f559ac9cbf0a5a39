"""Base interface for kernel counter sources."""

from __future__ import annotations

import abc
import time
from dataclasses import dataclass

#: Entity id used for the system-wide total.
TOTAL = -1

#: Tick counter fields, in the order they are stored and reported.
FIELDS: tuple[str, ...] = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)


def entity_label(entity: int) -> str:
    """Return the name used for *entity* in field and graph names."""
    if entity == TOTAL:
        return "total"
    return f"cpu{entity}"


def now_epoch() -> int:
    return int(time.time())


@dataclass(frozen=True)
class CounterSnapshot:
    """Tick counters of one entity at one point in time."""

    entity: int
    timestamp: int
    fields: tuple[int, ...]

    @property
    def label(self) -> str:
        return entity_label(self.entity)

    def as_dict(self) -> dict[str, int]:
        return dict(zip(FIELDS, self.fields))


@dataclass(frozen=True)
class DeltaRecord:
    """Ticks spent in each state by one entity during one interval."""

    entity: int
    timestamp: int
    fields: tuple[int, ...]

    @property
    def label(self) -> str:
        return entity_label(self.entity)

    def as_dict(self) -> dict[str, int]:
        return dict(zip(FIELDS, self.fields))


class CounterSource(abc.ABC):
    """Abstract base class for providers of monotonic tick counters."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Source name used in log messages."""

    @abc.abstractmethod
    def snapshot(self, timestamp: int | None = None) -> list[CounterSnapshot]:
        """Return one snapshot per configured entity.

        Per-core snapshots come first, in core order, followed by the
        total. Raises :class:`~cpu1sec.errors.SourceUnavailable` when the
        counters cannot be read.
        """

    @abc.abstractmethod
    def num_cores(self) -> int:
        """Number of logical cores the graphs are scaled for."""
