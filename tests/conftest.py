"""Shared fakes for the sampler and plugin tests."""

from __future__ import annotations

import pytest

from cpu1sec.collector.base import FIELDS, TOTAL, CounterSnapshot, CounterSource


def make_fields(**values: int) -> tuple[int, ...]:
    return tuple(values.get(name, 0) for name in FIELDS)


class FakeSource(CounterSource):
    """Replays a scripted list of per-entity counter dicts.

    Each step is a dict mapping entity id to field values, or an exception
    instance to raise for that call.
    """

    def __init__(self, steps, cores: int = 2, on_snapshot=None) -> None:
        self._steps = list(steps)
        self._cores = cores
        self._on_snapshot = on_snapshot
        self.calls = 0

    @property
    def name(self) -> str:
        return "fake"

    def snapshot(self, timestamp=None):
        self.calls += 1
        if self._on_snapshot is not None:
            self._on_snapshot()
        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, Exception):
            raise step
        return [
            CounterSnapshot(entity=entity, timestamp=timestamp, fields=make_fields(**values))
            for entity, values in step.items()
        ]

    def num_cores(self) -> int:
        return self._cores


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def total_only():
    """Source stepping the total's user ticks 100 -> 103 -> 110."""
    return FakeSource([
        {TOTAL: {"user": 100}},
        {TOTAL: {"user": 103}},
        {TOTAL: {"user": 110}},
    ])
