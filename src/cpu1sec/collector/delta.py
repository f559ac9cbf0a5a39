"""Turn consecutive counter snapshots into per-interval delta records."""

from __future__ import annotations

import logging

from .base import FIELDS, CounterSnapshot, DeltaRecord

logger = logging.getLogger(__name__)


def delta(old: CounterSnapshot, new: CounterSnapshot) -> DeltaRecord:
    """Return the ticks spent in each state between *old* and *new*.

    A counter that went backwards (wraparound, reset or a renumbered core)
    has no meaningful delta: it is reported as 0 and a warning is logged.
    """
    if old.entity != new.entity:
        raise ValueError(f"cannot diff {old.label} against {new.label}")

    fields = []
    for name, before, after in zip(FIELDS, old.fields, new.fields):
        if after < before:
            logger.warning(
                "Counter %s_%s decreased from %d to %d, reporting 0",
                new.label, name, before, after,
            )
            fields.append(0)
        else:
            fields.append(after - before)
    return DeltaRecord(entity=new.entity, timestamp=new.timestamp, fields=tuple(fields))


def compute_deltas(
    previous: dict[int, CounterSnapshot],
    snapshots: list[CounterSnapshot],
) -> tuple[list[DeltaRecord], dict[int, CounterSnapshot]]:
    """Diff a tick's *snapshots* against *previous*.

    Returns the records in snapshot order and the map to diff the next tick
    against. Entities seen for the first time only seed the map.
    """
    records: list[DeltaRecord] = []
    latest: dict[int, CounterSnapshot] = {}
    for snap in snapshots:
        old = previous.get(snap.entity)
        if old is not None:
            records.append(delta(old, snap))
        else:
            logger.info("New entity %s, first delta next tick", snap.label)
        latest[snap.entity] = snap
    return records, latest
