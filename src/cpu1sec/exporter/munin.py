"""munin protocol output: data lines and graph configuration."""

from __future__ import annotations

from typing import TextIO

from ..collector.base import FIELDS, TOTAL, DeltaRecord, entity_label

GRAPH_NAME = "cpu1sec"

# Fields in graph stacking order, with their descriptions.
FIELD_INFO: tuple[tuple[str, str], ...] = (
    ("system", "CPU time spent by the kernel in system activities"),
    ("user", "CPU time spent by normal programs and daemons"),
    ("nice", "CPU time spent by nice(1)d programs"),
    ("idle", "Idle CPU time"),
    ("iowait", "CPU time spent waiting for I/O operations to finish when there is nothing else to do."),
    ("irq", "CPU time spent handling interrupts"),
    ("softirq", 'CPU time spent handling "batched" interrupts'),
    ("steal", "The time that a virtual CPU had runnable tasks, but the virtual CPU itself was not running"),
    ("guest", "The time spent running a virtual CPU for guest operating systems under the control of the Linux kernel."),
    ("guest_nice", "The time spent running a nice(1)d virtual CPU for guest operating systems under the control of the Linux kernel."),
)


def multigraph_header(entity: int) -> str:
    if entity == TOTAL:
        return f"multigraph {GRAPH_NAME}"
    return f"multigraph {GRAPH_NAME}.{entity_label(entity)}"


def format_record(record: DeltaRecord, multigraph: bool = False) -> str:
    """Serialize *record* as munin data lines, one per field.

    With *multigraph* the lines are preceded by the section header of the
    record's graph.
    """
    label = record.label
    lines = [multigraph_header(record.entity)] if multigraph else []
    lines.extend(
        f"{label}_{name}.value {record.timestamp}:{value}"
        for name, value in zip(FIELDS, record.fields)
    )
    return "\n".join(lines) + "\n"


def format_records(records: list[DeltaRecord], multigraph: bool = False) -> str:
    return "".join(format_record(r, multigraph) for r in records)


def _write_graph(out: TextIO, label: str, upper_limit: int) -> None:
    out.write(f"graph_title CPU usage {label} (1sec)\n")
    out.write("graph_category system\n")
    out.write("update_rate 1\n")
    out.write("graph_data_size custom 1d, 1s for 1d, 5s for 2d, 10s for 7d, 1m for 1t, 5m for 1y\n")
    out.write("graph_order system user nice idle iowait irq softirq\n")
    out.write(f"graph_args --base 1000 -r --lower-limit 0 --upper-limit {upper_limit}\n")
    out.write("graph_vlabel %\n")
    out.write("graph_scale no\n")
    out.write("graph_info This graph shows how CPU time is spent.\n")
    for idx, (name, info) in enumerate(FIELD_INFO):
        field = f"{label}_{name}"
        out.write(f"{field}.label {name}\n")
        out.write(f"{field}.draw {'AREA' if idx == 0 else 'STACK'}\n")
        out.write(f"{field}.min 0\n")
        out.write(f"{field}.type GAUGE\n")
        out.write(f"{field}.info {info}\n")


def write_config(out: TextIO, num_cores: int, multigraph: bool = False) -> None:
    """Write the graph definitions munin asks for with ``config``.

    The total graph goes up to 100% per core; with *multigraph* every core
    gets its own sub-graph as well.
    """
    if multigraph:
        out.write(multigraph_header(TOTAL) + "\n")
    _write_graph(out, entity_label(TOTAL), num_cores * 100)
    if multigraph:
        for core in range(num_cores):
            out.write(multigraph_header(core) + "\n")
            _write_graph(out, entity_label(core), 100)
