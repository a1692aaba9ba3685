"""
Console and CSV rendering of pivot tables.

Everything here is a pure function of its inputs; writing to files or the
terminal is left to the caller (except write_csv).
"""

import csv
import io
from pathlib import Path
from typing import List, Optional, Union

from ..aggregation.models import PivotRow, PivotTable
from ..collection.models import CollectionResult
from ..hosts.models import HostResolution


def to_csv(table: PivotTable) -> str:
    """
    Render a table as CSV.

    Header: EventId,<host1>,...,<hostN>,Total; one line per row, integers only.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(table.columns)
    for row in table.rows:
        writer.writerow(
            [row.event_id, *(row.per_host_count.get(h, 0) for h in table.hosts), row.total]
        )
    return buffer.getvalue()


def write_csv(table: PivotTable, path: Union[str, Path]) -> Path:
    """Write a table as CSV and return the path written."""
    path = Path(path).expanduser()
    path.write_text(to_csv(table), encoding="utf-8", newline="")
    return path


def parse_csv(text: str) -> PivotTable:
    """
    Parse CSV produced by to_csv back into a PivotTable.

    Raises:
        ValueError: If the header or a value is malformed
    """
    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        raise ValueError("empty CSV")

    if len(header) < 2 or header[0] != "EventId" or header[-1] != "Total":
        raise ValueError(f"unexpected CSV header: {header}")
    hosts = header[1:-1]

    rows: List[PivotRow] = []
    for line_no, values in enumerate(reader, start=2):
        if not values:
            continue
        if len(values) != len(header):
            raise ValueError(f"line {line_no}: expected {len(header)} values, got {len(values)}")
        numbers = [int(v) for v in values]
        rows.append(
            PivotRow(
                event_id=numbers[0],
                per_host_count=dict(zip(hosts, numbers[1:-1])),
                total=numbers[-1],
            )
        )
    return PivotTable(hosts=hosts, rows=rows)


def render_console(table: PivotTable) -> str:
    """Render a table as right-aligned text columns."""
    if not table.rows:
        return "No matching events found."

    lines = [table.columns]
    for row in table.rows:
        lines.append(
            [str(row.event_id), *(str(row.per_host_count.get(h, 0)) for h in table.hosts), str(row.total)]
        )

    widths = [max(len(line[i]) for line in lines) for i in range(len(table.columns))]
    rendered = []
    for i, line in enumerate(lines):
        rendered.append("  ".join(value.rjust(width) for value, width in zip(line, widths)))
        if i == 0:
            rendered.append("  ".join("-" * width for width in widths))
    return "\n".join(rendered)


def render_failures(
    resolution: Optional[HostResolution] = None,
    result: Optional[CollectionResult] = None,
) -> str:
    """Summarize unresolvable hosts, failed hosts and partial failures."""
    lines = []
    if resolution is not None and resolution.dropped:
        lines.append(f"Unresolvable hosts ({len(resolution.dropped)}):")
        lines.extend(f"  {host}" for host in resolution.dropped)

    if result is not None:
        if result.failed_hosts:
            lines.append(f"Failed hosts ({len(result.failed_hosts)}):")
            for host in result.failed_hosts:
                lines.append(f"  {host}: {result.failure_reason(host)}")
        partial = result.partial_failures
        if partial:
            lines.append(f"Incomplete hosts ({len(partial)}):")
            for outcome in partial:
                lines.append(
                    f"  {outcome.host} [{outcome.category.value}]: {outcome.error or outcome.status.value}"
                )

    return "\n".join(lines)
