"""
Pivot aggregation of per-host event counts.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from ..collection.models import CountRecord
from .models import PivotRow, PivotTable

logger = logging.getLogger(__name__)


def aggregate(records: Iterable[CountRecord], hosts: Iterable[str], top_n: int = 0) -> PivotTable:
    """
    Reshape count records into a ranked event ID by host table.

    Counts for the same (host, event ID) are summed, so System and
    Application events sharing a numeric ID end up in one row. Records for
    hosts outside `hosts` are ignored.

    Args:
        records: Raw counts from the collection run
        hosts: Column hosts, in display order
        top_n: Keep only the N highest ranked rows (<= 0 keeps all)

    Returns:
        PivotTable sorted by total descending, then event ID ascending
    """
    hosts = list(hosts)
    columns = set(hosts)

    counts: Dict[int, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    ignored = 0
    for record in records:
        if record.host not in columns:
            ignored += 1
            continue
        counts[record.event_id][record.host] += record.count

    if ignored:
        logger.debug(f"Ignored {ignored} record(s) for hosts outside the table")

    rows: List[PivotRow] = []
    for event_id, by_host in counts.items():
        per_host = {host: by_host.get(host, 0) for host in hosts}
        rows.append(
            PivotRow(
                event_id=event_id,
                per_host_count=per_host,
                total=sum(per_host.values()),
            )
        )

    rows.sort(key=lambda row: (-row.total, row.event_id))
    if top_n > 0:
        rows = rows[:top_n]

    return PivotTable(hosts=hosts, rows=rows)
