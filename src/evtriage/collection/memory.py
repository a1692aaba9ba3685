"""
In-process transport serving canned event counts.

Used by the test suite and for dry runs of the collection pipeline without
touching the network.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..errors import RemoteQueryError, SessionEstablishmentError
from .client import ExecutionContext, RemoteLogClient
from .models import CountRecord, LogCategory, LogQuery

logger = logging.getLogger(__name__)

# host -> category -> event_id -> count
CountData = Mapping[str, Mapping[LogCategory, Mapping[int, int]]]


class InMemoryLogClient(RemoteLogClient):
    """
    Remote log client backed by a dictionary.

    Usage:
        client = InMemoryLogClient(
            {"A": {LogCategory.SYSTEM: {100: 3, 101: 1}}},
            unreachable={"B"},
        )

    Host names are matched case-insensitively. Every established, released
    and in-flight context is tracked so tests can check for leaks.
    """

    name = "memory"

    def __init__(
        self,
        data: Optional[CountData] = None,
        unreachable: Iterable[str] = (),
        failing: Iterable[Tuple[str, LogCategory]] = (),
        delays: Optional[Mapping[Tuple[str, LogCategory], float]] = None,
    ):
        """
        Initialize in-memory client.

        Args:
            data: Counts to serve per host and category
            unreachable: Hosts whose session establishment fails
            failing: (host, category) pairs whose query fails
            delays: Seconds each (host, category) query takes
        """
        self.data = {host.lower(): counts for host, counts in (data or {}).items()}
        self.unreachable: Set[str] = {h.lower() for h in unreachable}
        self.failing = {(h.lower(), c) for h, c in failing}
        self.delays = {(h.lower(), c): d for (h, c), d in (delays or {}).items()}

        self.queries: List[LogQuery] = []
        self.open_contexts: Dict[int, ExecutionContext] = {}
        self.released: List[ExecutionContext] = []

    async def establish(
        self,
        host: str,
        category: LogCategory,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionContext:
        context = context or ExecutionContext(host=host, category=category)
        await asyncio.sleep(0)
        if host.lower() in self.unreachable:
            raise SessionEstablishmentError(host, "host unreachable")
        context.handle = object()
        self.open_contexts[id(context)] = context
        return context

    async def run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        key = (context.host.lower(), query.category)
        self.queries.append(query)

        delay = self.delays.get(key, 0.0)
        if delay:
            await asyncio.sleep(delay)

        if key in self.failing:
            raise RemoteQueryError(context.host, f"{query.category.value} log unavailable")

        counts = self.data.get(key[0], {}).get(query.category, {})
        return [
            CountRecord(host=context.host, event_id=event_id, count=count)
            for event_id, count in counts.items()
        ]

    async def release(self, context: ExecutionContext) -> None:
        context.cancelled.set()
        if self.open_contexts.pop(id(context), None) is not None:
            self.released.append(context)
        context.handle = None
