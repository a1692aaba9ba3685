"""
Concurrent event log collection across hosts.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..errors import FatalNoSessionsError, FatalNoTargetsError, RemoteQueryError, SessionEstablishmentError
from ..hosts.resolver import deduplicate
from .client import RemoteLogClient
from .models import CollectionResult, EntryType, LogCategory, LogQuery, UnitOutcome, UnitStatus

logger = logging.getLogger(__name__)

UnitKey = Tuple[str, LogCategory]


class CollectionBatch:
    """
    Units of work dispatched by a single collect() call.

    Maps (host, category) to the task running that query. A batch is never
    shared between runs.
    """

    def __init__(self):
        self.tasks: Dict[UnitKey, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self.tasks)

    def add(self, key: UnitKey, task: asyncio.Task) -> None:
        self.tasks[key] = task

    def cancel_pending(self) -> List[asyncio.Task]:
        """Cancel every task that has not finished yet."""
        pending = [task for task in self.tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        return pending


class CollectionCoordinator:
    """
    Fans out System and Application log queries to every host and gathers
    the per-event-ID counts.

    A failing host never aborts the others. The run only fails as a whole
    when no query at all succeeds.

    Usage:
        coordinator = CollectionCoordinator(WinRMLogClient(), timeout=120)
        result = await coordinator.collect(hosts, EntryType.ERROR, after, before)
    """

    CATEGORIES = (LogCategory.SYSTEM, LogCategory.APPLICATION)

    def __init__(
        self,
        client: RemoteLogClient,
        timeout: float = 300.0,
        grace_period: float = 5.0,
    ):
        """
        Initialize collection coordinator.

        Args:
            client: Transport used for every query
            timeout: Overall wait for the whole batch in seconds
            grace_period: Seconds cancelled queries get to release their sessions
        """
        self.client = client
        self.timeout = timeout
        self.grace_period = grace_period

    async def _run_unit(self, query: LogQuery) -> UnitOutcome:
        """Run one query and turn any failure into an outcome."""
        label = f"{query.host}/{query.category.value}"
        try:
            records = await self.client.query(query)
        except SessionEstablishmentError as e:
            logger.warning(f"[{label}] session failed: {e.reason}")
            return UnitOutcome(
                host=query.host,
                category=query.category,
                status=UnitStatus.SESSION_FAILED,
                error=e.reason,
            )
        except RemoteQueryError as e:
            logger.warning(f"[{label}] query failed: {e.reason}")
            return UnitOutcome(
                host=query.host,
                category=query.category,
                status=UnitStatus.QUERY_FAILED,
                error=e.reason,
            )
        except Exception as e:
            logger.error(f"[{label}] unexpected error: {e}", exc_info=True)
            return UnitOutcome(
                host=query.host,
                category=query.category,
                status=UnitStatus.QUERY_FAILED,
                error=str(e) or e.__class__.__name__,
            )

        logger.info(f"[{label}] {len(records)} event ID(s)")
        return UnitOutcome(
            host=query.host,
            category=query.category,
            status=UnitStatus.OK,
            records=records,
        )

    def _dispatch(
        self,
        hosts: List[str],
        entry_type: EntryType,
        after: datetime,
        before: datetime,
    ) -> CollectionBatch:
        batch = CollectionBatch()
        for host in hosts:
            for category in self.CATEGORIES:
                query = LogQuery(
                    host=host,
                    category=category,
                    entry_type=entry_type,
                    after=after,
                    before=before,
                )
                task = asyncio.create_task(
                    self._run_unit(query), name=f"evtriage:{host}/{category.value}"
                )
                batch.add((host, category), task)
        return batch

    async def collect(
        self,
        hosts: Iterable[str],
        entry_type: Union[str, EntryType],
        after: datetime,
        before: datetime,
        timeout: Optional[float] = None,
    ) -> CollectionResult:
        """
        Query every host and gather the counts.

        Args:
            hosts: Resolved host names
            entry_type: Entry type filter
            after: Window start (inclusive)
            before: Window end (exclusive)
            timeout: Overall wait in seconds (defaults to the coordinator timeout)

        Returns:
            CollectionResult with merged records and failed hosts

        Raises:
            InvalidFilterError: If entry_type is unknown
            FatalNoTargetsError: If hosts is empty
            FatalNoSessionsError: If no query succeeded on any host
        """
        entry_type = EntryType.parse(entry_type)
        hosts = deduplicate(hosts)
        if not hosts:
            raise FatalNoTargetsError()
        if after >= before:
            raise ValueError("'after' must be earlier than 'before'")
        timeout = self.timeout if timeout is None else timeout

        batch = self._dispatch(hosts, entry_type, after, before)
        logger.info(
            f"Dispatched {len(batch)} {entry_type.value} queries to {len(hosts)} host(s) "
            f"(window {after.isoformat()} - {before.isoformat()}, timeout {timeout}s)"
        )

        pending = set()
        try:
            _done, pending = await asyncio.wait(batch.tasks.values(), timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} query(ies) still pending after {timeout}s, cancelling")
                batch.cancel_pending()
                if self.grace_period > 0:
                    await asyncio.wait(pending, timeout=self.grace_period)
        finally:
            batch.cancel_pending()
            if pending:
                # Workers that ignored cancellation must not be joined
                self.client.abandon()

        outcomes = []
        for (host, category), task in batch.tasks.items():
            if task in pending or task.cancelled():
                outcomes.append(
                    UnitOutcome(
                        host=host,
                        category=category,
                        status=UnitStatus.TIMED_OUT,
                        error=f"no answer within {timeout}s",
                    )
                )
            else:
                outcomes.append(task.result())

        return self._merge(hosts, outcomes)

    def _merge(self, hosts: List[str], outcomes: List[UnitOutcome]) -> CollectionResult:
        succeeded = {o.host for o in outcomes if o.succeeded}
        if not succeeded:
            raise FatalNoSessionsError(hosts)

        records = [record for o in outcomes if o.succeeded for record in o.records]
        result = CollectionResult(
            records=records,
            hosts=[h for h in hosts if h in succeeded],
            failed_hosts=[h for h in hosts if h not in succeeded],
            outcomes=outcomes,
        )

        logger.info(
            f"Collected {len(records)} record(s) from {len(result.hosts)} host(s), "
            f"{len(result.failed_hosts)} failed"
        )
        return result

    def collect_sync(
        self,
        hosts: Iterable[str],
        entry_type: Union[str, EntryType],
        after: datetime,
        before: datetime,
        timeout: Optional[float] = None,
    ) -> CollectionResult:
        """Blocking wrapper around collect() for callers without an event loop."""
        return asyncio.run(self.collect(hosts, entry_type, after, before, timeout=timeout))
