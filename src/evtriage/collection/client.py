"""
Remote log client abstraction.

A RemoteLogClient runs one event log count query against one host. Each
query gets its own ExecutionContext (session, channel or process) that is
opened, used once and released, so a fault in one log's channel never holds
up the other log on the same host.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..errors import RemoteQueryError, SessionEstablishmentError
from .models import CountRecord, LogCategory, LogQuery

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """
    Remote execution context bound to a single host and log category.

    `handle` holds the transport object (SSH client, subprocess, ...).
    `cancelled` is set when the context is released; transports check it to
    abandon work that is still in flight.
    """

    host: str
    category: LogCategory
    handle: Any = None
    cancelled: threading.Event = field(default_factory=threading.Event)

    @property
    def label(self) -> str:
        return f"{self.host}/{self.category.value}"


class RemoteLogClient(ABC):
    """
    Base class for remote log transports.

    Usage:
        client = WinRMLogClient()
        records = await client.query(
            LogQuery(
                host="dc01",
                category=LogCategory.SYSTEM,
                entry_type=EntryType.ERROR,
                after=after,
                before=before,
            )
        )
    """

    name = "remote"

    @abstractmethod
    async def establish(
        self,
        host: str,
        category: LogCategory,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionContext:
        """
        Open an execution context on a host.

        Raises:
            SessionEstablishmentError: If the host cannot be reached or refuses us
        """

    @abstractmethod
    async def run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        """
        Count matching events grouped by event ID.

        Raises:
            RemoteQueryError: If the remote side fails to answer
        """

    @abstractmethod
    async def release(self, context: ExecutionContext) -> None:
        """Close the context. Must be safe to call on a half-open context."""

    def abandon(self) -> None:
        """Stop waiting for work that ignored cancellation. No-op by default."""

    async def query(self, query: LogQuery) -> List[CountRecord]:
        """
        Run one query from establishment to release.

        The context is released on every exit path, including cancellation.
        """
        context = ExecutionContext(host=query.host, category=query.category)
        try:
            await self.establish(query.host, query.category, context)
            return await self.run_query(context, query)
        finally:
            await self.release(context)


class BlockingLogClient(RemoteLogClient):
    """
    Base class for transports built on blocking I/O.

    Subclasses implement the synchronous `_establish`, `_run_query` and
    `_release` hooks; they run in worker threads so the event loop stays free.

    `_establish` and `_run_query` run on a pool owned by the client, not by
    the event loop, so a hook stuck in a blocking call never holds up the
    shutdown of `asyncio.run()`. `_release` runs on the loop's default
    executor and must be quick; it never queues behind stuck hooks.
    """

    max_workers = 32
    _executor: Optional[ThreadPoolExecutor] = None

    def _offload(self, func, *args):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix=f"evtriage-{self.name}",
            )
        return asyncio.get_running_loop().run_in_executor(self._executor, func, *args)

    def abandon(self) -> None:
        """Drop the worker pool without joining threads still in a blocking call."""
        if self._executor is not None:
            logger.debug(f"{self.name}: abandoning worker threads")
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    async def establish(
        self,
        host: str,
        category: LogCategory,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionContext:
        context = context or ExecutionContext(host=host, category=category)
        try:
            await self._offload(self._establish, context)
        except SessionEstablishmentError:
            raise
        except Exception as e:
            raise SessionEstablishmentError(host, str(e) or e.__class__.__name__) from e
        logger.debug(f"[{context.label}] {self.name} session established")
        return context

    async def run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        try:
            return await self._offload(self._run_query, context, query)
        except RemoteQueryError:
            raise
        except Exception as e:
            raise RemoteQueryError(context.host, str(e) or e.__class__.__name__) from e

    async def release(self, context: ExecutionContext) -> None:
        context.cancelled.set()
        try:
            await asyncio.to_thread(self._release, context)
        except Exception as e:
            logger.warning(f"[{context.label}] failed to release session: {e}")
        else:
            logger.debug(f"[{context.label}] session released")

    @abstractmethod
    def _establish(self, context: ExecutionContext) -> None:
        """Open the transport and store it in `context.handle`."""

    @abstractmethod
    def _run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        """Run the query over the open transport."""

    @abstractmethod
    def _release(self, context: ExecutionContext) -> None:
        """Close whatever `context.handle` holds, aborting a hook blocked on it."""
