"""
Tests for the collection coordinator using the in-memory transport.
"""

import asyncio
import threading
import time

import pytest

from evtriage.aggregation import aggregate
from evtriage.collection import (
    BlockingLogClient,
    CollectionCoordinator,
    CountRecord,
    EntryType,
    InMemoryLogClient,
    LogCategory,
    UnitStatus,
)
from evtriage.errors import FatalNoSessionsError, FatalNoTargetsError, InvalidFilterError

SYSTEM = LogCategory.SYSTEM
APPLICATION = LogCategory.APPLICATION


def collect(client, hosts, window, entry_type="Error", **kwargs):
    after, before = window
    coordinator = CollectionCoordinator(client, **kwargs)
    return asyncio.run(coordinator.collect(hosts, entry_type, after, before))


class TestCollection:
    """Test fan-out and result gathering."""

    def test_two_queries_per_host(self, window):
        client = InMemoryLogClient({"A": {SYSTEM: {100: 3}}, "B": {APPLICATION: {100: 2}}})

        result = collect(client, ["A", "B"], window)

        issued = sorted((q.host, q.category.value) for q in client.queries)
        assert issued == [
            ("A", "Application"),
            ("A", "System"),
            ("B", "Application"),
            ("B", "System"),
        ]
        assert all(q.entry_type == EntryType.ERROR for q in client.queries)
        assert result.hosts == ["A", "B"]
        assert result.failed_hosts == []

    def test_records_from_both_logs_gathered(self, window):
        client = InMemoryLogClient(
            {
                "A": {SYSTEM: {100: 3}, APPLICATION: {101: 1}},
                "B": {SYSTEM: {100: 2}},
            }
        )

        result = collect(client, ["A", "B"], window)
        table = aggregate(result.records, result.hosts)

        assert table.as_mapping() == {
            100: {"A": 3, "B": 2, "Total": 5},
            101: {"A": 1, "B": 0, "Total": 1},
        }

    def test_unreachable_host_reported_not_a_column(self, window):
        client = InMemoryLogClient({"A": {SYSTEM: {100: 3}}}, unreachable={"B"})

        result = collect(client, ["A", "B"], window)
        table = aggregate(result.records, result.hosts)

        assert result.failed_hosts == ["B"]
        assert table.columns == ["EventId", "A", "Total"]
        statuses = {(o.host, o.status) for o in result.outcomes if o.host == "B"}
        assert statuses == {("B", UnitStatus.SESSION_FAILED)}

    def test_one_failed_log_keeps_host(self, window):
        client = InMemoryLogClient(
            {"A": {SYSTEM: {100: 3}, APPLICATION: {200: 9}}},
            failing={("A", APPLICATION)},
        )

        result = collect(client, ["A"], window)

        assert result.hosts == ["A"]
        assert result.failed_hosts == []
        assert [r.event_id for r in result.records] == [100]
        assert [(o.host, o.category) for o in result.partial_failures] == [("A", APPLICATION)]

    def test_contexts_released(self, window):
        client = InMemoryLogClient(
            {"A": {SYSTEM: {1: 1}}},
            failing={("A", APPLICATION)},
            unreachable={"B"},
        )

        collect(client, ["A", "B"], window)

        assert client.open_contexts == {}
        # Only A's two contexts were ever established
        assert sorted(c.category.value for c in client.released) == ["Application", "System"]


class TestFatalConditions:
    """Test run-level failures."""

    def test_all_hosts_unreachable(self, window):
        client = InMemoryLogClient(unreachable={"A", "B"})

        with pytest.raises(FatalNoSessionsError) as exc_info:
            collect(client, ["A", "B"], window)

        assert exc_info.value.hosts == ["A", "B"]
        assert exc_info.value.exit_code == 5

    def test_no_hosts_means_no_remote_calls(self, window):
        client = InMemoryLogClient({"A": {SYSTEM: {1: 1}}})

        with pytest.raises(FatalNoTargetsError):
            collect(client, [], window)

        assert client.queries == []

    def test_invalid_filter_before_remote_calls(self, window):
        client = InMemoryLogClient({"A": {SYSTEM: {1: 1}}})

        with pytest.raises(InvalidFilterError):
            collect(client, ["A"], window, entry_type="Critical")

        assert client.queries == []

    def test_entry_type_case_insensitive(self, window):
        client = InMemoryLogClient({"A": {SYSTEM: {1: 1}}})

        collect(client, ["A"], window, entry_type="wArNiNg")

        assert {q.entry_type for q in client.queries} == {EntryType.WARNING}


class TestTimeout:
    """Test bounded waiting."""

    def test_slow_host_timed_out(self, window):
        client = InMemoryLogClient(
            {"A": {SYSTEM: {1: 2}}, "B": {SYSTEM: {1: 5}}},
            delays={("B", SYSTEM): 30.0, ("B", APPLICATION): 30.0},
        )

        result = collect(client, ["A", "B"], window, timeout=0.2, grace_period=1.0)

        assert result.hosts == ["A"]
        assert result.failed_hosts == ["B"]
        assert {o.status for o in result.outcomes if o.host == "B"} == {UnitStatus.TIMED_OUT}
        assert client.open_contexts == {}

    def test_everything_timed_out_is_fatal(self, window):
        client = InMemoryLogClient(
            {"A": {SYSTEM: {1: 2}}},
            delays={("A", SYSTEM): 30.0, ("A", APPLICATION): 30.0},
        )

        with pytest.raises(FatalNoSessionsError):
            collect(client, ["A"], window, timeout=0.1, grace_period=0.5)


class HangingClient(BlockingLogClient):
    """Blocking client whose slow hosts hang in a worker thread."""

    name = "hanging"

    def __init__(self, slow, honours_cancel=True):
        self.slow = {host.lower() for host in slow}
        self.honours_cancel = honours_cancel
        self.gate = threading.Event()
        self.released = []
        self._lock = threading.Lock()

    def _establish(self, context):
        if context.host.lower() in self.slow and not self.honours_cancel:
            # Stuck like a connect() that never looks at the cancel token
            self.gate.wait(10)
        context.handle = "session"

    def _run_query(self, context, query):
        if context.host.lower() in self.slow:
            context.cancelled.wait(10)
            raise RuntimeError("cancelled")
        return [CountRecord(host=context.host, event_id=7, count=1)]

    def _release(self, context):
        with self._lock:
            self.released.append(context.label)
        context.handle = None


class TestBlockingTimeout:
    """Test cancellation of queries running in worker threads."""

    def test_release_signals_blocked_query(self, window):
        client = HangingClient(slow={"B"})
        coordinator = CollectionCoordinator(client, timeout=0.3, grace_period=2.0)

        started = time.monotonic()
        result = coordinator.collect_sync(["A", "B"], "Error", *window)
        elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert result.hosts == ["A"]
        assert result.failed_hosts == ["B"]
        assert {o.status for o in result.outcomes if o.host == "B"} == {UnitStatus.TIMED_OUT}
        assert sorted(client.released) == [
            "A/Application",
            "A/System",
            "B/Application",
            "B/System",
        ]

    def test_stuck_worker_does_not_delay_return(self, window):
        client = HangingClient(slow={"B"}, honours_cancel=False)
        coordinator = CollectionCoordinator(client, timeout=0.3, grace_period=0.2)

        try:
            started = time.monotonic()
            result = coordinator.collect_sync(["A", "B"], "Error", *window)
            elapsed = time.monotonic() - started
        finally:
            client.gate.set()

        assert elapsed < 1.5
        assert result.failed_hosts == ["B"]
        assert {o.status for o in result.outcomes if o.host == "B"} == {UnitStatus.TIMED_OUT}

    def test_client_usable_after_abandoned_run(self, window):
        client = HangingClient(slow={"B"}, honours_cancel=False)
        coordinator = CollectionCoordinator(client, timeout=0.2, grace_period=0.1)

        try:
            coordinator.collect_sync(["A", "B"], "Error", *window)
        finally:
            client.gate.set()
        result = coordinator.collect_sync(["A"], "Error", *window)

        assert result.hosts == ["A"]
