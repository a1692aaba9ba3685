"""
Tests for console and CSV rendering.
"""

import pytest

from evtriage.aggregation import aggregate
from evtriage.collection import CollectionResult, CountRecord, LogCategory, UnitOutcome, UnitStatus
from evtriage.hosts import HostResolution
from evtriage.report import parse_csv, render_console, render_failures, to_csv, write_csv


@pytest.fixture
def table():
    records = [
        CountRecord(host="A", event_id=100, count=3),
        CountRecord(host="A", event_id=101, count=1),
        CountRecord(host="B", event_id=100, count=2),
    ]
    return aggregate(records, ["A", "B"])


class TestCsv:
    """Test CSV export."""

    def test_layout(self, table):
        assert to_csv(table).splitlines() == [
            "EventId,A,B,Total",
            "100,3,2,5",
            "101,1,0,1",
        ]

    def test_round_trip(self, table):
        parsed = parse_csv(to_csv(table))

        assert parsed.hosts == table.hosts
        assert parsed.as_mapping() == table.as_mapping()

    def test_write_csv(self, table, tmp_path):
        path = write_csv(table, tmp_path / "out.csv")

        assert parse_csv(path.read_text(encoding="utf-8")) == table

    def test_bad_header(self):
        with pytest.raises(ValueError):
            parse_csv("Id,A,Sum\n1,1,1\n")

    def test_inconsistent_total(self):
        with pytest.raises(ValueError):
            parse_csv("EventId,A,Total\n1,1,2\n")

    def test_host_column_clashing_with_total(self):
        with pytest.raises(ValueError):
            parse_csv("EventId,Total,Total\n1,1,1\n")


class TestConsole:
    """Test console rendering."""

    def test_table(self, table):
        lines = render_console(table).splitlines()

        assert lines[0].split() == ["EventId", "A", "B", "Total"]
        assert lines[2].split() == ["100", "3", "2", "5"]
        assert lines[3].split() == ["101", "1", "0", "1"]

    def test_empty_table(self):
        assert render_console(aggregate([], ["A"])) == "No matching events found."

    def test_failures(self):
        resolution = HostResolution(resolved=["A", "B"], dropped=["gone"])
        result = CollectionResult(
            hosts=["A"],
            failed_hosts=["B"],
            outcomes=[
                UnitOutcome(host="A", category=LogCategory.SYSTEM, status=UnitStatus.OK),
                UnitOutcome(
                    host="A",
                    category=LogCategory.APPLICATION,
                    status=UnitStatus.QUERY_FAILED,
                    error="log unavailable",
                ),
                UnitOutcome(
                    host="B",
                    category=LogCategory.SYSTEM,
                    status=UnitStatus.SESSION_FAILED,
                    error="access denied",
                ),
            ],
        )

        text = render_failures(resolution, result)

        assert "gone" in text
        assert "B: access denied" in text
        assert "A [Application]: log unavailable" in text
