"""
Tests for the PowerShell query script and output decoding.
"""

import base64
import json
from datetime import datetime, timezone

import pytest

from evtriage.collection import EntryType, LogCategory, LogQuery
from evtriage.collection.powershell import (
    build_count_script,
    decode_counts,
    encode_command,
    is_safe_host,
    powershell_args,
    quote,
)
from evtriage.errors import RemoteQueryError


def payload(data) -> str:
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


def make_query(**overrides) -> LogQuery:
    values = dict(
        host="dc01",
        category=LogCategory.SYSTEM,
        entry_type=EntryType.ERROR,
        after=datetime(2025, 1, 14, 12, 0, tzinfo=timezone.utc),
        before=datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return LogQuery(**values)


class TestDecodeCounts:
    """Test decoding of the Base64 JSON payload."""

    def test_list_payload(self):
        raw = payload([{"id": 7036, "count": 12}, {"id": 10016, "count": 3}])

        records = decode_counts(raw + "\r\n", "dc01")

        assert {(r.host, r.event_id, r.count) for r in records} == {
            ("dc01", 7036, 12),
            ("dc01", 10016, 3),
        }

    def test_single_object_payload(self):
        records = decode_counts(payload({"Id": 41, "Count": 1}), "dc01")

        assert [(r.event_id, r.count) for r in records] == [(41, 1)]

    def test_empty_output(self):
        assert decode_counts("", "dc01") == []
        assert decode_counts(payload([]), "dc01") == []

    def test_noise_before_payload_ignored(self):
        raw = "WARNING: something\n" + payload([{"id": 1, "count": 2}])

        assert [(r.event_id, r.count) for r in decode_counts(raw, "dc01")] == [(1, 2)]

    def test_duplicate_ids_summed(self):
        raw = payload([{"id": 1, "count": 2}, {"id": 1, "count": 3}])

        assert [(r.event_id, r.count) for r in decode_counts(raw, "dc01")] == [(1, 5)]

    def test_garbage_raises(self):
        with pytest.raises(RemoteQueryError):
            decode_counts("not base64 at all!", "dc01")

    def test_negative_count_raises(self):
        with pytest.raises(RemoteQueryError):
            decode_counts(payload([{"id": 1, "count": -1}]), "dc01")

    def test_bad_entry_raises(self):
        with pytest.raises(RemoteQueryError):
            decode_counts(payload([{"id": "abc", "count": 1}]), "dc01")


class TestCountScript:
    """Test script generation."""

    def test_error_levels_and_log_name(self):
        script = build_count_script(make_query())

        assert "LogName = 'System'" in script
        assert "Level = @(1,2)" in script
        assert "2025-01-14T12:00:00.000000Z" in script
        assert "2025-01-15T12:00:00.000000Z" in script
        assert "$_.TimeCreated -lt $before" in script

    def test_information_levels(self):
        script = build_count_script(
            make_query(category=LogCategory.APPLICATION, entry_type=EntryType.INFORMATION)
        )

        assert "LogName = 'Application'" in script
        assert "Level = @(0,4)" in script

    def test_encode_command_is_utf16(self):
        encoded = encode_command("Get-Date")

        assert base64.b64decode(encoded).decode("utf-16-le") == "Get-Date"

    def test_powershell_args(self):
        args = powershell_args("Get-Date", "pwsh")

        assert args[0] == "pwsh"
        assert args[-2] == "-EncodedCommand"

    def test_quote_escapes_single_quotes(self):
        assert quote("it's") == "'it''s'"

    def test_safe_host(self):
        assert is_safe_host("dc01.corp.local")
        assert is_safe_host("fe80::1")
        assert not is_safe_host("dc01; Remove-Item")
        assert not is_safe_host("")


class TestLogQuery:
    """Test query value validation."""

    def test_window_must_not_be_empty(self):
        moment = datetime(2025, 1, 15, tzinfo=timezone.utc)

        with pytest.raises(ValueError):
            make_query(after=moment, before=moment)

    def test_query_is_frozen(self):
        query = make_query()

        with pytest.raises(Exception):
            query.host = "other"
