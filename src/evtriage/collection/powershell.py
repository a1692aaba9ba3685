"""
PowerShell event log query script and result decoding.

The script runs on the target host, counts matching events per event ID and
prints the result as Base64(UTF-8 JSON). Windows PowerShell output encoding
varies between hosts and consoles, so the payload is Base64 encoded on the
remote side before it crosses the transport.
"""

import base64
import binascii
import json
import re
from datetime import datetime, timezone
from typing import Any, List

from ..errors import RemoteQueryError
from .models import CountRecord, LogQuery

# Host names are embedded in commands; only allow DNS/NetBIOS/IP characters.
_HOST_PATTERN = re.compile(r"[A-Za-z0-9._:\-]+")


def is_safe_host(host: str) -> bool:
    return bool(_HOST_PATTERN.fullmatch(host or ""))


def quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


def _format_time(value: datetime) -> str:
    # Naive datetimes are taken as local time, like Get-WinEvent does
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def build_count_script(query: LogQuery) -> str:
    """
    Build the script that counts matching events grouped by event ID.

    Events are selected with Get-WinEvent -FilterHashtable, whose EndTime is
    inclusive, so events stamped exactly at `before` are filtered out again to
    keep the window half-open. "No events found" yields an empty list.
    """
    levels = ",".join(str(level) for level in query.entry_type.levels)
    parts = [
        "$ErrorActionPreference = 'Stop'; ",
        f"$after = [datetime]::Parse({quote(_format_time(query.after))}, $null, 'RoundtripKind').ToLocalTime(); ",
        f"$before = [datetime]::Parse({quote(_format_time(query.before))}, $null, 'RoundtripKind').ToLocalTime(); ",
        f"$filter = @{{ LogName = {quote(query.category.value)}; Level = @({levels}); StartTime = $after; EndTime = $before }}; ",
        "try { ",
        "  $events = @(Get-WinEvent -FilterHashtable $filter -ErrorAction Stop); ",
        "} catch { ",
        "  if ($_.FullyQualifiedErrorId -match 'NoMatchingEventsFound') { $events = @() } else { throw } ",
        "}; ",
        "$groups = @($events | Where-Object { $_.TimeCreated -lt $before } | Group-Object -Property Id | ",
        "  ForEach-Object { [pscustomobject]@{ id = [int]$_.Name; count = [int]$_.Count } }); ",
        "$json = ConvertTo-Json -InputObject $groups -Compress -Depth 3; ",
        "if (-not $json) { $json = '[]' }; ",
        "[System.Convert]::ToBase64String([System.Text.Encoding]::UTF8.GetBytes($json))",
    ]
    return "".join(parts)


def encode_command(script: str) -> str:
    """Encode a script for `powershell -EncodedCommand` (Base64 of UTF-16LE)."""
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def powershell_args(script: str, executable: str = "powershell") -> List[str]:
    return [
        executable,
        "-NoProfile",
        "-NonInteractive",
        "-ExecutionPolicy",
        "Bypass",
        "-EncodedCommand",
        encode_command(script),
    ]


def _item_value(item: dict, *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def decode_counts(raw: str, host: str) -> List[CountRecord]:
    """
    Decode the script output into CountRecords tagged with `host`.

    Accepts a list of {"id", "count"} objects, a single object (PowerShell
    unwraps one-element arrays), or empty output. Only the last non-empty
    line is decoded; anything printed before it is ignored.

    Raises:
        RemoteQueryError: If the payload cannot be decoded
    """
    lines = [line.strip() for line in (raw or "").splitlines() if line.strip()]
    if not lines:
        return []

    try:
        text = base64.b64decode(lines[-1].encode("ascii"), validate=True).decode("utf-8")
        data = json.loads(text) if text.strip() else []
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise RemoteQueryError(host, f"failed to decode base64 json: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise RemoteQueryError(host, f"unexpected payload type {type(data).__name__}")

    # One record per event ID; repeated IDs are summed
    counts: dict = {}
    for item in data:
        if not isinstance(item, dict):
            raise RemoteQueryError(host, f"unexpected payload item {item!r}")
        event_id = _item_value(item, "id", "Id", "Name")
        count = _item_value(item, "count", "Count")
        try:
            event_id = int(event_id)
            count = int(count)
        except (TypeError, ValueError) as e:
            raise RemoteQueryError(host, f"invalid count entry {item!r}") from e
        if count < 0:
            raise RemoteQueryError(host, f"negative count in {item!r}")
        counts[event_id] = counts.get(event_id, 0) + count

    return [CountRecord(host=host, event_id=eid, count=n) for eid, n in counts.items()]
