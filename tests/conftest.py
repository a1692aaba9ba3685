"""
Shared fixtures for the evtriage test suite.
"""

import socket
from datetime import datetime, timedelta, timezone

import pytest

from evtriage.hosts import HostResolver


def fake_lookup(known):
    """Build a lookup that only resolves the given names (case-insensitive)."""
    known = {name.lower() for name in known}
    calls = []

    def lookup(host):
        calls.append(host)
        if host.lower() not in known:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return ["192.0.2.10"]

    lookup.calls = calls
    return lookup


@pytest.fixture
def window():
    before = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    return before - timedelta(hours=24), before


@pytest.fixture
def resolver_factory():
    def make(known):
        lookup = fake_lookup(known)
        return HostResolver(lookup=lookup), lookup

    return make
