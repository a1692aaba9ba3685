"""
Error taxonomy for evtriage.

Fatal errors carry the process exit code the CLI returns for them. Per-host
errors (session establishment, remote query) are absorbed by the collection
coordinator and only show up as failed hosts in the report.
"""

from typing import List, Optional


class EvtriageError(Exception):
    """Base class for all evtriage errors."""

    exit_code = 1


class InvalidFilterError(EvtriageError):
    """Raised when the entry-type filter is not Error, Warning or Information."""

    exit_code = 3

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Invalid entry type {value!r}: expected one of Error, Warning, Information"
        )


class FatalNoTargetsError(EvtriageError):
    """Raised when no host is left to query after name resolution."""

    exit_code = 4

    def __init__(self, dropped: Optional[List[str]] = None):
        self.dropped = list(dropped or [])
        message = "No resolvable hosts to query"
        if self.dropped:
            message += f" (unresolvable: {', '.join(self.dropped)})"
        super().__init__(message)


class FatalNoSessionsError(EvtriageError):
    """Raised when not a single host could be queried."""

    exit_code = 5

    def __init__(self, hosts: List[str]):
        self.hosts = list(hosts)
        super().__init__(
            f"Could not collect event logs from any of {len(self.hosts)} host(s): "
            f"{', '.join(self.hosts)}. Check network connectivity, remoting "
            "configuration and your permissions on the target hosts."
        )


class HostSourceError(EvtriageError):
    """Raised when a host list file cannot be read or parsed."""

    exit_code = 6


class SessionEstablishmentError(EvtriageError):
    """A remote execution context could not be opened for one host."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"{host}: session failed: {reason}")


class RemoteQueryError(EvtriageError):
    """The remote log query failed after the context was established."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"{host}: query failed: {reason}")
