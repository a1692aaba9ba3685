"""
Host list validation by forward name resolution.
"""

import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple

from .models import HostResolution

logger = logging.getLogger(__name__)

LOCAL_MARKERS = frozenset({".", "localhost"})

# Fixed report column headers, compared case-insensitively
RESERVED_NAMES = frozenset({"eventid", "total"})

# Lookup callables return normally on success and raise on failure.
Lookup = Callable[[str], object]


def forward_lookup(host: str) -> List[str]:
    """
    Resolve a host name to its network addresses.

    Args:
        host: DNS or NetBIOS-style host name

    Returns:
        List of address strings (at least one)

    Raises:
        socket.gaierror: If the name does not resolve
    """
    infos = socket.getaddrinfo(host, None)
    addresses = []
    for info in infos:
        address = info[4][0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def deduplicate(candidates: Iterable[str]) -> List[str]:
    """
    Drop blank and case-insensitive duplicate host names.

    The first spelling of each host wins and the input order is preserved.
    """
    seen = set()
    unique = []
    for candidate in candidates:
        host = (candidate or "").strip()
        if not host:
            continue
        key = host.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(host)
    return unique


class HostResolver:
    """
    Validates candidate hosts before any remote work is attempted.

    Usage:
        resolver = HostResolver()
        resolution = resolver.resolve(["dc01", "DC01", "web01"])
        if not resolution.has_targets:
            raise FatalNoTargetsError(resolution.dropped)
    """

    def __init__(self, lookup: Optional[Lookup] = None, max_workers: int = 16):
        """
        Initialize host resolver.

        Args:
            lookup: Name lookup callable (defaults to a getaddrinfo lookup)
            max_workers: Maximum number of concurrent lookups
        """
        self.lookup = lookup or forward_lookup
        self.max_workers = max(1, max_workers)

    def _check(self, host: str) -> Tuple[str, Optional[str]]:
        if host.lower() in RESERVED_NAMES:
            return host, "name clashes with a report column"
        if host.lower() in LOCAL_MARKERS:
            return host, None
        try:
            self.lookup(host)
        except (OSError, UnicodeError) as e:
            return host, f"name resolution failed ({str(e) or e.__class__.__name__})"
        return host, None

    def resolve(self, candidates: Iterable[str]) -> HostResolution:
        """
        Deduplicate candidates and keep those that resolve.

        Each host is looked up exactly once; failures are never retried and
        never raised.

        Args:
            candidates: Host names from the merged input sources

        Returns:
            HostResolution partitioning the unique candidates
        """
        unique = deduplicate(candidates)
        if not unique:
            return HostResolution()

        workers = min(self.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in input order, which keeps first-seen ordering
            outcomes = list(executor.map(self._check, unique))

        resolved: List[str] = []
        dropped: List[str] = []
        for host, error in outcomes:
            if error is None:
                resolved.append(host)
            else:
                logger.warning(f"Dropping {host}: {error}")
                dropped.append(host)

        logger.info(f"Resolved {len(resolved)} of {len(unique)} host(s)")
        return HostResolution(resolved=resolved, dropped=dropped)
