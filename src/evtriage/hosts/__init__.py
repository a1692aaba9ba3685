"""
Host list sources and name resolution.
"""

from .models import HostResolution
from .resolver import LOCAL_MARKERS, RESERVED_NAMES, HostResolver, deduplicate, forward_lookup
from .sources import merge_host_sources, read_hosts_file

__all__ = [
    "HostResolution",
    "HostResolver",
    "LOCAL_MARKERS",
    "RESERVED_NAMES",
    "deduplicate",
    "forward_lookup",
    "merge_host_sources",
    "read_hosts_file",
]
