"""
Host list sources: command line arguments and host files.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

import yaml

from ..errors import HostSourceError

logger = logging.getLogger(__name__)


def _read_text_hosts(text: str) -> List[str]:
    hosts = []
    for line in text.splitlines():
        line = line.strip()
        # Skip blanks and comments
        if line and not line.startswith("#"):
            hosts.append(line)
    return hosts


def _read_yaml_hosts(text: str, filepath: Path) -> List[str]:
    data = yaml.safe_load(text)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("hosts")
        if data is None:
            raise HostSourceError(f"No 'hosts' key found in {filepath}")
    if not isinstance(data, list):
        raise HostSourceError(f"Expected a list of hosts in {filepath}")
    return [str(item).strip() for item in data if item is not None and str(item).strip()]


def read_hosts_file(filepath: Union[str, Path]) -> List[str]:
    """
    Read a host list from a plain text or YAML file.

    Text files hold one host per line; blank lines and lines starting with
    '#' are ignored.

    Example YAML format:
        hosts:
          - dc01.corp.local
          - web01

    Args:
        filepath: Path to the host file

    Returns:
        Host names in file order (not deduplicated)

    Raises:
        HostSourceError: If the file cannot be read or parsed
    """
    path = Path(filepath).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise HostSourceError(f"Cannot read host file {path}: {e}") from e

    if path.suffix.lower() in (".yml", ".yaml"):
        try:
            hosts = _read_yaml_hosts(text, path)
        except yaml.YAMLError as e:
            raise HostSourceError(f"Invalid YAML in host file {path}: {e}") from e
    else:
        hosts = _read_text_hosts(text)

    logger.info(f"Loaded {len(hosts)} host(s) from {path}")
    return hosts


def merge_host_sources(*sources: Iterable[str]) -> List[str]:
    """Concatenate host lists in order; deduplication is left to the resolver."""
    merged: List[str] = []
    for source in sources:
        if source:
            merged.extend(source)
    return merged
