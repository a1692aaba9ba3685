#!/usr/bin/env python3
"""
evtriagectl - event log triage CLI

Collects System and Application event log counts from many Windows hosts
and ranks the event IDs that show up most:
- Collect and rank (evtriagectl collect)
- Check which hosts resolve (evtriagectl resolve)
- Version info (evtriagectl version)
"""

import argparse
import getpass
import logging
import os
import sys
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from evtriage import __version__
from evtriage.aggregation import aggregate
from evtriage.collection import CollectionCoordinator, EntryType, RemoteLogClient, create_log_client
from evtriage.core.config import AppConfig, get_config
from evtriage.errors import EvtriageError, FatalNoTargetsError
from evtriage.hosts import HostResolver, merge_host_sources, read_hosts_file
from evtriage.report import render_console, render_failures, write_csv

logger = logging.getLogger("evtriage.cli")


class Colors:
    """ANSI color codes for terminal output."""

    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colorize(text: str, color: str, stream=None) -> str:
    """Colorize text if the target stream is a TTY."""
    stream = stream or sys.stdout
    if stream.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure root logging once for the CLI process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def parse_timestamp(value: str) -> datetime:
    """argparse type for ISO 8601 timestamps; naive values are local time."""
    if value.endswith(("Z", "z")):
        # fromisoformat only accepts the Z suffix from Python 3.11 on
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def time_window(
    hours: int,
    after: Optional[datetime] = None,
    before: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Work out the [after, before) window.

    Missing bounds default to now and `hours` before the other bound.

    Raises:
        ValueError: If the window is empty
    """
    now = now or datetime.now().astimezone()
    before = before or now
    after = after or before - timedelta(hours=hours)
    if after >= before:
        raise ValueError(f"empty time window: {after.isoformat()} is not before {before.isoformat()}")
    return after, before


def gather_hosts(args) -> List[str]:
    """Merge hosts from the command line and the optional host file."""
    file_hosts = read_hosts_file(args.file) if args.file else []
    return merge_host_sources(args.hosts, file_hosts)


def build_client(args, config: AppConfig) -> RemoteLogClient:
    password = None
    if getattr(args, "ask_password", False):
        password = getpass.getpass("SSH password: ")
    return create_log_client(
        kind=args.transport,
        config=config.transport,
        ssh_user=getattr(args, "ssh_user", None),
        ssh_password=password,
    )


def cmd_collect(
    args,
    config: AppConfig,
    client: Optional[RemoteLogClient] = None,
    resolver: Optional[HostResolver] = None,
) -> int:
    """
    Collect, aggregate and print event counts.

    Returns:
        Exit code (0 on success; fatal conditions are raised)
    """
    # Validate the filter before touching the network
    entry_type = EntryType.parse(args.entry_type)
    hours = args.hours or config.collection.window_hours
    try:
        after, before = time_window(hours, args.after, args.before)
    except ValueError as e:
        print(colorize(f"✗ {e}", Colors.RED, sys.stderr), file=sys.stderr)
        return 2

    hosts = gather_hosts(args)
    resolution = (resolver or HostResolver()).resolve(hosts)
    if not resolution.has_targets:
        raise FatalNoTargetsError(resolution.dropped)

    logger.info(f"Querying {len(resolution.resolved)} host(s) for {entry_type.value} events")
    client = client or build_client(args, config)
    coordinator = CollectionCoordinator(
        client,
        timeout=args.timeout or config.collection.timeout,
        grace_period=config.collection.grace_period,
    )
    result = coordinator.collect_sync(resolution.resolved, entry_type, after, before)

    top = config.collection.top if args.top is None else args.top
    table = aggregate(result.records, result.hosts, top_n=top)

    print(colorize(f"\n{entry_type.value} events, {after:%Y-%m-%d %H:%M} - {before:%Y-%m-%d %H:%M}", Colors.BOLD))
    print(colorize("=" * 60, Colors.BOLD))
    print(render_console(table))
    print()

    failures = render_failures(resolution, result)
    if failures:
        print(colorize(failures, Colors.YELLOW, sys.stderr), file=sys.stderr)

    if args.csv:
        path = write_csv(table, args.csv)
        print(colorize(f"✓ CSV written to {path}", Colors.GREEN))

    return 0


def cmd_resolve(args, config: AppConfig) -> int:
    """
    Print which hosts resolve.

    Returns:
        Exit code (0 if at least one host resolves)
    """
    resolution = HostResolver().resolve(gather_hosts(args))
    for host in resolution.resolved:
        print(f"{host}: {colorize('[OK]', Colors.GREEN)}")
    for host in resolution.dropped:
        print(f"{host}: {colorize('[UNRESOLVED]', Colors.RED)}")
    if not resolution.has_targets:
        raise FatalNoTargetsError(resolution.dropped)
    return 0


def cmd_version(args, config: AppConfig) -> int:
    """
    Print version information.

    Returns:
        Exit code (always 0)
    """
    print(f"evtriagectl version {__version__}")
    return 0


def _add_host_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "hosts",
        nargs="*",
        help="Hosts to query"
    )
    parser.add_argument(
        "--file",
        default=None,
        help="Host list file (text: one host per line, or YAML with a 'hosts' list)"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for evtriagectl."""
    parser = argparse.ArgumentParser(
        prog="evtriagectl",
        description="Rank Windows event log entries across many hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  evtriagectl collect dc01 dc02 web01              # Errors of the last 24h
  evtriagectl collect --file hosts.txt --entry-type warning --top 20
  evtriagectl collect web01 --after 2025-01-15T08:00 --csv errors.csv
  evtriagectl collect --file hosts.yaml --transport ssh --ssh-user admin
  evtriagectl resolve --file hosts.txt             # Check host names only

Environment variables:
  EVTRIAGE_TRANSPORT_KIND                          # winrm (default) or ssh
  EVTRIAGE_COLLECTION_TIMEOUT                      # Overall wait in seconds
  LOG_LEVEL or EVTRIAGE_LOG_LEVEL                  # Logging level
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # collect command
    collect_parser = subparsers.add_parser(
        "collect",
        help="Collect event counts and print the ranked table"
    )
    _add_host_arguments(collect_parser)
    collect_parser.add_argument(
        "--entry-type",
        default=None,
        help="Error, Warning or Information (case-insensitive, default: Error)"
    )
    collect_parser.add_argument(
        "--hours",
        type=int,
        default=None,
        help="Look-back window in hours (default: 24)"
    )
    collect_parser.add_argument(
        "--after",
        type=parse_timestamp,
        default=None,
        help="Window start, ISO 8601 (inclusive)"
    )
    collect_parser.add_argument(
        "--before",
        type=parse_timestamp,
        default=None,
        help="Window end, ISO 8601 (exclusive, default: now)"
    )
    collect_parser.add_argument(
        "--top",
        type=int,
        default=None,
        help="Show only the N highest ranked event IDs (0 = all)"
    )
    collect_parser.add_argument(
        "--csv",
        default=None,
        help="Also export the table to this CSV file"
    )
    collect_parser.add_argument(
        "--transport",
        choices=["winrm", "ssh"],
        default=None,
        help="Remote execution transport (default: winrm)"
    )
    collect_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall wait for all hosts in seconds (default: 300)"
    )
    collect_parser.add_argument(
        "--ssh-user",
        default=None,
        help="SSH user for the ssh transport"
    )
    collect_parser.add_argument(
        "--ask-password",
        action="store_true",
        help="Prompt for an SSH password instead of using keys"
    )
    collect_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )

    # resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Check which hosts resolve, without querying them"
    )
    _add_host_arguments(resolve_parser)

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information"
    )

    return parser


def main(argv=None):
    """Main entry point for evtriagectl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = get_config()
    setup_logging(
        level=os.getenv("LOG_LEVEL", config.log_level).upper(),
        verbose=getattr(args, "verbose", False),
    )

    if args.command == "collect" and args.entry_type is None:
        args.entry_type = config.collection.entry_type

    handlers = {
        "collect": cmd_collect,
        "resolve": cmd_resolve,
        "version": cmd_version,
    }
    handler = handlers.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args, config)
    except EvtriageError as e:
        print(colorize(f"✗ {e}", Colors.RED, sys.stderr), file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print(colorize("\n✗ Interrupted", Colors.RED, sys.stderr), file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
