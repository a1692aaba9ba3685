"""
evtriage - Windows event log triage across many hosts

This package collects Error/Warning/Information counts from the System and
Application event logs of remote Windows hosts, aggregates them by event ID
and ranks them, so operators can see which recurring issues hit the most
machines.

Main modules:
- hosts: host list sources and name resolution
- collection: remote transports and the concurrent collection coordinator
- aggregation: pivot of per-host counts into a ranked table
- report: console and CSV rendering
- cli: evtriagectl command line entry point
"""

__version__ = "0.1.0"
__author__ = "evtriage maintainers"

__all__ = ["__version__", "__author__"]
