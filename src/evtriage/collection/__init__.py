"""
Remote event log collection: transports and the collection coordinator.
"""

from .client import BlockingLogClient, ExecutionContext, RemoteLogClient
from .coordinator import CollectionBatch, CollectionCoordinator
from .factory import create_log_client
from .memory import InMemoryLogClient
from .models import (
    CollectionResult,
    CountRecord,
    EntryType,
    LogCategory,
    LogQuery,
    UnitOutcome,
    UnitStatus,
)
from .ssh import SSHLogClient
from .winrm import WinRMLogClient

__all__ = [
    "BlockingLogClient",
    "CollectionBatch",
    "CollectionCoordinator",
    "CollectionResult",
    "CountRecord",
    "EntryType",
    "ExecutionContext",
    "InMemoryLogClient",
    "LogCategory",
    "LogQuery",
    "RemoteLogClient",
    "SSHLogClient",
    "UnitOutcome",
    "UnitStatus",
    "WinRMLogClient",
    "create_log_client",
]
