"""
Event log collection data models.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from ..errors import InvalidFilterError


class LogCategory(str, Enum):
    """Event log partitions queried on every host."""

    SYSTEM = "System"
    APPLICATION = "Application"


class EntryType(str, Enum):
    """Entry type filter applied to both logs."""

    ERROR = "Error"
    WARNING = "Warning"
    INFORMATION = "Information"

    @classmethod
    def parse(cls, value: Union[str, "EntryType"]) -> "EntryType":
        """
        Parse an entry type case-insensitively.

        Raises:
            InvalidFilterError: If value is not a known entry type
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise InvalidFilterError(str(value))

    @property
    def levels(self) -> Tuple[int, ...]:
        """Windows event levels matched by this entry type."""
        return _ENTRY_TYPE_LEVELS[self]


# Critical (1) is reported as Error by the classic event log, LogAlways (0) as
# Information.
_ENTRY_TYPE_LEVELS = {
    EntryType.ERROR: (1, 2),
    EntryType.WARNING: (3,),
    EntryType.INFORMATION: (0, 4),
}


class LogQuery(BaseModel):
    """
    One unit of remote work: count events of one log on one host.

    The time range is half-open: [after, before).
    """

    host: str
    category: LogCategory
    entry_type: EntryType
    after: datetime
    before: datetime

    @model_validator(mode="after")
    def check_window(self) -> "LogQuery":
        if self.after >= self.before:
            raise ValueError("'after' must be earlier than 'before'")
        return self

    class Config:
        frozen = True


class CountRecord(BaseModel):
    """Number of matching events with one event ID on one host."""

    host: str
    event_id: int
    count: int = Field(..., ge=0)

    class Config:
        frozen = True


class UnitStatus(str, Enum):
    """Terminal state of a (host, category) unit of work."""

    OK = "ok"
    SESSION_FAILED = "session_failed"
    QUERY_FAILED = "query_failed"
    TIMED_OUT = "timed_out"


class UnitOutcome(BaseModel):
    """Result of one (host, category) unit of work."""

    host: str
    category: LogCategory
    status: UnitStatus
    records: List[CountRecord] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == UnitStatus.OK


class CollectionResult(BaseModel):
    """
    Everything gathered by one collection run.

    `hosts` lists the hosts that produced at least one successful query (the
    pivot table columns); `failed_hosts` lists those that produced none.
    """

    records: List[CountRecord] = Field(default_factory=list)
    hosts: List[str] = Field(default_factory=list)
    failed_hosts: List[str] = Field(default_factory=list)
    outcomes: List[UnitOutcome] = Field(default_factory=list)

    @property
    def partial_failures(self) -> List[UnitOutcome]:
        """Failed units on hosts that still contributed data."""
        succeeded = set(self.hosts)
        return [o for o in self.outcomes if not o.succeeded and o.host in succeeded]

    def failure_reason(self, host: str) -> Optional[str]:
        """First recorded error for a host, if any."""
        for outcome in self.outcomes:
            if outcome.host == host and not outcome.succeeded:
                return outcome.error or outcome.status.value
        return None
