"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to boto3 response dictionaries.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SourceRef:
    """A log group to tail, optionally narrowed to a stream name prefix."""

    name: str
    substream_prefix: Optional[str] = None


@dataclass(frozen=True)
class RemoteEvent:
    """One event of a filter_log_events page, before its group is attached."""

    substream_name: Optional[str] = None
    timestamp_ms: Optional[int] = None
    message: Optional[str] = None
    ingestion_time_ms: Optional[int] = None
    event_id: Optional[str] = None


@dataclass(frozen=True)
class EventPage:
    """A page of events plus the token for the following page, if any."""

    events: list[RemoteEvent]
    next_token: Optional[str] = None


@dataclass(frozen=True)
class LogEvent:
    """Event flowing from a tail producer to the output writer."""

    source_name: str
    substream_name: Optional[str] = None
    timestamp_ms: Optional[int] = None
    message: Optional[str] = None
    ingestion_time_ms: Optional[int] = None
    event_id: Optional[str] = None

    @classmethod
    def from_remote(cls, source_name: str, event: RemoteEvent) -> "LogEvent":
        return cls(
            source_name=source_name,
            substream_name=event.substream_name,
            timestamp_ms=event.timestamp_ms,
            message=event.message,
            ingestion_time_ms=event.ingestion_time_ms,
            event_id=event.event_id,
        )


@dataclass(frozen=True)
class LogGroup:
    name: str
    retention_in_days: Optional[int] = None


@dataclass(frozen=True)
class LogStream:
    name: str
    last_event_timestamp_ms: Optional[int] = None


@dataclass(frozen=True)
class GroupPage:
    groups: list[LogGroup]
    next_token: Optional[str] = None


@dataclass(frozen=True)
class StreamPage:
    streams: list[LogStream]
    next_token: Optional[str] = None


class QueryStatus(str, Enum):
    """Lifecycle of a Logs Insights query as recorded in the history store."""

    SCHEDULED = "Scheduled"
    RUNNING = "Running"
    COMPLETE = "Complete"
    FAILED = "Failed"
    TIMEOUT = "Timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (QueryStatus.COMPLETE, QueryStatus.FAILED, QueryStatus.TIMEOUT)

    @classmethod
    def from_remote(cls, value: Optional[str]) -> Optional["QueryStatus"]:
        """Map an API status string, returning None for values we do not track."""

        if value is None:
            return None
        for status in cls:
            if status.value == value:
                return status
        return None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class QueryStatistics:
    records_matched: float = 0.0
    records_scanned: float = 0.0
    bytes_scanned: float = 0.0


@dataclass(frozen=True)
class ResultField:
    field: Optional[str]
    value: Optional[str]


@dataclass(frozen=True)
class QueryResults:
    """One get_query_results response.

    `status` is the raw API string so that values added on the remote side
    can be told apart from a missing status.
    """

    status: Optional[str]
    statistics: Optional[QueryStatistics] = None
    rows: list[list[ResultField]] = field(default_factory=list)


@dataclass
class QueryHistory:
    """Persisted record of a submitted query and its lifecycle.

    `id` is assigned once; every mutation goes through the setters so that
    `modified_at` is refreshed.
    """

    query_id: str
    contents: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: QueryStatus = QueryStatus.SCHEDULED
    account: Optional[str] = None
    records_total: int = 0
    records_matched: float = 0.0
    records_scanned: float = 0.0
    bytes_scanned: float = 0.0
    created_at: datetime = field(default_factory=utc_now)
    modified_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.modified_at is None:
            self.modified_at = self.created_at

    def _touch(self) -> None:
        # Clock skew must never put modified_at before created_at.
        self.modified_at = max(utc_now(), self.created_at)

    def set_status(self, status: QueryStatus) -> None:
        self.status = status
        self._touch()

    def set_statistics(self, records_total: int, statistics: QueryStatistics) -> None:
        self.records_total = records_total
        self.records_matched = statistics.records_matched
        self.records_scanned = statistics.records_scanned
        self.bytes_scanned = statistics.bytes_scanned
        self._touch()
