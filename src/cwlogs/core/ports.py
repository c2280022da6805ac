"""Ports (interfaces) used by the core tailing engine and query poller.

Ports define the minimal contracts for the Logs API client, the history store
and the event formatter so that the core can be exercised with fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from cwlogs.core.models import (
    EventPage,
    GroupPage,
    LogEvent,
    QueryHistory,
    QueryResults,
    StreamPage,
)


class LogsClientPort(Protocol):
    """Logs API operations required by the core."""

    async def filter_log_events(
        self,
        group_name: str,
        start_time_ms: int,
        end_time_ms: Optional[int] = None,
        stream_prefix: Optional[str] = None,
        filter_pattern: Optional[str] = None,
        next_token: Optional[str] = None,
        limit: int = 10_000,
    ) -> EventPage:
        ...

    async def start_query(
        self,
        group_names: Sequence[str],
        query_string: str,
        start_time_ms: int,
        end_time_ms: int,
    ) -> Optional[str]:
        ...

    async def get_query_results(self, query_id: str) -> QueryResults:
        ...


class HistoryStorePort(Protocol):
    """History store operations required by the query flow."""

    async def save(self, history: QueryHistory) -> None:
        ...

    async def update(self, history: QueryHistory) -> None:
        ...

    async def list_history(self) -> list[QueryHistory]:
        ...


class EventFormatterPort(Protocol):
    """Render one event as a newline-terminated line."""

    def format(self, event: LogEvent) -> str:
        ...


class LogCatalogPort(Protocol):
    """Log group and stream discovery used by the `ls` commands."""

    async def describe_log_groups(
        self,
        name_pattern: Optional[str] = None,
        name_prefix: Optional[str] = None,
        next_token: Optional[str] = None,
        limit: int = 50,
    ) -> GroupPage:
        ...

    async def describe_log_streams(
        self,
        group_name: str,
        next_token: Optional[str] = None,
        limit: int = 50,
    ) -> StreamPage:
        ...
