"""CloudWatch Logs response to core model mapping.

This keeps boto3 response dictionaries out of the core engine.
"""

from __future__ import annotations

from typing import Any, Mapping

from cwlogs.core.models import (
    EventPage,
    GroupPage,
    LogGroup,
    LogStream,
    QueryResults,
    QueryStatistics,
    RemoteEvent,
    ResultField,
    StreamPage,
)


def event_from_api(raw: Mapping[str, Any]) -> RemoteEvent:
    return RemoteEvent(
        substream_name=raw.get("logStreamName"),
        timestamp_ms=raw.get("timestamp"),
        message=raw.get("message"),
        ingestion_time_ms=raw.get("ingestionTime"),
        event_id=raw.get("eventId"),
    )


def event_page_from_api(response: Mapping[str, Any]) -> EventPage:
    events = [event_from_api(raw) for raw in response.get("events") or []]
    return EventPage(events=events, next_token=response.get("nextToken") or None)


def statistics_from_api(raw: Mapping[str, Any]) -> QueryStatistics:
    return QueryStatistics(
        records_matched=float(raw.get("recordsMatched", 0.0)),
        records_scanned=float(raw.get("recordsScanned", 0.0)),
        bytes_scanned=float(raw.get("bytesScanned", 0.0)),
    )


def query_results_from_api(response: Mapping[str, Any]) -> QueryResults:
    """Map get_query_results, keeping the status string untouched."""

    raw_statistics = response.get("statistics")
    rows = [
        [ResultField(field=item.get("field"), value=item.get("value")) for item in row]
        for row in response.get("results") or []
    ]
    return QueryResults(
        status=response.get("status"),
        statistics=statistics_from_api(raw_statistics) if raw_statistics is not None else None,
        rows=rows,
    )


def group_page_from_api(response: Mapping[str, Any]) -> GroupPage:
    groups = [
        LogGroup(name=raw.get("logGroupName", ""), retention_in_days=raw.get("retentionInDays"))
        for raw in response.get("logGroups") or []
    ]
    return GroupPage(groups=groups, next_token=response.get("nextToken") or None)


def stream_page_from_api(response: Mapping[str, Any]) -> StreamPage:
    streams = [
        LogStream(name=raw.get("logStreamName", ""), last_event_timestamp_ms=raw.get("lastEventTimestamp"))
        for raw in response.get("logStreams") or []
    ]
    return StreamPage(streams=streams, next_token=response.get("nextToken") or None)
