"""CloudWatch Logs adapter.

Implements the core LogsClientPort on top of a boto3 `logs` client. boto3 is
blocking, so every call runs in a worker thread; boto3 clients are safe to
share between threads, which lets every tail producer use the same client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from cwlogs.adapters.cloudwatch_mapper import (
    event_page_from_api,
    group_page_from_api,
    query_results_from_api,
    stream_page_from_api,
)
from cwlogs.core.errors import TransportError
from cwlogs.core.models import EventPage, GroupPage, QueryResults, StreamPage

LOGGER = logging.getLogger(__name__)

# describe_log_groups / describe_log_streams accept at most 50 items per page.
DESCRIBE_PAGE_SIZE = 50


class CloudWatchLogsClient:
    """Async facade over a boto3 CloudWatch Logs client."""

    def __init__(self, boto_client) -> None:
        self._client = boto_client

    async def _call(self, operation: str, failure: str, **params: Any) -> dict:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            LOGGER.debug("%s failed: %s", operation, error)
            raise TransportError(f"{failure} {error.get('Code', '')}: {error.get('Message', exc)}".strip()) from exc
        except BotoCoreError as exc:
            raise TransportError(f"{failure} {exc}") from exc

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
        params: dict[str, Any] = {
            "logGroupName": group_name,
            "startTime": start_time_ms,
            "limit": limit,
        }
        if end_time_ms is not None:
            params["endTime"] = end_time_ms
        if stream_prefix:
            params["logStreamNamePrefix"] = stream_prefix
        if filter_pattern:
            params["filterPattern"] = filter_pattern
        if next_token:
            params["nextToken"] = next_token

        response = await self._call("filter_log_events", "Failed to fetch CloudWatch logs.", **params)
        return event_page_from_api(response)

    async def start_query(
        self,
        group_names: Sequence[str],
        query_string: str,
        start_time_ms: int,
        end_time_ms: int,
    ) -> Optional[str]:
        # StartQuery takes its window in seconds, unlike every other call here.
        response = await self._call(
            "start_query",
            "Failed starting CloudWatch Logs Insights query.",
            logGroupNames=list(group_names),
            queryString=query_string,
            startTime=start_time_ms // 1000,
            endTime=end_time_ms // 1000,
        )
        return response.get("queryId")

    async def get_query_results(self, query_id: str) -> QueryResults:
        response = await self._call(
            "get_query_results",
            f"Failed fetching results for query {query_id}.",
            queryId=query_id,
        )
        return query_results_from_api(response)

    async def describe_log_groups(
        self,
        name_pattern: Optional[str] = None,
        name_prefix: Optional[str] = None,
        next_token: Optional[str] = None,
        limit: int = DESCRIBE_PAGE_SIZE,
    ) -> GroupPage:
        params: dict[str, Any] = {"limit": limit}
        if name_pattern:
            params["logGroupNamePattern"] = name_pattern
        if name_prefix:
            params["logGroupNamePrefix"] = name_prefix
        if next_token:
            params["nextToken"] = next_token
        response = await self._call("describe_log_groups", "Failed listing log groups.", **params)
        return group_page_from_api(response)

    async def describe_log_streams(
        self,
        group_name: str,
        next_token: Optional[str] = None,
        limit: int = DESCRIBE_PAGE_SIZE,
    ) -> StreamPage:
        params: dict[str, Any] = {
            "logGroupIdentifier": group_name,
            "orderBy": "LastEventTime",
            "descending": True,
            "limit": limit,
        }
        if next_token:
            params["nextToken"] = next_token
        response = await self._call("describe_log_streams", "Failed listing log streams.", **params)
        return stream_page_from_api(response)
