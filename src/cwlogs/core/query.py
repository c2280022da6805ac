"""Logs Insights query flow: submit, record, poll until terminal.

The poller owns both the remote status poll and the local history record.
Every status change is written to the history store before polling
continues, so the stored lifecycle never runs ahead of what was observed.

Poll handling:
- Scheduled: wait and poll again
- Running: persist Running, wait and poll again
- Complete: persist status and statistics, emit result rows
- Failed / Timeout: persist and raise
- no status, or a status we do not know: stop without an error
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Awaitable, Callable, Iterable, Optional, Sequence, TextIO

from cwlogs.core.config import QUERY_POLL_INTERVAL_SECONDS
from cwlogs.core.errors import QueryFailed, QueryTimeout, SubmissionError
from cwlogs.core.models import (
    QueryHistory,
    QueryResults,
    QueryStatistics,
    QueryStatus,
    ResultField,
)
from cwlogs.core.ports import HistoryStorePort, LogsClientPort
from cwlogs.core.time_utils import default_start_time_ms, now_ms

LOGGER = logging.getLogger(__name__)

# Internal pointer to the full log record; never printed.
POINTER_FIELD = "@ptr"

Sleep = Callable[[float], Awaitable[None]]


def result_row_to_dict(row: Iterable[ResultField]) -> dict[str, str]:
    """Map one result row to field -> value, dropping the record pointer."""

    values: dict[str, str] = {}
    for record in row:
        if not record.field or record.field == POINTER_FIELD:
            continue
        values[record.field] = record.value or ""
    return values


async def submit_query(
    client: LogsClientPort,
    query_text: str,
    source_names: Sequence[str],
    start_time_ms: Optional[int] = None,
    end_time_ms: Optional[int] = None,
) -> str:
    """Start a query and return its id."""

    if not source_names:
        raise ValueError("at least one log group is required")
    if start_time_ms is None:
        start_time_ms = default_start_time_ms()
    if end_time_ms is None:
        end_time_ms = now_ms()

    query_id = await client.start_query(list(source_names), query_text, start_time_ms, end_time_ms)
    if not query_id:
        raise SubmissionError("Starting the query did not return a query id")
    LOGGER.info("Collecting events for query with id %s", query_id)
    return query_id


class QueryPoller:
    """Poll one query until it reaches a terminal (or unknown) state."""

    def __init__(
        self,
        client: LogsClientPort,
        store: HistoryStorePort,
        sink: Optional[TextIO] = None,
        interval: float = QUERY_POLL_INTERVAL_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._store = store
        self._sink = sink
        self._interval = interval
        self._sleep = sleep
        self.polls = 0

    @property
    def sink(self) -> TextIO:
        return self._sink if self._sink is not None else sys.stdout

    async def run(self, history: QueryHistory) -> Optional[QueryStatus]:
        """Return the terminal status, or None when the outcome is indeterminate."""

        query_id = history.query_id
        while True:
            output = await self._client.get_query_results(query_id)
            self.polls += 1

            if output.status is None:
                LOGGER.info("[%s] No status returned, unsure if I should proceed, exiting for now", query_id)
                return None

            status = QueryStatus.from_remote(output.status)
            if status is None:
                LOGGER.warning("[%s] UNHANDLED status: %s", query_id, output.status)
                return None

            if status is QueryStatus.SCHEDULED:
                await self._sleep(self._interval)
                continue

            if status is QueryStatus.RUNNING:
                history.set_status(QueryStatus.RUNNING)
                await self._store.update(history)
                await self._sleep(self._interval)
                continue

            if status is QueryStatus.COMPLETE:
                await self._complete(history, output)
                return status

            history.set_status(status)
            await self._store.update(history)
            if status is QueryStatus.FAILED:
                raise QueryFailed(query_id)
            raise QueryTimeout(query_id)

    async def _complete(self, history: QueryHistory, output: QueryResults) -> None:
        statistics = output.statistics or QueryStatistics()
        history.set_status(QueryStatus.COMPLETE)
        history.set_statistics(len(output.rows), statistics)
        await self._store.update(history)

        duration = history.modified_at - history.created_at
        LOGGER.info("[%s] status: %s.", history.query_id, history.status)
        LOGGER.info(
            "[%s] showing: %s of %s records matched.",
            history.query_id,
            history.records_total,
            history.records_matched,
        )
        LOGGER.info(
            "[%s] %s records (%s bytes) scanned in %.3fs.",
            history.query_id,
            history.records_scanned,
            history.bytes_scanned,
            duration.total_seconds(),
        )

        sink = self.sink
        for row in output.rows:
            sink.write(json.dumps(result_row_to_dict(row), separators=(",", ":"), ensure_ascii=False))
            sink.write("\n")
        sink.flush()


async def run_query(
    client: LogsClientPort,
    store: HistoryStorePort,
    query_text: str,
    source_names: Sequence[str],
    start_time_ms: Optional[int] = None,
    end_time_ms: Optional[int] = None,
    poller: Optional[QueryPoller] = None,
) -> QueryHistory:
    """Submit a query, record it, and poll it to completion."""

    query_id = await submit_query(client, query_text, source_names, start_time_ms, end_time_ms)
    history = QueryHistory(query_id=query_id, contents=query_text)
    await store.save(history)

    poller = poller or QueryPoller(client, store)
    await poller.run(history)
    return history


async def list_history(store: HistoryStorePort) -> list[QueryHistory]:
    return await store.list_history()
