from __future__ import annotations

import asyncio
import dataclasses
import io
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import pytest

from cwlogs.core.errors import PersistenceError, QueryFailed, QueryTimeout, SubmissionError
from cwlogs.core.models import (
    QueryHistory,
    QueryResults,
    QueryStatistics,
    QueryStatus,
    ResultField,
)
from cwlogs.core.query import QueryPoller, result_row_to_dict, run_query, submit_query


class FakeQueryClient:
    def __init__(self, results: list[QueryResults], query_id: Optional[str] = "q-1") -> None:
        self._results = list(results)
        self._query_id = query_id
        self.started: list[tuple] = []

    async def start_query(self, group_names, query_string, start_time_ms, end_time_ms) -> Optional[str]:
        self.started.append((group_names, query_string, start_time_ms, end_time_ms))
        return self._query_id

    async def get_query_results(self, query_id: str) -> QueryResults:
        return self._results.pop(0)


class FakeHistoryStore:
    """Keep a snapshot of every saved and updated record."""

    def __init__(self, fail_updates: bool = False) -> None:
        self.saved: list[QueryHistory] = []
        self.updates: list[QueryHistory] = []
        self._fail_updates = fail_updates

    async def save(self, history: QueryHistory) -> None:
        self.saved.append(dataclasses.replace(history))

    async def update(self, history: QueryHistory) -> None:
        if self._fail_updates:
            raise PersistenceError("disk full")
        self.updates.append(dataclasses.replace(history))

    async def list_history(self) -> list[QueryHistory]:
        return list(self.saved)


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _row(**fields: Optional[str]) -> list[ResultField]:
    return [ResultField(field=name, value=value) for name, value in fields.items()]


def _history() -> QueryHistory:
    return QueryHistory(
        query_id="q-1",
        contents="fields @message",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _poll(results: list[QueryResults], store: Optional[FakeHistoryStore] = None):
    store = store or FakeHistoryStore()
    sink = io.StringIO()
    sleep = FakeSleep()
    poller = QueryPoller(FakeQueryClient(results), store, sink=sink, sleep=sleep)
    history = _history()
    outcome: dict = {}

    async def scenario() -> None:
        try:
            outcome["status"] = await poller.run(history)
        except Exception as exc:
            outcome["error"] = exc

    asyncio.run(scenario())
    return outcome, history, store, sink, sleep, poller


def test_running_then_complete_records_statistics_and_rows() -> None:
    statistics = QueryStatistics(records_matched=5.0, records_scanned=100.0, bytes_scanned=2048.0)
    rows = [
        _row(**{"@timestamp": "2024-01-01 00:00:00.000", "@message": "one", "@ptr": "abc"}),
        _row(**{"@message": "two", "@ptr": "def"}),
    ]
    results = [
        QueryResults(status="Scheduled"),
        QueryResults(status="Running"),
        QueryResults(status="Complete", statistics=statistics, rows=rows),
    ]
    outcome, history, store, sink, sleep, poller = _poll(results)

    assert outcome == {"status": QueryStatus.COMPLETE}
    assert [update.status for update in store.updates] == [QueryStatus.RUNNING, QueryStatus.COMPLETE]
    assert history.status is QueryStatus.COMPLETE
    assert history.records_total == 2
    assert history.records_matched == 5.0
    assert history.records_scanned == 100.0
    assert history.bytes_scanned == 2048.0
    assert history.modified_at >= history.created_at
    assert sink.getvalue() == (
        '{"@timestamp":"2024-01-01 00:00:00.000","@message":"one"}\n'
        '{"@message":"two"}\n'
    )
    assert sleep.delays == [2.0, 2.0]
    assert poller.polls == 3


def test_every_running_poll_is_persisted() -> None:
    results = [QueryResults(status="Running")] * 3 + [QueryResults(status="Complete")]
    _, _, store, _, _, _ = _poll(results)

    assert [update.status for update in store.updates] == [QueryStatus.RUNNING] * 3 + [QueryStatus.COMPLETE]


def test_failed_is_persisted_before_error() -> None:
    outcome, history, store, sink, _, _ = _poll([QueryResults(status="Running"), QueryResults(status="Failed")])

    error = outcome["error"]
    assert isinstance(error, QueryFailed)
    assert str(error) == "Query failed: q-1"
    assert store.updates[-1].status is QueryStatus.FAILED
    assert history.status is QueryStatus.FAILED
    assert sink.getvalue() == ""


def test_timeout_is_persisted_before_error() -> None:
    outcome, _, store, _, _, _ = _poll([QueryResults(status="Timeout")])

    assert isinstance(outcome["error"], QueryTimeout)
    assert str(outcome["error"]) == "Query timed out: q-1"
    assert [update.status for update in store.updates] == [QueryStatus.TIMEOUT]


def test_missing_status_stops_without_error(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="cwlogs.core.query"):
        outcome, history, store, _, _, _ = _poll([QueryResults(status=None)])

    assert outcome == {"status": None}
    assert store.updates == []
    assert history.status is QueryStatus.SCHEDULED
    assert "No status returned" in caplog.text


def test_unknown_status_stops_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="cwlogs.core.query"):
        outcome, _, store, _, _, _ = _poll([QueryResults(status="Cancelled")])

    assert outcome == {"status": None}
    assert store.updates == []
    assert any(record.levelno == logging.WARNING and "Cancelled" in record.getMessage() for record in caplog.records)


def test_store_failure_aborts_polling() -> None:
    outcome, _, _, _, _, poller = _poll(
        [QueryResults(status="Running"), QueryResults(status="Complete")],
        store=FakeHistoryStore(fail_updates=True),
    )

    assert isinstance(outcome["error"], PersistenceError)
    assert poller.polls == 1


def test_result_row_drops_pointer_and_blank_fields() -> None:
    row = [
        ResultField("@message", "hi"),
        ResultField("@ptr", "xyz"),
        ResultField(None, "orphan"),
        ResultField("level", None),
    ]
    assert result_row_to_dict(row) == {"@message": "hi", "level": ""}


def test_submit_without_query_id_fails() -> None:
    client = FakeQueryClient([], query_id=None)

    with pytest.raises(SubmissionError):
        asyncio.run(submit_query(client, "fields @message", ["app"], 0, 10))


def test_submit_requires_a_source() -> None:
    with pytest.raises(ValueError):
        asyncio.run(submit_query(FakeQueryClient([]), "fields @message", []))


def test_submit_defaults_window_to_recent_past() -> None:
    client = FakeQueryClient([])
    asyncio.run(submit_query(client, "fields @message", ["app", "web"]))

    groups, text, start, end = client.started[0]
    assert groups == ["app", "web"]
    assert text == "fields @message"
    assert 29_000 <= end - start <= 31_000


def test_run_query_saves_scheduled_record_first() -> None:
    client = FakeQueryClient([QueryResults(status="Complete", rows=[_row(a="1")])])
    store = FakeHistoryStore()
    sink = io.StringIO()

    async def scenario() -> QueryHistory:
        poller = QueryPoller(client, store, sink=sink, sleep=FakeSleep())
        return await run_query(client, store, "fields a", ["app"], 0, 1_000, poller=poller)

    history = asyncio.run(scenario())

    assert [saved.status for saved in store.saved] == [QueryStatus.SCHEDULED]
    assert store.saved[0].id == history.id
    assert history.query_id == "q-1"
    assert history.status is QueryStatus.COMPLETE
    assert json.loads(sink.getvalue()) == {"a": "1"}
    assert client.started == [(["app"], "fields a", 0, 1_000)]
