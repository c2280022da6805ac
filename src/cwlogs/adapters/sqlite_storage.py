"""SQLite history store adapter.

Implements the core HistoryStorePort using a simple SQLite database. Each
call opens its own connection inside a worker thread, so the store can be
awaited from the event loop without blocking it.
"""

from __future__ import annotations

import asyncio
import os
import sqlite3
from datetime import datetime
from typing import Callable, Optional, TypeVar

from cwlogs.core.errors import PersistenceError
from cwlogs.core.models import QueryHistory, QueryStatus

T = TypeVar("T")

ENGINE = "sqlite"

_COLUMNS = (
    "id",
    "query_id",
    "account",
    "status",
    "contents",
    "records_total",
    "records_matched",
    "records_scanned",
    "bytes_scanned",
    "created_at",
    "modified_at",
    "deleted_at",
)


def _to_db_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _history_params(history: QueryHistory) -> dict:
    return {
        "id": history.id,
        "query_id": history.query_id,
        "account": history.account,
        "status": history.status.value,
        "contents": history.contents,
        "records_total": history.records_total,
        "records_matched": history.records_matched,
        "records_scanned": history.records_scanned,
        "bytes_scanned": history.bytes_scanned,
        "created_at": _to_db_time(history.created_at),
        "modified_at": _to_db_time(history.modified_at),
        "deleted_at": _to_db_time(history.deleted_at),
    }


def _history_from_row(row: sqlite3.Row) -> QueryHistory:
    return QueryHistory(
        id=row["id"],
        query_id=row["query_id"],
        account=row["account"],
        status=QueryStatus(row["status"]),
        contents=row["contents"],
        records_total=row["records_total"] or 0,
        records_matched=row["records_matched"] or 0.0,
        records_scanned=row["records_scanned"] or 0.0,
        bytes_scanned=row["bytes_scanned"] or 0.0,
        created_at=_from_db_time(row["created_at"]),
        modified_at=_from_db_time(row["modified_at"]),
        deleted_at=_from_db_time(row["deleted_at"]),
    )


class SQLiteHistoryStore:
    """Thin SQLite wrapper that satisfies the HistoryStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def engine(self) -> str:
        return ENGINE

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, action: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to {action} query history in {self._db_path}: {exc}") from exc

    def init_db(self) -> None:
        """Create the database file and tables if they do not exist.

        Table query_history keeps one row per submitted query:
        - id: random hex id, assigned once (PRIMARY KEY)
        - query_id: id returned by StartQuery
        - account: AWS account/profile label, if known
        - status: Scheduled/Running/Complete/Failed/Timeout
        - contents: the query text
        - records_total: number of result rows returned
        - records_matched/records_scanned/bytes_scanned: query statistics
        - created_at/modified_at/deleted_at: ISO 8601 timestamps
        """

        directory = os.path.dirname(self._db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS query_history (
                        id TEXT PRIMARY KEY,
                        query_id TEXT NOT NULL,
                        account TEXT,
                        status TEXT NOT NULL,
                        contents TEXT NOT NULL,

                        records_total INTEGER,
                        records_matched REAL,
                        records_scanned REAL,
                        bytes_scanned REAL,

                        created_at TIMESTAMP NOT NULL,
                        modified_at TIMESTAMP NOT NULL,
                        deleted_at TIMESTAMP,

                        UNIQUE(id, query_id)
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_history_query_id ON query_history(query_id)"
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to initialize history database {self._db_path}: {exc}") from exc

    def _save(self, history: QueryHistory) -> None:
        placeholders = ", ".join(f":{column}" for column in _COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR IGNORE INTO query_history ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                _history_params(history),
            )

    async def save(self, history: QueryHistory) -> None:
        """Insert a new history row; a row with the same id is left untouched."""

        await self._run("save", lambda: self._save(history))

    def _update(self, history: QueryHistory) -> None:
        assignments = ", ".join(f"{column} = :{column}" for column in _COLUMNS if column != "id")
        with self._connect() as conn:
            conn.execute(
                f"UPDATE query_history SET {assignments} WHERE id = :id",
                _history_params(history),
            )

    async def update(self, history: QueryHistory) -> None:
        """Overwrite every column of the row identified by history.id."""

        await self._run("update", lambda: self._update(history))

    def _list_history(self) -> list[QueryHistory]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM query_history
                WHERE deleted_at IS NULL
                ORDER BY created_at DESC
                """
            ).fetchall()
        return [_history_from_row(row) for row in rows]

    async def list_history(self) -> list[QueryHistory]:
        """Return non-deleted history rows, newest first."""

        return await self._run("list", self._list_history)

    def _version(self) -> str:
        with self._connect() as conn:
            row = conn.execute("SELECT sqlite_version()").fetchone()
        return str(row[0])

    async def version(self) -> str:
        return await self._run("read version of", self._version)
