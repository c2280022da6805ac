"""Textual app for browsing query history."""

from __future__ import annotations

from typing import Any, Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widgets import DataTable, Footer, Static

from cwlogs.core.models import QueryHistory

ACCENT = "#FF9900"


class HistoryApp(App):
    """Table of past queries with the full query text of the selected row."""

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+c", "quit", "Quit"),
    ]

    CSS = """
    #header { height: 2; }
    .subtle { color: $text-muted; }
    #history-table { height: 1fr; }
    #history-detail { height: auto; max-height: 12; border: round $accent; padding: 0 1; }
    """

    def __init__(self, rows: Sequence[QueryHistory], db_path: str = "", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows = {row.id: row for row in rows}
        self._db_path = db_path

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            yield Static(self._title_text(), id="title")
            yield Static(f"db: {self._db_path}", classes="subtle")
        with Vertical(id="history-panel"):
            yield DataTable(id="history-table", cursor_type="row")
            yield Static("", id="history-detail")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#history-table", DataTable)
        table.add_column("created", key="created_at", width=19)
        table.add_column("status", key="status", width=10)
        table.add_column("rows", key="records_total", width=8)
        table.add_column("query id", key="query_id", width=36)
        table.add_column("query", key="contents", width=48)
        table.zebra_stripes = True
        for row in self._rows.values():
            table.add_row(
                self._format_date_display(row),
                str(row.status),
                str(row.records_total),
                row.query_id,
                self._clip_text(" ".join(row.contents.split())),
                key=row.id,
            )
        if not self._rows:
            self._set_detail("No queries recorded yet.")

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        row = self._rows.get(event.row_key.value)
        if row is None:
            return
        self._set_detail(row.contents.strip() or "(empty query)")

    def _set_detail(self, message: str) -> None:
        self.query_one("#history-detail", Static).update(Text(message))

    @staticmethod
    def _clip_text(value: str, limit: int = 48) -> str:
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."

    @staticmethod
    def _format_date_display(row: QueryHistory) -> str:
        return row.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("CW", ACCENT),
            (" > Query History", "bold"),
        )
