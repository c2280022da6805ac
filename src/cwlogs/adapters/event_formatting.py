"""Event formatters for the tail output writer.

Keeping formatting here prevents drift between output modes: both
formatters read the same OutputOptions and render the same fields.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from rich.color import ColorSystem
from rich.style import Style

from cwlogs.core.config import OutputFormat, OutputOptions
from cwlogs.core.models import LogEvent
from cwlogs.core.time_utils import format_timestamp

SEPARATOR = " - "

TIMESTAMP_STYLE = Style(color="green")
SOURCE_STYLE = Style(color="blue")
SUBSTREAM_STYLE = Style(color="cyan")
EVENT_ID_STYLE = Style(color="yellow")


def _event_time(event: LogEvent, options: OutputOptions) -> Optional[str]:
    if event.timestamp_ms is None:
        return None
    return format_timestamp(event.timestamp_ms, options.use_local_time)


class TextFormatter:
    """`[time - ][group - ][stream - ][id - ]message` lines."""

    def __init__(self, options: OutputOptions) -> None:
        self._options = options
        self._color_system = ColorSystem.STANDARD if options.use_colors else None

    def _paint(self, value: str, style: Style) -> str:
        if self._color_system is None:
            return value
        return style.render(value, color_system=self._color_system)

    def format(self, event: LogEvent) -> str:
        options = self._options
        parts: list[str] = []

        if options.with_timestamp:
            time = _event_time(event, options)
            if time is not None:
                parts.append(self._paint(time, TIMESTAMP_STYLE) + SEPARATOR)

        if options.with_source_name:
            parts.append(self._paint(event.source_name, SOURCE_STYLE) + SEPARATOR)

        if options.with_substream_name and event.substream_name:
            parts.append(self._paint(event.substream_name, SUBSTREAM_STYLE) + SEPARATOR)

        if options.with_event_id and event.event_id:
            parts.append(self._paint(event.event_id, EVENT_ID_STYLE) + SEPARATOR)

        if event.message is not None:
            parts.append(event.message)

        parts.append("\n")
        return "".join(parts)


class JsonFormatter:
    """One compact JSON object per line; `message` is always present."""

    def __init__(self, options: OutputOptions) -> None:
        self._options = options

    def format(self, event: LogEvent) -> str:
        options = self._options
        payload: dict[str, Any] = {"message": event.message}

        if options.with_timestamp:
            time = _event_time(event, options)
            if time is not None:
                payload["timestamp"] = time

        if options.with_event_id and event.event_id is not None:
            payload["id"] = event.event_id

        if options.with_source_name:
            payload["source"] = event.source_name

        if options.with_substream_name and event.substream_name is not None:
            payload["substream"] = event.substream_name

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"


def build_formatter(options: OutputOptions):
    """Return the formatter for the requested output format."""

    if options.format is OutputFormat.TEXT:
        return TextFormatter(options)
    if options.format is OutputFormat.JSON:
        return JsonFormatter(options)
    raise ValueError(f"Unsupported output format: {options.format}")
