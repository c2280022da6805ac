"""Core configuration dataclasses.

We keep argument and file parsing outside the core, but these dataclasses
define the shape the core expects so the app layer can build them safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cwlogs.core.errors import InvalidTimeRange

# filter_log_events accepts at most 10,000 events per page.
MAX_PAGE_SIZE = 10_000
DEFAULT_CHANNEL_CAPACITY = MAX_PAGE_SIZE
# Empty start/end windows are shifted this far into the past so they are more
# likely to return something.
DEFAULT_LOOKBACK_SECONDS = 30
QUERY_POLL_INTERVAL_SECONDS = 2.0
MIN_BACKOFF_SECONDS = 1
MAX_BACKOFF_SECONDS = 10


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class TailOptions:
    """Window and filter settings shared by every tail producer."""

    start_time_ms: int
    end_time_ms: Optional[int] = None
    filter_pattern: Optional[str] = None
    follow: bool = False
    page_size: int = MAX_PAGE_SIZE
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY

    def __post_init__(self) -> None:
        if self.follow and self.end_time_ms is not None:
            raise InvalidTimeRange("You can not use --end-time together with --follow!")


@dataclass(frozen=True)
class OutputOptions:
    """Which optional fields the output writer prints, and how."""

    format: OutputFormat = OutputFormat.TEXT
    with_timestamp: bool = False
    with_source_name: bool = False
    with_substream_name: bool = False
    with_event_id: bool = False
    use_local_time: bool = False
    use_colors: bool = False
