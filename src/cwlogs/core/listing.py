"""Log group and stream discovery for the `ls` commands."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from cwlogs.core.errors import LogGroupNotFound
from cwlogs.core.models import LogGroup, LogStream
from cwlogs.core.ports import LogCatalogPort
from cwlogs.core.time_utils import to_millis

LOGGER = logging.getLogger(__name__)

# Streams of groups without a retention setting are shown if they received
# an event within this many months.
DEFAULT_STREAM_HORIZON_MONTHS = 6


def months_ago(moment: datetime, months: int) -> datetime:
    """Subtract calendar months, clamping the day to the target month's length."""

    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def retention_cutoff(group: LogGroup, now: Optional[datetime] = None) -> datetime:
    moment = now or datetime.now(timezone.utc)
    if group.retention_in_days:
        LOGGER.info("The retention for %s is set to %s.", group.name, group.retention_in_days)
        return moment - timedelta(days=group.retention_in_days)
    LOGGER.info(
        "No retention found for %s, only showing streams that received an event in the last %s months.",
        group.name,
        DEFAULT_STREAM_HORIZON_MONTHS,
    )
    return months_ago(moment, DEFAULT_STREAM_HORIZON_MONTHS)


async def iter_log_groups(client: LogCatalogPort, pattern: Optional[str] = None) -> AsyncIterator[LogGroup]:
    next_token: Optional[str] = None
    while True:
        page = await client.describe_log_groups(name_pattern=pattern, next_token=next_token)
        for group in page.groups:
            yield group
        next_token = page.next_token
        if next_token is None:
            return


async def find_log_group(client: LogCatalogPort, group_name: str) -> LogGroup:
    next_token: Optional[str] = None
    while True:
        page = await client.describe_log_groups(name_prefix=group_name, next_token=next_token)
        for group in page.groups:
            if group.name == group_name:
                return group
        next_token = page.next_token
        if next_token is None:
            raise LogGroupNotFound(f"Can't find log group with name {group_name}")


async def iter_log_streams(
    client: LogCatalogPort,
    group_name: str,
    show_expired: bool = False,
    now: Optional[datetime] = None,
) -> AsyncIterator[LogStream]:
    """Yield streams, most recently active first.

    Unless `show_expired` is set, streams whose last event is older than the
    group's retention are skipped.
    """

    cutoff_ms: Optional[int] = None
    if not show_expired:
        group = await find_log_group(client, group_name)
        cutoff_ms = to_millis(retention_cutoff(group, now))

    next_token: Optional[str] = None
    while True:
        page = await client.describe_log_streams(group_name, next_token=next_token)
        for stream in page.streams:
            if cutoff_ms is not None:
                if stream.last_event_timestamp_ms is None or stream.last_event_timestamp_ms <= cutoff_ms:
                    continue
            yield stream
        next_token = page.next_token
        if next_token is None:
            return
