"""Tailing engine: one producer per log group, one writer, one channel.

Each producer pages through filter_log_events and pushes events onto the
shared channel in page order. In follow mode it keeps polling, moving its
cursor past the last delivered event and backing off while the group is quiet.
The driver runs every task until all of them finish, or until the first one
fails, in which case the rest are cancelled and that first error is raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from cwlogs.core.channel import EventChannel, EventSender
from cwlogs.core.config import MAX_BACKOFF_SECONDS, MIN_BACKOFF_SECONDS, TailOptions
from cwlogs.core.errors import ChannelClosed
from cwlogs.core.models import LogEvent, RemoteEvent, SourceRef
from cwlogs.core.ports import LogsClientPort
from cwlogs.core.source_refs import format_source_ref
from cwlogs.core.writer import OutputWriter

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Backoff:
    """Linear backoff for empty polls: 1, 2, 3 ... capped at the maximum."""

    def __init__(self, minimum: int = MIN_BACKOFF_SECONDS, maximum: int = MAX_BACKOFF_SECONDS) -> None:
        self._minimum = minimum
        self._maximum = maximum
        self.current = minimum

    def next_delay(self) -> int:
        delay = self.current
        self.current = min(self.current + 1, self._maximum)
        return delay

    def reset(self) -> None:
        self.current = self._minimum


def _last_timestamp(events: Sequence[RemoteEvent]) -> Optional[int]:
    for event in reversed(events):
        if event.timestamp_ms is not None:
            return event.timestamp_ms
    return None


class TailProducer:
    """Fetch pages for one source and push their events onto the channel."""

    def __init__(
        self,
        client: LogsClientPort,
        sender: EventSender,
        ref: SourceRef,
        options: TailOptions,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._sender = sender
        self._ref = ref
        self._options = options
        self._sleep = sleep
        self.backoff = Backoff()
        self.cursor = options.start_time_ms
        self.events_sent = 0

    async def run(self) -> None:
        label = format_source_ref(self._ref)
        options = self._options
        next_token: Optional[str] = None
        LOGGER.info("Starting tail producer for %s", label)

        while True:
            LOGGER.debug(
                "Getting logs for %s from start (%s) until end (%s) with token %s",
                label,
                self.cursor,
                options.end_time_ms,
                next_token,
            )
            page = await self._client.filter_log_events(
                group_name=self._ref.name,
                start_time_ms=self.cursor,
                end_time_ms=options.end_time_ms,
                stream_prefix=self._ref.substream_prefix,
                filter_pattern=options.filter_pattern,
                next_token=next_token,
                limit=options.page_size,
            )

            for remote in page.events:
                # Only fails once the writer is gone; there is no point in
                # fetching more events after that.
                await self._sender.send(LogEvent.from_remote(self._ref.name, remote))
                self.events_sent += 1

            if page.events:
                self.backoff.reset()

            if page.next_token:
                next_token = page.next_token
                continue
            next_token = None

            if not options.follow:
                LOGGER.info("Tail producer for %s done after %s events", label, self.events_sent)
                return

            if page.events:
                last_timestamp = _last_timestamp(page.events)
                if last_timestamp is not None:
                    # Move past the last delivered event so it is not returned again.
                    self.cursor = last_timestamp + 1
                    continue
                LOGGER.warning("Page for %s has no event timestamps, cannot move the cursor", label)

            delay = self.backoff.next_delay()
            LOGGER.debug("Reached end of %s while following, sleeping for %s sec", label, delay)
            await self._sleep(delay)


async def _produce(producer: TailProducer, sender: EventSender) -> None:
    with sender:
        await producer.run()


def _task_error(task: asyncio.Task) -> Optional[BaseException]:
    if task.cancelled():
        return RuntimeError(f"task {task.get_name()} was cancelled")
    return task.exception()


async def _cancel_all(tasks: Iterable[asyncio.Task]) -> None:
    tasks = list(tasks)
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results):
        if isinstance(result, Exception):
            LOGGER.warning("Discarding error from %s while shutting down: %s", task.get_name(), result)


async def wait_first_failure(tasks: Sequence[asyncio.Task]) -> None:
    """Wait for every task; on the first failure cancel the others and re-raise.

    When several tasks fail in the same wake-up, the writer's own error wins
    over the ChannelClosed errors it causes in the producers.
    """

    order = {task: index for index, task in enumerate(tasks)}
    pending = set(tasks)
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            failed = [task for task in done if _task_error(task) is not None]
            if not failed:
                continue
            failed.sort(key=lambda task: (isinstance(_task_error(task), ChannelClosed), order[task]))
            first, *others = failed
            for task in others:
                LOGGER.warning("Discarding concurrent error from %s: %s", task.get_name(), _task_error(task))
            await _cancel_all(pending)
            raise _task_error(first)
    except asyncio.CancelledError:
        await _cancel_all(pending)
        raise


async def run_tail(
    client: LogsClientPort,
    refs: Sequence[SourceRef],
    options: TailOptions,
    writer: OutputWriter,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Tail every source into `writer` until done or until something fails."""

    if not refs:
        raise ValueError("at least one source is required")

    channel = EventChannel(options.channel_capacity)
    tasks: list[asyncio.Task] = []
    for ref in refs:
        sender = channel.sender()
        producer = TailProducer(client, sender, ref, options, sleep=sleep)
        tasks.append(asyncio.create_task(_produce(producer, sender), name=f"tail:{format_source_ref(ref)}"))
    tasks.append(asyncio.create_task(writer.run(channel.receiver()), name="writer"))

    await wait_first_failure(tasks)
