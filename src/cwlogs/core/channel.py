"""Multi-producer, single-consumer event channel.

Every tail producer holds its own sender; the writer holds the only receiver.
The channel ends for the receiver once every sender is closed and the queue
is drained. Closing the receiver makes every later send fail with
ChannelClosed so producers stop fetching events nobody will read.

The channel is bounded by default: a sender suspends while `capacity`
events are waiting. A capacity of 0 makes it unbounded.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from cwlogs.core.errors import ChannelClosed
from cwlogs.core.models import LogEvent

_END = object()


class EventChannel:
    def __init__(self, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        # The queue itself is unbounded so the end marker never blocks;
        # the semaphore provides the bound.
        self._queue: asyncio.Queue = asyncio.Queue()
        self._slots: Optional[asyncio.Semaphore] = asyncio.Semaphore(capacity) if capacity else None
        self._open_senders = 0
        self._senders_issued = 0
        self._receiver_closed = False
        self._ended = False

    def sender(self) -> "EventSender":
        if self._ended:
            raise RuntimeError("cannot add a sender to an ended channel")
        self._open_senders += 1
        self._senders_issued += 1
        return EventSender(self)

    def receiver(self) -> "EventReceiver":
        return EventReceiver(self)

    async def _send(self, event: LogEvent) -> None:
        if self._receiver_closed:
            raise ChannelClosed("event receiver is closed")
        if self._slots is not None:
            await self._slots.acquire()
            if self._receiver_closed:
                raise ChannelClosed("event receiver is closed")
        self._queue.put_nowait(event)

    def _release_sender(self) -> None:
        self._open_senders -= 1
        if self._open_senders == 0:
            self._ended = True
            self._queue.put_nowait(_END)

    async def _receive(self) -> Optional[LogEvent]:
        if self._receiver_closed:
            return None
        if self._ended and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _END:
            return None
        if self._slots is not None:
            self._slots.release()
        return item

    def _close_receiver(self) -> None:
        if self._receiver_closed:
            return
        self._receiver_closed = True
        if self._slots is not None:
            # Wake every sender blocked on a full channel; each one re-checks
            # the closed flag after acquiring.
            for _ in range(self._senders_issued):
                self._slots.release()


class EventSender:
    """Producer end of an EventChannel. Close it exactly once."""

    def __init__(self, channel: EventChannel) -> None:
        self._channel = channel
        self._closed = False

    async def send(self, event: LogEvent) -> None:
        if self._closed:
            raise RuntimeError("send on a closed sender")
        await self._channel._send(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._release_sender()

    def __enter__(self) -> "EventSender":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class EventReceiver:
    """Consumer end of an EventChannel."""

    def __init__(self, channel: EventChannel) -> None:
        self._channel = channel

    async def receive(self) -> Optional[LogEvent]:
        """Return the next event, or None once the channel has ended."""

        return await self._channel._receive()

    def close(self) -> None:
        self._channel._close_receiver()

    def __aiter__(self) -> AsyncIterator[LogEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[LogEvent]:
        while True:
            event = await self.receive()
            if event is None:
                return
            yield event
