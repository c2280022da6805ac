from __future__ import annotations

import asyncio

import pytest

from cwlogs.core.channel import EventChannel
from cwlogs.core.errors import ChannelClosed
from cwlogs.core.models import LogEvent


def _event(source: str, message: str) -> LogEvent:
    return LogEvent(source_name=source, message=message)


def test_receiver_ends_after_all_senders_close() -> None:
    async def scenario() -> list[str]:
        channel = EventChannel()
        first = channel.sender()
        second = channel.sender()
        receiver = channel.receiver()
        with first:
            await first.send(_event("a", "1"))
        with second:
            await second.send(_event("b", "2"))
        return [event.message async for event in receiver]

    assert asyncio.run(scenario()) == ["1", "2"]


def test_receive_returns_none_repeatedly_once_ended() -> None:
    async def scenario() -> list:
        channel = EventChannel()
        channel.sender().close()
        receiver = channel.receiver()
        return [await receiver.receive(), await receiver.receive()]

    assert asyncio.run(scenario()) == [None, None]


def test_send_after_receiver_closed_raises() -> None:
    async def scenario() -> None:
        channel = EventChannel()
        sender = channel.sender()
        channel.receiver().close()
        await sender.send(_event("a", "late"))

    with pytest.raises(ChannelClosed):
        asyncio.run(scenario())


def test_bounded_channel_blocks_sender_until_drained() -> None:
    async def scenario() -> tuple[bool, list[str]]:
        channel = EventChannel(capacity=1)
        sender = channel.sender()
        receiver = channel.receiver()
        await sender.send(_event("a", "1"))

        blocked = asyncio.create_task(sender.send(_event("a", "2")))
        await asyncio.sleep(0)
        was_blocked = not blocked.done()

        received = [(await receiver.receive()).message]
        await blocked
        sender.close()
        received.extend([event.message async for event in receiver])
        return was_blocked, received

    was_blocked, received = asyncio.run(scenario())
    assert was_blocked
    assert received == ["1", "2"]


def test_closing_receiver_wakes_blocked_sender() -> None:
    async def scenario() -> None:
        channel = EventChannel(capacity=1)
        sender = channel.sender()
        receiver = channel.receiver()
        await sender.send(_event("a", "1"))
        blocked = asyncio.create_task(sender.send(_event("a", "2")))
        await asyncio.sleep(0)
        receiver.close()
        await blocked

    with pytest.raises(ChannelClosed):
        asyncio.run(scenario())


def test_per_sender_order_is_preserved() -> None:
    async def produce(channel_sender, source: str) -> None:
        with channel_sender:
            for index in range(20):
                await channel_sender.send(_event(source, str(index)))
                await asyncio.sleep(0)

    async def scenario() -> list[LogEvent]:
        channel = EventChannel(capacity=3)
        senders = [channel.sender(), channel.sender()]
        receiver = channel.receiver()
        producers = [
            asyncio.create_task(produce(senders[0], "a")),
            asyncio.create_task(produce(senders[1], "b")),
        ]
        events = [event async for event in receiver]
        await asyncio.gather(*producers)
        return events

    events = asyncio.run(scenario())
    for source in ("a", "b"):
        assert [e.message for e in events if e.source_name == source] == [str(i) for i in range(20)]
