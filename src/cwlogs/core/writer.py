"""Single consumer that drains the event channel into an output sink."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from cwlogs.core.channel import EventReceiver
from cwlogs.core.ports import EventFormatterPort

LOGGER = logging.getLogger(__name__)


class OutputWriter:
    """Format and write events one at a time, in dequeue order."""

    def __init__(self, formatter: EventFormatterPort, sink: Optional[TextIO] = None) -> None:
        self._formatter = formatter
        self._sink = sink
        self.events_written = 0

    @property
    def sink(self) -> TextIO:
        return self._sink if self._sink is not None else sys.stdout

    async def run(self, receiver: EventReceiver) -> None:
        LOGGER.info("Starting tail log writer")
        sink = self.sink
        try:
            async for event in receiver:
                sink.write(self._formatter.format(event))
                sink.flush()
                self.events_written += 1
        finally:
            # Producers see ChannelClosed on their next send.
            receiver.close()
        LOGGER.info("Tail log writer done after %s events", self.events_written)
