"""Stream handlers used by the command handler.

Handlers run synchronously inside the stream session loop, so they must not
await. QueueingStreamHandler hands events to an asyncio.Queue and lets an
async consumer do the (awaiting) writing.
"""

import asyncio
import logging
from typing import Optional

from flockcli.domain.interfaces.record_sink import RecordSink
from flockcli.domain.interfaces.stream_handler import StreamHandler
from flockcli.domain.models.common import Record, StreamSignal
from flockcli.domain.models.errors import StreamTransientError

logger = logging.getLogger(__name__)

# Put on the queue once the session is over.
END_OF_STREAM = None


class QueueingStreamHandler(StreamHandler):
    """Queues every event; stops after ``max_events`` if set."""

    def __init__(
        self,
        queue: "asyncio.Queue[Optional[Record]]",
        max_events: Optional[int] = None,
        stop_on_error: bool = False,
    ):
        self.queue = queue
        self.max_events = max_events
        self.stop_on_error = stop_on_error
        self.received = 0
        self.errors = 0
        self._consumer: Optional["asyncio.Future"] = None

    def attach_consumer(self, consumer: "asyncio.Future") -> None:
        """Stops the stream as soon as the task draining the queue has finished."""
        self._consumer = consumer

    def on_event(self, event: Record) -> StreamSignal:
        if self._consumer is not None and self._consumer.done():
            logger.warning("Queue consumer has stopped, closing the stream")
            return StreamSignal.STOP
        self.queue.put_nowait(event)
        self.received += 1
        if self.max_events is not None and self.received >= self.max_events:
            logger.info(f"Received {self.received} event(s), stopping stream")
            return StreamSignal.STOP
        return StreamSignal.CONTINUE

    def on_error(self, error: StreamTransientError) -> StreamSignal:
        self.errors += 1
        if self.stop_on_error or (self._consumer is not None and self._consumer.done()):
            return StreamSignal.STOP
        return StreamSignal.CONTINUE


async def drain_into(queue: "asyncio.Queue[Optional[Record]]", sink: RecordSink) -> int:
    """Writes queued events to the sink until END_OF_STREAM; returns how many."""
    written = 0
    while True:
        event = await queue.get()
        if event is END_OF_STREAM:
            return written
        await sink.write(event)
        written += 1
