"""Core service managing one filtered push-feed session.

State machine: IDLE -> CONNECTED -> (CLOSED | ERROR). Both end states are
terminal; reconnecting means building a new session. Transient errors are
handed to the handler and, unless it says otherwise, listening continues.
No pacing applies here: the remote side pushes, the client never polls.
"""

import logging
from typing import Optional

from flockcli.domain.events.api_events import StreamClosed, StreamErrorRecovered, dispatch_event
from flockcli.domain.interfaces.stream_handler import StreamHandler
from flockcli.domain.interfaces.stream_transport import StreamTransport
from flockcli.domain.models.common import StreamFilter, StreamSignal, StreamState
from flockcli.domain.models.errors import StreamFatalError, StreamTransientError

logger = logging.getLogger(__name__)


class StreamSession:
    """Runs a handler over a filtered stream until it stops or the stream dies."""

    def __init__(self, transport: StreamTransport):
        self.transport = transport
        self.state = StreamState.IDLE
        self.events_delivered = 0
        self.errors_recovered = 0
        self.close_reason: Optional[str] = None
        self._stop_requested = False

    def stop(self) -> None:
        """Asks a running session to close before delivering another event."""
        self._stop_requested = True

    async def start(self, stream_filter: StreamFilter, handler: StreamHandler) -> StreamState:
        """Opens the stream and delivers events until the session ends.

        Returns:
            The terminal state (CLOSED).

        Raises:
            StreamFatalError: If the session was already used, the connection
                cannot be (re)opened, or the handler raised.
        """
        if self.state is not StreamState.IDLE:
            raise StreamFatalError(f"Stream session already {self.state.value}; create a new session to reconnect")

        logger.info(f"Opening filtered stream for bounding box {stream_filter.as_locations_param()}")
        try:
            async with self.transport.connect(stream_filter) as connection:
                self.state = StreamState.CONNECTED
                while not self._stop_requested:
                    try:
                        event = await connection.receive()
                    except StreamTransientError as e:
                        if self._on_transient_error(e, handler) is StreamSignal.STOP:
                            self._close("handler stopped after transient error")
                            break
                        continue

                    if event is None:
                        self._close("remote closed the stream")
                        break

                    self.events_delivered += 1
                    try:
                        signal = handler.on_event(event)
                    except Exception as e:
                        logger.error(f"Stream handler failed on event {self.events_delivered}: {e}", exc_info=True)
                        self._close(f"handler failed: {type(e).__name__}")
                        raise StreamFatalError(f"Stream handler failed: {e}") from e

                    if signal is StreamSignal.STOP:
                        self._close("handler requested stop")
                        break
                else:
                    self._close("stop requested")
        except StreamFatalError as e:
            if self.state is not StreamState.CLOSED:
                self.state = StreamState.ERROR
                self.close_reason = str(e)
                logger.error(f"Stream session failed: {e}")
                dispatch_event(StreamClosed(
                    final_state=self.state.value, events_delivered=self.events_delivered, reason=self.close_reason
                ))
            raise
        return self.state

    def _on_transient_error(self, error: StreamTransientError, handler: StreamHandler) -> StreamSignal:
        logger.warning(f"Transient stream error: {error}")
        try:
            signal = handler.on_error(error)
        except Exception as e:
            logger.error(f"Stream handler failed while handling an error: {e}", exc_info=True)
            self._close(f"handler failed: {type(e).__name__}")
            raise StreamFatalError(f"Stream handler failed: {e}") from e
        if signal is not StreamSignal.STOP:
            self.errors_recovered += 1
            dispatch_event(StreamErrorRecovered(error_type=type(error).__name__, error_message=str(error)))
        return signal

    def _close(self, reason: str) -> None:
        self.state = StreamState.CLOSED
        self.close_reason = reason
        logger.info(f"Stream session closed after {self.events_delivered} event(s): {reason}")
        dispatch_event(StreamClosed(
            final_state=self.state.value, events_delivered=self.events_delivered, reason=reason
        ))
