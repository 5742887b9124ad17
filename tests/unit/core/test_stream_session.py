import asyncio
from contextlib import asynccontextmanager

import pytest

from flockcli.core.services.stream_handlers import END_OF_STREAM, QueueingStreamHandler, drain_into
from flockcli.core.services.stream_session import StreamSession
from flockcli.domain.interfaces.stream_handler import StreamHandler
from flockcli.domain.interfaces.stream_transport import StreamConnection, StreamTransport
from flockcli.domain.models.common import StreamFilter, StreamSignal, StreamState
from flockcli.domain.models.errors import StreamFatalError, StreamTransientError

BOX = StreamFilter(west=-74.3, south=40.5, east=-73.7, north=40.9)


class ScriptedConnection(StreamConnection):
    """Replays a script of events; exception instances in it are raised instead."""

    def __init__(self, script):
        self.script = list(script)
        self.receives = 0

    async def receive(self):
        self.receives += 1
        if not self.script:
            return None
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedTransport(StreamTransport):
    def __init__(self, script=(), connect_error=None):
        self.connection = ScriptedConnection(script)
        self.connect_error = connect_error
        self.filters = []
        self.released = False

    @asynccontextmanager
    async def connect(self, stream_filter):
        self.filters.append(stream_filter)
        if self.connect_error is not None:
            raise self.connect_error
        try:
            yield self.connection
        finally:
            self.released = True


class RecordingHandler(StreamHandler):
    def __init__(self, stop_after=None, fail_on=None, error_signal=StreamSignal.CONTINUE):
        self.events = []
        self.errors = []
        self.stop_after = stop_after
        self.fail_on = fail_on
        self.error_signal = error_signal

    def on_event(self, event):
        self.events.append(event)
        if self.fail_on is not None and len(self.events) == self.fail_on:
            raise ValueError("cannot handle this one")
        if self.stop_after is not None and len(self.events) >= self.stop_after:
            return StreamSignal.STOP
        return StreamSignal.CONTINUE

    def on_error(self, error):
        self.errors.append(error)
        return self.error_signal


def run(session, handler):
    return asyncio.run(session.start(BOX, handler))


def test_delivers_events_until_remote_end():
    transport = ScriptedTransport([{"id": 1}, {"id": 2}])
    session = StreamSession(transport)
    handler = RecordingHandler()

    assert run(session, handler) is StreamState.CLOSED
    assert handler.events == [{"id": 1}, {"id": 2}]
    assert session.events_delivered == 2
    assert transport.filters == [BOX]
    assert transport.released


def test_stop_signal_closes_before_next_event():
    transport = ScriptedTransport([{"id": 1}, {"id": 2}, {"id": 3}])
    session = StreamSession(transport)
    handler = RecordingHandler(stop_after=2)

    assert run(session, handler) is StreamState.CLOSED
    assert handler.events == [{"id": 1}, {"id": 2}]
    assert transport.connection.receives == 2
    assert session.close_reason == "handler requested stop"
    assert transport.released


def test_transient_error_goes_to_handler_and_session_keeps_listening():
    transient = StreamTransientError("stall warning")
    transport = ScriptedTransport([{"id": 1}, transient, {"id": 2}])
    session = StreamSession(transport)
    handler = RecordingHandler()

    assert run(session, handler) is StreamState.CLOSED
    assert handler.errors == [transient]
    assert handler.events == [{"id": 1}, {"id": 2}]
    assert session.errors_recovered == 1


def test_handler_may_stop_on_transient_error():
    transport = ScriptedTransport([StreamTransientError("disconnect"), {"id": 1}])
    session = StreamSession(transport)
    handler = RecordingHandler(error_signal=StreamSignal.STOP)

    assert run(session, handler) is StreamState.CLOSED
    assert handler.events == []
    assert session.errors_recovered == 0


def test_handler_exception_is_fatal_and_closes():
    transport = ScriptedTransport([{"id": 1}, {"id": 2}, {"id": 3}])
    session = StreamSession(transport)
    handler = RecordingHandler(fail_on=2)

    with pytest.raises(StreamFatalError) as excinfo:
        run(session, handler)

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert session.state is StreamState.CLOSED
    assert handler.events == [{"id": 1}, {"id": 2}]
    assert transport.released


def test_fatal_transport_error_moves_to_error_state():
    transport = ScriptedTransport([{"id": 1}, StreamFatalError("HTTP 420 from stream endpoint")])
    session = StreamSession(transport)

    with pytest.raises(StreamFatalError):
        run(session, RecordingHandler())

    assert session.state is StreamState.ERROR
    assert "420" in session.close_reason
    assert transport.released


def test_connect_failure_moves_to_error_state():
    transport = ScriptedTransport(connect_error=StreamFatalError("HTTP 401 from stream endpoint"))
    session = StreamSession(transport)

    with pytest.raises(StreamFatalError):
        run(session, RecordingHandler())
    assert session.state is StreamState.ERROR


def test_session_cannot_be_started_twice():
    session = StreamSession(ScriptedTransport([{"id": 1}]))
    run(session, RecordingHandler())
    with pytest.raises(StreamFatalError, match="already closed"):
        run(session, RecordingHandler())


def test_stop_request_closes_before_delivering():
    transport = ScriptedTransport([{"id": 1}])
    session = StreamSession(transport)
    session.stop()

    assert run(session, RecordingHandler()) is StreamState.CLOSED
    assert session.close_reason == "stop requested"
    assert transport.connection.receives == 0


def test_queueing_handler_stops_at_max_events():
    queue = asyncio.Queue()
    handler = QueueingStreamHandler(queue, max_events=2)
    assert handler.on_event({"id": 1}) is StreamSignal.CONTINUE
    assert handler.on_event({"id": 2}) is StreamSignal.STOP
    assert queue.qsize() == 2


def test_queueing_handler_error_policy():
    queue = asyncio.Queue()
    assert QueueingStreamHandler(queue).on_error(StreamTransientError("x")) is StreamSignal.CONTINUE
    assert QueueingStreamHandler(queue, stop_on_error=True).on_error(StreamTransientError("x")) is StreamSignal.STOP


def test_drain_into_writes_until_end_marker(mocker):
    sink = mocker.AsyncMock()

    async def scenario():
        queue = asyncio.Queue()
        for event in ({"id": 1}, {"id": 2}, END_OF_STREAM, {"id": 3}):
            queue.put_nowait(event)
        return await drain_into(queue, sink)

    assert asyncio.run(scenario()) == 2
    assert sink.write.await_count == 2
