import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from flockcli.domain.models.common import AuthMode, StreamFilter
from flockcli.domain.models.errors import StreamFatalError, StreamTransientError
from flockcli.infrastructure.api.auth import AuthSession
from flockcli.infrastructure.api.stream_client import HttpxStreamTransport

BOX = StreamFilter(west=-74.3, south=40.5, east=-73.7, north=40.9)


def lines(*items) -> bytes:
    return "".join((item if isinstance(item, str) else json.dumps(item)) + "\r\n" for item in items).encode()


class BrokenStream(httpx.AsyncByteStream):
    """Yields some bytes, then fails like a stalled connection."""

    def __init__(self, first_chunk: bytes):
        self.first_chunk = first_chunk

    async def __aiter__(self):
        yield self.first_chunk
        raise httpx.ReadTimeout("read timed out")


class SequencedHandler:
    """Answers each stream open with a fresh response from the next factory; the last one repeats."""

    def __init__(self, *factories):
        self.factories = list(factories)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.factories[min(len(self.requests), len(self.factories)) - 1]()


def make_transport(handler, max_reopen_attempts=3):
    client = httpx.AsyncClient(base_url="https://stream.example.test/1.1", transport=httpx.MockTransport(handler))
    return HttpxStreamTransport(
        AuthSession(mode=AuthMode.USER_CONTEXT, token="s3cret"),
        max_reopen_attempts=max_reopen_attempts,
        client=client,
    )


def drive(transport, receives):
    """Calls receive() up to `receives` times, collecting events and exception types."""

    async def scenario():
        outcomes = []
        async with transport.connect(BOX) as connection:
            for _ in range(receives):
                try:
                    outcomes.append(await connection.receive())
                except StreamTransientError as e:
                    outcomes.append(type(e))
            return outcomes, connection.opens

    return asyncio.run(scenario())


def test_filter_request_and_keep_alive_lines():
    handler = SequencedHandler(lambda: httpx.Response(200, content=lines({"id": 1}, "", "", {"id": 2})))

    outcomes, opens = drive(make_transport(handler), 3)

    assert outcomes == [{"id": 1}, {"id": 2}, None]
    assert opens == 1
    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/1.1/statuses/filter.json"
    assert request.headers["Authorization"] == "Bearer s3cret"
    assert parse_qs(request.content.decode()) == {
        "locations": ["-74.3,40.5,-73.7,40.9"],
        "stall_warnings": ["true"],
    }


def test_malformed_line_is_transient_and_stream_continues():
    handler = SequencedHandler(lambda: httpx.Response(200, content=lines({"id": 1}, "{not json", {"id": 2})))
    outcomes, opens = drive(make_transport(handler), 3)
    assert outcomes == [{"id": 1}, StreamTransientError, {"id": 2}]
    assert opens == 1


def test_stall_warning_is_transient():
    warning = {"warning": {"code": "FALLING_BEHIND", "percent_full": 60}}
    handler = SequencedHandler(lambda: httpx.Response(200, content=lines(warning, {"id": 1})))
    outcomes, _ = drive(make_transport(handler), 2)
    assert outcomes == [StreamTransientError, {"id": 1}]


def test_disconnect_notice_reopens_on_next_receive():
    handler = SequencedHandler(
        lambda: httpx.Response(200, content=lines({"disconnect": {"code": 7, "reason": "duplicate stream"}})),
        lambda: httpx.Response(200, content=lines({"id": 5})),
    )
    outcomes, opens = drive(make_transport(handler), 2)
    assert outcomes == [StreamTransientError, {"id": 5}]
    assert opens == 2


def test_read_timeout_is_transient():
    handler = SequencedHandler(
        lambda: httpx.Response(200, stream=BrokenStream(lines({"id": 1}))),
        lambda: httpx.Response(200, content=lines({"id": 2})),
    )
    outcomes, opens = drive(make_transport(handler), 3)
    assert outcomes == [{"id": 1}, StreamTransientError, {"id": 2}]
    assert opens == 2


def test_rejected_connection_is_fatal():
    handler = SequencedHandler(lambda: httpx.Response(420, text="Enhance Your Calm"))
    with pytest.raises(StreamFatalError, match="420"):
        drive(make_transport(handler), 1)


def test_reopen_attempts_are_bounded():
    handler = SequencedHandler(lambda: httpx.Response(200, content=lines({"disconnect": {"code": 12}})))
    transport = make_transport(handler, max_reopen_attempts=2)

    with pytest.raises(StreamFatalError, match="2 attempt"):
        drive(transport, 10)
    # The first open plus two reopens.
    assert len(handler.requests) == 3


def refuse_connection():
    raise httpx.ConnectError("connection refused")


def test_network_failure_while_reopening_is_transient():
    handler = SequencedHandler(
        lambda: httpx.Response(200, content=lines({"disconnect": {"code": 7}})),
        refuse_connection,
        lambda: httpx.Response(200, content=lines({"id": 5})),
    )
    outcomes, opens = drive(make_transport(handler), 3)
    assert outcomes == [StreamTransientError, StreamTransientError, {"id": 5}]
    assert opens == 2
    assert len(handler.requests) == 3


def test_network_failures_while_reopening_are_fatal_once_attempts_run_out():
    handler = SequencedHandler(
        lambda: httpx.Response(200, content=lines({"disconnect": {"code": 7}})),
        refuse_connection,
    )
    transport = make_transport(handler, max_reopen_attempts=2)

    with pytest.raises(StreamFatalError, match="2 attempt"):
        drive(transport, 10)
    assert len(handler.requests) == 3


def test_network_failure_on_first_open_is_fatal():
    handler = SequencedHandler(refuse_connection)
    with pytest.raises(StreamFatalError, match="Could not open stream"):
        drive(make_transport(handler), 1)
