"""Concrete StreamTransport over the platform's filtered statuses stream.

The stream is a long-lived HTTP response carrying one JSON object per line,
with blank keep-alive lines in between. Read stalls, dropped connections,
malformed lines and remote disconnect/warning notices surface as
StreamTransientError; the next receive() transparently reopens the HTTP
response, up to a bounded number of consecutive attempts. A reopen that
fails at the network level is itself transient until those attempts run out;
a rejected reopen is fatal straight away.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx

from flockcli import __version__
from flockcli.domain.interfaces.stream_transport import StreamConnection, StreamTransport
from flockcli.domain.models.common import Record, StreamFilter
from flockcli.domain.models.errors import StreamFatalError, StreamTransientError
from flockcli.infrastructure.api.auth import AuthSession

logger = logging.getLogger(__name__)

FILTER_ENDPOINT = "/statuses/filter.json"
CONNECT_TIMEOUT_SECONDS = 10.0


class HttpxStreamConnection(StreamConnection):
    """One filtered stream, reopened on transient transport failures."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        params: Dict[str, str],
        max_reopen_attempts: int = 3,
    ):
        self._client = client
        self._params = params
        self.max_reopen_attempts = max_reopen_attempts
        self._response: Optional[httpx.Response] = None
        self._lines: Optional[AsyncIterator[str]] = None
        self._failed_reopens = 0
        self.opens = 0

    async def open(self) -> None:
        """Sends the filter request and keeps the response open for reading.

        Raises:
            StreamFatalError: If the request fails or is rejected.
        """
        try:
            await self._open()
        except httpx.RequestError as e:
            logger.error(f"Could not open stream: {type(e).__name__}: {e}")
            raise StreamFatalError(f"Could not open stream: {e}") from e

    async def _open(self) -> None:
        request = self._client.build_request("POST", FILTER_ENDPOINT, data=self._params)
        response = await self._client.send(request, stream=True)
        if response.status_code != 200:
            await response.aread()
            await response.aclose()
            logger.error(f"Stream rejected with HTTP {response.status_code}")
            raise StreamFatalError(f"Stream rejected with HTTP {response.status_code}: {response.text[:200]}")

        self.opens += 1
        self._response = response
        self._lines = response.aiter_lines()
        logger.info(f"Stream connection open (attempt {self.opens})")

    async def _discard(self) -> None:
        if self._response is not None:
            await self._response.aclose()
        self._response = None
        self._lines = None

    async def _reopen(self) -> None:
        if self._failed_reopens >= self.max_reopen_attempts:
            raise StreamFatalError(
                f"Stream could not be reopened after {self.max_reopen_attempts} attempt(s)"
            )
        self._failed_reopens += 1
        logger.info(f"Reopening stream ({self._failed_reopens}/{self.max_reopen_attempts})")
        try:
            await self._open()
        except httpx.RequestError as e:
            if self._failed_reopens >= self.max_reopen_attempts:
                logger.error(f"Could not reopen stream: {type(e).__name__}: {e}")
                raise StreamFatalError(
                    f"Stream could not be reopened after {self.max_reopen_attempts} attempt(s): {e}"
                ) from e
            logger.warning(f"Reopening stream failed: {type(e).__name__}: {e}")
            raise StreamTransientError(f"Reopening stream failed: {type(e).__name__}: {e}") from e

    async def receive(self) -> Optional[Record]:
        while True:
            if self._lines is None:
                await self._reopen()

            try:
                line = await self._lines.__anext__()
            except StopAsyncIteration:
                await self._discard()
                return None
            except httpx.TransportError as e:
                await self._discard()
                raise StreamTransientError(f"Stream transport error: {type(e).__name__}: {e}") from e

            line = line.strip()
            if not line:
                continue  # keep-alive

            try:
                payload = json.loads(line)
            except ValueError as e:
                raise StreamTransientError(f"Malformed stream payload: {line[:80]!r}") from e

            if isinstance(payload, dict) and "disconnect" in payload:
                await self._discard()
                raise StreamTransientError(f"Remote disconnect notice: {payload['disconnect']}")
            if isinstance(payload, dict) and "warning" in payload:
                raise StreamTransientError(f"Remote warning: {payload['warning']}")

            self._failed_reopens = 0
            return payload

    async def aclose(self) -> None:
        await self._discard()


class HttpxStreamTransport(StreamTransport):
    """Opens filtered stream connections with an httpx.AsyncClient."""

    def __init__(
        self,
        auth_session: AuthSession,
        base_url: str = "https://stream.twitter.com/1.1",
        read_timeout: float = 90.0,
        max_reopen_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.auth_session = auth_session
        self.max_reopen_attempts = max_reopen_attempts
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            auth=auth_session.httpx_auth(),
            timeout=httpx.Timeout(CONNECT_TIMEOUT_SECONDS, read=read_timeout),
            headers={"User-Agent": f"flockcli/{__version__}"},
        )
        if client is not None:
            self._client.auth = auth_session.httpx_auth()
        logger.info(f"HttpxStreamTransport initialized for {base_url}")

    @asynccontextmanager
    async def connect(self, stream_filter: StreamFilter) -> AsyncIterator[HttpxStreamConnection]:
        params = {"locations": stream_filter.as_locations_param(), "stall_warnings": "true"}
        connection = HttpxStreamConnection(self._client, params, self.max_reopen_attempts)
        await connection.open()
        try:
            yield connection
        finally:
            await connection.aclose()
            logger.debug("Stream connection released")

    async def aclose(self) -> None:
        await self._client.aclose()
