"""Interface for the platform's push feed.

A transport opens a filtered connection as a scoped resource; the
connection hands out one event at a time.
"""

import abc
from typing import AsyncContextManager, Optional

from flockcli.domain.models.common import Record, StreamFilter


class StreamConnection(abc.ABC):
    """An open push connection."""

    @abc.abstractmethod
    async def receive(self) -> Optional[Record]:
        """Waits for the next event.

        Returns:
            The next event, or None once the remote side ended the stream.

        Raises:
            StreamTransientError: On a recoverable condition. The connection
                stays usable and receive() may be called again.
            StreamFatalError: When the connection is gone for good.
        """
        pass


class StreamTransport(abc.ABC):
    """Abstract Base Class for opening filtered push connections."""

    @abc.abstractmethod
    def connect(self, stream_filter: StreamFilter) -> AsyncContextManager[StreamConnection]:
        """Opens a connection with the filter applied server-side.

        The returned context manager closes the connection on exit.

        Raises:
            StreamFatalError: If the connection cannot be opened.
        """
        pass
