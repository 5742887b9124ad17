"""Interface for callers consuming a stream session."""

import abc

from flockcli.domain.models.common import Record, StreamSignal
from flockcli.domain.models.errors import StreamTransientError


class StreamHandler(abc.ABC):
    """Receives stream events synchronously and decides whether to keep going."""

    @abc.abstractmethod
    def on_event(self, event: Record) -> StreamSignal:
        """Handles one inbound event.

        Returns:
            StreamSignal.CONTINUE to keep listening, StreamSignal.STOP to close.
        """
        pass

    def on_error(self, error: StreamTransientError) -> StreamSignal:
        """Handles a transient stream error. Keeps listening by default."""
        return StreamSignal.CONTINUE
