"""Exception taxonomy shared by every layer.

Pull-path failures (paging, bulk lookup) abort the current listing with a
RemoteFetchError. Push-path failures are split into transient ones, which a
stream session recovers from, and fatal ones, which end it.
"""

from typing import Optional


class FlockError(Exception):
    """Base class for all errors raised by flockcli."""


class ConfigurationError(FlockError):
    """Invalid or missing configuration; a programmer/operator error, never retried."""


class RemoteFetchError(FlockError):
    """A page fetch or bulk lookup against the remote API failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
    ):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            return f"{message} (HTTP {self.status_code} from {self.endpoint or 'unknown endpoint'})"
        return message


class StreamError(FlockError):
    """Base class for stream session failures."""


class StreamTransientError(StreamError):
    """Recoverable stream condition: read timeout, malformed payload, disconnect notice."""


class StreamFatalError(StreamError):
    """The stream session cannot continue and has reached a terminal state."""
