"""Interface for wherever fetched records end up."""

import abc
from typing import Any


class RecordSink(abc.ABC):
    """Abstract Base Class for writing fetched records one at a time."""

    @abc.abstractmethod
    async def write(self, record: Any) -> None:
        """Writes one record."""
        pass

    async def aclose(self) -> None:
        """Flushes and releases the sink."""
        pass

    async def __aenter__(self) -> "RecordSink":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
