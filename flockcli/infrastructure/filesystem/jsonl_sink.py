"""RecordSink implementations writing one JSON document per line.

Uses `aiofiles` for async file I/O so writing never blocks the event loop
between paced requests.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

import aiofiles

from flockcli.domain.interfaces.record_sink import RecordSink

logger = logging.getLogger(__name__)


def to_json_line(record: Any) -> str:
    return json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n"


class JsonLinesFileSink(RecordSink):
    """Appends records to a file, opening it lazily on the first write."""

    def __init__(self, path: Path, append: bool = False):
        self.path = Path(path)
        self.append = append
        self.records_written = 0
        self._file = None

    async def write(self, record: Any) -> None:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._file = await aiofiles.open(self.path, mode="a" if self.append else "w", encoding="utf-8")
            except PermissionError as e:
                logger.error(f"Permission denied opening output file: {self.path}")
                raise PermissionError(f"Permission denied: {self.path}") from e
            logger.debug(f"Opened output file {self.path}")
        await self._file.write(to_json_line(record))
        self.records_written += 1

    async def aclose(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None
            logger.info(f"Wrote {self.records_written} record(s) to {self.path}")


class JsonLinesStdoutSink(RecordSink):
    """Prints records to stdout."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout
        self.records_written = 0

    async def write(self, record: Any) -> None:
        self._stream.write(to_json_line(record))
        self.records_written += 1

    async def aclose(self) -> None:
        self._stream.flush()


def open_sink(output: Optional[Path], append: bool = False) -> RecordSink:
    """A file sink when a path is given, stdout otherwise."""
    if output is None:
        return JsonLinesStdoutSink()
    return JsonLinesFileSink(output, append=append)
