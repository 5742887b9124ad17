"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the paginator, bulk resolver and stream session, streaming every fetched
record into a record sink as soon as it arrives.
"""

import asyncio
import functools
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

from flockcli.core.services.bulk_resolver import BulkResolver
from flockcli.core.services.paginator import Paginator
from flockcli.core.services.stream_handlers import END_OF_STREAM, QueueingStreamHandler, drain_into
from flockcli.core.services.stream_session import StreamSession
from flockcli.domain.interfaces.record_sink import RecordSink
from flockcli.domain.interfaces.social_api import SocialApi
from flockcli.domain.interfaces.user_interface import UserInterface
from flockcli.domain.models.common import (
    AssociateKind,
    LookupKind,
    OperationClass,
    StreamFilter,
)
from flockcli.domain.models.errors import FlockError, RemoteFetchError
from flockcli.infrastructure.config.settings import get_page_size
from flockcli.infrastructure.resilience.pacing import WINDOW_SECONDS, PacingEngine

logger = logging.getLogger(__name__)

SinkFactory = Callable[[Optional[Path]], RecordSink]
SessionFactory = Callable[[], StreamSession]


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        api: SocialApi,
        pacing: PacingEngine,
        paginator: Paginator,
        bulk_resolver: BulkResolver,
        session_factory: SessionFactory,
        sink_factory: SinkFactory,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services."""
        self.api = api
        self.pacing = pacing
        self.paginator = paginator
        self.bulk_resolver = bulk_resolver
        self.session_factory = session_factory
        self.sink_factory = sink_factory
        self.ui = ui

    async def _copy(self, records: AsyncIterator[Any], output: Optional[Path]) -> int:
        """Writes records into a fresh sink; records already written survive a later failure."""
        written = 0
        async with self.sink_factory(output) as sink:
            async for record in records:
                await sink.write(record)
                written += 1
        return written

    def _report_failure(self, action: str, error: Exception) -> int:
        if isinstance(error, RemoteFetchError):
            logger.error(f"{action} aborted: {error}")
        elif isinstance(error, FlockError):
            logger.error(f"{action} failed: {error}")
        else:
            logger.error(f"{action} failed unexpectedly: {error}", exc_info=True)
        self.ui.display_error(f"{action} failed: {error}")
        return 1

    async def handle_associates(
        self,
        kind: AssociateKind,
        subject: str,
        output: Optional[Path] = None,
        max_items: Optional[int] = None,
    ) -> int:
        """Handles the 'followers' and 'friends' commands."""
        action = f"Listing {kind.value} of {subject}"
        logger.info(f"Handling '{kind.value}' command for: {subject}")
        fetch_page = functools.partial(self.api.fetch_associates, kind)
        items = self.paginator.paginate(
            fetch_page,
            subject,
            OperationClass.ASSOCIATES,
            page_size=get_page_size(OperationClass.ASSOCIATES),
            max_items=max_items,
        )
        try:
            written = await self._copy(items, output)
        except Exception as e:
            return self._report_failure(action, e)
        self.ui.display_info(f"{written} {kind.value} id(s) of {subject} collected.")
        return 0

    async def handle_timeline(
        self,
        subject: str,
        output: Optional[Path] = None,
        max_items: Optional[int] = None,
    ) -> int:
        """Handles the 'timeline' command."""
        action = f"Fetching the timeline of {subject}"
        logger.info(f"Handling 'timeline' command for: {subject}")
        items = self.paginator.paginate(
            self.api.fetch_timeline,
            subject,
            OperationClass.TIMELINE,
            page_size=get_page_size(OperationClass.TIMELINE),
            max_items=max_items,
        )
        try:
            written = await self._copy(items, output)
        except Exception as e:
            return self._report_failure(action, e)
        self.ui.display_info(f"{written} post(s) from the timeline of {subject} collected.")
        return 0

    async def handle_lookup(
        self,
        identifiers: Iterable[str],
        kind: LookupKind = LookupKind.STATUSES,
        include_entities: bool = True,
        output: Optional[Path] = None,
    ) -> int:
        """Handles the 'lookup' command."""
        identifiers = [identifier.strip() for identifier in identifiers if identifier.strip()]
        action = f"Looking up {len(identifiers)} {kind.value}"
        logger.info(f"Handling 'lookup' command: {len(identifiers)} {kind.value} id(s)")
        records = self.bulk_resolver.resolve(identifiers, kind=kind, include_entities=include_entities)
        try:
            written = await self._copy(records, output)
        except Exception as e:
            return self._report_failure(action, e)
        missing = len(identifiers) - written
        self.ui.display_info(f"Resolved {written} of {len(identifiers)} {kind.value}.")
        if missing > 0:
            self.ui.display_warning(f"{missing} id(s) could not be resolved (deleted, protected or suspended).")
        return 0

    async def handle_stream(
        self,
        stream_filter: StreamFilter,
        output: Optional[Path] = None,
        max_events: Optional[int] = None,
    ) -> int:
        """Handles the 'stream' command."""
        action = "Streaming"
        logger.info(f"Handling 'stream' command for box {stream_filter.as_locations_param()}")
        queue: "asyncio.Queue" = asyncio.Queue()
        handler = QueueingStreamHandler(queue, max_events=max_events)
        session = self.session_factory()

        failure: Optional[Exception] = None
        async with self.sink_factory(output) as sink:
            consumer = asyncio.create_task(drain_into(queue, sink))
            handler.attach_consumer(consumer)
            try:
                await session.start(stream_filter, handler)
            except Exception as e:
                failure = e
            finally:
                queue.put_nowait(END_OF_STREAM)
            try:
                written = await consumer
            except Exception as e:
                # A failing sink ends the session through the handler; report the sink's error.
                failure = failure or e

        if failure is not None:
            return self._report_failure(action, failure)
        self.ui.display_info(
            f"Stream {session.state.value}: {written} event(s) written, "
            f"{session.errors_recovered} transient error(s) recovered."
        )
        return 0


def show_quotas(pacing: PacingEngine, ui: UserInterface) -> int:
    """Displays allowed requests per window and the resulting spacing for each class."""
    rows = []
    for operation_class in OperationClass:
        try:
            allowed = pacing.registry.allowed_per_window(operation_class, pacing.auth_mode)
        except FlockError as e:
            logger.error(f"Reading quotas failed: {e}")
            ui.display_error(f"Reading quotas failed: {e}")
            return 1
        spacing = pacing.required_spacing(operation_class)
        rows.append((
            operation_class.value,
            allowed if allowed else "unlimited",
            f"{spacing:.1f}s",
        ))
    ui.display_table(
        f"Requests per {WINDOW_SECONDS // 60}-minute window ({pacing.auth_mode.value})",
        ["operation", "allowed", "spacing"],
        rows,
    )
    return 0
