"""Core service driving paced, lazy pagination over a page-fetch capability.

Items are handed out one at a time through an explicit async iterator. A
page is only requested once every item of the previous page has been
consumed, and every request (the first one included) is preceded by the
pacing engine's cooldown for the operation class.
"""

import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional

from flockcli.domain.events.api_events import PageFetched, dispatch_event
from flockcli.domain.models.common import FIRST_CURSOR, Cursor, OperationClass, Page
from flockcli.domain.models.errors import RemoteFetchError
from flockcli.infrastructure.resilience.pacing import PacingEngine

logger = logging.getLogger(__name__)

FetchPage = Callable[[str, int, Cursor], Awaitable[Page]]


class PageIterator:
    """Async iterator over the items of a paginated listing."""

    def __init__(
        self,
        fetch_page: FetchPage,
        subject: str,
        operation_class: OperationClass,
        page_size: int,
        pacing: PacingEngine,
        max_items: Optional[int] = None,
    ):
        self._fetch_page = fetch_page
        self._subject = subject
        self._operation_class = operation_class
        self._page_size = page_size
        self._pacing = pacing
        self._max_items = max_items

        self._buffer: Deque[Any] = deque()
        self._cursor: Optional[Cursor] = FIRST_CURSOR
        self._exhausted = False
        self.pages_fetched = 0
        self.items_yielded = 0

    def __aiter__(self) -> "PageIterator":
        return self

    async def __anext__(self) -> Any:
        if self._max_items is not None and self.items_yielded >= self._max_items:
            raise StopAsyncIteration
        while not self._buffer:
            if self._exhausted:
                raise StopAsyncIteration
            await self._load_next_page()
        self.items_yielded += 1
        return self._buffer.popleft()

    async def _load_next_page(self) -> None:
        await self._pacing.pause(self._operation_class)
        operation = self._operation_class.value
        try:
            page = await self._fetch_page(self._subject, self._page_size, self._cursor)
        except RemoteFetchError:
            self._exhausted = True
            logger.error(f"Fetching {operation} page {self.pages_fetched + 1} for '{self._subject}' failed")
            raise
        except Exception as e:
            self._exhausted = True
            logger.error(
                f"Unexpected error fetching {operation} page for '{self._subject}': {e}", exc_info=True
            )
            raise RemoteFetchError(f"Fetching {operation} page for '{self._subject}' failed: {e}") from e

        self.pages_fetched += 1
        self._buffer.extend(page.items)
        self._cursor = page.next_cursor
        self._exhausted = page.is_last
        dispatch_event(PageFetched(
            operation=operation,
            subject=self._subject,
            item_count=len(page.items),
            page_number=self.pages_fetched,
            has_more=not self._exhausted,
        ))


class Paginator:
    """Creates paced page iterators."""

    def __init__(self, pacing: PacingEngine):
        self.pacing = pacing

    def paginate(
        self,
        fetch_page: FetchPage,
        subject: str,
        operation_class: OperationClass,
        page_size: int = 200,
        max_items: Optional[int] = None,
    ) -> PageIterator:
        """Returns a lazy sequence of the listing's items, starting from the first page.

        Args:
            fetch_page: Coroutine function (subject, page_size, cursor) -> Page.
            subject: Screen name or id the listing is about.
            operation_class: Quota class to pace the page requests against.
            page_size: Items requested per page.
            max_items: Stop after this many items without fetching further pages.
        """
        logger.debug(f"Paginating {operation_class.value} for '{subject}' (page_size={page_size})")
        return PageIterator(
            fetch_page, subject, operation_class, page_size, self.pacing, max_items=max_items
        )
