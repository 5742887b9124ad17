"""Interface for the platform's pull-based REST capabilities.

Defines the contract for paged listings (followers/friends ids, user
timelines) and bulk lookup by identifier.
"""

import abc
from typing import List, Sequence

from flockcli.domain.models.common import AssociateKind, Cursor, LookupKind, Page, Record


class SocialApi(abc.ABC):
    """Abstract Base Class for the remote REST API."""

    @abc.abstractmethod
    async def fetch_associates(
        self, kind: AssociateKind, subject: str, page_size: int, cursor: Cursor
    ) -> Page:
        """Fetches one page of follower or friend ids for a user.

        Args:
            kind: Followers or friends.
            subject: Screen name or numeric id of the user.
            page_size: Number of ids to request.
            cursor: Continuation token; FIRST_CURSOR for the first page.

        Returns:
            A Page of ids whose next_cursor is None on the last page.

        Raises:
            RemoteFetchError: If the request fails (auth, not-found, network).
        """
        pass

    @abc.abstractmethod
    async def fetch_timeline(self, subject: str, page_size: int, cursor: Cursor) -> Page:
        """Fetches one page of a user's timeline, newest first.

        Raises:
            RemoteFetchError: If the request fails.
        """
        pass

    @abc.abstractmethod
    async def lookup(
        self, kind: LookupKind, ids: Sequence[str], include_entities: bool = True
    ) -> List[Record]:
        """Resolves a batch of identifiers in one request.

        The result holds only the identifiers that could be resolved, in no
        particular order. Missing ones are not an error.

        Raises:
            RemoteFetchError: If the request itself fails.
        """
        pass

    async def aclose(self) -> None:
        """Releases any underlying connections."""
        pass
