"""Concrete implementation of the SocialApi interface over the v1.1 REST API.

Hides the HTTP specifics and translates responses into domain Pages and
records. Every failure leaves this module as a RemoteFetchError; retrying
is deliberately left to the caller.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from flockcli import __version__
from flockcli.domain.interfaces.social_api import SocialApi
from flockcli.domain.models.common import (
    FIRST_CURSOR,
    AssociateKind,
    Cursor,
    LookupKind,
    Page,
    Record,
)
from flockcli.domain.models.errors import RemoteFetchError
from flockcli.infrastructure.api.auth import AuthSession

logger = logging.getLogger(__name__)

MAX_ASSOCIATES_PAGE_SIZE = 5000
MAX_TIMELINE_PAGE_SIZE = 200
USER_AGENT = f"flockcli/{__version__}"


def subject_params(subject: str) -> Dict[str, str]:
    """Numeric subjects are user ids, anything else is a screen name."""
    subject = subject.lstrip("@")
    if subject.isdigit():
        return {"user_id": subject}
    return {"screen_name": subject}


def _platform_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors and isinstance(errors, list):
        return "; ".join(str(error.get("message", error)) for error in errors if isinstance(error, dict))
    return response.reason_phrase


class HttpxSocialApi(SocialApi):
    """REST adapter using an httpx.AsyncClient."""

    def __init__(
        self,
        auth_session: AuthSession,
        base_url: str = "https://api.twitter.com/1.1",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the adapter.

        Args:
            auth_session: Authenticated handle; its token signs every request.
            base_url: Root of the REST API.
            timeout: Per-request timeout in seconds.
            client: Pre-built client (tests inject one with a MockTransport).
        """
        self.auth_session = auth_session
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            auth=auth_session.httpx_auth(),
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT},
        )
        if client is not None:
            self._client.auth = auth_session.httpx_auth()
        logger.info(f"HttpxSocialApi initialized for {base_url} ({auth_session.mode.value})")

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        logger.debug(f"GET {endpoint} {params}")
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.RequestError as e:
            logger.warning(f"Network error calling {endpoint}: {type(e).__name__}: {e}")
            raise RemoteFetchError(f"Network error calling {endpoint}: {e}", endpoint=endpoint) from e

        if response.is_error:
            message = _platform_error_message(response)
            logger.warning(f"{endpoint} returned HTTP {response.status_code}: {message}")
            raise RemoteFetchError(message, status_code=response.status_code, endpoint=endpoint)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {endpoint}: {e}")
            raise RemoteFetchError(f"Malformed JSON from {endpoint}", endpoint=endpoint) from e

    async def fetch_associates(
        self, kind: AssociateKind, subject: str, page_size: int, cursor: Cursor
    ) -> Page:
        endpoint = f"/{kind.value}/ids.json"
        params: Dict[str, Any] = {
            **subject_params(subject),
            "count": min(page_size, MAX_ASSOCIATES_PAGE_SIZE),
            "cursor": cursor,
            "stringify_ids": "true",
        }
        payload = await self._get(endpoint, params)
        if not isinstance(payload, dict):
            raise RemoteFetchError(f"Unexpected payload from {endpoint}: expected an object", endpoint=endpoint)

        next_cursor = payload.get("next_cursor", 0)
        return Page(
            items=[str(item) for item in payload.get("ids", [])],
            # The platform signals the last page with cursor 0.
            next_cursor=Cursor(next_cursor) if next_cursor else None,
        )

    async def fetch_timeline(self, subject: str, page_size: int, cursor: Cursor) -> Page:
        endpoint = "/statuses/user_timeline.json"
        params: Dict[str, Any] = {
            **subject_params(subject),
            "count": min(page_size, MAX_TIMELINE_PAGE_SIZE),
            "tweet_mode": "extended",
            "include_rts": "true",
        }
        if cursor != FIRST_CURSOR:
            params["max_id"] = cursor
        payload = await self._get(endpoint, params)
        if not isinstance(payload, list):
            raise RemoteFetchError(f"Unexpected payload from {endpoint}: expected a list", endpoint=endpoint)

        # Timelines page backwards by id: the next page ends just below the oldest post seen.
        ids = [int(status["id"]) for status in payload if "id" in status]
        next_cursor = Cursor(min(ids) - 1) if ids else None
        return Page(items=payload, next_cursor=next_cursor)

    async def lookup(
        self, kind: LookupKind, ids: Sequence[str], include_entities: bool = True
    ) -> List[Record]:
        if not ids:
            return []
        if kind is LookupKind.STATUSES:
            endpoint = "/statuses/lookup.json"
            params: Dict[str, Any] = {"id": ",".join(ids), "tweet_mode": "extended"}
        else:
            endpoint = "/users/lookup.json"
            params = {"user_id": ",".join(ids)}
        params["include_entities"] = "true" if include_entities else "false"

        try:
            payload = await self._get(endpoint, params)
        except RemoteFetchError as e:
            # users/lookup answers 404 when none of the ids resolve; that is an empty result.
            if e.status_code == 404 and kind is LookupKind.USERS:
                logger.debug(f"No users resolved from a batch of {len(ids)} ids")
                return []
            raise
        if not isinstance(payload, list):
            raise RemoteFetchError(f"Unexpected payload from {endpoint}: expected a list", endpoint=endpoint)
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()
