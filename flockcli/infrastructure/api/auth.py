"""Credential provider: turns configured tokens into an authenticated session handle.

Application context uses the app's bearer token; user context uses an
OAuth 2.0 user access token. Both travel as a bearer Authorization header,
but they are subject to different quotas, so the mode is kept alongside.
"""

import logging
from dataclasses import dataclass, field
from typing import Generator, Optional

import httpx

from flockcli.domain.models.common import AuthMode
from flockcli.domain.models.errors import ConfigurationError
from flockcli.infrastructure.config.settings import (
    get_app_bearer_token,
    get_auth_mode,
    get_user_access_token,
)

logger = logging.getLogger(__name__)


class BearerAuth(httpx.Auth):
    """Adds an ``Authorization: Bearer`` header to every request."""

    def __init__(self, token: str):
        self._token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


@dataclass(frozen=True)
class AuthSession:
    """An authenticated handle bound to one auth mode for its whole lifetime."""
    mode: AuthMode
    token: str = field(repr=False)

    def httpx_auth(self) -> httpx.Auth:
        return BearerAuth(self.token)


def build_auth_session(
    app_token: Optional[str] = None,
    user_token: Optional[str] = None,
    mode: Optional[AuthMode] = None,
) -> AuthSession:
    """Builds the session from explicit tokens, falling back to configuration.

    When no mode is forced, a user token wins over an app token because user
    context can read everything app context can.

    Raises:
        ConfigurationError: If the token for the selected mode is missing.
    """
    app_token = app_token or get_app_bearer_token()
    user_token = user_token or get_user_access_token()
    mode = mode or get_auth_mode()

    if mode is None:
        if user_token:
            mode = AuthMode.USER_CONTEXT
        elif app_token:
            mode = AuthMode.APP_CONTEXT
        else:
            raise ConfigurationError(
                "No credentials configured. Set SOCIAL_USER_ACCESS_TOKEN or SOCIAL_APP_BEARER_TOKEN."
            )

    token = user_token if mode is AuthMode.USER_CONTEXT else app_token
    if not token:
        variable = "SOCIAL_USER_ACCESS_TOKEN" if mode is AuthMode.USER_CONTEXT else "SOCIAL_APP_BEARER_TOKEN"
        raise ConfigurationError(f"auth mode {mode.value} selected but {variable} is not set.")

    logger.info(f"Authenticated session created in {mode.value} mode")
    return AuthSession(mode=mode, token=token)
