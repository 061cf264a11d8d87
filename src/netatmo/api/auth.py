"""OAuth2 bearer authentication with automatic refresh.

``RefreshingOAuth2Auth`` plugs into ``httpx`` as an ``Auth`` flow.  When the
access token is missing or about to expire it first sends a ``refresh_token``
grant through the same client (and therefore the same rate limiter), then
attaches the new bearer token to the original request.

Whoever persists credentials registers an observer; it is called with every
newly issued ``OAuthTokens`` before the token is used.  An observer failure
aborts the request.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Generator

import httpx

from src.netatmo.base import OAuthTokens, utc_now
from src.netatmo.exceptions import AuthenticationError

logger = logging.getLogger("netatmo_sync.api.auth")

TokenObserver = Callable[[OAuthTokens], None]


class RefreshingOAuth2Auth(httpx.Auth):
    """Bearer-token auth that refreshes via the ``refresh_token`` grant."""

    requires_response_body = True

    def __init__(
        self,
        tokens: OAuthTokens,
        client_id: str,
        client_secret: str,
        token_url: str,
        on_refresh: TokenObserver | None = None,
        clock: Callable[[], datetime] = utc_now,
        leeway: timedelta = timedelta(seconds=10),
    ) -> None:
        """Initialize the auth flow.

        Args:
            tokens:        Current token pair (may have an empty access token).
            client_id:     OAuth2 client ID.
            client_secret: OAuth2 client secret.
            token_url:     Token endpoint URL.
            on_refresh:    Observer notified with each refreshed token pair.
            clock:         Returns the current UTC time (injectable for tests).
            leeway:        Refresh this long before the actual expiry.
        """
        self._tokens = tokens
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._on_refresh = on_refresh
        self._clock = clock
        self._leeway = leeway

    @property
    def tokens(self) -> OAuthTokens:
        return self._tokens

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self._tokens.is_expired(self._clock(), self._leeway):
            response = yield self._build_refresh_request()
            self._apply_refresh(response)
        request.headers["Authorization"] = f"Bearer {self._tokens.access_token}"
        yield request

    def _build_refresh_request(self) -> httpx.Request:
        if not self._tokens.refresh_token:
            raise AuthenticationError("access token expired and no refresh token is available")
        logger.info("Refreshing Netatmo access token")
        return httpx.Request(
            "POST",
            self._token_url,
            data={
                "grant_type": "refresh_token",
                "refresh_token": self._tokens.refresh_token,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )

    def _apply_refresh(self, response: httpx.Response) -> None:
        if response.status_code != 200:
            raise AuthenticationError(
                f"token refresh failed with status {response.status_code}: {response.text}"
            )
        try:
            data = response.json()
            access_token = data["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthenticationError(f"token refresh returned an unexpected body: {response.text}") from exc

        expires_in = data.get("expires_in")
        self._tokens = OAuthTokens(
            access_token=access_token,
            refresh_token=data.get("refresh_token", self._tokens.refresh_token),
            expires_at=(
                self._clock() + timedelta(seconds=int(expires_in))
                if expires_in is not None
                else None
            ),
            token_type=data.get("token_type", "Bearer"),
        )
        logger.debug("Access token refreshed; expires at %s", self._tokens.expires_at)
        if self._on_refresh is not None:
            self._on_refresh(self._tokens)
