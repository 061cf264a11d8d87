"""Netatmo Weather API client.

API base: https://api.netatmo.net

Endpoints used:
    /api/getstationsdata — Stations, their modules and reported data types
    /api/getmeasure      — Historical measurements (paginated by date_begin)

Every response is an envelope ``{"body": ..., "error": {...}}``.  A populated
``error`` is a failure even when the HTTP status is 200.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from src.netatmo.api.auth import RefreshingOAuth2Auth, TokenObserver
from src.netatmo.api.rate_limit import RateLimitedTransport, TokenBucket
from src.netatmo.base import OAuthTokens
from src.netatmo.config_loader import SyncConfig
from src.netatmo.exceptions import ProtocolError, TransportError, UpstreamError
from src.netatmo.protocol import (
    Envelope,
    MeasureGroup,
    Station,
    parse_measure_body,
    parse_stations_body,
)

logger = logging.getLogger("netatmo_sync.api.client")

_STATIONS_PATH = "/api/getstationsdata"
_MEASURE_PATH = "/api/getmeasure"


class NetatmoClient:
    """Thin async wrapper over the two Netatmo endpoints the sync needs.

    The injected ``httpx.AsyncClient`` carries the base URL, rate limiting and
    authentication (see ``build_http_client``); this class only builds
    requests and decodes envelopes.
    """

    def __init__(self, http_client: httpx.AsyncClient, verbose: bool = False) -> None:
        self._http = http_client
        self._verbose = verbose

    async def get_stations(self) -> list[Station]:
        """Fetch every station (with its modules) visible to the account."""
        body = await self._request(_STATIONS_PATH)
        stations = parse_stations_body(body)
        logger.info("Discovered %d station(s)", len(stations))
        return stations

    async def get_measure(self, params: Mapping[str, str]) -> list[MeasureGroup]:
        """Fetch one page of measurements for the given getmeasure query.

        Returns:
            The page's groups, in the order received.  Empty means no more data.
        """
        body = await self._request(_MEASURE_PATH, params)
        return parse_measure_body(body)

    async def _request(self, path: str, params: Mapping[str, str] | None = None) -> Any:
        """GET ``path`` and return the decoded envelope body.

        Raises:
            TransportError: On network failure.
            ProtocolError:  On non-200 status or a body that is not an envelope.
            UpstreamError:  If the envelope's ``error`` field is populated.
        """
        try:
            response = await self._http.get(path, params=params)
        except httpx.TransportError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc

        logger.debug("request: %s", response.request.url)
        if self._verbose:
            logger.debug("response:\n%s", _dump_response(response))

        if response.status_code != 200:
            raise ProtocolError(
                f"GET {path} returned {response.status_code}: {_dump_response(response)}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            raw = response.json()
        except ValueError as exc:
            raise ProtocolError(
                f"GET {path} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(raw, dict):
            raise ProtocolError(
                f"GET {path} returned a {type(raw).__name__} instead of an envelope",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            envelope = Envelope.model_validate(raw)
        except ValidationError as exc:
            raise ProtocolError(
                f"GET {path} returned a malformed envelope: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if envelope.error is not None:
            raise UpstreamError(envelope.error.code, envelope.error.message)
        # An explicit null body is an empty page; a missing one is not.
        if "body" not in raw:
            raise ProtocolError(
                f"GET {path} returned an envelope without a body",
                status_code=response.status_code,
                body=response.text,
            )
        return envelope.body


def _dump_response(response: httpx.Response) -> str:
    """Render status, headers and body for diagnostics."""
    headers = "\n".join(f"{k}: {v}" for k, v in response.headers.items())
    return f"HTTP {response.status_code} {response.reason_phrase}\n{headers}\n\n{response.text}"


def build_http_client(
    config: SyncConfig,
    tokens: OAuthTokens,
    client_id: str,
    client_secret: str,
    on_refresh: TokenObserver | None = None,
    bucket: TokenBucket | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the throttled, authenticated ``httpx.AsyncClient`` for the API.

    Args:
        config:        Sync tunables (base URL, rate limit, timeout).
        tokens:        Current OAuth token pair.
        client_id:     OAuth2 client ID.
        client_secret: OAuth2 client secret.
        on_refresh:    Observer notified with each refreshed token pair.
        bucket:        Shared token bucket; one is built from config if omitted.
        transport:     Underlying transport (for testing).
    """
    rl = config.rate_limit
    bucket = bucket or TokenBucket(rate=rl.per_second, burst=rl.burst)
    throttled = RateLimitedTransport(
        transport or httpx.AsyncHTTPTransport(),
        bucket,
        max_wait=rl.max_wait_seconds,
    )
    auth = RefreshingOAuth2Auth(
        tokens,
        client_id=client_id,
        client_secret=client_secret,
        token_url=config.api.token_url,
        on_refresh=on_refresh,
    )
    return httpx.AsyncClient(
        base_url=config.api.base_url,
        transport=throttled,
        auth=auth,
        timeout=config.api.timeout_seconds,
    )
