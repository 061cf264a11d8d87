"""Netatmo API access: throttled transport, OAuth2 auth, and the client.

Modules:
    rate_limit — Shared token bucket and the httpx transport that waits on it
    auth       — Bearer-token auth with refresh and an observer hook
    client     — getstationsdata / getmeasure with envelope decoding
"""

from src.netatmo.api.auth import RefreshingOAuth2Auth
from src.netatmo.api.client import NetatmoClient, build_http_client
from src.netatmo.api.rate_limit import RateLimitedTransport, TokenBucket

__all__ = [
    "NetatmoClient",
    "RateLimitedTransport",
    "RefreshingOAuth2Auth",
    "TokenBucket",
    "build_http_client",
]
