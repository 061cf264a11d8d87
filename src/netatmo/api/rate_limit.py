"""Token-bucket request pacing for the Netatmo API.

Netatmo enforces a per-application quota (500 requests per hour, 50 per ten
seconds).  A single ``TokenBucket`` is shared by every request of a run,
including OAuth token refreshes, and ``RateLimitedTransport`` spends one token
before each request it forwards.

The bucket only paces.  It never retries and passes failures through
unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

import httpx

from src.netatmo.exceptions import RateLimitError

logger = logging.getLogger("netatmo_sync.api.rate_limit")

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

# Absorbs float drift when a refill lands a hair short of a whole token.
_EPSILON = 1e-9


class TokenBucket:
    """Async token bucket with a steady refill rate and a burst capacity.

    The bucket starts full.  ``acquire()`` takes one token, sleeping until one
    has accrued.  The lock is held while sleeping, so concurrent callers queue
    behind each other and a token is never spent twice.  Cancelling a waiting
    caller releases the lock without consuming anything.

    Args:
        rate:  Tokens added per second.
        burst: Maximum number of tokens held at once.
        clock: Monotonic clock in seconds (injectable for tests).
        sleep: Coroutine used to wait (injectable for tests).
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def tokens(self) -> float:
        """Tokens currently available (refilled up to now)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
        self._updated = now

    async def acquire(self, max_wait: float | None = None) -> float:
        """Take one token, waiting for it if necessary.

        Args:
            max_wait: Fail instead of waiting longer than this many seconds.

        Returns:
            Total seconds spent waiting.

        Raises:
            RateLimitError: If the wait would exceed ``max_wait``.
            asyncio.CancelledError: If the caller is cancelled while waiting.
        """
        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0 - _EPSILON:
                    self._tokens = max(0.0, self._tokens - 1.0)
                    return waited
                delay = (1.0 - self._tokens) / self._rate
                if max_wait is not None and waited + delay > max_wait:
                    raise RateLimitError(
                        f"rate limit wait of {waited + delay:.1f}s exceeds {max_wait:.1f}s",
                        wait_seconds=waited + delay,
                    )
                logger.debug("Rate limited; waiting %.2fs for a token", delay)
                await self._sleep(delay)
                waited += delay


class RateLimitedTransport(httpx.AsyncBaseTransport):
    """httpx transport that waits on a shared ``TokenBucket`` for each request.

    Usage::

        bucket = TokenBucket(rate=300 / 3600, burst=50)
        client = httpx.AsyncClient(
            transport=RateLimitedTransport(httpx.AsyncHTTPTransport(), bucket)
        )
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        bucket: TokenBucket,
        max_wait: float | None = None,
    ) -> None:
        self._transport = transport
        self._bucket = bucket
        self._max_wait = max_wait

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await self._bucket.acquire(self._max_wait)
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()
