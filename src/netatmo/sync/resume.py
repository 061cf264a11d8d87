"""Resume-point decisions for each sync unit.

Decides where pagination starts for one (device, module) unit.  The rules are
evaluated in this order:

1. Resume token.  An operator-supplied ``device/module/epoch`` string.  A
   unit that does not match it is skipped entirely (no requests); the first
   unit that matches starts at the token's epoch and consumes the token.
2. Incremental mode.  Ask the sink for the newest sample of the unit's first
   data type within ``incremental_since`` and start one second after it.
3. Fixed lookback.  Start ``since`` before now.
4. Full history.  Start with no ``date_begin`` at all.

Incremental mode only inspects the *first* data type.  If a unit's types were
ingested unevenly, the others may be resumed past data they never received.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from src.netatmo.base import (
    ONE_SECOND,
    DeviceID,
    ModuleID,
    SyncUnit,
    from_epoch,
    to_epoch,
    utc_now,
)
from src.netatmo.exceptions import ResumeTokenError
from src.netatmo.sinks.base import MetricsSink

logger = logging.getLogger("netatmo_sync.sync.resume")


# ---------------------------------------------------------------------------
# Resume token
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResumeToken:
    """Parsed ``device/module/epochSeconds`` token (module may be empty)."""

    device: DeviceID
    module: ModuleID
    epoch: int

    @classmethod
    def parse(cls, raw: str) -> ResumeToken:
        """Parse the textual form.

        Raises:
            ResumeTokenError: If the token is not three ``/``-separated fields
                              ending in an integer.
        """
        parts = raw.strip().split("/")
        if len(parts) != 3 or not parts[0]:
            raise ResumeTokenError(f"resume token must be 'device/module/epoch', got {raw!r}")
        try:
            epoch = int(parts[2])
        except ValueError as exc:
            raise ResumeTokenError(f"resume token epoch is not an integer: {raw!r}") from exc
        return cls(device=DeviceID(parts[0]), module=ModuleID(parts[1]), epoch=epoch)

    @classmethod
    def for_cursor(cls, unit: SyncUnit, cursor: datetime) -> ResumeToken:
        return cls(device=unit.device, module=unit.module, epoch=to_epoch(cursor))

    def matches(self, unit: SyncUnit) -> bool:
        return self.device == unit.device and self.module == unit.module

    @property
    def start(self) -> datetime:
        return from_epoch(self.epoch)

    def __str__(self) -> str:
        return f"{self.device}/{self.module}/{self.epoch}"


class ResumeState:
    """Caller-owned, single-use holder for the run's resume token.

    One instance lives for one run.  ``consume()`` clears the token so no later
    unit sees it.
    """

    def __init__(self, token: ResumeToken | None = None) -> None:
        self._token = token

    @classmethod
    def from_text(cls, raw: str | None) -> ResumeState:
        """Build from the CLI/env string; blank means no token."""
        if raw is None or not raw.strip():
            return cls()
        return cls(ResumeToken.parse(raw))

    @property
    def token(self) -> ResumeToken | None:
        return self._token

    @property
    def pending(self) -> bool:
        return self._token is not None

    def consume(self) -> ResumeToken:
        if self._token is None:
            raise RuntimeError("resume token already consumed")
        token, self._token = self._token, None
        return token


# ---------------------------------------------------------------------------
# Start decision
# ---------------------------------------------------------------------------


class StartReason(str, Enum):
    resume_token = "resume_token"
    incremental = "incremental"
    lookback = "lookback"
    full_history = "full_history"
    skipped = "skipped"


@dataclass(frozen=True)
class StartDecision:
    """Either skip the unit, or start it at ``start`` (None = earliest data).

    Attributes:
        skip:   True if the unit must not be fetched at all.
        start:  First timestamp to request; None means no ``date_begin``.
        reason: Which rule produced the decision.
    """

    skip: bool
    start: datetime | None
    reason: StartReason

    @classmethod
    def skipped(cls) -> StartDecision:
        return cls(skip=True, start=None, reason=StartReason.skipped)

    @classmethod
    def start_at(cls, start: datetime | None, reason: StartReason) -> StartDecision:
        return cls(skip=False, start=start, reason=reason)


class ResumeCoordinator:
    """Compute the starting point of each sync unit.

    Usage::

        coordinator = ResumeCoordinator(
            ResumeState.from_text(settings.resume),
            sink,
            incremental=True,
            incremental_since=timedelta(days=90),
            since=timedelta(0),
        )
        decision = await coordinator.resolve_start(unit)
    """

    def __init__(
        self,
        resume: ResumeState,
        sink: MetricsSink,
        incremental: bool = True,
        incremental_since: timedelta = timedelta(days=90),
        since: timedelta = timedelta(0),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the coordinator.

        Args:
            resume:            Run-scoped resume token holder (mutated on match).
            sink:              Sink queried in incremental mode.
            incremental:       Resume from the sink's last written sample.
            incremental_since: How far back the sink query looks.
            since:             Fixed lookback from now; zero disables it.
            clock:             Returns the current UTC time (injectable for tests).
        """
        self._resume = resume
        self._sink = sink
        self._incremental = incremental
        self._incremental_since = incremental_since
        self._since = since
        self._clock = clock

    async def resolve_start(self, unit: SyncUnit) -> StartDecision:
        """Decide whether and where to start fetching ``unit``.

        Raises:
            SinkError: If the incremental query fails.
        """
        token = self._resume.token
        if token is not None:
            if not token.matches(unit):
                logger.info("Skipping %s: resume token is for %s", unit, token)
                return StartDecision.skipped()
            self._resume.consume()
            logger.info("Resuming %s from token at %s", unit, token.start.isoformat())
            return StartDecision.start_at(token.start, StartReason.resume_token)

        if self._incremental and unit.data_types:
            last = await self._sink.query_last_timestamp(
                unit, unit.data_types[0], self._incremental_since
            )
            if last is not None:
                start = last + ONE_SECOND
                logger.info("Resuming %s incrementally from %s", unit, start.isoformat())
                return StartDecision.start_at(start, StartReason.incremental)

        if self._since > timedelta(0):
            start = self._clock() - self._since
            logger.info("Starting %s from lookback at %s", unit, start.isoformat())
            return StartDecision.start_at(start, StartReason.lookback)

        logger.info("Starting %s from the earliest available data", unit)
        return StartDecision.start_at(None, StartReason.full_history)
