"""Run the sync for a list of units, one unit at a time.

For each unit:
1. Ask the ResumeCoordinator where to start (or whether to skip)
2. Paginate getmeasure forward from that point
3. Append every page to the sink, one batch per data type
4. Log the resume token for the next page

Any failure aborts the run immediately.  Pages already appended stay in the
sink, and the last logged resume token (or incremental mode) restarts the
failed unit without skipping the page that was not written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from src.netatmo.base import DataPoint, Sample, SyncUnit, utc_now
from src.netatmo.sinks.base import MetricsSink
from src.netatmo.sync.paginator import Paginator
from src.netatmo.sync.resume import ResumeCoordinator, ResumeToken, StartReason

logger = logging.getLogger("netatmo_sync.sync.session")


@dataclass
class SyncResult:
    """Result of syncing one unit.

    Attributes:
        unit:        The unit that was processed.
        reason:      Which resume rule picked the start (``skipped`` if bypassed).
        start:       First requested timestamp (None = full history or skipped).
        pages:       Non-empty pages written to the sink.
        points:      Points written to the sink.
        next_cursor: Cursor after the last written page.
        synced_at:   UTC timestamp of completion.
    """

    unit: SyncUnit
    reason: StartReason
    start: datetime | None = None
    pages: int = 0
    points: int = 0
    next_cursor: datetime | None = None
    synced_at: datetime = field(default_factory=utc_now)

    @property
    def skipped(self) -> bool:
        return self.reason is StartReason.skipped


class SyncSession:
    """Compose resume decisions, pagination and the sink for a run.

    Usage::

        session = SyncSession(Paginator(client), coordinator, sink)
        results = await session.run(units)
    """

    def __init__(
        self,
        paginator: Paginator,
        coordinator: ResumeCoordinator,
        sink: MetricsSink,
    ) -> None:
        self._paginator = paginator
        self._coordinator = coordinator
        self._sink = sink

    async def run(self, units: Iterable[SyncUnit]) -> list[SyncResult]:
        """Sync every unit in order; the first error aborts the run."""
        results: list[SyncResult] = []
        for unit in units:
            results.append(await self.sync_unit(unit))

        logger.info(
            "Sync complete: %d unit(s), %d skipped, %d point(s)",
            len(results),
            sum(1 for r in results if r.skipped),
            sum(r.points for r in results),
        )
        return results

    async def sync_unit(self, unit: SyncUnit) -> SyncResult:
        """Resolve the start for ``unit`` and export everything after it."""
        decision = await self._coordinator.resolve_start(unit)
        if decision.skip:
            return SyncResult(unit=unit, reason=decision.reason)

        logger.info("Exporting %s (%s)", unit, ", ".join(dt.value for dt in unit.data_types))

        async def write_page(points: list[DataPoint], next_cursor: datetime) -> None:
            for i, data_type in enumerate(unit.data_types):
                samples = [
                    Sample(point.time, point.values[i])
                    for point in points
                    if point.values[i] is not None
                ]
                await self._sink.append_samples(unit, data_type, samples)
                logger.debug("Exported %d %s datapoints for %s", len(samples), data_type.value, unit)
            logger.info("Resume token: %s", ResumeToken.for_cursor(unit, next_cursor))

        pagination = await self._paginator.for_each_page(unit, decision.start, write_page)
        return SyncResult(
            unit=unit,
            reason=decision.reason,
            start=decision.start,
            pages=pagination.pages,
            points=pagination.points,
            next_cursor=pagination.next_cursor,
        )
