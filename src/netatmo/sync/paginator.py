"""Forward pagination over the getmeasure endpoint.

``Paginator.iter_pages`` is a lazy, finite async generator of
``MeasurePage``.  Each page is requested only after the previous one has been
handed to (and released by) the consumer, because the next ``date_begin`` is
derived from the last point of the page before it.

Usage::

    async with aclosing(paginator.iter_pages(unit, start)) as pages:
        async for page in pages:
            await write(page.points)

Leaving the loop early (an exception in the consumer, cancellation, ``break``)
closes the generator; no further request is issued and the cursor stays at
the last page that was fully consumed.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Mapping, Protocol, Sequence

from src.netatmo.base import (
    ONE_SECOND,
    DataPoint,
    MeasurePage,
    SyncUnit,
    from_epoch,
    to_epoch,
)
from src.netatmo.config_loader import MeasureParams
from src.netatmo.exceptions import DecodeError
from src.netatmo.protocol import MeasureGroup

logger = logging.getLogger("netatmo_sync.sync.paginator")

PageConsumer = Callable[[list[DataPoint], datetime], Awaitable[None]]


class MeasureSource(Protocol):
    """Anything that can fetch one getmeasure page (``NetatmoClient``)."""

    async def get_measure(self, params: Mapping[str, str]) -> list[MeasureGroup]: ...


@dataclass
class PaginationResult:
    """Summary of a completed pagination.

    Attributes:
        pages:       Number of non-empty pages consumed.
        points:      Number of points consumed.
        next_cursor: Cursor after the last consumed page (None if no data).
    """

    pages: int = 0
    points: int = 0
    next_cursor: datetime | None = None


def flatten_groups(groups: Sequence[MeasureGroup], width: int) -> list[DataPoint]:
    """Expand compact groups into one ordered list of points.

    A group ``{beg_time, step_time, value: [v0, v1, ...]}`` becomes points at
    ``beg_time``, ``beg_time + step_time``, ...  Groups are taken in the
    order received.

    Args:
        groups: The page's groups.
        width:  Number of requested data types; every value vector must match.

    Raises:
        DecodeError: If a vector has the wrong length or group start times
                     go backwards.
    """
    points: list[DataPoint] = []
    previous_beg: int | None = None
    for group in groups:
        if previous_beg is not None and group.beg_time < previous_beg:
            raise DecodeError(
                f"group beg_time {group.beg_time} precedes previous group at {previous_beg}"
            )
        previous_beg = group.beg_time
        for i, vector in enumerate(group.value):
            if len(vector) != width:
                raise DecodeError(
                    f"value vector of length {len(vector)} at beg_time {group.beg_time}, "
                    f"expected {width}"
                )
            points.append(
                DataPoint(time=from_epoch(group.beg_time + i * group.step_time), values=tuple(vector))
            )
    return points


def build_query(unit: SyncUnit, start: datetime | None, measure: MeasureParams) -> dict[str, str]:
    """Build the getmeasure query for ``unit`` starting at ``start``."""
    params = {"device_id": str(unit.device)}
    if unit.module:
        params["module_id"] = str(unit.module)
    params["scale"] = measure.scale
    params["type"] = ",".join(dt.value for dt in unit.data_types)
    if measure.optimize:
        params["optimize"] = "true"
    if measure.real_time:
        params["real_time"] = "true"
    if start is not None:
        params["date_begin"] = str(to_epoch(start))
    return params


class Paginator:
    """Walk a unit's measurements forward in time, one page per request."""

    def __init__(self, source: MeasureSource, measure: MeasureParams | None = None) -> None:
        self._source = source
        self._measure = measure or MeasureParams()

    async def iter_pages(self, unit: SyncUnit, start: datetime | None) -> AsyncIterator[MeasurePage]:
        """Yield pages until the API returns an empty one.

        Raises:
            DecodeError: On malformed pages or a cursor that fails to advance.
        """
        if not unit.data_types:
            return
        params = build_query(unit, start, self._measure)
        cursor = start
        while True:
            groups = await self._source.get_measure(params)
            if not groups:
                logger.debug("Empty page for %s; unit complete", unit)
                return

            points = flatten_groups(groups, len(unit.data_types))
            if points:
                next_cursor = points[-1].time + ONE_SECOND
            else:
                # Groups without values still move the window forward.
                next_cursor = from_epoch(groups[-1].beg_time) + ONE_SECOND
            if cursor is not None and next_cursor <= cursor:
                raise DecodeError(
                    f"page for {unit} does not advance the cursor "
                    f"({next_cursor.isoformat()} <= {cursor.isoformat()})"
                )

            yield MeasurePage(points=points, next_cursor=next_cursor)

            cursor = next_cursor
            params["date_begin"] = str(to_epoch(next_cursor))

    async def for_each_page(
        self, unit: SyncUnit, start: datetime | None, consumer: PageConsumer
    ) -> PaginationResult:
        """Drive ``iter_pages`` and await ``consumer(points, next_cursor)`` per page.

        A consumer exception stops pagination and propagates; the page it was
        handling is not counted and no further request is made.
        """
        result = PaginationResult()
        async with aclosing(self.iter_pages(unit, start)) as pages:
            async for page in pages:
                await consumer(page.points, page.next_cursor)
                result.pages += 1
                result.points += len(page.points)
                result.next_cursor = page.next_cursor
        return result

