"""Sink that prints exposition text, used when no destination is configured."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from typing import Sequence, TextIO

from src.netatmo.base import DataType, Sample, SyncUnit
from src.netatmo.exceptions import SinkError
from src.netatmo.sinks.base import MetricsSink
from src.netatmo.sinks.exposition import format_exposition


class StdoutSink(MetricsSink):
    """Write every batch to a text stream.

    A stream has no history, so ``query_last_timestamp`` always answers None
    and incremental mode falls back to the fixed lookback.
    """

    def __init__(self, stream: TextIO | None = None, metric_prefix: str = "netatmo_") -> None:
        self._stream = stream or sys.stdout
        self._prefix = metric_prefix

    async def append_samples(
        self, unit: SyncUnit, data_type: DataType, samples: Sequence[Sample]
    ) -> None:
        if not samples:
            return
        labels = {**unit.labels, "dev_id": unit.unit_id}
        try:
            self._stream.write(format_exposition(data_type.metric_name(self._prefix), labels, samples))
            self._stream.flush()
        except OSError as exc:
            raise SinkError(f"writing samples for {unit.unit_id} failed: {exc}") from exc

    async def query_last_timestamp(
        self, unit: SyncUnit, data_type: DataType, lookback: timedelta
    ) -> datetime | None:
        return None
