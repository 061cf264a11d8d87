"""Abstract metrics sink consumed by the sync engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Sequence

from src.netatmo.base import DataType, Sample, SyncUnit


class MetricsSink(ABC):
    """Destination for exported samples.

    Subclasses must implement:
        - append_samples()
        - query_last_timestamp()
    """

    @abstractmethod
    async def append_samples(
        self, unit: SyncUnit, data_type: DataType, samples: Sequence[Sample]
    ) -> None:
        """Durably append one batch of samples for a unit and data type.

        Called once per data type for every page; must tolerate being called
        repeatedly for the same unit.

        Raises:
            SinkError: If the batch could not be written.
        """

    @abstractmethod
    async def query_last_timestamp(
        self, unit: SyncUnit, data_type: DataType, lookback: timedelta
    ) -> datetime | None:
        """Return the newest stored sample time for the unit, or None.

        Only samples within ``lookback`` of now are considered.

        Raises:
            SinkError: If the sink could not be queried.
        """

    async def aclose(self) -> None:
        """Release any resources held by the sink."""
        return None
