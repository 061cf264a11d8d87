"""Shared fixtures and fakes for the Netatmo sync tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

import pytest

from src.netatmo.base import DataType, DeviceID, ModuleID, Sample, SyncUnit
from src.netatmo.config_loader import SyncConfig, load_sync_config
from src.netatmo.exceptions import SinkError
from src.netatmo.protocol import MeasureGroup
from src.netatmo.sinks.base import MetricsSink

# Canonical test ids
TEST_DEVICE = DeviceID("70:ee:50:00:00:01")
TEST_MODULE = ModuleID("02:00:00:00:00:02")
TEST_NOW = datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc)

# Minimal getstationsdata response: one station with one outdoor module
STATIONS_BODY = {
    "body": {
        "devices": [
            {
                "_id": TEST_DEVICE,
                "type": "NAMain",
                "module_name": "Indoor",
                "home_id": "home-1",
                "home_name": "Home",
                "data_type": ["Temperature", "CO2", "Humidity", "Noise", "Pressure"],
                "modules": [
                    {
                        "_id": TEST_MODULE,
                        "type": "NAModule1",
                        "module_name": "Outdoor",
                        "data_type": ["Temperature", "Humidity"],
                    }
                ],
            }
        ],
        "user": {"mail": "someone@example.com"},
    },
    "status": "ok",
}


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the real bundled sync config for tests."""
    return load_sync_config()


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


@pytest.fixture
def station_unit() -> SyncUnit:
    return SyncUnit(
        device=TEST_DEVICE,
        data_types=(DataType.temperature, DataType.humidity),
        labels={"dev_id": TEST_DEVICE, "home_name": "Home"},
    )


@pytest.fixture
def module_unit() -> SyncUnit:
    return SyncUnit(
        device=TEST_DEVICE,
        module=TEST_MODULE,
        data_types=(DataType.temperature,),
        labels={"dev_id": TEST_MODULE, "home_name": "Home"},
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Controllable monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeMeasureSource:
    """Serves queued getmeasure pages and records every query it receives.

    Once the queue is exhausted it answers with empty pages.
    """

    def __init__(self, pages: Sequence[Sequence[dict[str, Any]]] = ()) -> None:
        self._pages = [[MeasureGroup.model_validate(g) for g in page] for page in pages]
        self.calls: list[dict[str, str]] = []

    async def get_measure(self, params: Mapping[str, str]) -> list[MeasureGroup]:
        self.calls.append(dict(params))
        if self._pages:
            return self._pages.pop(0)
        return []


class RecordingSink(MetricsSink):
    """In-memory sink that records appends and answers queries from a table."""

    def __init__(
        self,
        last_timestamps: dict[str, datetime] | None = None,
        fail_on_append: int | None = None,
    ) -> None:
        self.appended: list[tuple[str, DataType, list[Sample]]] = []
        self.queries: list[tuple[str, DataType, timedelta]] = []
        self._last = last_timestamps or {}
        self._fail_on_append = fail_on_append
        self.closed = False

    async def append_samples(
        self, unit: SyncUnit, data_type: DataType, samples: Sequence[Sample]
    ) -> None:
        if self._fail_on_append is not None and len(self.appended) + 1 >= self._fail_on_append:
            raise SinkError("sink unavailable")
        self.appended.append((unit.unit_id, data_type, list(samples)))

    async def query_last_timestamp(
        self, unit: SyncUnit, data_type: DataType, lookback: timedelta
    ) -> datetime | None:
        self.queries.append((unit.unit_id, data_type, lookback))
        return self._last.get(unit.unit_id)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
