"""Canonical data models for the Netatmo sync engine.

These types are shared by the API client, the pagination engine, the resume
coordinator and the sinks.  Wire-level (JSON) shapes live in
``src.netatmo.protocol``; everything here is independent of the upstream
encoding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple, NewType

DeviceID = NewType("DeviceID", str)
ModuleID = NewType("ModuleID", str)

#: Module id used for the device-level (main station) sync unit.
NO_MODULE = ModuleID("")

ONE_SECOND = timedelta(seconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(seconds: int | float) -> datetime:
    """Convert Unix epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_epoch(value: datetime) -> int:
    """Convert a datetime to whole Unix epoch seconds."""
    return int(value.timestamp())


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class DataType(str, Enum):
    """Sensor kinds reported by Netatmo stations and modules."""

    temperature = "Temperature"
    humidity = "Humidity"
    co2 = "CO2"
    pressure = "Pressure"
    noise = "Noise"
    rain = "Rain"
    wind = "Wind"

    @property
    def unit(self) -> str:
        return DATA_UNITS[self]

    def metric_name(self, prefix: str = "netatmo_") -> str:
        """Return the sink metric name, e.g. ``netatmo_temperature``."""
        return prefix + self.value.lower()

    @classmethod
    def parse(cls, raw: str) -> DataType | None:
        """Look up a data type by its wire name, or None if unknown."""
        try:
            return cls(raw)
        except ValueError:
            return None


DATA_UNITS: dict[DataType, str] = {
    DataType.temperature: "Cel",
    DataType.humidity: "%",
    DataType.co2: "[ppm]",
    DataType.pressure: "mbar",
    DataType.noise: "dB[SPL]",
    DataType.rain: "mm",
    DataType.wind: "km/h",
}


# ---------------------------------------------------------------------------
# Points and pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DataPoint:
    """One timestamp with one value per requested data type.

    ``values`` is ordered exactly like the unit's ``data_types``.  A value may
    be None when the station did not record that type at that step.
    """

    time: datetime
    values: tuple[float | None, ...]


class Sample(NamedTuple):
    """A single (timestamp, value) pair handed to a sink."""

    time: datetime
    value: float


@dataclass(frozen=True)
class MeasurePage:
    """One flattened upstream page plus the cursor to request next."""

    points: list[DataPoint]
    next_cursor: datetime


# ---------------------------------------------------------------------------
# Sync unit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncUnit:
    """One (device, optional module) pair and its fixed list of data types.

    Attributes:
        device:     Station id (MAC-like string).
        module:     Module id, or ``""`` for the station itself.
        data_types: Ordered data types to fetch; fixed for the whole run.
        labels:     Metric labels attached to every exported sample.
    """

    device: DeviceID
    module: ModuleID = NO_MODULE
    data_types: tuple[DataType, ...] = ()
    labels: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def unit_id(self) -> str:
        """The id samples are labelled with (``dev_id``): module if any, else device."""
        return self.module or self.device

    def __str__(self) -> str:
        return f"{self.device}/{self.module}"


# ---------------------------------------------------------------------------
# OAuth tokens
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """OAuth token pair used to authenticate against the Netatmo API.

    Attributes:
        access_token:  Bearer token for API calls.
        refresh_token: Long-lived token used to obtain a new access_token.
        expires_at:    UTC datetime when the access_token expires.
        token_type:    Token type, typically "Bearer".
    """

    access_token: str = ""
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_type: str = "Bearer"

    def is_expired(self, now: datetime, leeway: timedelta = timedelta(seconds=10)) -> bool:
        """True when there is no access token or it expires within ``leeway``."""
        if not self.access_token:
            return True
        if self.expires_at is None:
            return False
        return self.expires_at - leeway <= now
