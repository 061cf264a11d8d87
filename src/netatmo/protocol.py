"""Pydantic models for the Netatmo JSON wire format.

Only the fields the sync engine reads are modelled; everything else in the
payload is ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.netatmo.exceptions import DecodeError


class NetatmoBase(BaseModel):
    """Base model with shared config for all wire schemas."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------- Envelope ----------


class ApiError(NetatmoBase):
    code: int = 0
    message: str = ""


class Envelope(NetatmoBase):
    """Every API response: ``{"body": ..., "error": {...}}``."""

    body: Any = None
    error: ApiError | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        # Some endpoints report a bare string instead of {code, message}.
        if isinstance(value, str):
            return {"code": 0, "message": value}
        return value


# ---------- getmeasure ----------


class MeasureGroup(NetatmoBase):
    """One compact (``optimize=true``) group of evenly spaced samples."""

    beg_time: int
    step_time: int = 0
    value: list[list[float | None]] = Field(default_factory=list)


# ---------- getstationsdata ----------


class DashboardData(NetatmoBase):
    time_utc: int | None = None
    Temperature: float | None = None
    CO2: float | None = None
    Humidity: float | None = None
    Noise: float | None = None
    Pressure: float | None = None
    AbsolutePressure: float | None = None


class StationModule(NetatmoBase):
    id: str = Field(alias="_id")
    type: str = ""
    module_name: str = ""
    reachable: bool = False
    firmware: int | None = None
    battery_vp: int | None = None
    battery_percent: int | None = None
    data_type: list[str] = Field(default_factory=list)
    dashboard_data: DashboardData | None = None


class Station(NetatmoBase):
    id: str = Field(alias="_id")
    type: str = ""
    module_name: str = ""
    home_id: str = ""
    home_name: str = ""
    firmware: int | None = None
    reachable: bool = False
    co2_calibrating: bool = False
    last_status_store: int | None = None
    data_type: list[str] = Field(default_factory=list)
    dashboard_data: DashboardData | None = None
    modules: list[StationModule] = Field(default_factory=list)


class StationsBody(NetatmoBase):
    devices: list[Station] = Field(default_factory=list)


# ---------- Helpers ----------


def parse_measure_body(body: Any) -> list[MeasureGroup]:
    """Validate a getmeasure ``body``; a null body is an empty page.

    Raises:
        DecodeError: If the body is not a list of groups.
    """
    if body is None:
        return []
    if not isinstance(body, list):
        raise DecodeError(f"getmeasure body must be a list, got {type(body).__name__}")
    try:
        return [MeasureGroup.model_validate(group) for group in body]
    except ValidationError as exc:
        raise DecodeError(f"malformed getmeasure group: {exc}") from exc


def parse_stations_body(body: Any) -> list[Station]:
    """Validate a getstationsdata ``body``.

    Raises:
        DecodeError: If the body does not contain a devices list.
    """
    try:
        return StationsBody.model_validate(body).devices
    except ValidationError as exc:
        raise DecodeError(f"malformed getstationsdata body: {exc}") from exc
