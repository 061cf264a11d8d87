"""Netatmo weather station history sync.

This package incrementally copies station and module measurements from the
Netatmo API into a metrics sink, resuming where the previous run stopped.

Subpackages:
    api/   — Rate-limited, OAuth2-authenticated Netatmo client
    sync/  — Resume decisions, pagination, and the sync session
    sinks/ — VictoriaMetrics and stdout metric sinks

Core modules:
    base          — Canonical data models (DataType, DataPoint, SyncUnit, ...)
    protocol      — Pydantic models of the JSON wire format
    exceptions    — Error hierarchy
    config_loader — Load and validate sync_config.yaml
    credentials   — Persistent OAuth credentials file
"""

from src.netatmo.base import (
    DataPoint,
    DataType,
    MeasurePage,
    OAuthTokens,
    Sample,
    SyncUnit,
)
from src.netatmo.config_loader import SyncConfig, load_sync_config

__all__ = [
    "DataPoint",
    "DataType",
    "MeasurePage",
    "OAuthTokens",
    "Sample",
    "SyncConfig",
    "SyncUnit",
    "load_sync_config",
]
