"""Application configuration loaded from environment variables."""

import os
import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(value: Any) -> timedelta:
    """Parse ``90d``, ``2160h``, ``1h30m``, ``45s`` or plain seconds.

    Raises:
        ValueError: If the value is not a recognised duration.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    text = str(value).strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass
    pos = 0
    total = timedelta(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def default_credentials_path() -> Path:
    """``$XDG_CONFIG_HOME/netatmo/config.json`` (``~/.config`` if unset)."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "netatmo" / "config.json"


class Settings(BaseSettings):
    """All configuration is loaded from ``NETATMO_*`` environment variables (or .env file)."""

    # --- Destination ---
    dest: str = ""  # host:port of a VictoriaMetrics server; empty = stdout

    # --- Resume ---
    resume: str = ""  # device/module/epoch logged by a previous run
    incremental: bool = True
    incremental_since: timedelta = timedelta(days=90)
    since: timedelta = timedelta(0)  # 0 = start from the first recorded sample

    # --- Credentials ---
    credentials_path: Path = default_credentials_path()

    # --- Logging ---
    verbose: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="NETATMO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("incremental_since", "since", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> timedelta:
        return parse_duration(value)


@lru_cache
def get_settings() -> Settings:
    return Settings()
