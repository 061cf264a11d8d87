"""Load and validate the sync tunables.

The config lives in ``sync_config.yaml`` alongside this module.  The CLI loads
it once per run; ``--config`` points at a replacement file.

Usage::

    from src.netatmo.config_loader import load_sync_config

    config = load_sync_config()
    config.rate_limit.per_second       # 0.0833...
    config.sink.metric_prefix          # "netatmo_"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("netatmo_sync.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class MeasureParams:
    """Fixed getmeasure query parameters."""

    scale: str = "max"
    optimize: bool = True
    real_time: bool = True


@dataclass
class ApiConfig:
    """Upstream API location and request settings."""

    base_url: str
    token_path: str
    timeout_seconds: float
    measure: MeasureParams = field(default_factory=MeasureParams)

    @property
    def token_url(self) -> str:
        return self.base_url.rstrip("/") + self.token_path


@dataclass
class RateLimitConfig:
    """Token bucket shared by every outbound request."""

    requests_per_hour: float
    burst: int
    max_wait_seconds: float | None = None

    @property
    def per_second(self) -> float:
        return self.requests_per_hour / 3600.0


@dataclass
class SinkConfig:
    """Metric naming and VictoriaMetrics routes."""

    metric_prefix: str = "netatmo_"
    import_path: str = "/api/v1/import/prometheus"
    query_path: str = "/api/v1/query"
    gzip: bool = True


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:    Config schema version string.
        api:        Upstream API settings.
        rate_limit: Request throttling.
        sink:       Metrics sink settings.
    """

    version: str
    api: ApiConfig
    rate_limit: RateLimitConfig
    sink: SinkConfig


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Applies defaults for optional fields and collects every problem before
    raising.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, name: str, default: Any) -> float:
        value = section.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {value!r}")
            return float(default)

    version = str(raw.get("version", "1.0"))

    # ── API ──
    api_raw = raw.get("api") or {}
    base_url = api_raw.get("base_url")
    if not base_url:
        errors.append("Missing required key 'base_url' in section 'api'")
    measure_raw = api_raw.get("measure") or {}
    api = ApiConfig(
        base_url=str(base_url or ""),
        token_path=str(api_raw.get("token_path", "/oauth2/token")),
        timeout_seconds=_number(api_raw, "timeout_seconds", "api", 30),
        measure=MeasureParams(
            scale=str(measure_raw.get("scale", "max")),
            optimize=bool(measure_raw.get("optimize", True)),
            real_time=bool(measure_raw.get("real_time", True)),
        ),
    )

    # ── Rate limit ──
    rl_raw = raw.get("rate_limit") or {}
    per_hour = _number(rl_raw, "requests_per_hour", "rate_limit", 300)
    if per_hour <= 0:
        errors.append(f"rate_limit.requests_per_hour must be > 0, got {per_hour}")
    burst = int(_number(rl_raw, "burst", "rate_limit", 50))
    if burst < 1:
        errors.append(f"rate_limit.burst must be >= 1, got {burst}")
    max_wait_raw = rl_raw.get("max_wait_seconds")
    rate_limit = RateLimitConfig(
        requests_per_hour=per_hour,
        burst=burst,
        max_wait_seconds=(
            None
            if max_wait_raw is None
            else _number(rl_raw, "max_wait_seconds", "rate_limit", 0)
        ),
    )

    # ── Sink ──
    sink_raw = raw.get("sink") or {}
    sink = SinkConfig(
        metric_prefix=str(sink_raw.get("metric_prefix", "netatmo_")),
        import_path=str(sink_raw.get("import_path", "/api/v1/import/prometheus")),
        query_path=str(sink_raw.get("query_path", "/api/v1/query")),
        gzip=bool(sink_raw.get("gzip", True)),
    )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        api=api,
        rate_limit=rate_limit,
        sink=sink,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config

