"""VictoriaMetrics sink.

Appends samples through the Prometheus text import route and answers
"last written sample" queries through the Prometheus-compatible query API.

Routes used (configurable in sync_config.yaml):
    /api/v1/import/prometheus — gzip'd exposition text, one POST per batch
    /api/v1/query             — instant query ``timestamp(metric{dev_id=...}[lookback])``
"""

from __future__ import annotations

import gzip
import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

import httpx

from src.netatmo.base import DataType, Sample, SyncUnit, from_epoch, utc_now
from src.netatmo.config_loader import SinkConfig
from src.netatmo.exceptions import SinkError
from src.netatmo.sinks.base import MetricsSink
from src.netatmo.sinks.exposition import escape_label_value, format_exposition

logger = logging.getLogger("netatmo_sync.sinks.victoria")


def normalize_dest(dest: str) -> str:
    """Accept ``host:port`` as well as a full URL."""
    if "://" in dest:
        return dest.rstrip("/")
    return f"http://{dest}".rstrip("/")


class VictoriaMetricsSink(MetricsSink):
    """Sink backed by a VictoriaMetrics (or compatible) server."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: SinkConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the sink.

        Args:
            http_client: Client whose ``base_url`` points at the server.
            config:      Metric prefix and routes.
            clock:       Returns the current UTC time (injectable for tests).
        """
        self._http = http_client
        self._config = config
        self._clock = clock

    @classmethod
    def for_dest(cls, dest: str, config: SinkConfig, timeout: float = 30.0) -> VictoriaMetricsSink:
        return cls(httpx.AsyncClient(base_url=normalize_dest(dest), timeout=timeout), config)

    def _labels(self, unit: SyncUnit) -> dict[str, str]:
        return {**unit.labels, "dev_id": unit.unit_id}

    async def append_samples(
        self, unit: SyncUnit, data_type: DataType, samples: Sequence[Sample]
    ) -> None:
        if not samples:
            return
        metric = data_type.metric_name(self._config.metric_prefix)
        payload = format_exposition(metric, self._labels(unit), samples).encode("utf-8")
        headers = {"Content-Type": "text/plain"}
        if self._config.gzip:
            payload = gzip.compress(payload)
            headers["Content-Encoding"] = "gzip"

        try:
            response = await self._http.post(self._config.import_path, content=payload, headers=headers)
        except httpx.TransportError as exc:
            raise SinkError(f"import of {metric} for {unit.unit_id} failed: {exc}") from exc
        if response.status_code >= 300:
            raise SinkError(
                f"import of {metric} for {unit.unit_id} returned {response.status_code}: {response.text}"
            )
        logger.debug("Imported %d %s samples for %s", len(samples), metric, unit.unit_id)

    async def query_last_timestamp(
        self, unit: SyncUnit, data_type: DataType, lookback: timedelta
    ) -> datetime | None:
        metric = data_type.metric_name(self._config.metric_prefix)
        seconds = max(1, int(lookback.total_seconds()))
        query = f'timestamp({metric}{{dev_id="{escape_label_value(unit.unit_id)}"}}[{seconds}s])'
        params = {"query": query, "time": str(int(self._clock().timestamp()))}

        try:
            response = await self._http.get(self._config.query_path, params=params)
        except httpx.TransportError as exc:
            raise SinkError(f"query {query!r} failed: {exc}") from exc
        if response.status_code != 200:
            raise SinkError(f"query {query!r} returned {response.status_code}: {response.text}")

        try:
            data = response.json()
            if data.get("status") != "success":
                raise SinkError(f"query {query!r} failed: {data.get('error', data)}")
            result = data["data"]["result"]
            timestamps = [float(item["value"][1]) for item in result]
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise SinkError(f"query {query!r} returned an unexpected body: {response.text}") from exc

        if not timestamps:
            logger.debug("No %s samples for %s within %s", metric, unit.unit_id, lookback)
            return None
        return from_epoch(int(max(timestamps)))

    async def aclose(self) -> None:
        await self._http.aclose()
