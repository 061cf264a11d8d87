"""Metrics sinks the sync engine exports into.

Modules:
    base       — MetricsSink ABC (append_samples / query_last_timestamp)
    exposition — Prometheus text encoding shared by the sinks
    victoria   — VictoriaMetrics import + query API
    stdout     — Exposition text to a stream
"""

from src.netatmo.sinks.base import MetricsSink
from src.netatmo.sinks.stdout import StdoutSink
from src.netatmo.sinks.victoria import VictoriaMetricsSink

__all__ = ["MetricsSink", "StdoutSink", "VictoriaMetricsSink"]
