"""Prometheus text exposition encoding for exported samples.

Produces lines of the form::

    # TYPE netatmo_temperature gauge
    netatmo_temperature{dev_id="70:ee:50:00:00:01",home_name="Home"} 21.5 1700000000000

Timestamps are milliseconds since the epoch.  Label values are escaped as the
format requires (backslash, double quote, newline).
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from src.netatmo.base import Sample


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(labels: Mapping[str, str]) -> str:
    """Render ``{k="v",...}`` with keys sorted; empty mapping renders as ``""``."""
    if not labels:
        return ""
    body = ",".join(f'{key}="{escape_label_value(str(labels[key]))}"' for key in sorted(labels))
    return "{" + body + "}"


def format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(float(value))


def format_exposition(
    metric_name: str, labels: Mapping[str, str], samples: Iterable[Sample]
) -> str:
    """Encode one gauge family with every sample sharing the same labels."""
    label_str = format_labels(labels)
    lines = [f"# TYPE {metric_name} gauge"]
    for sample in samples:
        ts_ms = int(round(sample.time.timestamp() * 1000))
        lines.append(f"{metric_name}{label_str} {format_value(sample.value)} {ts_ms}")
    return "\n".join(lines) + "\n"
