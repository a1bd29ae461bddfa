"""Metrics export for dioprobe."""

from __future__ import annotations

from dioprobe.monitoring.collector import (
    METRIC_NAME,
    ProbeCollector,
    create_registry,
)
from dioprobe.monitoring.http_server import MetricsServer

__all__ = [
    "METRIC_NAME",
    "MetricsServer",
    "ProbeCollector",
    "create_registry",
]
