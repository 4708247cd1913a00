"""Metrics — Prometheus metrics collection for change notification."""

from __future__ import annotations

from couchfeed.metrics.collector import MetricsCollector, NotifierMetrics

__all__ = ["MetricsCollector", "NotifierMetrics"]
