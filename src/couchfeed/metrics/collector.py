"""Metrics collector — Prometheus counters and histograms for notifiers.

- ``couchfeed_polls_total`` counter-vec (outcome: ok, error, discarded)
- ``couchfeed_poll_duration_seconds`` histogram
- ``couchfeed_events_total`` counter-vec (type: create, update, delete, ...)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "couchfeed"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`NotifierMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class NotifierMetrics:
    """Poll and event metrics for change notifiers.

    Histograms track durations in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._polls = self._collector.counter(
            f"{_PREFIX}_polls",
            "Changes feed polls by outcome",
            ("outcome",),
        )
        self._poll_duration = self._collector.histogram(
            f"{_PREFIX}_poll_duration_seconds",
            "Time a changes feed poll stayed outstanding",
        )
        self._events = self._collector.counter(
            f"{_PREFIX}_events",
            "Change events published by type",
            ("type",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def poll_completed(self, outcome: str) -> None:
        """Count a finished poll (``ok``, ``error`` or ``discarded``)."""
        self._polls.labels(outcome=outcome).inc()

    def event_published(self, event_type: str) -> None:
        """Count a published change event."""
        self._events.labels(type=str(event_type)).inc()

    @contextmanager
    def track_poll(self) -> Iterator[None]:
        """Track how long a poll was outstanding."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._poll_duration.observe(time.monotonic() - start)
