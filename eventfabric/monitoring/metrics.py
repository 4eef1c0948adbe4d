"""
Metrics for eventfabric.

MetricsManager wraps a small set of Prometheus counters describing update
traffic through the drivers and the aggregator. Each manager owns its own
CollectorRegistry, so several managers can coexist in one process.

Example Usage:
    from eventfabric.monitoring.metrics import MetricsManager

    metrics = MetricsManager()
    metrics.start_server(9100)
    metrics.increment_counter("updates_sent", labels={"driver": "zmq"})
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, start_http_server

logger = logging.getLogger(__name__)


class MetricsManager:
    """Metrics manager."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics manager.

        Args:
            registry: Registry to record into. A private one is created
                when not given.
        """
        self.registry = registry or CollectorRegistry()
        self.counters: Dict[str, Counter] = {}
        self._initialize_metrics()

    def _initialize_metrics(self) -> None:
        """Initialize metrics."""
        self.counters["updates_sent"] = Counter(
            "eventfabric_updates_sent_total",
            "Total number of updates sent by publishers",
            ["driver"],
            registry=self.registry,
        )
        self.counters["updates_received"] = Counter(
            "eventfabric_updates_received_total",
            "Total number of updates delivered to subscriber callbacks",
            ["driver"],
            registry=self.registry,
        )
        self.counters["resyncs"] = Counter(
            "eventfabric_resyncs_total",
            "Total number of resync hints emitted after connection loss",
            ["driver"],
            registry=self.registry,
        )
        self.counters["peers_evicted"] = Counter(
            "eventfabric_peers_evicted_total",
            "Total number of stale publisher records deleted",
            registry=self.registry,
        )
        self.counters["forward_errors"] = Counter(
            "eventfabric_forward_errors_total",
            "Total number of updates the aggregator failed to forward",
            registry=self.registry,
        )

    def start_server(self, port: int) -> None:
        """Expose metrics over HTTP.

        Args:
            port: Port to listen on
        """
        start_http_server(port, registry=self.registry)
        logger.info(f"Started Prometheus metrics server on port {port}")

    def increment_counter(
        self, name: str, value: int = 1, labels: Optional[Dict] = None
    ) -> None:
        """Increment counter.

        Args:
            name: Counter name
            value: Value to increment by
            labels: Counter labels
        """
        counter = self.counters.get(name)
        if not counter:
            logger.error(f"Counter {name} not found")
            return

        if labels:
            counter.labels(**labels).inc(value)
        else:
            counter.inc(value)

    def get_value(self, name: str, labels: Optional[Dict] = None) -> float:
        """Read the current value of a counter.

        Args:
            name: Counter name
            labels: Counter labels

        Returns:
            Counter value, 0.0 if never incremented
        """
        counter = self.counters[name]
        sample_labels = labels or {}
        for metric in counter.collect():
            for sample in metric.samples:
                if sample.name.endswith("_total") and sample.labels == sample_labels:
                    return sample.value
        return 0.0
