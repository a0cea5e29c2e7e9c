"""Metrics collection and reporting with Prometheus integration."""

import time
from contextlib import contextmanager

from prometheus_client import (REGISTRY, CollectorRegistry, Counter, Gauge,
                               Histogram, generate_latest)

HEALTH_STATUS_VALUES = {
    "healthy": 0,
    "degraded": 1,
    "critical": 2,
    "unavailable": 3,
}


class RouterMetrics:
    """Prometheus collectors for routing, provider attempts and health."""

    def __init__(
        self,
        namespace: str = "chatbot_router",
        registry: CollectorRegistry | None = None,
    ):
        """Initialize metrics collector."""
        self.namespace = namespace
        self.registry = registry if registry is not None else REGISTRY
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}

        self._init_default_metrics()

    def _init_default_metrics(self):
        """Initialize default routing metrics."""
        self._counters["routed_requests"] = Counter(
            f"{self.namespace}_routed_requests_total",
            "Total routed chat messages",
            ["routed_by"],
            registry=self.registry,
        )

        self._histograms["route_duration"] = Histogram(
            f"{self.namespace}_route_duration_seconds",
            "End-to-end routing duration",
            ["routed_by"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self.registry,
        )

        self._counters["provider_attempts"] = Counter(
            f"{self.namespace}_provider_attempts_total",
            "Provider attempts by outcome",
            ["provider", "outcome"],
            registry=self.registry,
        )

        self._histograms["provider_latency"] = Histogram(
            f"{self.namespace}_provider_latency_seconds",
            "Provider processing latency",
            ["provider"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self.registry,
        )

        self._counters["fallbacks"] = Counter(
            f"{self.namespace}_fallbacks_total",
            "Fallback responses by matched rule",
            ["rule"],
            registry=self.registry,
        )

        self._histograms["sweep_duration"] = Histogram(
            f"{self.namespace}_health_sweep_duration_seconds",
            "Health sweep duration",
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 3.0, 10.0),
            registry=self.registry,
        )

        self._gauges["provider_health"] = Gauge(
            f"{self.namespace}_provider_health_status",
            "Provider health (0=healthy, 1=degraded, 2=critical, 3=unavailable)",
            ["provider"],
            registry=self.registry,
        )

    def increment_counter(
        self,
        name: str,
        value: float = 1.0,
        labels: dict[str, str] | None = None,
    ):
        """Increment a counter metric."""
        if name not in self._counters:
            return
        if labels:
            self._counters[name].labels(**labels).inc(value)
        else:
            self._counters[name].inc(value)

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ):
        """Set a gauge metric."""
        if name not in self._gauges:
            return
        if labels:
            self._gauges[name].labels(**labels).set(value)
        else:
            self._gauges[name].set(value)

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ):
        """Observe a histogram value."""
        if name not in self._histograms:
            return
        if labels:
            self._histograms[name].labels(**labels).observe(value)
        else:
            self._histograms[name].observe(value)

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None):
        """Context manager for timing operations."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.observe_histogram(name, time.perf_counter() - start_time, labels)

    def record_route(self, routed_by: str, duration_s: float):
        """Record a finished route() call."""
        self.increment_counter("routed_requests", labels={"routed_by": routed_by})
        self.observe_histogram("route_duration", duration_s, labels={"routed_by": routed_by})

    def record_attempt(self, provider: str, outcome: str, latency_s: float):
        """Record a single provider attempt (success, error, timeout, abandoned)."""
        self.increment_counter(
            "provider_attempts", labels={"provider": provider, "outcome": outcome}
        )
        if outcome == "success":
            self.observe_histogram("provider_latency", latency_s, labels={"provider": provider})

    def record_fallback(self, rule: str):
        """Record which fallback rule answered."""
        self.increment_counter("fallbacks", labels={"rule": rule})

    def record_provider_health(self, provider: str, status: str):
        """Record provider health status."""
        self.set_gauge(
            "provider_health",
            HEALTH_STATUS_VALUES.get(status, HEALTH_STATUS_VALUES["unavailable"]),
            labels={"provider": provider},
        )

    def export_prometheus(self) -> bytes:
        """Export metrics in Prometheus format."""
        return generate_latest(self.registry)


# Global metrics instance
metrics_collector = RouterMetrics()
