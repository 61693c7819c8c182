"""Prometheus metrics for the controller."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

METRICS_NAMESPACE = "managed_certificate_controller"

# SslCertificate provisioning takes minutes to hours
CREATION_LATENCY_BUCKETS = (60, 300, 600, 1200, 1800, 3600, 7200, 14400, 28800, 86400)


class Metrics(ABC):
    """Sink for controller metrics."""

    @abstractmethod
    def observe_creation_latency(self, duration: timedelta) -> None:
        """Record time from ManagedCertificate creation to SslCertificate creation."""

    @abstractmethod
    def observe_backend_error(self) -> None: ...

    @abstractmethod
    def observe_quota_error(self) -> None: ...


class PrometheusMetrics(Metrics):
    """Metrics exported through prometheus_client.

    Args:
        registry: Registry to attach collectors to. Defaults to the global
            registry; tests pass a fresh one per instance.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry if registry is not None else REGISTRY

        self._creation_latency = Histogram(
            "ssl_certificate_creation_latency_seconds",
            "Time from ManagedCertificate creation to SslCertificate creation",
            namespace=METRICS_NAMESPACE,
            buckets=CREATION_LATENCY_BUCKETS,
            registry=self._registry,
        )
        self._backend_errors = Counter(
            "ssl_certificate_backend_error",
            "Errors returned by the Azure certificate API",
            namespace=METRICS_NAMESPACE,
            registry=self._registry,
        )
        self._quota_errors = Counter(
            "ssl_certificate_quota_error",
            "Certificate creations rejected because the quota is exhausted",
            namespace=METRICS_NAMESPACE,
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def observe_creation_latency(self, duration: timedelta) -> None:
        seconds = max(0.0, duration.total_seconds())
        logger.info("SslCertificate creation latency", extra={"latency_seconds": seconds})
        self._creation_latency.observe(seconds)

    def observe_backend_error(self) -> None:
        self._backend_errors.inc()

    def observe_quota_error(self) -> None:
        self._quota_errors.inc()

    def serve(self, port: int) -> None:
        """Expose the registry over HTTP on the given port."""
        start_http_server(port, registry=self._registry)
        logger.info("Serving metrics", extra={"port": port})
