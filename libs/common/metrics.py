"""Metrics collection for search platform services.

Provides a thin convenience wrapper around ``prometheus_client`` so services
can consistently record HTTP, search, embedding, and cache metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (can be injected for tests)
"""

from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection for search services.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'search_requests_total',
            'Total search requests',
            ['mode'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'search_duration_seconds',
            'Search duration',
            ['mode'],
            registry=self.registry
        )

        self.search_fallbacks = Counter(
            'search_fallbacks_total',
            'Searches that fell back to a simpler mode',
            ['requested_mode', 'fallback_mode'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'search_embedding_requests_total',
            'Total embedding model invocations',
            ['model_name'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'search_embedding_duration_seconds',
            'Embedding model invocation duration',
            ['model_name'],
            registry=self.registry
        )

        self.embedding_errors = Counter(
            'search_embedding_errors_total',
            'Embedding failures skipped during search',
            ['model_name'],
            registry=self.registry
        )

        self.cache_hits = Counter(
            'search_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'search_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

        self.model_ready = Gauge(
            'search_model_ready',
            'Whether the embedding model is loaded (1) or not (0)',
            registry=self.registry
        )

        self.records_loaded = Gauge(
            'search_records_loaded',
            'Valid records loaded per content source',
            ['source'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(self, mode: str, duration: float) -> None:
        """Record search metrics."""
        self.search_requests.labels(mode=mode).inc()
        self.search_duration.labels(mode=mode).observe(duration)

    def record_fallback(self, requested_mode: str, fallback_mode: str) -> None:
        """Record a search served by a fallback mode."""
        self.search_fallbacks.labels(requested_mode=requested_mode, fallback_mode=fallback_mode).inc()

    def record_embedding(self, model_name: str, duration: float) -> None:
        """Record one embedding model invocation."""
        self.embedding_requests.labels(model_name=model_name).inc()
        self.embedding_duration.labels(model_name=model_name).observe(duration)

    def record_embedding_error(self, model_name: str) -> None:
        """Record an embedding failure that was skipped."""
        self.embedding_errors.labels(model_name=model_name).inc()

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def set_model_ready(self, ready: bool) -> None:
        """Set the model readiness gauge."""
        self.model_ready.set(1 if ready else 0)

    def set_records_loaded(self, source: str, count: int) -> None:
        """Set the number of valid records loaded for a source."""
        self.records_loaded.labels(source=source).set(count)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
