"""
Prometheus metrics for the scheduler and the workers.

Defines and exposes metrics for:
- Jobs scheduled and skipped per provider
- Jobs processed per provider and outcome
- Items stored
- Adapter errors by type
- Fetch latency
- Queue depth

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from feed_ingest.config.settings import get_settings

logger = logging.getLogger(__name__)

# Feed fetches are bounded by a 5 s timeout; the top buckets catch retries
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the ingestion pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_job("rss", "success", items=12, latency=0.8)
    """

    def __init__(self):
        self.jobs_scheduled = Counter(
            "feed_ingest_jobs_scheduled_total",
            "Jobs enqueued by the scheduler",
            ["source_type"],
        )

        self.jobs_skipped = Counter(
            "feed_ingest_jobs_skipped_total",
            "Sources the scheduler did not enqueue",
            ["source_type", "reason"],  # reason: deprecated, rate_limited
        )

        self.jobs_processed = Counter(
            "feed_ingest_jobs_processed_total",
            "Jobs processed by workers",
            ["source_type", "status"],  # status: success, empty, error
        )

        self.items_stored = Counter(
            "feed_ingest_items_stored_total",
            "Items submitted to the source store",
            ["source_type"],
        )

        self.adapter_errors = Counter(
            "feed_ingest_adapter_errors_total",
            "Job failures by error type",
            ["source_type", "error_type"],
        )

        self.fetch_latency = Histogram(
            "feed_ingest_fetch_latency_seconds",
            "Time to fetch and normalize one source",
            ["source_type"],
            buckets=LATENCY_BUCKETS,
        )

        self.queue_depth = Gauge(
            "feed_ingest_queue_depth",
            "Jobs waiting in the queue",
            ["queue"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        port = port or get_settings().metrics_port
        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_scheduled(self, source_type: str, count: int = 1) -> None:
        self.jobs_scheduled.labels(source_type=source_type).inc(count)

    def record_skipped(self, source_type: str, reason: str) -> None:
        self.jobs_skipped.labels(source_type=source_type, reason=reason).inc()

    def record_job(
        self,
        source_type: str,
        status: str,
        items: int = 0,
        latency: float | None = None,
    ) -> None:
        """
        Record the outcome of one job.

        Args:
            source_type: Provider tag of the job's source
            status: success, empty or error
            items: Items submitted to the store
            latency: Fetch and normalize time in seconds
        """
        self.jobs_processed.labels(source_type=source_type, status=status).inc()
        if items:
            self.items_stored.labels(source_type=source_type).inc(items)
        if latency is not None:
            self.fetch_latency.labels(source_type=source_type).observe(latency)

    def record_error(self, source_type: str, error_type: str) -> None:
        self.adapter_errors.labels(source_type=source_type, error_type=error_type).inc()

    def set_queue_depth(self, queue: str, depth: int) -> None:
        self.queue_depth.labels(queue=queue).set(depth)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
