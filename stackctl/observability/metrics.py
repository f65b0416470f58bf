"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from stackctl.constants import (
    METRIC_DISPATCH_ATTEMPTS,
    METRIC_DISPATCH_DURATION,
    METRIC_DISPATCHES,
    METRIC_FAILURE_REPORTS,
    METRIC_JOBS_POLLED,
    METRIC_LEDGER_ENTRIES,
    METRIC_LEDGER_REJECTED,
    METRIC_POLL_CYCLES,
    METRIC_RESERVATIONS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the controller.

    Collects metrics for:
    - Poll cycles and polled jobs
    - Reservation outcomes
    - Dispatch attempts, outcomes and duration
    - Failure reports
    - Ledger size and capacity rejections
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.poll_cycles = Counter(
            METRIC_POLL_CYCLES,
            "Total number of poll cycles",
            ["queue", "status"],
            registry=self._registry,
        )

        self.jobs_polled = Counter(
            METRIC_JOBS_POLLED,
            "Total number of scheduled jobs read from the queue",
            ["queue"],
            registry=self._registry,
        )

        # outcome: reserved, not_reserved, failed
        self.reservations = Counter(
            METRIC_RESERVATIONS,
            "Total number of reservation outcomes",
            ["outcome"],
            registry=self._registry,
        )

        self.dispatch_attempts = Counter(
            METRIC_DISPATCH_ATTEMPTS,
            "Total number of remote agent start attempts",
            ["node"],
            registry=self._registry,
        )

        self.dispatches = Counter(
            METRIC_DISPATCHES,
            "Total number of dispatched jobs by outcome",
            ["status"],
            registry=self._registry,
        )

        self.dispatch_duration = Histogram(
            METRIC_DISPATCH_DURATION,
            "Time from reservation to terminal dispatch outcome in seconds",
            ["status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
            registry=self._registry,
        )

        self.failure_reports = Counter(
            METRIC_FAILURE_REPORTS,
            "Total number of failed-to-start reports sent upstream",
            ["status"],
            registry=self._registry,
        )

        self.ledger_entries = Gauge(
            METRIC_LEDGER_ENTRIES,
            "Number of entries currently held in the ledger",
            registry=self._registry,
        )

        self.ledger_rejected = Counter(
            METRIC_LEDGER_REJECTED,
            "Total number of jobs skipped because the ledger was full",
            registry=self._registry,
        )

    def record_poll_cycle(self, queue: str, status: str, jobs: int = 0) -> None:
        """Record a finished poll cycle."""
        self.poll_cycles.labels(queue=queue, status=status).inc()
        if jobs:
            self.jobs_polled.labels(queue=queue).inc(jobs)

    def record_reservations(self, outcome: str, count: int = 1) -> None:
        """Record reservation outcomes."""
        if count:
            self.reservations.labels(outcome=outcome).inc(count)

    def record_dispatch_attempt(self, node: str) -> None:
        """Record a single remote start attempt."""
        self.dispatch_attempts.labels(node=node).inc()

    def record_dispatch(self, status: str, duration_seconds: float) -> None:
        """Record a terminal dispatch outcome."""
        self.dispatches.labels(status=status).inc()
        self.dispatch_duration.labels(status=status).observe(duration_seconds)

    def record_failure_report(self, status: str) -> None:
        """Record a failure report; status is sent or error."""
        self.failure_reports.labels(status=status).inc()

    def record_ledger_rejected(self, count: int = 1) -> None:
        """Record jobs rejected by a full ledger."""
        self.ledger_rejected.inc(count)

    def update_ledger_size(self, size: int) -> None:
        """Update the ledger size gauge."""
        self.ledger_entries.set(size)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics


def serve_metrics(port: int) -> None:
    """
    Expose the default registry over HTTP.

    Args:
        port: Listen port. Zero disables the endpoint.
    """
    if port > 0:
        start_http_server(port)
