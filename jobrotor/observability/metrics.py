"""
Prometheus metrics collection.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    start_http_server,
    REGISTRY,
)

from jobrotor.constants import (
    METRIC_QUEUE_PROBES,
    METRIC_JOBS_RESERVED,
    METRIC_RESERVATION_ERRORS,
    METRIC_ROTATION_OFFSET,
    METRIC_SLICE_ADVANCES,
    METRIC_QUEUE_BUSY_DEPTH,
    METRIC_JOBS_COMPLETED,
    METRIC_JOB_DURATION,
    METRIC_LEASE_EXPIRED,
    METRIC_WORKERS_PRUNED,
    ProbeOutcome,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the scheduler and workers.

    Collects metrics for:
    - Queue probes and their outcome
    - Reservations and reservation errors
    - Rotation cursor movement
    - Busy depth per queue
    - Job completions and execution duration
    - Reaper recoveries
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_probes = Counter(
            METRIC_QUEUE_PROBES,
            "Candidate queues considered during round-robin scans",
            ["queue", "outcome"],
            registry=self._registry,
        )

        self.jobs_reserved = Counter(
            METRIC_JOBS_RESERVED,
            "Total number of jobs reserved",
            ["queue"],
            registry=self._registry,
        )

        self.reservation_errors = Counter(
            METRIC_RESERVATION_ERRORS,
            "Total number of failed reservation attempts",
            ["queue"],
            registry=self._registry,
        )

        self.rotation_offset = Gauge(
            METRIC_ROTATION_OFFSET,
            "Current rotation cursor of a worker",
            ["worker_id"],
            registry=self._registry,
        )

        self.slice_advances = Counter(
            METRIC_SLICE_ADVANCES,
            "Number of slices started by a reservation from a new queue",
            ["worker_id"],
            registry=self._registry,
        )

        self.queue_busy_depth = Gauge(
            METRIC_QUEUE_BUSY_DEPTH,
            "Number of active workers processing a job from the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of jobs completed",
            ["queue", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["queue", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.lease_expired = Counter(
            METRIC_LEASE_EXPIRED,
            "Total number of expired leases returned to their queue",
            registry=self._registry,
        )

        self.workers_pruned = Counter(
            METRIC_WORKERS_PRUNED,
            "Total number of stale worker records removed",
            registry=self._registry,
        )

    def record_probe(self, queue: str, outcome: ProbeOutcome) -> None:
        """Record one candidate queue considered during a scan."""
        self.queue_probes.labels(queue=queue, outcome=outcome.value).inc()
        if outcome is ProbeOutcome.RESERVED:
            self.jobs_reserved.labels(queue=queue).inc()

    def record_reservation_error(self, queue: str) -> None:
        """Record a reservation attempt that raised."""
        self.reservation_errors.labels(queue=queue).inc()

    def update_rotation(self, worker_id: str, offset: int) -> None:
        """Update the rotation cursor for a worker."""
        self.rotation_offset.labels(worker_id=worker_id).set(offset)

    def record_slice_started(self, worker_id: str) -> None:
        """Record a new slice started by a queue change."""
        self.slice_advances.labels(worker_id=worker_id).inc()

    def update_busy_depth(self, queue: str, depth: int) -> None:
        """Update the busy depth for a queue."""
        self.queue_busy_depth.labels(queue=queue).set(depth)

    def record_job_completed(
        self,
        queue: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job completion."""
        self.jobs_completed.labels(queue=queue, status=status).inc()
        self.job_duration.labels(queue=queue, status=status).observe(
            duration_seconds
        )

    def serve(self, port: int) -> None:
        """Expose metrics over HTTP on the given port."""
        start_http_server(port, registry=self._registry)


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
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
