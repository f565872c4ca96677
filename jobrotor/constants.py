"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - QUEUED -> RESERVED (reserved by a worker's round-robin scan)
    - RESERVED -> RUNNING (execution started)
    - RUNNING -> SUCCEEDED (success)
    - RUNNING -> QUEUED (retry)
    - RUNNING -> FAILED (max attempts exceeded)
    - RESERVED -> QUEUED (lease expired - crash recovery)
    """

    QUEUED = "queued"
    RESERVED = "reserved"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ProbeOutcome(StrEnum):
    """Result of considering one candidate queue during a scan."""

    RESERVED = "reserved"
    EMPTY = "empty"
    DENIED = "denied"


# Queue subscription that services every known queue. Workers subscribed to it
# are exempt from depth limiting.
WILDCARD_QUEUE = "*"

# Separator between a queue-family prefix and the rest of the queue name
QUEUE_PREFIX_SEPARATOR = "_"

# Default values
DEFAULT_SLICE_LENGTH = 60
DEFAULT_QUEUE_DEPTH = 0  # 0 means no limiting
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WORKER_QUEUES = (WILDCARD_QUEUE,)

# Metrics names
METRIC_QUEUE_PROBES = "queue_probes_total"
METRIC_JOBS_RESERVED = "jobs_reserved_total"
METRIC_RESERVATION_ERRORS = "reservation_errors_total"
METRIC_ROTATION_OFFSET = "rotation_offset"
METRIC_SLICE_ADVANCES = "slice_advances_total"
METRIC_QUEUE_BUSY_DEPTH = "queue_busy_depth"
METRIC_JOBS_COMPLETED = "jobs_completed_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_LEASE_EXPIRED = "lease_expired_total"
METRIC_WORKERS_PRUNED = "workers_pruned_total"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"
SPAN_RESERVE_FROM_QUEUE = "reserve_from_queue"
