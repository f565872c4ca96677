"""
Type definitions for the job scheduler.
Contains job and worker records and the collaborator protocols.
"""

from jobrotor.types.job import (
    JobContext,
    JobPayload,
    JobResult,
    ReservedJob,
)
from jobrotor.types.protocols import (
    JobStore,
    QueueSource,
    WorkerRegistry,
)
from jobrotor.types.worker import WorkerObservation

__all__ = [
    # Job types
    "JobPayload",
    "JobResult",
    "JobContext",
    "ReservedJob",
    # Worker types
    "WorkerObservation",
    # Collaborators
    "QueueSource",
    "JobStore",
    "WorkerRegistry",
]
