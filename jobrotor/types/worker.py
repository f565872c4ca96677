"""
Worker-related type definitions.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class WorkerObservation:
    """
    What one active worker is doing right now, as seen by other workers.

    queue is the queue of the job the worker is processing, or None when
    the worker is idle.
    """

    worker_id: str
    queue: str | None = None

    @property
    def is_busy(self) -> bool:
        return self.queue is not None
