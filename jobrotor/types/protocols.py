"""
Collaborator protocols for the round-robin scheduler.

The scheduler only needs three narrow capabilities from the outside world.
All calls are synchronous and may block on I/O.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from jobrotor.types.job import ReservedJob
from jobrotor.types.worker import WorkerObservation


@runtime_checkable
class QueueSource(Protocol):
    """Supplies the ordered list of queues a worker should consider."""

    def list_queues(self) -> Sequence[str]:
        """
        Return the current queue names, in subscription order.

        May change between calls; callers must not cache the result
        beyond a single poll.
        """
        ...


@runtime_checkable
class JobStore(Protocol):
    """Reserves jobs from named queues."""

    def reserve(self, queue: str) -> ReservedJob | None:
        """
        Atomically reserve the next job from queue.

        Returns None when the queue is empty. Implementation-defined
        exceptions propagate to the caller.
        """
        ...


@runtime_checkable
class WorkerRegistry(Protocol):
    """Reports which workers are active and what they are working on."""

    def list_active_workers(self) -> Sequence[WorkerObservation]:
        """Return one observation per currently active worker."""
        ...
