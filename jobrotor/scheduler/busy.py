"""
Busy-queue observation derived from the worker registry.
"""

from collections.abc import Iterable, Sequence

from jobrotor.types.protocols import WorkerRegistry


class BusyQueueObserver:
    """
    Derives which queues other workers are currently processing.

    Each call reads a fresh snapshot from the registry. The view is
    eventually consistent; two workers can both see room on a queue and
    briefly exceed its depth limit.
    """

    def __init__(self, registry: WorkerRegistry):
        self._registry = registry

    def busy_queues(self) -> list[str]:
        """
        Queue names claimed by active workers, one entry per worker.

        Idle workers contribute nothing.
        """
        return [
            worker.queue
            for worker in self._registry.list_active_workers()
            if worker.is_busy
        ]

    def queue_depth(self, queue: str) -> int:
        """Number of active workers currently processing a job from queue."""
        return self.busy_queues().count(queue)

    def filter_busy_queues(
        self,
        candidates: Iterable[str | None],
        busy: Sequence[str] | None = None,
    ) -> list[str]:
        """
        Drop candidates that some worker is already processing.

        Order is preserved and None entries are discarded. Filtering an
        already-filtered list against the same busy snapshot removes nothing.

        Args:
            candidates: Queue names to filter.
            busy: Busy snapshot to filter against. Read from the registry
                when omitted.

        Returns:
            The candidates not present in the busy snapshot.
        """
        busy_set = set(self.busy_queues() if busy is None else busy)
        return [q for q in candidates if q is not None and q not in busy_set]
