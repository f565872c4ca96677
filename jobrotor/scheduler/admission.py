"""
Depth-based admission control for candidate queues.
"""

import logging

from jobrotor.constants import DEFAULT_QUEUE_DEPTH, QUEUE_PREFIX_SEPARATOR
from jobrotor.scheduler.busy import BusyQueueObserver
from jobrotor.scheduler.config import RotationConfig

logger = logging.getLogger(__name__)


class AdmissionController:
    """
    Decides whether a worker may try to reserve from a queue right now.

    Queue families are identified by prefix: a limit configured for
    "mail" applies to "mail_outbound", "mail_bulk" and so on. The limit
    caps how many workers may be processing jobs from one queue at once.
    Limits are a cooperative convention checked against a possibly stale
    view of other workers; they are not enforced allocations.
    """

    def __init__(self, config: RotationConfig, observer: BusyQueueObserver):
        self._config = config
        self._observer = observer

    def depth_limit_for(self, queue: str) -> int:
        """
        Maximum concurrent workers for queue; 0 means unlimited.

        Prefixes are checked in configuration order and the first match
        wins. A global override replaces the result whether or not a
        prefix matched.
        """
        max_depth = DEFAULT_QUEUE_DEPTH
        for prefix, limit in self._config.queue_depths:
            if queue.startswith(f"{prefix}{QUEUE_PREFIX_SEPARATOR}"):
                max_depth = limit
                break

        if self._config.depth_override is not None:
            max_depth = self._config.depth_override

        return max_depth

    def may_probe(self, queue: str, wildcard: bool = False) -> bool:
        """
        Check whether a reservation attempt on queue is allowed.

        Args:
            queue: Candidate queue name.
            wildcard: Whether the worker services every queue. Wildcard
                workers are never depth limited.

        Returns:
            True if the worker may try to reserve from queue.
        """
        if wildcard:
            return True

        max_depth = self.depth_limit_for(queue)
        if max_depth == 0:
            return True

        current = self._observer.queue_depth(queue)
        logger.debug(f"queue {queue} depth = {current} max = {max_depth}")
        return current < max_depth
