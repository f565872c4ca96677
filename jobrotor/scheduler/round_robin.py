"""
Timed round-robin job reservation.

Each poll walks the worker's queues starting at its rotation cursor and
reserves from the first queue that admission control allows and that has
a job. Probing an empty queue moves the cursor on, so the next poll starts
further along; otherwise the cursor only moves when the time slice for the
current queue runs out.
"""

import logging
import time
from collections.abc import Callable

from jobrotor.constants import SPAN_RESERVE_FROM_QUEUE, ProbeOutcome
from jobrotor.observability.metrics import MetricsCollector, get_metrics
from jobrotor.observability.tracing import start_span
from jobrotor.scheduler.admission import AdmissionController
from jobrotor.scheduler.busy import BusyQueueObserver
from jobrotor.scheduler.config import RotationConfig
from jobrotor.scheduler.rotation import RotationState
from jobrotor.types.job import ReservedJob
from jobrotor.types.protocols import JobStore, QueueSource, WorkerRegistry

logger = logging.getLogger(__name__)


class TimedRoundRobinScheduler:
    """
    Reserves jobs for one worker process across many queues.

    Features:
    - Time-sliced rotation so one hot queue cannot monopolize a worker
    - Per-queue-family depth limits based on what other workers are doing
    - Optional exclusion of queues another worker is already busy with

    Rotation state is private to this instance; nothing is shared with
    other workers.
    """

    def __init__(
        self,
        queue_source: QueueSource,
        job_store: JobStore,
        registry: WorkerRegistry,
        config: RotationConfig | None = None,
        *,
        wildcard: bool = False,
        worker_id: str = "worker",
        clock: Callable[[], float] = time.monotonic,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            queue_source: Provides the queue snapshot for each poll.
            job_store: Reserves jobs from individual queues.
            registry: Reports what other workers are processing.
            config: Rotation and admission tunables.
            wildcard: Whether this worker services every queue, which
                exempts it from depth limits.
            worker_id: Identifier used in logs and metrics.
            clock: Source of the current time in seconds.
            metrics: Metrics collector. Uses the process-wide one if omitted.
        """
        self.config = config or RotationConfig()
        self.wildcard = wildcard
        self.worker_id = worker_id

        self._queue_source = queue_source
        self._job_store = job_store
        self._metrics = metrics or get_metrics()

        self.state = RotationState(self.config.slice_length, clock=clock)
        self.observer = BusyQueueObserver(registry)
        self.admission = AdmissionController(self.config, self.observer)

    def candidate_queues(self) -> list[str]:
        """
        Queues to probe this poll, in probe order.

        Re-reads the queue list, applies slice rotation and, when enabled,
        drops queues another worker is already processing.
        """
        queues = self.state.rotated_queues(self._queue_source.list_queues())
        if self.config.filter_busy_queues and queues:
            queues = self.observer.filter_busy_queues(queues)
        return queues

    def reserve_job(self) -> ReservedJob | None:
        """
        Reserve the next job according to the round-robin rotation.

        Returns:
            The reserved job, or None if no admitted queue had a job.

        Raises:
            Exception: Whatever a collaborator raised while listing queues,
                reading the registry or reserving. The scan stops there.
        """
        try:
            return self._scan()
        except Exception as e:
            logger.exception(
                f"Error reserving job: {e!r}",
                extra={"worker_id": self.worker_id},
            )
            raise

    def _scan(self) -> ReservedJob | None:
        for queue in self.candidate_queues():
            logger.debug(f"Checking {queue}")

            if not self.admission.may_probe(queue, self.wildcard):
                self._metrics.record_probe(queue, ProbeOutcome.DENIED)
                continue

            job = self._reserve_from(queue)
            if job is not None:
                return job

            # Start the next search at the queue after the one just probed.
            self.state.advance_offset()
            self._metrics.record_probe(queue, ProbeOutcome.EMPTY)

        self._metrics.update_rotation(self.worker_id, self.state.offset)
        return None

    def _reserve_from(self, queue: str) -> ReservedJob | None:
        try:
            with start_span(SPAN_RESERVE_FROM_QUEUE, queue=queue, worker_id=self.worker_id):
                job = self._job_store.reserve(queue)
        except Exception:
            self._metrics.record_reservation_error(queue)
            raise

        if job is None:
            return None

        logger.debug(f"Found job on {queue}")
        if self.state.begin_queue(queue):
            self._metrics.record_slice_started(self.worker_id)

        self._metrics.record_probe(queue, ProbeOutcome.RESERVED)
        self._metrics.update_rotation(self.worker_id, self.state.offset)
        return job
