"""
Worker process for executing jobs.

The worker asks its round-robin scheduler for the next job, executes it,
and records the outcome. While a job runs, the worker's registry entry
names the job's queue so other workers can apply depth limits.
"""

import logging
import os
import signal
import threading
import time

from jobrotor.config import Settings, get_settings
from jobrotor.constants import SPAN_EXECUTE_JOB, WILDCARD_QUEUE
from jobrotor.db import (
    DatabaseJobStore,
    DatabaseQueueSource,
    DatabaseWorkerRegistry,
    close_db,
    get_session_context,
    init_db,
)
from jobrotor.db.collaborators import SessionFactory
from jobrotor.db.repository import JobRepository, WorkerRepository
from jobrotor.observability.logging import bind_context, clear_context, setup_logging
from jobrotor.observability.metrics import get_metrics
from jobrotor.observability.tracing import setup_tracing, start_span
from jobrotor.scheduler import RotationConfig, TimedRoundRobinScheduler
from jobrotor.types.job import JobContext, ReservedJob
from jobrotor.worker.handlers import execute_job

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls its queues in timed round-robin order.

    Features:
    - Time-sliced rotation across queues with per-family depth limits
    - Registry entry naming the queue of the job in progress
    - Heartbeat thread keeping the registry entry and job lease fresh
    - Graceful shutdown on SIGTERM/SIGINT after the current job
    """

    def __init__(
        self,
        worker_id: str | None = None,
        queues: list[str] | None = None,
        poll_interval: float | None = None,
        settings: Settings | None = None,
        session_factory: SessionFactory = get_session_context,
        scheduler: TimedRoundRobinScheduler | None = None,
    ):
        """
        Initialize the worker.

        Args:
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            queues: Queue subscriptions in priority order; "*" means all.
            poll_interval: Seconds between polls when no job was found.
            settings: Application settings. Defaults to the environment.
            session_factory: Opens database sessions.
            scheduler: Prebuilt scheduler. Built from settings if omitted.
        """
        settings = settings or get_settings()

        self.worker_id = (
            worker_id
            or settings.worker_id
            or f"{os.uname().nodename}-{os.getpid()}"
        )
        self.queues = list(queues or settings.worker_queues)
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds
        self.heartbeat_interval = settings.worker_heartbeat_interval_seconds
        self.lease_duration = settings.worker_lease_duration_seconds

        self._session_factory = session_factory
        self._metrics = get_metrics()
        self._stop_event = threading.Event()
        self._heartbeat_thread: threading.Thread | None = None
        self._current_job: ReservedJob | None = None

        self.scheduler = scheduler or TimedRoundRobinScheduler(
            DatabaseQueueSource(self.queues, session_factory),
            DatabaseJobStore(self.worker_id, session_factory, self.lease_duration),
            DatabaseWorkerRegistry(session_factory, settings.worker_stale_after_seconds),
            RotationConfig.from_settings(settings),
            wildcard=WILDCARD_QUEUE in self.queues,
            worker_id=self.worker_id,
            metrics=self._metrics,
        )

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> None:
        """Register the worker and run the polling loop until stopped."""
        logger.info(
            "Worker starting",
            extra={"worker_id": self.worker_id, "queues": self.queues}
        )
        bind_context(worker_id=self.worker_id)

        with self._session_factory() as session:
            WorkerRepository(session).register(
                self.worker_id,
                hostname=os.uname().nodename,
                pid=os.getpid(),
                queues=self.queues,
            )

        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop,
            name=f"heartbeat-{self.worker_id}",
            daemon=True,
        )
        self._heartbeat_thread.start()

        try:
            while self.running:
                try:
                    if not self.work_once():
                        self._stop_event.wait(self.poll_interval)
                except Exception as e:
                    logger.exception(
                        f"Error in worker loop: {e}",
                        extra={"worker_id": self.worker_id}
                    )
                    self._stop_event.wait(self.poll_interval)
        finally:
            self._stop_event.set()
            if self._heartbeat_thread is not None:
                self._heartbeat_thread.join(timeout=self.heartbeat_interval)

            with self._session_factory() as session:
                WorkerRepository(session).unregister(self.worker_id)

            logger.info("Worker stopped", extra={"worker_id": self.worker_id})
            clear_context()

    def stop(self) -> None:
        """Stop the worker after the job in progress."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._stop_event.set()

    def work_once(self) -> bool:
        """
        Reserve and process at most one job.

        Returns:
            True if a job was processed.
        """
        job = self.scheduler.reserve_job()
        if job is None:
            return False

        self.process(job)
        return True

    def process(self, job: ReservedJob) -> None:
        """
        Execute a reserved job and record the outcome.

        Handles the full lifecycle:
        1. Mark the worker busy on the job's queue
        2. Transition to RUNNING
        3. Execute the handler
        4. Mark as SUCCEEDED or handle failure
        5. Mark the worker idle

        Args:
            job: The reserved job.
        """
        start_time = time.time()
        self._current_job = job

        try:
            with self._session_factory() as session:
                WorkerRepository(session).set_current_job(self.worker_id, job.queue, job.id)
                running_job = JobRepository(session, self.lease_duration).start_job(
                    job.id, self.worker_id
                )

            if running_job is None:
                logger.warning(
                    "Failed to start job - lease may have expired",
                    extra={"job_id": str(job.id), "queue": job.queue}
                )
                return

            context = JobContext(
                job_id=job.id,
                queue=job.queue,
                attempt=running_job.attempt,
                max_attempts=running_job.max_attempts,
                payload=job.payload,
                lease_owner=self.worker_id,
                lease_expires_at=running_job.lease_expires_at,
            )

            logger.info(
                "Executing job",
                extra={
                    "job_id": str(job.id),
                    "queue": job.queue,
                    "attempt": context.attempt,
                }
            )

            with start_span(
                SPAN_EXECUTE_JOB,
                job_id=str(job.id),
                queue=job.queue,
                attempt=context.attempt,
            ):
                result = execute_job(context)

            duration = time.time() - start_time

            with self._session_factory() as session:
                repo = JobRepository(session, self.lease_duration)

                if result.success:
                    repo.complete_job(
                        job_id=job.id,
                        worker_id=self.worker_id,
                        result=result.output,
                    )
                    status = "succeeded"
                    logger.info(
                        "Job completed successfully",
                        extra={"job_id": str(job.id), "duration": f"{duration:.2f}s"}
                    )
                else:
                    failed = repo.fail_job(
                        job_id=job.id,
                        worker_id=self.worker_id,
                        error=result.error or "Unknown error",
                    )
                    status = failed.status.value if failed else "failed"
                    logger.warning(
                        "Job failed",
                        extra={
                            "job_id": str(job.id),
                            "error": result.error,
                            "attempt": context.attempt,
                        }
                    )

            self._metrics.record_job_completed(
                queue=job.queue,
                status=status,
                duration_seconds=duration,
            )

        finally:
            self._current_job = None
            with self._session_factory() as session:
                WorkerRepository(session).clear_current_job(self.worker_id)

    def _heartbeat_loop(self) -> None:
        """
        Periodically refresh the registry entry and the current job's lease.

        A worker whose heartbeat goes stale stops counting toward queue
        depth and its reserved job is eventually returned to the queue.
        """
        while not self._stop_event.wait(self.heartbeat_interval):
            try:
                with self._session_factory() as session:
                    WorkerRepository(session).heartbeat(self.worker_id)

                    job = self._current_job
                    if job is not None:
                        JobRepository(session, self.lease_duration).extend_lease(
                            job.id, self.worker_id
                        )
            except Exception as e:
                logger.exception(f"Error in heartbeat loop: {e}")


def run() -> None:
    """Run the worker."""
    settings = get_settings()

    setup_logging()
    setup_tracing(settings)
    if settings.prometheus_port:
        get_metrics().serve(settings.prometheus_port)
    init_db()

    worker = Worker(settings=settings)

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda signum, frame: worker.stop())

    try:
        worker.start()
    finally:
        close_db()


if __name__ == "__main__":
    run()
