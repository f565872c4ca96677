"""
Repositories for database operations.
Implements the data access patterns behind the scheduler's collaborators.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, func, select, update, and_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from jobrotor.config import get_settings
from jobrotor.constants import DEFAULT_MAX_ATTEMPTS, JobStatus
from jobrotor.db.models import Job, Worker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Job submission into named queues
    - Single-queue reservation with FOR UPDATE SKIP LOCKED
    - Status transitions
    - Lease expiry handling
    """

    def __init__(self, session: Session, lease_duration_seconds: int | None = None):
        """
        Initialize the repository with a database session.

        Args:
            session: The database session.
            lease_duration_seconds: How long a reservation stays exclusive.
                Defaults to the configured worker lease duration.
        """
        self._session = session
        if lease_duration_seconds is None:
            lease_duration_seconds = get_settings().worker_lease_duration_seconds
        self._lease_duration = timedelta(seconds=lease_duration_seconds)

    def enqueue(
        self,
        queue: str,
        payload: dict,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> Job:
        """
        Add a job to the end of a queue.

        Args:
            queue: The queue name.
            payload: The job payload.
            max_attempts: Maximum execution attempts.

        Returns:
            The created Job.
        """
        job = Job(
            queue=queue,
            payload=payload,
            max_attempts=max_attempts,
            status=JobStatus.QUEUED,
        )
        self._session.add(job)
        self._session.flush()

        logger.info(
            "Enqueued job",
            extra={"job_id": str(job.id), "queue": queue}
        )
        return job

    def get_job(self, job_id: UUID) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job UUID.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def list_queue_names(self) -> list[str]:
        """
        List every queue that currently holds queued jobs.

        Returns:
            Queue names in sorted order.
        """
        stmt = (
            select(Job.queue)
            .where(Job.status == JobStatus.QUEUED)
            .distinct()
            .order_by(Job.queue)
        )
        return list(self._session.execute(stmt).scalars().all())

    def reserve(self, queue: str, worker_id: str) -> Job | None:
        """
        Reserve the oldest queued job in a queue.

        The row lock is taken with SKIP LOCKED, so concurrent workers never
        reserve the same job and never wait on each other.

        Args:
            queue: The queue to reserve from.
            worker_id: The worker taking the reservation.

        Returns:
            The reserved Job, or None if the queue is empty.
        """
        now = _utcnow()

        candidate = (
            select(Job.id)
            .where(
                and_(
                    Job.queue == queue,
                    Job.status == JobStatus.QUEUED,
                )
            )
            .order_by(Job.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(Job)
            .where(Job.id == candidate)
            .values(
                status=JobStatus.RESERVED,
                lease_owner=worker_id,
                lease_expires_at=now + self._lease_duration,
                updated_at=now,
            )
            .returning(Job)
        )

        job = self._session.execute(stmt).scalar_one_or_none()

        if job is not None:
            logger.info(
                "Reserved job",
                extra={"job_id": str(job.id), "queue": queue, "worker_id": worker_id}
            )

        return job

    def start_job(self, job_id: UUID, worker_id: str) -> Job | None:
        """
        Transition job from RESERVED to RUNNING.

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier (must match lease owner).

        Returns:
            Updated Job or None if transition failed.
        """
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.RESERVED,
                    Job.lease_owner == worker_id,
                )
            )
            .values(
                status=JobStatus.RUNNING,
                attempt=Job.attempt + 1,
                updated_at=_utcnow(),
            )
            .returning(Job)
        )

        return self._session.execute(stmt).scalar_one_or_none()

    def complete_job(
        self,
        job_id: UUID,
        worker_id: str,
        result: dict | None = None,
    ) -> Job | None:
        """
        Mark job as successfully completed.

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier.
            result: Optional job result data.

        Returns:
            Updated Job or None if transition failed.
        """
        now = _utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.RUNNING,
                    Job.lease_owner == worker_id,
                )
            )
            .values(
                status=JobStatus.SUCCEEDED,
                completed_at=now,
                updated_at=now,
                lease_owner=None,
                lease_expires_at=None,
                result=result,
            )
            .returning(Job)
        )

        return self._session.execute(stmt).scalar_one_or_none()

    def fail_job(
        self,
        job_id: UUID,
        worker_id: str,
        error: str,
    ) -> Job | None:
        """
        Handle job failure. Either requeue or mark as failed.

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier.
            error: Error message.

        Returns:
            Updated Job or None if transition failed.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        if job.lease_owner != worker_id:
            logger.warning(
                "Worker doesn't own job lease",
                extra={"job_id": str(job_id), "worker_id": worker_id}
            )
            return None

        now = _utcnow()

        if job.attempt >= job.max_attempts:
            new_status = JobStatus.FAILED
            completed_at = now
            logger.warning(
                f"Job failed permanently after {job.attempt} attempts",
                extra={"job_id": str(job_id), "error": error}
            )
        else:
            new_status = JobStatus.QUEUED
            completed_at = None
            logger.info(
                "Job queued for retry",
                extra={"job_id": str(job_id), "attempt": job.attempt}
            )

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.RUNNING,
                    Job.lease_owner == worker_id,
                )
            )
            .values(
                status=new_status,
                last_error=error,
                updated_at=now,
                completed_at=completed_at,
                lease_owner=None,
                lease_expires_at=None,
            )
            .returning(Job)
        )

        return self._session.execute(stmt).scalar_one_or_none()

    def recover_expired_leases(self) -> int:
        """
        Return reserved jobs with expired leases to their queue.

        This is called by the reaper to handle worker crashes.

        Returns:
            Number of recovered jobs.
        """
        now = _utcnow()

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.status == JobStatus.RESERVED,
                    Job.lease_expires_at < now,
                )
            )
            .values(
                status=JobStatus.QUEUED,
                lease_owner=None,
                lease_expires_at=None,
                updated_at=now,
            )
        )

        count = self._session.execute(stmt).rowcount

        if count > 0:
            logger.info(f"Recovered {count} jobs with expired leases")

        return count

    def extend_lease(self, job_id: UUID, worker_id: str) -> bool:
        """
        Extend the lease on a job (heartbeat).

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier.

        Returns:
            True if lease was extended, False otherwise.
        """
        now = _utcnow()

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.lease_owner == worker_id,
                    Job.status.in_([JobStatus.RESERVED, JobStatus.RUNNING]),
                )
            )
            .values(
                lease_expires_at=now + self._lease_duration,
                updated_at=now,
            )
        )

        return self._session.execute(stmt).rowcount > 0

    def queue_sizes(self) -> dict[str, int]:
        """
        Get the number of queued jobs per queue.

        Returns:
            Dictionary of queue -> queued job count.
        """
        stmt = (
            select(Job.queue, func.count())
            .where(Job.status == JobStatus.QUEUED)
            .group_by(Job.queue)
        )
        return {queue: count for queue, count in self._session.execute(stmt).all()}


class WorkerRepository:
    """
    Repository for the worker registry.

    A worker is considered active while its heartbeat is newer than the
    stale timeout.
    """

    def __init__(self, session: Session, stale_after_seconds: int | None = None):
        """
        Initialize the repository with a database session.

        Args:
            session: The database session.
            stale_after_seconds: Heartbeat age after which a worker no longer
                counts as active. Defaults to the configured value.
        """
        self._session = session
        if stale_after_seconds is None:
            stale_after_seconds = get_settings().worker_stale_after_seconds
        self._stale_after = timedelta(seconds=stale_after_seconds)

    def register(
        self,
        worker_id: str,
        hostname: str,
        pid: int,
        queues: Sequence[str],
    ) -> None:
        """
        Register a worker, replacing any previous record with the same ID.

        Args:
            worker_id: The worker identifier.
            hostname: Host the worker runs on.
            pid: Worker process ID.
            queues: Queue subscriptions of the worker.
        """
        now = _utcnow()
        stmt = insert(Worker).values(
            id=worker_id,
            hostname=hostname,
            pid=pid,
            queues=list(queues),
            started_at=now,
            heartbeat_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Worker.id],
            set_={
                "hostname": stmt.excluded.hostname,
                "pid": stmt.excluded.pid,
                "queues": stmt.excluded.queues,
                "current_queue": None,
                "current_job_id": None,
                "started_at": now,
                "heartbeat_at": now,
            },
        )
        self._session.execute(stmt)

        logger.info(
            "Registered worker",
            extra={"worker_id": worker_id, "queues": list(queues)}
        )

    def unregister(self, worker_id: str) -> None:
        """Remove a worker from the registry."""
        self._session.execute(delete(Worker).where(Worker.id == worker_id))
        logger.info("Unregistered worker", extra={"worker_id": worker_id})

    def heartbeat(self, worker_id: str) -> bool:
        """
        Refresh a worker's heartbeat.

        Returns:
            True if the worker record exists.
        """
        stmt = (
            update(Worker)
            .where(Worker.id == worker_id)
            .values(heartbeat_at=_utcnow())
        )
        return self._session.execute(stmt).rowcount > 0

    def set_current_job(self, worker_id: str, queue: str, job_id: UUID) -> None:
        """Record that a worker started processing a job from queue."""
        stmt = (
            update(Worker)
            .where(Worker.id == worker_id)
            .values(
                current_queue=queue,
                current_job_id=job_id,
                heartbeat_at=_utcnow(),
            )
        )
        self._session.execute(stmt)

    def clear_current_job(self, worker_id: str) -> None:
        """Record that a worker is idle."""
        stmt = (
            update(Worker)
            .where(Worker.id == worker_id)
            .values(
                current_queue=None,
                current_job_id=None,
                heartbeat_at=_utcnow(),
            )
        )
        self._session.execute(stmt)

    def list_active(self) -> list[Worker]:
        """
        List workers whose heartbeat is recent enough.

        Returns:
            Active workers ordered by ID.
        """
        cutoff = _utcnow() - self._stale_after
        stmt = (
            select(Worker)
            .where(Worker.heartbeat_at >= cutoff)
            .order_by(Worker.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def prune_stale(self) -> int:
        """
        Delete workers whose heartbeat is older than the stale timeout.

        Returns:
            Number of workers removed.
        """
        cutoff = _utcnow() - self._stale_after
        stmt = delete(Worker).where(Worker.heartbeat_at < cutoff)
        count = self._session.execute(stmt).rowcount

        if count > 0:
            logger.info(f"Pruned {count} stale workers")

        return count
