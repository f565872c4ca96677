"""
SQLAlchemy database models.
Defines the jobs and workers tables.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobrotor.constants import DEFAULT_MAX_ATTEMPTS, JobStatus
from jobrotor.types.job import ReservedJob
from jobrotor.types.worker import WorkerObservation


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in a named queue.

    This is the authoritative source of truth for job state.
    Queues have no table of their own: a queue exists while it holds
    queued jobs.

    Key constraints:
    - status transitions follow the defined state machine
    - lease_owner and lease_expires_at track reservations for at-least-once delivery
    """

    __tablename__ = "jobs"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )

    queue: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Job payload
    payload: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.QUEUED,
        index=True,
    )

    # Retry tracking
    attempt: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_ATTEMPTS,
    )

    # Lease management
    lease_owner: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Result storage (optional)
    result: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
    )

    __table_args__ = (
        # Index for FIFO reservation within a queue
        Index(
            "ix_jobs_queue_poll",
            "queue",
            "created_at",
            postgresql_where=(Column("status") == JobStatus.QUEUED.value),
        ),
        # Index for lease expiry checks
        Index(
            "ix_jobs_lease_expiry",
            "lease_expires_at",
            postgresql_where=(Column("status") == JobStatus.RESERVED.value),
        ),
    )

    def to_reserved(self) -> ReservedJob:
        """Convert to the record handed to the scheduler."""
        return ReservedJob(
            id=self.id,
            queue=self.queue,
            payload=dict(self.payload or {}),
            attempt=self.attempt,
            max_attempts=self.max_attempts,
            lease_expires_at=self.lease_expires_at,
        )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, queue={self.queue}, "
            f"status={self.status}, attempt={self.attempt}/{self.max_attempts})"
        )


class Worker(Base):
    """
    Registry entry for a running worker process.

    current_queue is set while the worker processes a job and cleared when
    it finishes; other workers count these to compute queue depth.
    """

    __tablename__ = "workers"

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    hostname: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    pid: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    queues: Mapped[list[str]] = mapped_column(
        ARRAY(String(255)),
        nullable=False,
        default=list,
    )

    current_queue: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    current_job_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        nullable=True,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    heartbeat_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    def to_observation(self) -> WorkerObservation:
        """Convert to the view other workers' schedulers consume."""
        return WorkerObservation(worker_id=self.id, queue=self.current_queue)

    def __repr__(self) -> str:
        return f"Worker(id={self.id}, current_queue={self.current_queue})"
