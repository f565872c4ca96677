"""
Job records passed between the store, the scheduler and handlers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from jobrotor.constants import DEFAULT_MAX_ATTEMPTS


class JobPayload(BaseModel):
    """Shape every job payload must have. Handlers are chosen by job_type."""

    job_type: str = Field(min_length=1)
    data: dict[str, Any] = {}
    metadata: dict[str, Any] | None = None


class JobResult(BaseModel):
    """Outcome of one handler run."""

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass(frozen=True)
class ReservedJob:
    """
    A job handed out by a job store's reserve operation.

    The reservation is exclusive to the worker that made it until the
    lease expires.
    """

    id: UUID
    queue: str
    payload: dict[str, Any] = field(default_factory=dict)
    attempt: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    lease_expires_at: datetime | None = None


@dataclass
class JobContext:
    """What a handler gets to see about the job it is running."""

    job_id: UUID
    queue: str
    attempt: int
    max_attempts: int
    payload: dict[str, Any]
    lease_owner: str
    lease_expires_at: datetime | None

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt)
