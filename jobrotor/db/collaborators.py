"""
Database-backed implementations of the scheduler's collaborators.

Each call opens its own short session so a scan never holds a transaction
open across queues.
"""

import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from jobrotor.constants import WILDCARD_QUEUE
from jobrotor.db.connection import get_session_context
from jobrotor.db.repository import JobRepository, WorkerRepository
from jobrotor.types.job import ReservedJob
from jobrotor.types.worker import WorkerObservation

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


def expand_subscriptions(subscriptions: Sequence[str], known_queues: Sequence[str]) -> list[str]:
    """
    Turn a worker's queue subscriptions into concrete queue names.

    The wildcard expands in place to every known queue in sorted order.
    Duplicates keep their first position.

    Args:
        subscriptions: Queue names and/or the wildcard, in priority order.
        known_queues: Every queue currently known to the store.

    Returns:
        Ordered, de-duplicated queue names.
    """
    expanded: list[str] = []
    for name in subscriptions:
        if name == WILDCARD_QUEUE:
            expanded.extend(sorted(known_queues))
        else:
            expanded.append(name)
    return list(dict.fromkeys(expanded))


class DatabaseQueueSource:
    """Lists a worker's queues, expanding the wildcard from the jobs table."""

    def __init__(
        self,
        subscriptions: Sequence[str],
        session_factory: SessionFactory = get_session_context,
    ):
        self.subscriptions = list(subscriptions)
        self._session_factory = session_factory

    @property
    def wildcard(self) -> bool:
        return WILDCARD_QUEUE in self.subscriptions

    def list_queues(self) -> list[str]:
        if not self.wildcard:
            return expand_subscriptions(self.subscriptions, [])

        with self._session_factory() as session:
            known = JobRepository(session).list_queue_names()
        return expand_subscriptions(self.subscriptions, known)


class DatabaseJobStore:
    """Reserves jobs on behalf of one worker."""

    def __init__(
        self,
        worker_id: str,
        session_factory: SessionFactory = get_session_context,
        lease_duration_seconds: int | None = None,
    ):
        self.worker_id = worker_id
        self._session_factory = session_factory
        self._lease_duration_seconds = lease_duration_seconds

    def reserve(self, queue: str) -> ReservedJob | None:
        with self._session_factory() as session:
            repo = JobRepository(session, self._lease_duration_seconds)
            job = repo.reserve(queue, self.worker_id)
            return job.to_reserved() if job is not None else None


class DatabaseWorkerRegistry:
    """Reads active workers from the workers table."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session_context,
        stale_after_seconds: int | None = None,
    ):
        self._session_factory = session_factory
        self._stale_after_seconds = stale_after_seconds

    def list_active_workers(self) -> list[WorkerObservation]:
        with self._session_factory() as session:
            workers = WorkerRepository(session, self._stale_after_seconds).list_active()
            return [worker.to_observation() for worker in workers]
