"""
Database module.
Contains database connection, models, repositories and the scheduler
collaborators built on them.
"""

from jobrotor.db.collaborators import (
    DatabaseJobStore,
    DatabaseQueueSource,
    DatabaseWorkerRegistry,
    expand_subscriptions,
)
from jobrotor.db.connection import (
    close_db,
    get_engine,
    get_session_context,
    init_db,
)
from jobrotor.db.models import Base, Job, Worker
from jobrotor.db.repository import JobRepository, WorkerRepository

__all__ = [
    "get_session_context",
    "get_engine",
    "init_db",
    "close_db",
    "Job",
    "Worker",
    "Base",
    "JobRepository",
    "WorkerRepository",
    "DatabaseQueueSource",
    "DatabaseJobStore",
    "DatabaseWorkerRegistry",
    "expand_subscriptions",
]
