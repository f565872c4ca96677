"""
Pytest configuration and shared fixtures.
"""

from collections import defaultdict
from collections.abc import Iterable
from uuid import uuid4

import pytest
from prometheus_client import CollectorRegistry

from jobrotor.config import Settings
from jobrotor.observability.metrics import MetricsCollector
from jobrotor.scheduler import RotationConfig, TimedRoundRobinScheduler
from jobrotor.types.job import ReservedJob
from jobrotor.types.worker import WorkerObservation


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeQueueSource:
    """Queue source returning whatever queues the test sets."""

    def __init__(self, queues: Iterable[str] = ()):
        self.queues = list(queues)
        self.calls = 0
        self.error: Exception | None = None

    def list_queues(self) -> list[str]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.queues)


class FakeJobStore:
    """In-memory job store that records every reservation attempt."""

    def __init__(self):
        self.jobs: dict[str, list[ReservedJob]] = defaultdict(list)
        self.errors: dict[str, Exception] = {}
        self.attempts: list[str] = []

    def push(self, queue: str, count: int = 1) -> list[ReservedJob]:
        jobs = [
            ReservedJob(id=uuid4(), queue=queue, payload={"job_type": "echo"})
            for _ in range(count)
        ]
        self.jobs[queue].extend(jobs)
        return jobs

    def reserve(self, queue: str) -> ReservedJob | None:
        self.attempts.append(queue)
        if queue in self.errors:
            raise self.errors[queue]
        if self.jobs[queue]:
            return self.jobs[queue].pop(0)
        return None


class FakeWorkerRegistry:
    """Registry reporting a fixed set of worker observations."""

    def __init__(self, workers: Iterable[WorkerObservation] = ()):
        self.workers = list(workers)
        self.calls = 0
        self.error: Exception | None = None

    def busy_on(self, *queues: str | None) -> None:
        self.workers = [
            WorkerObservation(worker_id=f"worker-{i}", queue=queue)
            for i, queue in enumerate(queues)
        ]

    def list_active_workers(self) -> list[WorkerObservation]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.workers)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue_source() -> FakeQueueSource:
    return FakeQueueSource()


@pytest.fixture
def job_store() -> FakeJobStore:
    return FakeJobStore()


@pytest.fixture
def registry() -> FakeWorkerRegistry:
    return FakeWorkerRegistry()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def make_scheduler(queue_source, job_store, registry, clock, metrics):
    """Build a scheduler wired to the fake collaborators."""

    def _make(
        config: RotationConfig | None = None,
        wildcard: bool = False,
    ) -> TimedRoundRobinScheduler:
        return TimedRoundRobinScheduler(
            queue_source,
            job_store,
            registry,
            config or RotationConfig(),
            wildcard=wildcard,
            worker_id="test-worker",
            clock=clock,
            metrics=metrics,
        )

    return _make


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        worker_id="test-worker",
        worker_queues=["high", "low"],
        log_level="DEBUG",
        log_format="console",
        worker_lease_duration_seconds=5,
        worker_poll_interval_seconds=0.01,
        reaper_interval_seconds=1,
        prometheus_port=None,
    )
