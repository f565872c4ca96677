"""
Unit tests for the worker polling loop.
"""

from uuid import uuid4

import pytest

from jobrotor.types.job import ReservedJob
from jobrotor.worker.main import Worker


class StubScheduler:
    """Scheduler returning queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def reserve_job(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result


class TestWorker:
    """Tests for Worker."""

    @pytest.fixture
    def make_worker(self, test_settings):
        def _make(scheduler) -> Worker:
            return Worker(settings=test_settings, scheduler=scheduler)
        return _make

    def test_identity_from_settings(self, make_worker, test_settings):
        worker = make_worker(StubScheduler())

        assert worker.worker_id == "test-worker"
        assert worker.queues == ["high", "low"]
        assert worker.poll_interval == test_settings.worker_poll_interval_seconds

    def test_builds_scheduler_from_settings(self, test_settings):
        """Without an injected scheduler, one is built for the worker's queues."""
        worker = Worker(settings=test_settings)

        assert worker.scheduler.worker_id == "test-worker"
        assert worker.scheduler.wildcard is False
        assert worker.scheduler.config.slice_length == test_settings.slice_length

    def test_wildcard_subscription_marks_scheduler(self, test_settings):
        worker = Worker(settings=test_settings, queues=["*"])

        assert worker.scheduler.wildcard is True

    def test_work_once_without_job(self, make_worker, monkeypatch):
        """No job means nothing is processed."""
        worker = make_worker(StubScheduler(None))
        processed = []
        monkeypatch.setattr(worker, "process", processed.append)

        assert worker.work_once() is False
        assert processed == []

    def test_work_once_processes_reserved_job(self, make_worker, monkeypatch):
        """A reserved job is handed to process()."""
        job = ReservedJob(id=uuid4(), queue="high")
        worker = make_worker(StubScheduler(job))
        processed = []
        monkeypatch.setattr(worker, "process", processed.append)

        assert worker.work_once() is True
        assert processed == [job]

    def test_work_once_propagates_scheduler_errors(self, make_worker):
        """Reservation errors reach the polling loop."""
        worker = make_worker(StubScheduler(RuntimeError("store down")))

        with pytest.raises(RuntimeError):
            worker.work_once()

    def test_stop(self, make_worker):
        worker = make_worker(StubScheduler())
        assert worker.running is True

        worker.stop()

        assert worker.running is False
