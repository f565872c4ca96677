"""
Integration tests for worker job processing and the reaper.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from jobrotor.constants import JobStatus
from jobrotor.db.models import Worker as WorkerRecord
from jobrotor.db.repository import JobRepository, WorkerRepository
from jobrotor.reaper.main import Reaper
from jobrotor.worker.main import Worker

pytestmark = pytest.mark.integration


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    @pytest.fixture
    def worker(self, test_settings, session_factory) -> Worker:
        worker = Worker(settings=test_settings, session_factory=session_factory)
        with session_factory() as session:
            WorkerRepository(session, 60).register(
                worker.worker_id, hostname="host", pid=1, queues=worker.queues
            )
        return worker

    def _enqueue(self, session_factory, queue: str, job_type: str, max_attempts: int = 3):
        with session_factory() as session:
            return JobRepository(session, 30).enqueue(
                queue, {"job_type": job_type, "data": {"n": 1}}, max_attempts=max_attempts
            )

    def _get(self, session_factory, job_id):
        with session_factory() as session:
            return JobRepository(session, 30).get_job(job_id)

    def test_full_job_lifecycle_success(self, worker, session_factory):
        """Reserve, run and complete a job from a subscribed queue."""
        job = self._enqueue(session_factory, "low", "echo")

        assert worker.work_once() is True

        done = self._get(session_factory, job.id)
        assert done.status == JobStatus.SUCCEEDED
        assert done.attempt == 1
        assert done.result == {"echo": {"job_type": "echo", "data": {"n": 1}}}

    def test_worker_is_idle_after_processing(self, worker, session_factory):
        self._enqueue(session_factory, "high", "echo")

        worker.work_once()

        with session_factory() as session:
            (record,) = WorkerRepository(session, 60).list_active()
        assert record.current_queue is None
        assert record.current_job_id is None

    def test_failed_job_retries_then_fails(self, worker, session_factory):
        job = self._enqueue(session_factory, "high", "failing_job", max_attempts=2)

        worker.work_once()
        assert self._get(session_factory, job.id).status == JobStatus.QUEUED

        worker.work_once()
        failed = self._get(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert "Intentional failure" in failed.last_error

    def test_unsubscribed_queue_is_ignored(self, worker, session_factory):
        job = self._enqueue(session_factory, "elsewhere", "echo")

        assert worker.work_once() is False
        assert self._get(session_factory, job.id).status == JobStatus.QUEUED


class TestReaperIntegration:
    """Integration tests for the reaper."""

    def test_run_once(self, test_settings, session_factory):
        with session_factory() as session:
            jobs = JobRepository(session, lease_duration_seconds=-1)
            jobs.enqueue("a", {"job_type": "echo"})
            session.flush()
            jobs.reserve("a", "dead-worker")

            workers = WorkerRepository(session, 60)
            workers.register("dead-worker", hostname="host", pid=1, queues=["a"])
            session.execute(
                update(WorkerRecord)
                .where(WorkerRecord.id == "dead-worker")
                .values(heartbeat_at=datetime.now(timezone.utc) - timedelta(hours=1))
            )

        reaper = Reaper(settings=test_settings, session_factory=session_factory)

        assert reaper.run_once() == (1, 1)

        with session_factory() as session:
            assert JobRepository(session, 30).queue_sizes() == {"a": 1}
            assert WorkerRepository(session, 60).list_active() == []
