"""
Reaper for dead workers and expired job leases.

A worker that dies without unregistering would otherwise keep counting
toward its queue's depth forever, and the job it had reserved would never
run. The reaper runs periodically to:
1. Remove worker records whose heartbeat went stale
2. Return reserved jobs with expired leases to their queue
3. Publish the busy depth of every queue
"""

import logging
import signal
import threading
from collections import Counter

from jobrotor.config import Settings, get_settings
from jobrotor.db import close_db, get_session_context, init_db
from jobrotor.db.collaborators import SessionFactory
from jobrotor.db.repository import JobRepository, WorkerRepository
from jobrotor.observability.logging import setup_logging
from jobrotor.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class Reaper:
    """Periodic cleanup of the worker registry and job leases."""

    def __init__(
        self,
        interval_seconds: int | None = None,
        settings: Settings | None = None,
        session_factory: SessionFactory = get_session_context,
    ):
        """
        Initialize the reaper.

        Args:
            interval_seconds: Seconds between reaper runs.
            settings: Application settings. Defaults to the environment.
            session_factory: Opens database sessions.
        """
        settings = settings or get_settings()
        self.interval = interval_seconds or settings.reaper_interval_seconds
        self.stale_after = settings.worker_stale_after_seconds
        self._session_factory = session_factory
        self._stop_event = threading.Event()
        self._metrics = get_metrics()

    def start(self) -> None:
        """Start the reaper loop."""
        logger.info(f"Reaper starting with interval {self.interval}s")

        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            self._stop_event.wait(self.interval)

        logger.info("Reaper stopped")

    def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._stop_event.set()

    def run_once(self) -> tuple[int, int]:
        """
        Run the reaper once (for testing or cron-style execution).

        Returns:
            Tuple of (workers pruned, jobs recovered).
        """
        with self._session_factory() as session:
            workers = WorkerRepository(session, self.stale_after)
            pruned = workers.prune_stale()
            recovered = JobRepository(session).recover_expired_leases()
            active = workers.list_active()

        if pruned > 0:
            self._metrics.workers_pruned.inc(pruned)
        if recovered > 0:
            self._metrics.lease_expired.inc(recovered)

        depths = Counter(w.current_queue for w in active if w.current_queue is not None)
        self._metrics.queue_busy_depth.clear()
        for queue, depth in depths.items():
            self._metrics.update_busy_depth(queue, depth)

        return pruned, recovered


def run() -> None:
    """Run the reaper."""
    setup_logging()
    init_db()

    reaper = Reaper()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda signum, frame: reaper.stop())

    try:
        reaper.start()
    finally:
        close_db()


if __name__ == "__main__":
    run()
