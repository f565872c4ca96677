"""
Worker module.
Contains the polling worker and the job handler registry.
"""

from jobrotor.worker.main import Worker, run

__all__ = ["Worker", "run"]
