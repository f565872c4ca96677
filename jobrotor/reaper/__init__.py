"""
Reaper module.
Contains the cleanup loop for stale workers and expired job leases.
"""

from jobrotor.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]
