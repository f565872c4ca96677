"""
Scheduler module.
Contains queue rotation, admission control and the reservation loop.
"""

from jobrotor.scheduler.admission import AdmissionController
from jobrotor.scheduler.busy import BusyQueueObserver
from jobrotor.scheduler.config import RotationConfig
from jobrotor.scheduler.rotation import RotationState
from jobrotor.scheduler.round_robin import TimedRoundRobinScheduler

__all__ = [
    "AdmissionController",
    "BusyQueueObserver",
    "RotationConfig",
    "RotationState",
    "TimedRoundRobinScheduler",
]
