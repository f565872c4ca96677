"""
Timed Round-Robin Job Scheduler

Worker-side queue rotation for a multi-queue job pool: time-sliced round-robin
ordering of queues, per-queue-family depth limits, and job reservation from the
first eligible, non-empty queue.
"""

__version__ = "1.0.0"
