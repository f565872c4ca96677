"""
Per-worker rotation cursor with time-sliced advancement.
"""

import logging
import time
from collections.abc import Callable, Sequence

from jobrotor.constants import DEFAULT_SLICE_LENGTH

logger = logging.getLogger(__name__)


class RotationState:
    """
    Tracks where a worker is in its cycle over the queue list.

    The cursor moves forward by exactly one position at a time, either
    when the current slice expires or when the scheduler finds a probed
    queue empty. It is always reduced modulo the length of the snapshot
    being rotated, so queues appearing or disappearing between polls
    never push it out of range.

    The slice deadline is only re-armed when a job is reserved from a
    different queue than the previous reservation. A worker that has
    never reserved anything starts with a deadline of "now", so its
    slice expires on the next clock tick and the cursor keeps moving
    every poll until the first reservation.
    """

    def __init__(
        self,
        slice_length: int = DEFAULT_SLICE_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rotation state.

        Args:
            slice_length: Seconds a slice lasts once re-armed.
            clock: Source of the current time in seconds.
        """
        self.slice_length = slice_length
        self.offset = 0
        self.current_queue: str | None = None
        self.slice_deadline: float | None = None
        self._clock = clock
        self._queues: list[str] = []

    def rotated_queues(self, queues: Sequence[str]) -> list[str]:
        """
        Return queues rotated so the queue at the cursor comes first.

        Advances the cursor by one first if the current slice has expired.
        An empty snapshot leaves the cursor and deadline untouched.

        Args:
            queues: The queue snapshot for this poll.

        Returns:
            The snapshot as a cyclic shift starting at the cursor.
        """
        self._queues = list(queues)
        if not self._queues:
            return []

        if self.slice_expired():
            self.advance_offset()
            logger.debug(
                "Slice expired, advanced rotation",
                extra={"offset": self.offset},
            )

        n = self.offset % len(self._queues)
        return self._queues[n:] + self._queues[:n]

    def advance_offset(self) -> None:
        """Move the cursor one position, wrapping at the snapshot length."""
        if not self._queues:
            return
        self.offset = (self.offset + 1) % len(self._queues)

    def slice_expired(self) -> bool:
        if self.slice_deadline is None:
            self.slice_deadline = self._clock()
        return self._clock() > self.slice_deadline

    def begin_queue(self, queue: str) -> bool:
        """
        Record a successful reservation from queue.

        Re-arms the slice only when the queue differs from the one the
        last job came from.

        Returns:
            True if this started a new slice.
        """
        if queue == self.current_queue:
            return False

        self.slice_deadline = self._clock() + self.slice_length
        self.current_queue = queue
        return True
