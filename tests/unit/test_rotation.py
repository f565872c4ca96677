"""
Unit tests for rotation state and time-sliced advancement.
"""

from jobrotor.scheduler.rotation import RotationState


class TestRotatedQueues:
    """Tests for RotationState.rotated_queues."""

    def test_empty_snapshot_leaves_state_untouched(self, clock):
        """An empty snapshot returns nothing and does not arm the deadline."""
        state = RotationState(clock=clock)

        assert state.rotated_queues([]) == []
        assert state.offset == 0
        assert state.slice_deadline is None

    def test_first_call_initializes_deadline_to_now(self, clock):
        """The first check arms the deadline at the current time, not now + slice."""
        state = RotationState(slice_length=60, clock=clock)

        assert state.rotated_queues(["a", "b", "c"]) == ["a", "b", "c"]
        assert state.slice_deadline == clock.now
        assert state.offset == 0

    def test_never_reserved_worker_advances_after_any_elapsed_time(self, clock):
        """Without a reservation the slice expires on the next tick."""
        state = RotationState(slice_length=60, clock=clock)
        state.rotated_queues(["a", "b", "c"])

        clock.advance(0.001)

        assert state.rotated_queues(["a", "b", "c"]) == ["b", "c", "a"]
        assert state.offset == 1

        clock.advance(0.001)

        assert state.rotated_queues(["a", "b", "c"]) == ["c", "a", "b"]
        assert state.offset == 2

    def test_result_is_cyclic_shift_by_offset(self, clock):
        """Rotation is a permutation that starts at offset mod length."""
        queues = ["q0", "q1", "q2", "q3", "q4"]
        state = RotationState(clock=clock)
        state.slice_deadline = clock.now + 60

        for expected_offset in range(len(queues) * 2):
            rotated = state.rotated_queues(queues)
            n = expected_offset % len(queues)

            assert sorted(rotated) == sorted(queues)
            assert rotated == queues[n:] + queues[:n]
            state.advance_offset()

    def test_rotation_does_not_advance_offset(self, clock):
        """Rotating is read-only while the slice is live."""
        state = RotationState(clock=clock)
        state.slice_deadline = clock.now + 60

        state.rotated_queues(["a", "b"])
        state.rotated_queues(["a", "b"])

        assert state.offset == 0

    def test_offset_is_reduced_modulo_current_snapshot(self, clock):
        """A shrinking queue list never rotates out of range."""
        state = RotationState(clock=clock)
        state.slice_deadline = clock.now + 60
        state.rotated_queues(["a", "b", "c", "d", "e"])
        for _ in range(4):
            state.advance_offset()
        assert state.offset == 4

        assert state.rotated_queues(["a", "b", "c"]) == ["b", "c", "a"]


class TestAdvanceOffset:
    """Tests for cursor advancement."""

    def test_wraps_at_snapshot_length(self, clock):
        """With three queues and offset 2, one advancement gives 0, not 3."""
        state = RotationState(clock=clock)
        state.slice_deadline = clock.now + 60
        state.rotated_queues(["a", "b", "c"])
        state.advance_offset()
        state.advance_offset()
        assert state.offset == 2

        state.advance_offset()

        assert state.offset == 0

    def test_noop_without_snapshot(self, clock):
        """Advancing before any queues were seen does nothing."""
        state = RotationState(clock=clock)

        state.advance_offset()

        assert state.offset == 0


class TestSliceRearm:
    """Tests for re-arming the slice on reservation."""

    def test_new_queue_rearms_deadline(self, clock):
        """Reserving from a different queue starts a full slice."""
        state = RotationState(slice_length=60, clock=clock)

        assert state.begin_queue("a") is True
        assert state.current_queue == "a"
        assert state.slice_deadline == clock.now + 60

    def test_same_queue_does_not_extend_deadline(self, clock):
        """Repeated reservations from one queue keep the original deadline."""
        state = RotationState(slice_length=60, clock=clock)
        state.begin_queue("a")
        deadline = state.slice_deadline

        clock.advance(30)

        assert state.begin_queue("a") is False
        assert state.slice_deadline == deadline

    def test_hot_queue_is_sliced_away(self, clock):
        """A queue that keeps yielding jobs still loses the front after its slice."""
        state = RotationState(slice_length=60, clock=clock)
        state.rotated_queues(["a", "b"])
        state.begin_queue("a")

        clock.advance(30)
        state.begin_queue("a")
        assert state.rotated_queues(["a", "b"]) == ["a", "b"]

        clock.advance(31)
        assert state.rotated_queues(["a", "b"]) == ["b", "a"]
