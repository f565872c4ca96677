"""
Unit tests for depth-based admission control.
"""

import logging

import pytest

from jobrotor.scheduler.admission import AdmissionController
from jobrotor.scheduler.busy import BusyQueueObserver
from jobrotor.scheduler.config import RotationConfig


class TestAdmissionController:
    """Tests for AdmissionController."""

    @pytest.fixture
    def make_controller(self, registry):
        def _make(**kwargs) -> AdmissionController:
            return AdmissionController(
                RotationConfig.build(**kwargs),
                BusyQueueObserver(registry),
            )
        return _make

    def test_denied_at_max_depth(self, make_controller, registry):
        """Two workers on mail_outbound fill a family limit of 2."""
        registry.busy_on("mail_outbound", "mail_outbound")
        controller = make_controller(queue_depths={"mail": 2})

        assert controller.may_probe("mail_outbound", wildcard=False) is False

    def test_admitted_below_max_depth(self, make_controller, registry):
        """One worker on mail_outbound leaves room under a limit of 2."""
        registry.busy_on("mail_outbound", "sms")
        controller = make_controller(queue_depths={"mail": 2})

        assert controller.may_probe("mail_outbound", wildcard=False) is True

    def test_wildcard_bypasses_depth(self, make_controller, registry):
        """Wildcard workers are admitted even at or above the limit."""
        registry.busy_on("mail_outbound", "mail_outbound", "mail_outbound")
        controller = make_controller(queue_depths={"mail": 2})

        assert controller.may_probe("mail_outbound", wildcard=True) is True
        assert registry.calls == 0

    def test_global_override_replaces_prefix_limit(self, make_controller, registry):
        """A global override of 5 wins over a prefix limit of 1."""
        registry.busy_on("mail_outbound", "mail_outbound")
        controller = make_controller(queue_depths={"mail": 1}, depth_override=5)

        assert controller.depth_limit_for("mail_outbound") == 5
        assert controller.may_probe("mail_outbound") is True

    def test_global_override_applies_without_prefix_match(self, make_controller, registry):
        """The override also limits queues no prefix matches."""
        registry.busy_on("reports")
        controller = make_controller(queue_depths={"mail": 3}, depth_override=1)

        assert controller.depth_limit_for("reports") == 1
        assert controller.may_probe("reports") is False

    def test_global_override_of_zero_is_unlimited(self, make_controller, registry):
        """An override of 0 removes all limits."""
        registry.busy_on("mail_outbound", "mail_outbound")
        controller = make_controller(queue_depths={"mail": 1}, depth_override=0)

        assert controller.may_probe("mail_outbound") is True

    def test_unmatched_queue_is_unlimited(self, make_controller, registry):
        """Queues with no matching prefix are admitted without a depth read."""
        registry.busy_on("reports", "reports")
        controller = make_controller(queue_depths={"mail": 1})

        assert controller.depth_limit_for("reports") == 0
        assert controller.may_probe("reports") is True
        assert registry.calls == 0

    def test_prefix_requires_separator(self, make_controller):
        """A prefix only matches when followed by an underscore."""
        controller = make_controller(queue_depths={"mail": 1})

        assert controller.depth_limit_for("mail_outbound") == 1
        assert controller.depth_limit_for("mailbox") == 0
        assert controller.depth_limit_for("mail") == 0

    def test_overlapping_prefixes_use_first_configured(self, make_controller):
        """The first matching prefix in configuration order wins."""
        narrow_last = make_controller(queue_depths={"mail": 1, "mail_bulk": 3})
        narrow_first = make_controller(queue_depths={"mail_bulk": 3, "mail": 1})

        assert narrow_last.depth_limit_for("mail_bulk_eu") == 1
        assert narrow_first.depth_limit_for("mail_bulk_eu") == 3
        assert narrow_first.depth_limit_for("mail_outbound") == 1

    def test_depth_logged_at_debug(self, make_controller, registry, caplog):
        """The depth reading is logged at verbose level."""
        registry.busy_on("mail_outbound")
        controller = make_controller(queue_depths={"mail": 2})

        with caplog.at_level(logging.DEBUG, logger="jobrotor.scheduler.admission"):
            controller.may_probe("mail_outbound")

        assert "queue mail_outbound depth = 1 max = 2" in caplog.text
