"""
Immutable configuration for the round-robin scheduler.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from jobrotor.config import Settings
from jobrotor.constants import DEFAULT_SLICE_LENGTH


@dataclass(frozen=True)
class RotationConfig:
    """
    Tunables for queue rotation and admission control.

    queue_depths keeps prefixes in the order they were configured; depth
    lookup takes the first matching prefix, so order matters when prefixes
    overlap (e.g. "mail" and "mail_bulk").
    """

    slice_length: int = DEFAULT_SLICE_LENGTH
    queue_depths: tuple[tuple[str, int], ...] = ()
    depth_override: int | None = None
    filter_busy_queues: bool = False

    @classmethod
    def build(
        cls,
        slice_length: int = DEFAULT_SLICE_LENGTH,
        queue_depths: Mapping[str, int] | None = None,
        depth_override: int | None = None,
        filter_busy_queues: bool = False,
    ) -> "RotationConfig":
        """Create a config from a prefix mapping, preserving its order."""
        return cls(
            slice_length=slice_length,
            queue_depths=tuple((queue_depths or {}).items()),
            depth_override=depth_override,
            filter_busy_queues=filter_busy_queues,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RotationConfig":
        """Create a config from application settings."""
        return cls.build(
            slice_length=settings.slice_length,
            queue_depths=settings.queue_depths,
            depth_override=settings.queue_depth,
            filter_busy_queues=settings.filter_busy_queues,
        )
