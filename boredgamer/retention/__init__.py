"""Tier-based retention for recorded events."""

from .commands import sweep_events_command
from .services import RetentionSweeper, SweepReport

__all__ = ["RetentionSweeper", "SweepReport", "sweep_events_command"]
