"""Utility modules."""

from arbseeker.utils.alerts import TelegramAlerter
from arbseeker.utils.logging import setup_logging
from arbseeker.utils.time_filter import is_active_hours, is_sydney_daytime

__all__ = [
    "TelegramAlerter",
    "setup_logging",
    "is_active_hours",
    "is_sydney_daytime",
]
