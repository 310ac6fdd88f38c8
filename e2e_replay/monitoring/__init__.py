"""
Logging utilities.
"""

from e2e_replay.monitoring.logger import get_logger, log_step_event, setup_logging

__all__ = [
    "get_logger",
    "log_step_event",
    "setup_logging",
]
