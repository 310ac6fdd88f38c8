"""
Configuration module exports.
"""

from e2e_replay.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
