"""
Error hierarchy and retry strategies for e2e-replay.
"""

from .exceptions import (
    ConfigurationError,
    E2EReplayError,
    ElementResolutionError,
    NonRetryableError,
    OracleError,
    RetryableError,
    ScenarioFileError,
    TransportError,
)
from .recovery import FixedBackoffStrategy, RetryContext, RetryStrategy

__all__ = [
    # Exceptions
    "E2EReplayError",
    "RetryableError",
    "NonRetryableError",
    "TransportError",
    "OracleError",
    "ElementResolutionError",
    "ConfigurationError",
    "ScenarioFileError",

    # Recovery
    "RetryStrategy",
    "FixedBackoffStrategy",
    "RetryContext",
]
