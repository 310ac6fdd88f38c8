"""
Custom exception hierarchy for e2e-replay error handling.

Separates failures a step retry can recover from (transport hiccups, bad
oracle output, unresolvable elements) from failures that must abort the
run (configuration and scenario file problems).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class E2EReplayError(Exception):
    """Base exception for all e2e-replay errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class RetryableError(E2EReplayError):
    """Base class for errors a step retry may recover from."""


class NonRetryableError(E2EReplayError):
    """Base class for errors that should abort instead of being retried."""


class TransportError(RetryableError):
    """A remote browser tool call failed."""

    def __init__(
        self,
        message: str,
        browser_id: Optional[int] = None,
        tool: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.browser_id = browser_id
        self.tool = tool
        self.details.update({
            "browser_id": browser_id,
            "tool": tool
        })


class OracleError(RetryableError):
    """The language model call failed or returned unusable output."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.model = model
        self.details.update({"model": model})


class ElementResolutionError(RetryableError):
    """A recorded element anchor could not be found in the current snapshot."""

    def __init__(
        self,
        message: str,
        anchor: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.anchor = anchor
        self.details.update({"anchor": anchor})


class ConfigurationError(NonRetryableError):
    """Missing credentials, unknown browser, unusable transport setup."""

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.setting = setting
        self.details.update({"setting": setting})


class ScenarioFileError(NonRetryableError):
    """The top-level scenario file is missing or unreadable."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.path = path
        self.details.update({"path": path})
