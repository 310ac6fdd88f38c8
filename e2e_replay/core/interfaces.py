"""
Core interfaces and abstract base classes for the e2e-replay runner.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class BrowserTransport(ABC):
    """Abstract interface for a remote browser automation connection.

    One transport serves exactly one browser. Tool failures raise
    ``TransportError``; use before ``connect`` raises ``ConfigurationError``.
    """

    browser_id: int

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the transport is ready for tool calls."""
        pass

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Navigate to a URL."""
        pass

    @abstractmethod
    async def evaluate(self, function: str) -> str:
        """Evaluate a script expression in the page."""
        pass

    @abstractmethod
    async def click(self, element: str, ref: str) -> None:
        """Click an element by description and snapshot reference."""
        pass

    @abstractmethod
    async def type_text(self, element: str, ref: str, text: str) -> None:
        """Type text into an element by description and snapshot reference."""
        pass

    @abstractmethod
    async def snapshot(self) -> str:
        """Take a structured page snapshot as text."""
        pass

    @abstractmethod
    async def list_tabs(self) -> Optional[Any]:
        """List open tabs."""
        pass
